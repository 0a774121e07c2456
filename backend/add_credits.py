import asyncio
import uuid

import click

from sinhala_scribe.crud.crud_profile import profile_crud
from sinhala_scribe.db.session import AsyncSessionLocal


async def add_credits(user_id: uuid.UUID, amount: int, description: str):
    async with AsyncSessionLocal() as db:
        profile = await profile_crud.get(db, id=user_id)

        if not profile:
            print(f"Profile {user_id} not found!")
            return

        old_credits = profile.credits
        profile = await profile_crud.add_credits(db, user_id=user_id, amount=amount, description=description)

        print(f"Profile {user_id} credits updated from {old_credits} to {profile.credits}")


@click.command()
@click.argument("user_id", type=click.UUID)
@click.option("--amount", default=100, show_default=True, type=click.IntRange(min=1))
@click.option("--description", default="Manual top-up")
def main(user_id: uuid.UUID, amount: int, description: str):
    asyncio.run(add_credits(user_id, amount, description))


if __name__ == "__main__":
    main()
