from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.api.deps import get_current_user
from sinhala_scribe.core.config import settings
from sinhala_scribe.crud.crud_profile import profile_crud
from sinhala_scribe.db.session import get_db
from sinhala_scribe.models.models import Profile
from sinhala_scribe.schemas.credit import CreditBalance, CreditPackage

router = APIRouter()


@router.get("/packages", response_model=List[CreditPackage])
async def get_credit_packages() -> Any:
    """
    Get available credit packages.
    """
    return [
        CreditPackage(id=package_id, **package_data)
        for package_id, package_data in settings.CREDIT_PACKAGES.items()
    ]


@router.get("/balance", response_model=CreditBalance)
async def get_credit_balance(
        current_user: Profile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Get the current user's credit balance.
    """
    credits = await profile_crud.get_balance(db, user_id=current_user.id)
    return CreditBalance(credits=credits or 0)
