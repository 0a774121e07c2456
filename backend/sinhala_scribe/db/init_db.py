from loguru import logger

from sinhala_scribe.db.base_class import Base
from sinhala_scribe.db.session import engine
from sinhala_scribe.models import models  # noqa: F401  (registers tables on Base.metadata)


async def init_db() -> None:
    """
    Create missing tables.
    """
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise
