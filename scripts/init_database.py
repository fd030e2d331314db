#!/usr/bin/env python3
"""Initialize database tables and the default split configuration."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.ext.asyncio import create_async_engine

from app.config.database import create_session_maker
from app.config.settings import settings
from app.models import Base
from app.repositories.affiliate_config_repository import (
    AffiliateConfigRepository,
)

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all database tables and seed affiliate_config."""
    logger.info("Connecting to database...")
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(
            Base.metadata.create_all,
            checkfirst=True
        )

    session_maker = create_session_maker(engine)
    async with session_maker() as session:
        config_repo = AffiliateConfigRepository(session)
        splits = await config_repo.get_level_splits()
        await config_repo.set_level_splits(splits[1], splits[2], splits[3])
        await session.commit()
        logger.info(
            "Affiliate split config ready",
            extra={"splits": {level: str(v) for level, v in splits.items()}},
        )

    await engine.dispose()
    logger.success("Database tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
