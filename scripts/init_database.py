#!/usr/bin/env python3
"""Create the affiliate program tables."""

import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import create_async_engine

from app.config.logging import setup_logging
from app.config.settings import settings
from app.models import Base


async def init_database(database_url: str | None = None) -> list[str]:
    """
    Create all affiliate program tables that do not exist yet.

    Args:
        database_url: Async SQLAlchemy URL (defaults to settings)

    Returns:
        Names of the tables in the metadata
    """
    engine = create_async_engine(database_url or settings.database_url, echo=False)

    try:
        async with engine.begin() as conn:
            logger.info("Creating tables (checkfirst=True)...")
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    finally:
        await engine.dispose()

    tables = sorted(Base.metadata.tables)
    logger.success(f"Database ready: {', '.join(tables)}")
    return tables


if __name__ == "__main__":
    setup_logging(settings)
    asyncio.run(init_database())
