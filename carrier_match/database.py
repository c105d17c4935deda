"""
Async engine, session factory and the declarative base shared by all models.
"""
from typing import AsyncIterator

from fastapi import Depends, HTTPException, status
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from carrier_match.config import get_settings

settings = get_settings()

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


CARRIER_TABLES = ("carrier_profiles", "carrier_vehicles")

_carrier_tables_ready = False


async def require_carrier_tables(db: AsyncSession = Depends(get_db)) -> None:
    """
    501 until the carrier migration has been applied.
    Only a positive answer is cached so a later migration is picked up
    without a restart.
    """
    global _carrier_tables_ready
    if _carrier_tables_ready:
        return

    conn = await db.connection()
    present = await conn.run_sync(
        lambda sync_conn: all(inspect(sync_conn).has_table(t) for t in CARRIER_TABLES)
    )
    if not present:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Carrier model is not available yet. Run the carrier migration first.",
        )
    _carrier_tables_ready = True
