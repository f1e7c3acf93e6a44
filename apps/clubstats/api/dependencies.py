"""
FastAPI dependencies shared by the route modules.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from clubstats.database.db import get_db_session
from clubstats.services.cache_service import RecordCache
from clubstats.services.store_service import CachedRecordStore


def get_record_cache(request: Request) -> RecordCache:
    """The application's record cache (one per app instance)."""
    return request.app.state.record_cache


async def get_store(
    session: AsyncSession = Depends(get_db_session),
    cache: RecordCache = Depends(get_record_cache),
) -> CachedRecordStore:
    """
    Record store for the current request.

    Usage in FastAPI routes:
        async def my_route(store: CachedRecordStore = Depends(get_store)):
            ...
    """
    return CachedRecordStore(session, cache)
