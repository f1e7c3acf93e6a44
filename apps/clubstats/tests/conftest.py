"""
Shared pytest configuration for clubstats tests.

Every test gets its own in-memory SQLite database (aiosqlite). The schema
comes from Base.metadata, so no server is needed.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from clubstats.database.db import Base
from clubstats.models.schemas import PlayerRecord, StatisticsSnapshotRecord
from clubstats.services.cache_service import RecordCache
from clubstats.services.calculation_service import get_season_from_date
from clubstats.services.store_service import CachedRecordStore


@pytest_asyncio.fixture
async def test_engine():
    """In-memory database shared by every connection of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        # Ensure models are imported so Base.metadata includes all tables
        from clubstats.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def cache():
    """A fresh record cache per test."""
    return RecordCache()


@pytest_asyncio.fixture
async def store(db_session, cache):
    return CachedRecordStore(db_session, cache)


@pytest.fixture
def make_player():
    """Build a PlayerRecord without touching the database."""

    def _make(player_id, name=None, groups=None, level=None, active=True):
        return PlayerRecord(
            id=player_id,
            name=name or player_id.upper(),
            level=level,
            training_groups=groups or [],
            active=active,
        )

    return _make


@pytest.fixture
def make_snapshot():
    """
    Build a StatisticsSnapshotRecord from compact arguments.

    check_ins: player ids checked in
    matches: list of (match_id, [player ids in slot order]) or
             (match_id, [player ids], court_id)
    """

    def _make(session_id, session_date, check_ins=(), matches=()):
        match_rows = []
        match_player_rows = []
        for entry in matches:
            match_id, player_ids = entry[0], entry[1]
            court_id = entry[2] if len(entry) > 2 else None
            match_rows.append(
                {"id": match_id, "session_id": session_id, "court_id": court_id, "round": 1}
            )
            for slot, player_id in enumerate(player_ids):
                match_player_rows.append(
                    {
                        "id": f"{match_id}-{slot}",
                        "match_id": match_id,
                        "player_id": player_id,
                        "slot": slot,
                    }
                )
        return StatisticsSnapshotRecord(
            id=f"snap-{session_id}",
            session_id=session_id,
            session_date=session_date,
            season=get_season_from_date(session_date),
            matches=match_rows,
            match_players=match_player_rows,
            check_ins=[
                {"id": f"{session_id}-{pid}", "session_id": session_id, "player_id": pid}
                for pid in check_ins
            ],
        )

    return _make
