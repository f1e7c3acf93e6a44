"""
Tests for CachedRecordStore against an in-memory SQLite database.
"""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from clubstats.database.models import SessionStatus, Sport, WinnerTeam
from clubstats.services import data_service
from clubstats.services.cache_service import CHECK_INS, MATCH_RESULTS, PLAYERS, SESSIONS
from clubstats.services.errors import StoreError
from clubstats.utils.datetime_utils import utcnow

# db_session, cache and store fixtures are provided by conftest.py


# ============================================================================
# Reads
# ============================================================================

@pytest.mark.asyncio
async def test_list_players_is_read_through(store, cache):
    """The second read is served from the cache."""
    await store.create_player("Ann", training_groups=["A"])
    first = await store.list_players()
    misses = cache.misses
    second = await store.list_players()

    assert [p.name for p in first] == ["Ann"]
    assert [p.name for p in second] == ["Ann"]
    assert cache.misses == misses
    assert cache.is_cached(PLAYERS)


@pytest.mark.asyncio
async def test_empty_read_is_not_cached(store, cache):
    """A row written by another writer after an empty read is still seen."""
    assert await store.list_check_ins() == []
    assert not cache.is_cached(CHECK_INS)

    session = await store.create_session("2024-03-06")
    player = await store.create_player("Ann")
    # Written behind the store's back
    await data_service.create_check_in(store.session, session.id, player.id)

    check_ins = await store.list_check_ins(session.id)
    assert [c.player_id for c in check_ins] == [player.id]


@pytest.mark.asyncio
async def test_bypass_cache_reads_the_store(store, cache):
    await store.create_session("2024-03-06")
    await store.list_sessions()
    assert cache.is_cached(SESSIONS)

    await data_service.create_session(store.session, "2024-03-07")
    assert len(await store.list_sessions()) == 1
    assert len(await store.list_sessions(bypass_cache=True)) == 2


@pytest.mark.asyncio
async def test_get_player_missing(store):
    await store.create_player("Ann")
    assert await store.get_player("nope") is None


# ============================================================================
# Check-ins
# ============================================================================

@pytest.mark.asyncio
async def test_duplicate_check_in_returns_first_row(store, cache):
    """A second insert of the same (session, player) is a no-op."""
    session = await store.create_session("2024-03-06")
    player = await store.create_player("Ann")
    await store.create_check_in(session.id, player.id)
    await store.list_check_ins()  # populate cache

    first, created_first = await store.create_check_in(session.id, player.id, notes="first")
    assert created_first is False

    second, created_second = await store.create_check_in(session.id, player.id, notes="second")
    assert created_second is False
    assert second.id == first.id
    assert second.notes is None

    cached = cache.get(CHECK_INS)
    assert len([c for c in cached if c.player_id == player.id]) == 1
    assert len(await store.list_check_ins(session.id, bypass_cache=True)) == 1


@pytest.mark.asyncio
async def test_create_check_in_reports_created(store):
    session = await store.create_session("2024-03-06")
    player = await store.create_player("Ann")
    check_in, created = await store.create_check_in(session.id, player.id, max_rounds=3)
    assert created is True
    assert check_in.max_rounds == 3


@pytest.mark.asyncio
async def test_update_and_delete_check_in_patch_cache(store, cache):
    session = await store.create_session("2024-03-06")
    ann = await store.create_player("Ann")
    bob = await store.create_player("Bob")
    await store.create_check_in(session.id, ann.id)
    await store.create_check_in(session.id, bob.id)
    await store.list_check_ins()

    updated = await store.update_check_in(session.id, ann.id, notes="leaves early")
    assert updated.notes == "leaves early"
    assert [c.notes for c in cache.get(CHECK_INS) if c.player_id == ann.id] == ["leaves early"]

    assert await store.delete_check_in(session.id, ann.id) is True
    assert [c.player_id for c in await store.list_check_ins(session.id)] == [bob.id]
    assert await store.delete_check_in(session.id, ann.id) is False


@pytest.mark.asyncio
async def test_update_missing_check_in_returns_none(store):
    session = await store.create_session("2024-03-06")
    assert await store.update_check_in(session.id, "nobody", notes="x") is None


# ============================================================================
# Sessions, matches, results
# ============================================================================

@pytest.mark.asyncio
async def test_update_session_replaces_cached_row(store):
    session = await store.create_session("2024-03-06")
    await store.list_sessions()
    await store.update_session(session.id, SessionStatus.ENDED)

    cached = await store.get_session(session.id)
    assert cached.status == SessionStatus.ENDED


@pytest.mark.asyncio
async def test_end_session_matches(store):
    session = await store.create_session("2024-03-06")
    await store.create_match(session.id, round=1)
    await store.create_match(session.id, round=2)
    await store.list_matches()

    assert await store.end_session_matches(session.id, utcnow()) == 2
    assert all(m.ended_at is not None for m in await store.list_matches(session.id))
    assert await store.end_session_matches(session.id, utcnow()) == 0


@pytest.mark.asyncio
async def test_record_match_result_upserts(store, cache):
    """Recording a second result for a match updates the first."""
    session = await store.create_session("2024-03-06")
    match = await store.create_match(session.id)

    first = await store.record_match_result(match.id, Sport.BADMINTON, WinnerTeam.TEAM1)
    await store.list_match_results()
    second = await store.record_match_result(
        match.id, Sport.BADMINTON, WinnerTeam.TEAM2, score_data={"sets": [{"team1": 15, "team2": 21}]}
    )

    assert second.id == first.id
    assert second.winner_team == WinnerTeam.TEAM2
    results = cache.get(MATCH_RESULTS)
    assert len(results) == 1
    assert results[0].winner_team == WinnerTeam.TEAM2


@pytest.mark.asyncio
async def test_delete_match_removes_players_and_result(store):
    session = await store.create_session("2024-03-06")
    ann = await store.create_player("Ann")
    match = await store.create_match(session.id)
    await store.create_match_player(match.id, ann.id, 0)
    await store.record_match_result(match.id, Sport.PADEL, WinnerTeam.TEAM1)

    assert await store.delete_match(match.id) is True
    assert await store.list_match_players(bypass_cache=True) == []
    assert await store.list_match_results(bypass_cache=True) == []


@pytest.mark.asyncio
async def test_prune_session_live_data(store):
    session = await store.create_session("2024-03-06")
    other = await store.create_session("2024-03-07")
    ann = await store.create_player("Ann")
    match = await store.create_match(session.id)
    await store.create_match_player(match.id, ann.id, 0)
    await store.create_check_in(session.id, ann.id)
    await store.create_check_in(other.id, ann.id)

    await store.prune_session_live_data(session.id)

    assert await store.list_matches(session.id) == []
    assert await store.list_match_players() == []
    assert [c.session_id for c in await store.list_check_ins()] == [other.id]


# ============================================================================
# Failures
# ============================================================================

@pytest.mark.asyncio
async def test_database_error_becomes_store_error(store, monkeypatch):
    async def broken(session, *args, **kwargs):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(data_service, "list_players", broken, raising=True)

    with pytest.raises(StoreError):
        await store.list_players()
    assert not store.cache.is_cached(PLAYERS)
