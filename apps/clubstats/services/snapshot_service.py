"""
Statistics snapshots of ended sessions.

A snapshot is an immutable copy of a session's matches, match players,
check-ins and match results taken when the session ends. It is created at
most once per session and is the only input of the attendance and player
analytics.
"""

import logging
from datetime import date
from typing import List, Optional

from clubstats.database.models import SessionStatus
from clubstats.models.schemas import StatisticsFilters, StatisticsSnapshotRecord
from clubstats.services.calculation_service import get_season_from_date
from clubstats.services.errors import NotFoundError, SessionNotEndedError
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.datetime_utils import parse_session_date

logger = logging.getLogger(__name__)


async def snapshot_session(store: CachedRecordStore, session_id: str) -> StatisticsSnapshotRecord:
    """
    Capture the statistics snapshot of an ended session.

    Idempotent: an existing snapshot is returned unchanged.

    Raises:
        NotFoundError: If the session does not exist
        SessionNotEndedError: If the session is still active
        StoreError: If the record store fails
    """
    training_session = await store.get_session(session_id, bypass_cache=True)
    if training_session is None:
        raise NotFoundError("Session", session_id)
    if training_session.status != SessionStatus.ENDED:
        raise SessionNotEndedError(session_id)

    existing = await store.get_statistics_snapshot(session_id)
    if existing is not None:
        logger.debug(f"Snapshot for session {session_id} already exists ({existing.id})")
        return existing

    # Cached collections may hold a stale view of rows written moments ago
    matches = await store.list_matches(session_id, bypass_cache=True)
    match_ids = {m.id for m in matches}
    match_players = await store.list_match_players(match_ids, bypass_cache=True) if match_ids else []
    check_ins = await store.list_check_ins(session_id, bypass_cache=True)
    match_results = [
        r for r in await store.list_match_results(bypass_cache=True) if r.match_id in match_ids
    ]

    if not matches:
        logger.warning(f"Session {session_id} ended without matches")
    elif not match_players:
        logger.warning(f"Session {session_id} has {len(matches)} match(es) but no match players")

    snapshot, created = await store.create_statistics_snapshot(
        session_id=session_id,
        session_date=training_session.date,
        season=get_season_from_date(training_session.date),
        matches=matches,
        match_players=match_players,
        check_ins=check_ins,
        match_results=match_results,
    )
    if created:
        logger.info(
            f"Created snapshot {snapshot.id} for session {session_id} "
            f"({len(check_ins)} check-ins, {len(matches)} matches, {len(match_results)} results, "
            f"season {snapshot.season})"
        )
    else:
        logger.info(f"Snapshot for session {session_id} was created concurrently, using {snapshot.id}")
    return snapshot


def filter_snapshots(
    snapshots: List[StatisticsSnapshotRecord],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    season: Optional[str] = None,
) -> List[StatisticsSnapshotRecord]:
    """Snapshots whose session date lies in [date_from, date_to] and, if given, in season."""
    result = []
    for snapshot in snapshots:
        try:
            session_day = parse_session_date(snapshot.session_date)
        except ValueError:
            logger.warning(f"Snapshot {snapshot.id} has unreadable date {snapshot.session_date!r}")
            continue
        if date_from is not None and session_day < date_from:
            continue
        if date_to is not None and session_day > date_to:
            continue
        if season is not None and snapshot.season != season:
            continue
        result.append(snapshot)
    return result


async def get_all_seasons(store: CachedRecordStore) -> List[str]:
    """Distinct seasons that have snapshots, oldest first."""
    snapshots = await store.list_statistics_snapshots()
    return sorted({s.season for s in snapshots})


async def get_session_history(
    store: CachedRecordStore, filters: Optional[StatisticsFilters] = None
) -> List[StatisticsSnapshotRecord]:
    """Snapshots matching the filters, newest session first."""
    filters = filters or StatisticsFilters()
    snapshots = filter_snapshots(
        await store.list_statistics_snapshots(),
        date_from=filters.date_from,
        date_to=filters.date_to,
        season=filters.season,
    )
    return sorted(snapshots, key=lambda s: s.session_date, reverse=True)
