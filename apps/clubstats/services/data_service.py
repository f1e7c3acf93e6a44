"""
Data service layer for database operations.
Handles all CRUD operations for the club record store.

Functions take an AsyncSession and return pydantic records from
clubstats.models.schemas, never ORM objects.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple
from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from clubstats.database.models import (
    Player,
    Court,
    TrainingSession,
    CheckIn,
    Match,
    MatchPlayer,
    MatchResult,
    StatisticsSnapshot,
    SessionStatus,
    Sport,
    WinnerTeam,
    generate_id,
)
from clubstats.models.schemas import (
    PlayerRecord,
    CourtRecord,
    SessionRecord,
    CheckInRecord,
    MatchRecord,
    MatchPlayerRecord,
    MatchResultRecord,
    StatisticsSnapshotRecord,
)
from clubstats.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


#
# Helper functions
#

def _insert(session: AsyncSession, model):
    """Dialect-specific INSERT so ON CONFLICT clauses are available."""
    if session.bind is not None and session.bind.dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


def _player_record(p: Player) -> PlayerRecord:
    return PlayerRecord(
        id=p.id,
        name=p.name,
        level=p.level,
        training_groups=p.training_groups,
        active=bool(p.active),
    )


def _session_record(s: TrainingSession) -> SessionRecord:
    return SessionRecord(
        id=s.id,
        date=s.date,
        status=s.status,
        created_at=ensure_utc(s.created_at),
    )


def _check_in_record(c: CheckIn) -> CheckInRecord:
    return CheckInRecord(
        id=c.id,
        session_id=c.session_id,
        player_id=c.player_id,
        created_at=ensure_utc(c.created_at),
        max_rounds=c.max_rounds,
        notes=c.notes,
    )


def _match_record(m: Match) -> MatchRecord:
    return MatchRecord(
        id=m.id,
        session_id=m.session_id,
        court_id=m.court_id,
        round=m.round,
        started_at=ensure_utc(m.started_at),
        ended_at=ensure_utc(m.ended_at),
    )


def _match_player_record(mp: MatchPlayer) -> MatchPlayerRecord:
    return MatchPlayerRecord(id=mp.id, match_id=mp.match_id, player_id=mp.player_id, slot=mp.slot)


def _match_result_record(r: MatchResult) -> MatchResultRecord:
    return MatchResultRecord(
        id=r.id,
        match_id=r.match_id,
        sport=r.sport,
        score_data=r.score_data,
        winner_team=r.winner_team,
    )


def _snapshot_record(s: StatisticsSnapshot) -> StatisticsSnapshotRecord:
    return StatisticsSnapshotRecord(
        id=s.id,
        session_id=s.session_id,
        session_date=s.session_date,
        season=s.season,
        matches=s.matches,
        match_players=s.match_players,
        check_ins=s.check_ins,
        match_results=s.match_results,
        created_at=ensure_utc(s.created_at),
    )


# ============================================================================
# Players and courts
# ============================================================================

async def list_players(session: AsyncSession) -> List[PlayerRecord]:
    """Get all players ordered by name."""
    result = await session.execute(select(Player).order_by(Player.name))
    return [_player_record(p) for p in result.scalars().all()]


async def get_player(session: AsyncSession, player_id: str) -> Optional[PlayerRecord]:
    """Get a player by ID."""
    result = await session.execute(select(Player).where(Player.id == player_id))
    p = result.scalar_one_or_none()
    return _player_record(p) if p else None


async def create_player(
    session: AsyncSession,
    name: str,
    level: Optional[float] = None,
    training_groups: Optional[List[str]] = None,
    active: bool = True,
) -> PlayerRecord:
    """Create a player."""
    player = Player(
        id=generate_id(),
        name=name,
        level=level,
        training_groups=list(training_groups or []),
        active=active,
    )
    session.add(player)
    await session.commit()
    await session.refresh(player)
    return _player_record(player)


async def list_courts(session: AsyncSession) -> List[CourtRecord]:
    """Get all courts ordered by index."""
    result = await session.execute(select(Court).order_by(Court.idx))
    return [CourtRecord(id=c.id, idx=c.idx) for c in result.scalars().all()]


async def create_court(session: AsyncSession, idx: int) -> CourtRecord:
    court = Court(id=generate_id(), idx=idx)
    session.add(court)
    await session.commit()
    return CourtRecord(id=court.id, idx=court.idx)


# ============================================================================
# Sessions
# ============================================================================

async def list_sessions(session: AsyncSession) -> List[SessionRecord]:
    """Get all sessions, newest first."""
    result = await session.execute(
        select(TrainingSession).order_by(
            TrainingSession.date.desc(), TrainingSession.created_at.desc()
        )
    )
    return [_session_record(s) for s in result.scalars().all()]


async def get_session(session: AsyncSession, session_id: str) -> Optional[SessionRecord]:
    """Get a session by ID."""
    result = await session.execute(
        select(TrainingSession).where(TrainingSession.id == session_id)
    )
    s = result.scalar_one_or_none()
    return _session_record(s) if s else None


async def create_session(
    session: AsyncSession,
    date: str,
    status: SessionStatus = SessionStatus.ACTIVE,
    created_at: Optional[datetime] = None,
) -> SessionRecord:
    """Create a session for the given ISO date."""
    training_session = TrainingSession(
        id=generate_id(),
        date=date,
        status=status,
        created_at=created_at or utcnow(),
    )
    session.add(training_session)
    await session.commit()
    await session.refresh(training_session)
    return _session_record(training_session)


async def update_session(
    session: AsyncSession, session_id: str, status: SessionStatus
) -> Optional[SessionRecord]:
    """Update a session's status. Returns None if the session does not exist."""
    await session.execute(
        update(TrainingSession)
        .where(TrainingSession.id == session_id)
        .values(status=status)
    )
    await session.commit()
    return await get_session(session, session_id)


# ============================================================================
# Check-ins
# ============================================================================

async def list_check_ins(
    session: AsyncSession, session_id: Optional[str] = None
) -> List[CheckInRecord]:
    """Get check-ins, optionally for one session, oldest first."""
    query = select(CheckIn)
    if session_id is not None:
        query = query.where(CheckIn.session_id == session_id)
    result = await session.execute(query.order_by(CheckIn.created_at))
    return [_check_in_record(c) for c in result.scalars().all()]


async def get_check_in(
    session: AsyncSession, session_id: str, player_id: str
) -> Optional[CheckInRecord]:
    result = await session.execute(
        select(CheckIn).where(
            CheckIn.session_id == session_id, CheckIn.player_id == player_id
        )
    )
    c = result.scalar_one_or_none()
    return _check_in_record(c) if c else None


async def create_check_in(
    session: AsyncSession,
    session_id: str,
    player_id: str,
    max_rounds: Optional[int] = None,
    notes: Optional[str] = None,
) -> Tuple[CheckInRecord, bool]:
    """
    Insert a check-in, tolerating a concurrent duplicate.

    Uses INSERT ... ON CONFLICT DO NOTHING on (session_id, player_id) and then
    reads the stored row back.

    Returns:
        (check_in, created) where created is False if the row already existed
    """
    new_id = generate_id()
    stmt = _insert(session, CheckIn).values(
        id=new_id,
        session_id=session_id,
        player_id=player_id,
        max_rounds=max_rounds,
        notes=notes,
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["session_id", "player_id"])
    await session.execute(stmt)
    await session.commit()

    stored = await get_check_in(session, session_id, player_id)
    if stored is None:
        raise RuntimeError(f"Check-in for player {player_id} vanished after insert")
    return stored, stored.id == new_id


async def update_check_in(
    session: AsyncSession, session_id: str, player_id: str, **values: Any
) -> Optional[CheckInRecord]:
    """Update max_rounds and/or notes. Returns None if there is no such check-in."""
    if values:
        await session.execute(
            update(CheckIn)
            .where(CheckIn.session_id == session_id, CheckIn.player_id == player_id)
            .values(**values)
        )
        await session.commit()
    return await get_check_in(session, session_id, player_id)


async def delete_check_in(session: AsyncSession, session_id: str, player_id: str) -> bool:
    """Delete a check-in. Returns True if a row was removed."""
    result = await session.execute(
        delete(CheckIn).where(CheckIn.session_id == session_id, CheckIn.player_id == player_id)
    )
    await session.commit()
    return result.rowcount > 0


# ============================================================================
# Matches and match players
# ============================================================================

async def list_matches(
    session: AsyncSession, session_id: Optional[str] = None
) -> List[MatchRecord]:
    query = select(Match)
    if session_id is not None:
        query = query.where(Match.session_id == session_id)
    result = await session.execute(query.order_by(Match.round, Match.started_at))
    return [_match_record(m) for m in result.scalars().all()]


async def create_match(
    session: AsyncSession,
    session_id: str,
    court_id: Optional[str] = None,
    round: int = 1,
    started_at: Optional[datetime] = None,
) -> MatchRecord:
    match = Match(
        id=generate_id(),
        session_id=session_id,
        court_id=court_id,
        round=round,
        started_at=started_at or utcnow(),
    )
    session.add(match)
    await session.commit()
    await session.refresh(match)
    return _match_record(match)


async def end_session_matches(
    session: AsyncSession, session_id: str, ended_at: datetime
) -> int:
    """Set ended_at on every open match of a session. Returns the number updated."""
    result = await session.execute(
        update(Match)
        .where(Match.session_id == session_id, Match.ended_at.is_(None))
        .values(ended_at=ended_at)
    )
    await session.commit()
    return result.rowcount


async def delete_match(session: AsyncSession, match_id: str) -> bool:
    """Delete a match together with its players and result."""
    await session.execute(delete(MatchPlayer).where(MatchPlayer.match_id == match_id))
    await session.execute(delete(MatchResult).where(MatchResult.match_id == match_id))
    result = await session.execute(delete(Match).where(Match.id == match_id))
    await session.commit()
    return result.rowcount > 0


async def list_match_players(
    session: AsyncSession, match_ids: Optional[Iterable[str]] = None
) -> List[MatchPlayerRecord]:
    query = select(MatchPlayer)
    if match_ids is not None:
        query = query.where(MatchPlayer.match_id.in_(list(match_ids)))
    result = await session.execute(query.order_by(MatchPlayer.match_id, MatchPlayer.slot))
    return [_match_player_record(mp) for mp in result.scalars().all()]


async def create_match_player(
    session: AsyncSession, match_id: str, player_id: str, slot: int
) -> MatchPlayerRecord:
    match_player = MatchPlayer(id=generate_id(), match_id=match_id, player_id=player_id, slot=slot)
    session.add(match_player)
    await session.commit()
    return _match_player_record(match_player)


async def delete_session_live_data(session: AsyncSession, session_id: str) -> None:
    """Remove the live matches, match players, results and check-ins of a session."""
    result = await session.execute(select(Match.id).where(Match.session_id == session_id))
    match_ids = list(result.scalars().all())
    await session.execute(delete(MatchPlayer).where(MatchPlayer.match_id.in_(match_ids)))
    await session.execute(delete(MatchResult).where(MatchResult.match_id.in_(match_ids)))
    await session.execute(delete(Match).where(Match.session_id == session_id))
    await session.execute(delete(CheckIn).where(CheckIn.session_id == session_id))
    await session.commit()


# ============================================================================
# Match results
# ============================================================================

async def list_match_results(session: AsyncSession) -> List[MatchResultRecord]:
    result = await session.execute(select(MatchResult).order_by(MatchResult.created_at))
    return [_match_result_record(r) for r in result.scalars().all()]


async def upsert_match_result(
    session: AsyncSession,
    match_id: str,
    sport: Sport,
    winner_team: WinnerTeam,
    score_data: Optional[Any] = None,
) -> MatchResultRecord:
    """
    Record a match result (upsert).

    A match has at most one result; recording again updates it in place.
    """
    stmt = _insert(session, MatchResult).values(
        id=generate_id(),
        match_id=match_id,
        sport=sport,
        score_data=score_data,
        winner_team=winner_team,
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["match_id"],
        set_=dict(
            sport=stmt.excluded.sport,
            score_data=stmt.excluded.score_data,
            winner_team=stmt.excluded.winner_team,
        ),
    )
    await session.execute(stmt)
    await session.commit()

    result = await session.execute(select(MatchResult).where(MatchResult.match_id == match_id))
    # Upserted rows may be stale in the identity map
    stored = result.scalar_one()
    await session.refresh(stored)
    return _match_result_record(stored)


# ============================================================================
# Statistics snapshots
# ============================================================================

async def list_statistics_snapshots(session: AsyncSession) -> List[StatisticsSnapshotRecord]:
    """Get all snapshots, oldest session first."""
    result = await session.execute(
        select(StatisticsSnapshot).order_by(StatisticsSnapshot.session_date)
    )
    return [_snapshot_record(s) for s in result.scalars().all()]


async def get_statistics_snapshot(
    session: AsyncSession, session_id: str
) -> Optional[StatisticsSnapshotRecord]:
    """Get the snapshot of a session, if one exists."""
    result = await session.execute(
        select(StatisticsSnapshot).where(StatisticsSnapshot.session_id == session_id)
    )
    s = result.scalar_one_or_none()
    return _snapshot_record(s) if s else None


async def create_statistics_snapshot(
    session: AsyncSession,
    session_id: str,
    session_date: str,
    season: str,
    matches: List[MatchRecord],
    match_players: List[MatchPlayerRecord],
    check_ins: List[CheckInRecord],
    match_results: Optional[List[MatchResultRecord]] = None,
) -> Tuple[StatisticsSnapshotRecord, bool]:
    """
    Persist a snapshot unless the session already has one.

    Returns:
        (snapshot, created) where snapshot is the stored row in either case
    """
    new_id = generate_id()
    stmt = _insert(session, StatisticsSnapshot).values(
        id=new_id,
        session_id=session_id,
        session_date=session_date,
        season=season,
        matches=[m.model_dump(mode="json") for m in matches],
        match_players=[mp.model_dump(mode="json") for mp in match_players],
        check_ins=[c.model_dump(mode="json") for c in check_ins],
        match_results=[r.model_dump(mode="json") for r in match_results or []],
        created_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["session_id"])
    await session.execute(stmt)
    await session.commit()

    stored = await get_statistics_snapshot(session, session_id)
    if stored is None:
        raise RuntimeError(f"Snapshot for session {session_id} vanished after insert")
    return stored, stored.id == new_id
