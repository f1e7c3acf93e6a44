"""
Cached record store used by the statistics and session services.

CachedRecordStore wraps data_service with a RecordCache. Lists are read
through the cache and filtered in memory; writes go to the database and then
patch the cached collection. Database failures surface as StoreError.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clubstats.database.models import SessionStatus, Sport, WinnerTeam
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
from clubstats.services import data_service
from clubstats.services.cache_service import (
    RecordCache,
    PLAYERS,
    COURTS,
    SESSIONS,
    CHECK_INS,
    MATCHES,
    MATCH_PLAYERS,
    MATCH_RESULTS,
    STATISTICS_SNAPSHOTS,
)
from clubstats.services.errors import StoreError

logger = logging.getLogger(__name__)


class CachedRecordStore:
    """Record store access for one database session, backed by a shared cache."""

    def __init__(self, session: AsyncSession, cache: Optional[RecordCache] = None):
        self.session = session
        self.cache = cache if cache is not None else RecordCache()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _call(self, description: str, fn: Callable[..., Awaitable[Any]], *args, **kwargs):
        try:
            return await fn(self.session, *args, **kwargs)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Record store failure while {description}: {e}")
            raise StoreError(f"Record store failure while {description}") from e

    async def _cached_list(
        self, table: str, loader: Callable[..., Awaitable[list]], bypass_cache: bool
    ) -> list:
        if not bypass_cache:
            cached = self.cache.get(table)
            if cached is not None:
                return cached
        records = await self._call(f"listing {table}", loader)
        self.cache.set(table, records)
        return records

    # ------------------------------------------------------------------
    # Players and courts
    # ------------------------------------------------------------------

    async def list_players(self, bypass_cache: bool = False) -> List[PlayerRecord]:
        return await self._cached_list(PLAYERS, data_service.list_players, bypass_cache)

    async def get_player(self, player_id: str) -> Optional[PlayerRecord]:
        for player in await self.list_players():
            if player.id == player_id:
                return player
        return None

    async def create_player(self, name: str, **kwargs) -> PlayerRecord:
        player = await self._call("creating player", data_service.create_player, name, **kwargs)
        self.cache.append_if_absent(PLAYERS, player)
        return player

    async def list_courts(self, bypass_cache: bool = False) -> List[CourtRecord]:
        return await self._cached_list(COURTS, data_service.list_courts, bypass_cache)

    async def create_court(self, idx: int) -> CourtRecord:
        court = await self._call("creating court", data_service.create_court, idx)
        self.cache.append_if_absent(COURTS, court)
        return court

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def list_sessions(self, bypass_cache: bool = False) -> List[SessionRecord]:
        return await self._cached_list(SESSIONS, data_service.list_sessions, bypass_cache)

    async def get_session(self, session_id: str, bypass_cache: bool = False) -> Optional[SessionRecord]:
        if bypass_cache:
            return await self._call("reading session", data_service.get_session, session_id)
        for s in await self.list_sessions():
            if s.id == session_id:
                return s
        return None

    async def create_session(self, date: str, **kwargs) -> SessionRecord:
        created = await self._call("creating session", data_service.create_session, date, **kwargs)
        self.cache.append_if_absent(SESSIONS, created)
        return created

    async def update_session(self, session_id: str, status: SessionStatus) -> Optional[SessionRecord]:
        updated = await self._call(
            "updating session", data_service.update_session, session_id, status
        )
        if updated is not None:
            self.cache.replace(SESSIONS, updated)
        return updated

    # ------------------------------------------------------------------
    # Check-ins
    # ------------------------------------------------------------------

    async def list_check_ins(
        self, session_id: Optional[str] = None, bypass_cache: bool = False
    ) -> List[CheckInRecord]:
        check_ins = await self._cached_list(CHECK_INS, data_service.list_check_ins, bypass_cache)
        if session_id is None:
            return check_ins
        return [c for c in check_ins if c.session_id == session_id]

    async def create_check_in(
        self,
        session_id: str,
        player_id: str,
        max_rounds: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Tuple[CheckInRecord, bool]:
        """Conflict-tolerant insert. Returns (check_in, created)."""
        check_in, created = await self._call(
            "creating check-in",
            data_service.create_check_in,
            session_id,
            player_id,
            max_rounds=max_rounds,
            notes=notes,
        )
        self.cache.append_if_absent(CHECK_INS, check_in)
        return check_in, created

    async def update_check_in(
        self, session_id: str, player_id: str, **values: Any
    ) -> Optional[CheckInRecord]:
        updated = await self._call(
            "updating check-in", data_service.update_check_in, session_id, player_id, **values
        )
        if updated is not None:
            self.cache.replace(CHECK_INS, updated)
        return updated

    async def delete_check_in(self, session_id: str, player_id: str) -> bool:
        deleted = await self._call(
            "deleting check-in", data_service.delete_check_in, session_id, player_id
        )
        self.cache.remove(
            CHECK_INS, lambda c: c.session_id == session_id and c.player_id == player_id
        )
        return deleted

    # ------------------------------------------------------------------
    # Matches, match players, results
    # ------------------------------------------------------------------

    async def list_matches(
        self, session_id: Optional[str] = None, bypass_cache: bool = False
    ) -> List[MatchRecord]:
        matches = await self._cached_list(MATCHES, data_service.list_matches, bypass_cache)
        if session_id is None:
            return matches
        return [m for m in matches if m.session_id == session_id]

    async def create_match(self, session_id: str, **kwargs) -> MatchRecord:
        match = await self._call("creating match", data_service.create_match, session_id, **kwargs)
        self.cache.append_if_absent(MATCHES, match)
        return match

    async def end_session_matches(self, session_id: str, ended_at: datetime) -> int:
        count = await self._call(
            "ending matches", data_service.end_session_matches, session_id, ended_at
        )
        if count and self.cache.is_cached(MATCHES):
            for match in await self._call(
                "reading matches", data_service.list_matches, session_id
            ):
                self.cache.replace(MATCHES, match)
        return count

    async def delete_match(self, match_id: str) -> bool:
        deleted = await self._call("deleting match", data_service.delete_match, match_id)
        self.cache.remove(MATCHES, lambda m: m.id == match_id)
        self.cache.remove(MATCH_PLAYERS, lambda mp: mp.match_id == match_id)
        self.cache.remove(MATCH_RESULTS, lambda r: r.match_id == match_id)
        return deleted

    async def list_match_players(
        self, match_ids: Optional[Iterable[str]] = None, bypass_cache: bool = False
    ) -> List[MatchPlayerRecord]:
        match_players = await self._cached_list(
            MATCH_PLAYERS, data_service.list_match_players, bypass_cache
        )
        if match_ids is None:
            return match_players
        wanted = set(match_ids)
        return [mp for mp in match_players if mp.match_id in wanted]

    async def create_match_player(self, match_id: str, player_id: str, slot: int) -> MatchPlayerRecord:
        match_player = await self._call(
            "creating match player", data_service.create_match_player, match_id, player_id, slot
        )
        self.cache.append_if_absent(MATCH_PLAYERS, match_player)
        return match_player

    async def list_match_results(self, bypass_cache: bool = False) -> List[MatchResultRecord]:
        return await self._cached_list(MATCH_RESULTS, data_service.list_match_results, bypass_cache)

    async def record_match_result(
        self,
        match_id: str,
        sport: Sport,
        winner_team: WinnerTeam,
        score_data: Optional[Any] = None,
    ) -> MatchResultRecord:
        result = await self._call(
            "recording match result",
            data_service.upsert_match_result,
            match_id,
            sport,
            winner_team,
            score_data=score_data,
        )
        self.cache.replace(MATCH_RESULTS, result)
        return result

    async def prune_session_live_data(self, session_id: str) -> None:
        """Bulk delete of a session's live rows. Invalidates the affected tables."""
        await self._call(
            "pruning session data", data_service.delete_session_live_data, session_id
        )
        for table in (MATCHES, MATCH_PLAYERS, MATCH_RESULTS, CHECK_INS):
            self.cache.invalidate(table)

    # ------------------------------------------------------------------
    # Statistics snapshots
    # ------------------------------------------------------------------

    async def list_statistics_snapshots(
        self, bypass_cache: bool = False
    ) -> List[StatisticsSnapshotRecord]:
        return await self._cached_list(
            STATISTICS_SNAPSHOTS, data_service.list_statistics_snapshots, bypass_cache
        )

    async def get_statistics_snapshot(self, session_id: str) -> Optional[StatisticsSnapshotRecord]:
        """Snapshot of a session, read from the store."""
        return await self._call(
            "reading snapshot", data_service.get_statistics_snapshot, session_id
        )

    async def create_statistics_snapshot(
        self, **fields: Any
    ) -> Tuple[StatisticsSnapshotRecord, bool]:
        snapshot, created = await self._call(
            "creating snapshot", data_service.create_statistics_snapshot, **fields
        )
        self.cache.append_if_absent(STATISTICS_SNAPSHOTS, snapshot)
        return snapshot, created
