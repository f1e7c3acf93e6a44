"""
Training session lifecycle.

At most one session is active at a time. A session left active for longer
than SESSION_MAX_DURATION_HOURS is ended the next time the active session is
read. Ending a session ends its open matches and captures a statistics
snapshot. A failed snapshot is logged and never fails the session change.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from clubstats.database.models import SessionStatus
from clubstats.models.schemas import SessionRecord
from clubstats.services import snapshot_service
from clubstats.services.errors import NotFoundError
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.constants import SESSION_MAX_DURATION_HOURS
from clubstats.utils.datetime_utils import club_today, ensure_utc, utcnow

logger = logging.getLogger(__name__)


def is_session_expired(
    training_session: SessionRecord,
    now: Optional[datetime] = None,
    max_duration_hours: float = SESSION_MAX_DURATION_HOURS,
) -> bool:
    """True when an active session has outlived the maximum duration."""
    if training_session.status != SessionStatus.ACTIVE or training_session.created_at is None:
        return False
    now = now or utcnow()
    age = now - ensure_utc(training_session.created_at)
    return age > timedelta(hours=max_duration_hours)


async def _snapshot_quietly(store: CachedRecordStore, session_id: str) -> None:
    """Capture the snapshot of an ended session; errors are logged, not raised."""
    try:
        await snapshot_service.snapshot_session(store, session_id)
    except Exception as e:
        logger.error(f"Failed to snapshot session {session_id}: {e}", exc_info=True)


async def end_session(store: CachedRecordStore, session_id: str) -> SessionRecord:
    """
    End a session, its open matches, and capture its snapshot.

    Raises:
        NotFoundError: If the session does not exist
    """
    ended = await store.update_session(session_id, SessionStatus.ENDED)
    if ended is None:
        raise NotFoundError("Session", session_id)

    ended_matches = await store.end_session_matches(session_id, utcnow())
    logger.info(f"Ended session {session_id} ({ended_matches} open match(es) closed)")

    await _snapshot_quietly(store, session_id)
    return ended


async def get_active_session(
    store: CachedRecordStore,
    now: Optional[datetime] = None,
    max_duration_hours: float = SESSION_MAX_DURATION_HOURS,
) -> Optional[SessionRecord]:
    """
    The newest active session, or None.

    An expired active session is ended (with its matches and snapshot) and
    None is returned in its place.
    """
    sessions = await store.list_sessions()
    active = [s for s in sessions if s.status == SessionStatus.ACTIVE]
    if not active:
        return None

    newest = max(active, key=lambda s: s.created_at.timestamp() if s.created_at else 0.0)
    if is_session_expired(newest, now=now, max_duration_hours=max_duration_hours):
        logger.info(f"Active session {newest.id} exceeded {max_duration_hours}h, ending it")
        await end_session(store, newest.id)
        return None
    return newest


async def ensure_active_session(store: CachedRecordStore) -> SessionRecord:
    """
    The active session.

    Raises:
        NotFoundError: If no session is active
    """
    active = await get_active_session(store)
    if active is None:
        raise NotFoundError("Session", message="No active session")
    return active


async def start_or_get_active_session(
    store: CachedRecordStore, session_date: Optional[str] = None
) -> SessionRecord:
    """Return the active session, starting one for today (club timezone) if needed."""
    active = await get_active_session(store)
    if active is not None:
        return active

    session_date = session_date or club_today().isoformat()
    created = await store.create_session(session_date)
    logger.info(f"Started session {created.id} for {session_date}")
    return created


async def end_active_session(store: CachedRecordStore) -> Optional[SessionRecord]:
    """End the active session if there is one."""
    active = await get_active_session(store)
    if active is None:
        return None
    return await end_session(store, active.id)
