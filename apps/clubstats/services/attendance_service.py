"""
Attendance statistics computed from statistics snapshots.

Every view takes an optional inclusive date range, compared against the
session's calendar date, and an optional list of training group names. An
empty or missing group list means no group filter.

The compute_* functions are pure and work on already loaded snapshots and
players. The get_* coroutines load those from a CachedRecordStore first.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from clubstats.models.schemas import (
    CheckInRecord,
    GroupAttendance,
    GroupAttendanceOverTime,
    MonthlyAttendanceTrend,
    PeriodComparison,
    PeriodDeltas,
    PeriodTotals,
    PlayerCheckInLongTail,
    PlayerRecord,
    StatisticsSnapshotRecord,
    TrainingDayComparison,
    TrainingGroupAttendanceResult,
    WeekdayAttendance,
    WeekdayAttendanceOverTime,
)
from clubstats.services.snapshot_service import filter_snapshots
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.constants import MONTH_NAMES, UNKNOWN_PLAYER_NAME, WEEKDAY_NAMES
from clubstats.utils.datetime_utils import (
    DateLike,
    month_key,
    parse_session_date,
    weekday_index,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Helpers
# ============================================================================

class _Bucket:
    """Running check-in count with the players and sessions behind it."""

    def __init__(self):
        self.check_in_count = 0
        self.players: Set[str] = set()
        self.sessions: Set[str] = set()

    def add(self, player_id: str, session_id: str) -> None:
        self.check_in_count += 1
        self.players.add(player_id)
        self.sessions.add(session_id)

    @property
    def average(self) -> float:
        return average_attendance(self.check_in_count, len(self.sessions))


def average_attendance(check_ins: int, sessions: int) -> float:
    """Check-ins per session rounded to one decimal, 0 without sessions."""
    if sessions <= 0:
        return 0.0
    return round(check_ins / sessions, 1)


def percentage_change(current: float, previous: float) -> float:
    """Change relative to previous in percent, one decimal. 0 when previous is 0."""
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def _relevant_snapshots(
    snapshots: Iterable[StatisticsSnapshotRecord],
    date_from: Optional[DateLike],
    date_to: Optional[DateLike],
) -> List[StatisticsSnapshotRecord]:
    return filter_snapshots(
        list(snapshots),
        date_from=parse_session_date(date_from) if date_from is not None else None,
        date_to=parse_session_date(date_to) if date_to is not None else None,
    )


def _walk_check_ins(
    snapshots: List[StatisticsSnapshotRecord],
) -> Iterator[Tuple[StatisticsSnapshotRecord, CheckInRecord]]:
    for snapshot in snapshots:
        for check_in in snapshot.check_ins:
            yield snapshot, check_in


def _groups_for(player: Optional[PlayerRecord], group_filter: Set[str]) -> List[str]:
    """The player's groups that pass the filter, each once."""
    if player is None:
        return []
    groups = list(dict.fromkeys(player.training_groups))
    if group_filter:
        groups = [g for g in groups if g in group_filter]
    return groups


def _passes_group_filter(player: Optional[PlayerRecord], group_filter: Set[str]) -> bool:
    """Without a filter every check-in counts; with one the player must be in a listed group."""
    if not group_filter:
        return True
    return bool(_groups_for(player, group_filter))


def _session_day(snapshot: StatisticsSnapshotRecord):
    return parse_session_date(snapshot.session_date)


def _weekday_sort_key(weekday: int) -> int:
    # Monday first, Sunday last
    return 7 if weekday == 0 else weekday


# ============================================================================
# Group attendance
# ============================================================================

def compute_training_group_attendance(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> TrainingGroupAttendanceResult:
    """
    Attendance per training group.

    A check-in counts once for every group its player belongs to. Players
    without a (matching) group count toward no group.
    """
    player_map = {p.id: p for p in players}
    group_filter = set(group_names or [])
    buckets: Dict[str, _Bucket] = {}

    for snapshot, check_in in _walk_check_ins(_relevant_snapshots(snapshots, date_from, date_to)):
        for group in _groups_for(player_map.get(check_in.player_id), group_filter):
            buckets.setdefault(group, _Bucket()).add(check_in.player_id, snapshot.session_id)

    groups = [
        GroupAttendance(
            group_name=name,
            check_in_count=bucket.check_in_count,
            unique_players=len(bucket.players),
            sessions=len(bucket.sessions),
            average_attendance=bucket.average,
        )
        for name, bucket in sorted(buckets.items())
    ]
    all_sessions: Set[str] = set()
    for bucket in buckets.values():
        all_sessions |= bucket.sessions

    return TrainingGroupAttendanceResult(groups=groups, total_unique_sessions=len(all_sessions))


# ============================================================================
# Weekday attendance
# ============================================================================

def compute_weekday_attendance(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[WeekdayAttendance]:
    """Attendance per day of week, Monday through Sunday."""
    player_map = {p.id: p for p in players}
    group_filter = set(group_names or [])
    buckets: Dict[int, _Bucket] = {}

    for snapshot, check_in in _walk_check_ins(_relevant_snapshots(snapshots, date_from, date_to)):
        if not _passes_group_filter(player_map.get(check_in.player_id), group_filter):
            continue
        weekday = weekday_index(_session_day(snapshot))
        buckets.setdefault(weekday, _Bucket()).add(check_in.player_id, snapshot.session_id)

    return [
        WeekdayAttendance(
            weekday=weekday,
            weekday_name=WEEKDAY_NAMES[weekday],
            check_in_count=bucket.check_in_count,
            unique_players=len(bucket.players),
            sessions=len(bucket.sessions),
            average_attendance=bucket.average,
        )
        for weekday, bucket in sorted(buckets.items(), key=lambda item: _weekday_sort_key(item[0]))
    ]


def compute_weekday_attendance_over_time(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[WeekdayAttendanceOverTime]:
    """One row per session date that has counted check-ins, oldest first."""
    player_map = {p.id: p for p in players}
    group_filter = set(group_names or [])
    buckets: Dict[str, _Bucket] = {}

    for snapshot, check_in in _walk_check_ins(_relevant_snapshots(snapshots, date_from, date_to)):
        if not _passes_group_filter(player_map.get(check_in.player_id), group_filter):
            continue
        day = _session_day(snapshot).isoformat()
        buckets.setdefault(day, _Bucket()).add(check_in.player_id, snapshot.session_id)

    rows = []
    for day, bucket in sorted(buckets.items()):
        weekday = weekday_index(parse_session_date(day))
        rows.append(
            WeekdayAttendanceOverTime(
                date=day,
                weekday=weekday,
                weekday_name=WEEKDAY_NAMES[weekday],
                check_in_count=bucket.check_in_count,
                unique_players=len(bucket.players),
            )
        )
    return rows


def compute_training_day_comparison(
    weekdays: List[WeekdayAttendance],
) -> Optional[TrainingDayComparison]:
    """
    Compare the two weekdays with the most check-ins.

    The percentage is relative to the smaller of the two. None when fewer than
    two weekdays have any check-ins.
    """
    ranked = sorted(
        (w for w in weekdays if w.check_in_count > 0),
        key=lambda w: w.check_in_count,
        reverse=True,
    )
    if len(ranked) < 2:
        return None

    day1, day2 = ranked[0], ranked[1]
    difference = day1.check_in_count - day2.check_in_count
    return TrainingDayComparison(
        day1=day1,
        day2=day2,
        difference=difference,
        percentage_difference=round(difference / day2.check_in_count * 100, 1),
        average_difference=round(day1.average_attendance - day2.average_attendance, 1),
    )


# ============================================================================
# Trends
# ============================================================================

def compute_monthly_attendance_trends(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[MonthlyAttendanceTrend]:
    """Attendance per calendar month ("YYYY-MM"), oldest first."""
    player_map = {p.id: p for p in players}
    group_filter = set(group_names or [])
    buckets: Dict[str, _Bucket] = {}

    for snapshot, check_in in _walk_check_ins(_relevant_snapshots(snapshots, date_from, date_to)):
        if not _passes_group_filter(player_map.get(check_in.player_id), group_filter):
            continue
        key = month_key(_session_day(snapshot))
        buckets.setdefault(key, _Bucket()).add(check_in.player_id, snapshot.session_id)

    trends = []
    for key, bucket in sorted(buckets.items()):
        year, month = key.split("-")
        trends.append(
            MonthlyAttendanceTrend(
                month=key,
                month_name=f"{MONTH_NAMES[int(month) - 1]} {year}",
                check_in_count=bucket.check_in_count,
                unique_players=len(bucket.players),
                sessions=len(bucket.sessions),
                average_attendance=bucket.average,
            )
        )
    return trends


def compute_group_attendance_over_time(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[GroupAttendanceOverTime]:
    """Attendance per (training group, month), sorted by group then month."""
    player_map = {p.id: p for p in players}
    group_filter = set(group_names or [])
    buckets: Dict[Tuple[str, str], _Bucket] = {}

    for snapshot, check_in in _walk_check_ins(_relevant_snapshots(snapshots, date_from, date_to)):
        key_month = month_key(_session_day(snapshot))
        for group in _groups_for(player_map.get(check_in.player_id), group_filter):
            buckets.setdefault((group, key_month), _Bucket()).add(
                check_in.player_id, snapshot.session_id
            )

    return [
        GroupAttendanceOverTime(
            group_name=group,
            month=key_month,
            check_in_count=bucket.check_in_count,
            unique_players=len(bucket.players),
            sessions=len(bucket.sessions),
        )
        for (group, key_month), bucket in sorted(buckets.items())
    ]


def deduplicate_group_attendance_over_time(
    rows: Iterable[GroupAttendanceOverTime],
) -> List[GroupAttendanceOverTime]:
    """Keep the first row of every (group, month) pair."""
    seen: Set[Tuple[str, str]] = set()
    unique = []
    for row in rows:
        key = (row.group_name, row.month)
        if key in seen:
            continue
        seen.add(key)
        unique.append(row)
    return unique


# ============================================================================
# Players
# ============================================================================

def compute_player_check_in_long_tail(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[PlayerCheckInLongTail]:
    """Check-ins per player, most frequent first."""
    player_map = {p.id: p for p in players}
    group_filter = set(group_names or [])
    counts: Dict[str, int] = {}

    for _, check_in in _walk_check_ins(_relevant_snapshots(snapshots, date_from, date_to)):
        if not _passes_group_filter(player_map.get(check_in.player_id), group_filter):
            continue
        counts[check_in.player_id] = counts.get(check_in.player_id, 0) + 1

    rows = [
        PlayerCheckInLongTail(
            player_id=player_id,
            player_name=player_map[player_id].name if player_id in player_map else UNKNOWN_PLAYER_NAME,
            check_in_count=count,
        )
        for player_id, count in counts.items()
    ]
    return sorted(rows, key=lambda r: (-r.check_in_count, r.player_name))


# ============================================================================
# Period comparison
# ============================================================================

def compute_period_totals(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> PeriodTotals:
    """Totals over a range with players counted once, whatever their groups."""
    player_map = {p.id: p for p in players}
    group_filter = set(group_names or [])
    bucket = _Bucket()

    for snapshot, check_in in _walk_check_ins(_relevant_snapshots(snapshots, date_from, date_to)):
        if _passes_group_filter(player_map.get(check_in.player_id), group_filter):
            bucket.add(check_in.player_id, snapshot.session_id)

    return PeriodTotals(
        total_check_ins=bucket.check_in_count,
        total_sessions=len(bucket.sessions),
        unique_players=len(bucket.players),
        average_attendance=bucket.average,
    )


def compute_period_comparison(
    snapshots: Iterable[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    current_from: DateLike,
    current_to: DateLike,
    comparison_from: DateLike,
    comparison_to: DateLike,
    group_names: Optional[List[str]] = None,
) -> PeriodComparison:
    """
    Compare two explicit date ranges.

    Percentage deltas are only given when the comparison range has sessions.
    """
    snapshots = list(snapshots)
    players = list(players)
    current = compute_period_totals(snapshots, players, current_from, current_to, group_names)
    comparison = compute_period_totals(
        snapshots, players, comparison_from, comparison_to, group_names
    )

    fields = ("total_check_ins", "total_sessions", "unique_players", "average_attendance")
    deltas = PeriodDeltas(
        **{f: round(getattr(current, f) - getattr(comparison, f), 1) for f in fields}
    )
    percentage_deltas = None
    if comparison.total_sessions > 0:
        percentage_deltas = PeriodDeltas(
            **{f: percentage_change(getattr(current, f), getattr(comparison, f)) for f in fields}
        )

    return PeriodComparison(
        current=current,
        comparison=comparison,
        deltas=deltas,
        percentage_deltas=percentage_deltas,
    )


# ============================================================================
# Store-backed views
# ============================================================================

async def _load(store: CachedRecordStore):
    snapshots = await store.list_statistics_snapshots()
    players = await store.list_players()
    return snapshots, players


async def get_training_group_attendance(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> TrainingGroupAttendanceResult:
    snapshots, players = await _load(store)
    result = compute_training_group_attendance(snapshots, players, date_from, date_to, group_names)
    logger.debug(
        f"Group attendance: {len(result.groups)} group(s), "
        f"{result.total_unique_sessions} session(s) from {len(snapshots)} snapshot(s)"
    )
    return result


async def get_weekday_attendance(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[WeekdayAttendance]:
    snapshots, players = await _load(store)
    return compute_weekday_attendance(snapshots, players, date_from, date_to, group_names)


async def get_weekday_attendance_over_time(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[WeekdayAttendanceOverTime]:
    snapshots, players = await _load(store)
    return compute_weekday_attendance_over_time(snapshots, players, date_from, date_to, group_names)


async def get_training_day_comparison(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> Optional[TrainingDayComparison]:
    weekdays = await get_weekday_attendance(store, date_from, date_to, group_names)
    return compute_training_day_comparison(weekdays)


async def get_monthly_attendance_trends(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[MonthlyAttendanceTrend]:
    snapshots, players = await _load(store)
    return compute_monthly_attendance_trends(snapshots, players, date_from, date_to, group_names)


async def get_group_attendance_over_time(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[GroupAttendanceOverTime]:
    snapshots, players = await _load(store)
    rows = compute_group_attendance_over_time(snapshots, players, date_from, date_to, group_names)
    return deduplicate_group_attendance_over_time(rows)


async def get_player_check_in_long_tail(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[PlayerCheckInLongTail]:
    snapshots, players = await _load(store)
    return compute_player_check_in_long_tail(snapshots, players, date_from, date_to, group_names)


async def get_period_comparison(
    store: CachedRecordStore,
    current_from: DateLike,
    current_to: DateLike,
    comparison_from: DateLike,
    comparison_to: DateLike,
    group_names: Optional[List[str]] = None,
) -> PeriodComparison:
    snapshots, players = await _load(store)
    return compute_period_comparison(
        snapshots, players, current_from, current_to, comparison_from, comparison_to, group_names
    )
