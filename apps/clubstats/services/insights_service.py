"""
Readable one-line insights derived from attendance results.
"""

from typing import List, Optional

from clubstats.models.schemas import (
    GroupAttendance,
    Insight,
    InsightType,
    PlayerCheckInLongTail,
    TrainingDayComparison,
    WeekdayAttendance,
)
from clubstats.services import attendance_service
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.datetime_utils import DateLike


def training_day_insights(comparison: Optional[TrainingDayComparison]) -> List[Insight]:
    if comparison is None:
        return []
    return [
        Insight(
            type=InsightType.COMPARISON,
            text=(
                f"{comparison.day1.weekday_name} has higher attendance than "
                f"{comparison.day2.weekday_name} by {abs(comparison.percentage_difference):.1f}% "
                f"({abs(comparison.difference)} more check-ins)."
            ),
        )
    ]


def weekday_insights(weekdays: List[WeekdayAttendance]) -> List[Insight]:
    if not weekdays:
        return []
    # max() keeps the first day on ties
    busiest = max(weekdays, key=lambda w: w.average_attendance)
    return [
        Insight(
            type=InsightType.MOST_ACTIVE,
            text=(
                f"The most active training day is {busiest.weekday_name} with an average "
                f"attendance of {busiest.average_attendance:.1f} players per session."
            ),
        )
    ]


def group_insights(groups: List[GroupAttendance]) -> List[Insight]:
    if not groups:
        return []
    busiest = max(groups, key=lambda g: g.average_attendance)
    return [
        Insight(
            type=InsightType.MOST_ACTIVE,
            text=(
                f"The most active training group is {busiest.group_name} with an average "
                f"attendance of {busiest.average_attendance:.1f} players per session."
            ),
        )
    ]


def player_insights(long_tail: List[PlayerCheckInLongTail]) -> List[Insight]:
    if not long_tail:
        return []
    top = long_tail[0]
    return [
        Insight(
            type=InsightType.MOST_ACTIVE,
            text=(
                f"The most active player is {top.player_name} with "
                f"{top.check_in_count} check-ins in the selected period."
            ),
        )
    ]


def generate_insights(
    training_day_comparison: Optional[TrainingDayComparison] = None,
    weekdays: Optional[List[WeekdayAttendance]] = None,
    groups: Optional[List[GroupAttendance]] = None,
    long_tail: Optional[List[PlayerCheckInLongTail]] = None,
) -> List[Insight]:
    """All insights for whichever results are available."""
    return (
        training_day_insights(training_day_comparison)
        + weekday_insights(weekdays or [])
        + group_insights(groups or [])
        + player_insights(long_tail or [])
    )


async def get_insights(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
) -> List[Insight]:
    """All insights for the snapshots in range, read once from the store."""
    snapshots = await store.list_statistics_snapshots()
    players = await store.list_players()
    weekdays = attendance_service.compute_weekday_attendance(
        snapshots, players, date_from, date_to, group_names
    )
    groups = attendance_service.compute_training_group_attendance(
        snapshots, players, date_from, date_to, group_names
    )
    long_tail = attendance_service.compute_player_check_in_long_tail(
        snapshots, players, date_from, date_to, group_names
    )
    return generate_insights(
        training_day_comparison=attendance_service.compute_training_day_comparison(weekdays),
        weekdays=weekdays,
        groups=groups.groups,
        long_tail=long_tail,
    )
