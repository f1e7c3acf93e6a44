"""
Headline attendance KPIs and their change against a comparison period.

The comparison period depends on the selected period type:
    - currentSeason: the same span one year earlier, never running past the
      end (July 31) of that earlier season.
    - last7days, last30days, custom: the window of identical length that
      ends 1 ms before the current one starts.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, NamedTuple, Optional, Tuple

import pytz

from clubstats.models.schemas import (
    AttendancePeriod,
    KPIDeltas,
    KPIMetrics,
    KPIMetricsWithDeltas,
    PreviousPeriod,
    TrainingGroupAttendanceResult,
)
from clubstats.services import attendance_service
from clubstats.services.attendance_service import average_attendance, percentage_change
from clubstats.services.calculation_service import get_season_bounds, get_season_from_date
from clubstats.services.errors import ValidationError
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.datetime_utils import DateLike, club_today, to_datetime

logger = logging.getLogger(__name__)

KPI_FIELDS = ("total_check_ins", "total_sessions", "average_attendance", "unique_players")


class ComparisonPeriod(NamedTuple):
    date_from: datetime
    date_to: datetime
    label: str


def calculate_kpis(attendance: TrainingGroupAttendanceResult) -> KPIMetrics:
    """
    Totals over a group attendance result.

    total_sessions is the union of sessions behind the group counts.
    unique_players sums the per-group counts, so a player in two groups is
    counted twice.
    """
    if not attendance.groups:
        return KPIMetrics()

    total_check_ins = sum(g.check_in_count for g in attendance.groups)
    total_sessions = attendance.total_unique_sessions
    return KPIMetrics(
        total_check_ins=total_check_ins,
        total_sessions=total_sessions,
        average_attendance=average_attendance(total_check_ins, total_sessions),
        unique_players=sum(g.unique_players for g in attendance.groups),
    )


# ============================================================================
# Periods
# ============================================================================

def _shift_year_back(value: datetime) -> datetime:
    """Same wall-clock moment one year earlier; Feb 29 becomes Feb 28."""
    try:
        return value.replace(year=value.year - 1)
    except ValueError:
        return value.replace(year=value.year - 1, day=28)


def _span_label(duration: timedelta) -> str:
    days = round(duration.total_seconds() / 86400)
    if days == 1:
        return "previous day"
    if days <= 30:
        return f"previous {days} days"
    months = days // 30
    return "previous month" if months == 1 else f"previous {months} months"


def resolve_comparison_period(
    date_from: DateLike,
    date_to: DateLike,
    period_type: AttendancePeriod = AttendancePeriod.CUSTOM,
) -> ComparisonPeriod:
    """
    The period the current [date_from, date_to] range is compared against.

    Plain dates are taken as whole days (date_to runs to 23:59:59.999).
    """
    current_start = to_datetime(date_from)
    current_end = to_datetime(date_to, end_of_day=True)
    if current_end < current_start:
        raise ValidationError("date_to must not be before date_from")

    if period_type == AttendancePeriod.CURRENT_SEASON:
        previous_start = _shift_year_back(current_start)
        previous_end = _shift_year_back(current_end)
        season_end = get_season_bounds(get_season_from_date(previous_start))[1]
        boundary = to_datetime(season_end, end_of_day=True)
        if previous_end > boundary:
            previous_end = boundary
        return ComparisonPeriod(previous_start, previous_end, "previous season")

    duration = current_end - current_start
    previous_end = current_start - timedelta(milliseconds=1)
    previous_start = previous_end - duration

    if period_type == AttendancePeriod.LAST_7_DAYS:
        label = "previous 7 days"
    elif period_type == AttendancePeriod.LAST_30_DAYS:
        label = "previous 30 days"
    else:
        label = _span_label(duration)
    return ComparisonPeriod(previous_start, previous_end, label)


def resolve_period_range(
    period_type: AttendancePeriod,
    today: Optional[date] = None,
    custom_from: Optional[DateLike] = None,
    custom_to: Optional[DateLike] = None,
) -> Tuple[datetime, datetime]:
    """
    The current range of a period type, ending today (club timezone).

    Raises:
        ValidationError: If a custom period lacks either bound
    """
    today = today or club_today()
    if period_type == AttendancePeriod.CURRENT_SEASON:
        season_start = get_season_bounds(get_season_from_date(today))[0]
        return to_datetime(season_start), to_datetime(today, end_of_day=True)
    if period_type == AttendancePeriod.LAST_7_DAYS:
        return to_datetime(today - timedelta(days=6)), to_datetime(today, end_of_day=True)
    if period_type == AttendancePeriod.LAST_30_DAYS:
        return to_datetime(today - timedelta(days=29)), to_datetime(today, end_of_day=True)
    if custom_from is None or custom_to is None:
        raise ValidationError("A custom period needs both date_from and date_to")
    return to_datetime(custom_from), to_datetime(custom_to, end_of_day=True)


# ============================================================================
# Deltas
# ============================================================================

def compute_kpis_with_deltas(
    current_kpis: KPIMetrics,
    previous_kpis: KPIMetrics,
    comparison: ComparisonPeriod,
) -> KPIMetricsWithDeltas:
    """
    Attach deltas to the current KPIs.

    Deltas, percentage deltas and the previous period are only set when the
    comparison period has at least one session.
    """
    result = KPIMetricsWithDeltas(**current_kpis.model_dump())
    if previous_kpis.total_sessions <= 0:
        return result

    result.deltas = KPIDeltas(
        **{
            f: round(getattr(current_kpis, f) - getattr(previous_kpis, f), 1)
            for f in KPI_FIELDS
        }
    )
    result.percentage_deltas = KPIDeltas(
        **{f: percentage_change(getattr(current_kpis, f), getattr(previous_kpis, f)) for f in KPI_FIELDS}
    )
    result.previous_period = PreviousPeriod(
        date_from=comparison.date_from.astimezone(pytz.UTC),
        date_to=comparison.date_to.astimezone(pytz.UTC),
        label=comparison.label,
        metrics=previous_kpis,
    )
    return result


async def calculate_kpis_with_deltas(
    store: CachedRecordStore,
    current_kpis: KPIMetrics,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
    period_type: AttendancePeriod = AttendancePeriod.CUSTOM,
) -> KPIMetricsWithDeltas:
    """
    Current KPIs plus deltas against the comparison period.

    The group attendance pipeline is re-run over the comparison period with
    the same group filter. Without a complete current range no comparison is
    made.
    """
    if date_from is None or date_to is None:
        return KPIMetricsWithDeltas(**current_kpis.model_dump())

    comparison = resolve_comparison_period(date_from, date_to, period_type)
    previous_attendance = await attendance_service.get_training_group_attendance(
        store, comparison.date_from, comparison.date_to, group_names
    )
    previous_kpis = calculate_kpis(previous_attendance)
    if previous_kpis.total_sessions <= 0:
        logger.debug(f"No sessions in {comparison.label}, omitting KPI deltas")
    return compute_kpis_with_deltas(current_kpis, previous_kpis, comparison)


async def get_kpis(
    store: CachedRecordStore,
    date_from: Optional[DateLike] = None,
    date_to: Optional[DateLike] = None,
    group_names: Optional[List[str]] = None,
    period_type: AttendancePeriod = AttendancePeriod.CUSTOM,
) -> KPIMetricsWithDeltas:
    """KPIs of a range together with their comparison deltas."""
    attendance = await attendance_service.get_training_group_attendance(
        store, date_from, date_to, group_names
    )
    current = calculate_kpis(attendance)
    return await calculate_kpis_with_deltas(
        store, current, date_from, date_to, group_names, period_type
    )
