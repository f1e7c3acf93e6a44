"""Statistics route handlers (attendance, KPIs, player analytics)."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from clubstats.api.dependencies import get_store
from clubstats.api.routes import parse_group_names, to_http_exception
from clubstats.models.schemas import (
    AttendancePeriod,
    GroupAttendanceOverTime,
    HeadToHead,
    Insight,
    KPIMetricsWithDeltas,
    MonthlyAttendanceTrend,
    PeriodComparison,
    PlayerCheckInLongTail,
    PlayerComparison,
    PlayerCount,
    PlayerMatchResult,
    PlayerStatistics,
    SeasonCount,
    StatisticsFilters,
    TrainingDayComparison,
    TrainingGroupAttendanceResult,
    WeekdayAttendance,
    WeekdayAttendanceOverTime,
)
from clubstats.services import (
    attendance_service,
    insights_service,
    kpi_service,
    player_stats_service,
    snapshot_service,
)
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.constants import DEFAULT_RECENT_MATCHES_LIMIT, DEFAULT_TOP_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Seasons
# ---------------------------------------------------------------------------


@router.get("/api/statistics/seasons", response_model=List[str])
async def get_seasons(store: CachedRecordStore = Depends(get_store)):
    """Seasons that have session snapshots."""
    try:
        return await snapshot_service.get_all_seasons(store)
    except Exception as e:
        raise to_http_exception(e, "getting seasons")


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------


@router.get("/api/statistics/attendance/groups", response_model=TrainingGroupAttendanceResult)
async def get_group_attendance(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    """Attendance per training group."""
    try:
        return await attendance_service.get_training_group_attendance(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "getting group attendance")


@router.get("/api/statistics/attendance/groups/over-time", response_model=List[GroupAttendanceOverTime])
async def get_group_attendance_over_time(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await attendance_service.get_group_attendance_over_time(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "getting group attendance over time")


@router.get("/api/statistics/attendance/weekdays", response_model=List[WeekdayAttendance])
async def get_weekday_attendance(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    """Attendance per weekday, Monday through Sunday."""
    try:
        return await attendance_service.get_weekday_attendance(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "getting weekday attendance")


@router.get(
    "/api/statistics/attendance/weekdays/over-time", response_model=List[WeekdayAttendanceOverTime]
)
async def get_weekday_attendance_over_time(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await attendance_service.get_weekday_attendance_over_time(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "getting weekday attendance over time")


@router.get(
    "/api/statistics/attendance/training-days", response_model=Optional[TrainingDayComparison]
)
async def get_training_day_comparison(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    """The two busiest weekdays compared, or null with fewer than two."""
    try:
        return await attendance_service.get_training_day_comparison(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "comparing training days")


@router.get("/api/statistics/attendance/monthly", response_model=List[MonthlyAttendanceTrend])
async def get_monthly_attendance(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await attendance_service.get_monthly_attendance_trends(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "getting monthly attendance")


@router.get("/api/statistics/attendance/players", response_model=List[PlayerCheckInLongTail])
async def get_player_check_in_long_tail(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    """Check-ins per player, most frequent first."""
    try:
        return await attendance_service.get_player_check_in_long_tail(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "getting player check-ins")


@router.get("/api/statistics/attendance/period-comparison", response_model=PeriodComparison)
async def get_period_comparison(
    date_from: date,
    date_to: date,
    comparison_from: date,
    comparison_to: date,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await attendance_service.get_period_comparison(
            store, date_from, date_to, comparison_from, comparison_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "comparing periods")


# ---------------------------------------------------------------------------
# KPIs and insights
# ---------------------------------------------------------------------------


@router.get("/api/statistics/kpis", response_model=KPIMetricsWithDeltas)
async def get_kpis(
    period: AttendancePeriod = AttendancePeriod.CUSTOM,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    """
    Headline KPIs with deltas against the comparison period.

    For the built-in periods the range is derived from today when no dates
    are given. A custom period without dates returns KPIs without deltas.
    """
    try:
        range_from, range_to = date_from, date_to
        if period != AttendancePeriod.CUSTOM and (date_from is None or date_to is None):
            range_from, range_to = kpi_service.resolve_period_range(period)
        return await kpi_service.get_kpis(
            store, range_from, range_to, parse_group_names(groups), period
        )
    except Exception as e:
        raise to_http_exception(e, "getting KPIs")


@router.get("/api/statistics/insights", response_model=List[Insight])
async def get_insights(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    groups: Optional[List[str]] = Query(None),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await insights_service.get_insights(
            store, date_from, date_to, parse_group_names(groups)
        )
    except Exception as e:
        raise to_http_exception(e, "getting insights")


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------


@router.get("/api/statistics/players/{player_id}", response_model=PlayerStatistics)
async def get_player_statistics(
    player_id: str,
    season: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    store: CachedRecordStore = Depends(get_store),
):
    """Composite statistics of a player."""
    try:
        filters = StatisticsFilters(season=season, date_from=date_from, date_to=date_to)
        return await player_stats_service.get_player_statistics(store, player_id, filters)
    except Exception as e:
        raise to_http_exception(e, "getting player statistics")


@router.get("/api/statistics/players/{player_id}/partners", response_model=List[PlayerCount])
async def get_top_partners(
    player_id: str,
    limit: int = Query(DEFAULT_TOP_LIMIT, ge=1, le=100),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await player_stats_service.get_top_partners(store, player_id, limit)
    except Exception as e:
        raise to_http_exception(e, "getting top partners")


@router.get("/api/statistics/players/{player_id}/opponents", response_model=List[PlayerCount])
async def get_top_opponents(
    player_id: str,
    limit: int = Query(DEFAULT_TOP_LIMIT, ge=1, le=100),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await player_stats_service.get_top_opponents(store, player_id, limit)
    except Exception as e:
        raise to_http_exception(e, "getting top opponents")


@router.get("/api/statistics/players/{player_id}/matches", response_model=List[PlayerMatchResult])
async def get_player_matches(player_id: str, store: CachedRecordStore = Depends(get_store)):
    try:
        return await player_stats_service.get_player_all_matches(store, player_id)
    except Exception as e:
        raise to_http_exception(e, "getting player matches")


@router.get(
    "/api/statistics/players/{player_id}/matches/recent", response_model=List[PlayerMatchResult]
)
async def get_player_recent_matches(
    player_id: str,
    limit: int = Query(DEFAULT_RECENT_MATCHES_LIMIT, ge=1, le=100),
    store: CachedRecordStore = Depends(get_store),
):
    try:
        return await player_stats_service.get_player_recent_matches(store, player_id, limit)
    except Exception as e:
        raise to_http_exception(e, "getting recent matches")


@router.get(
    "/api/statistics/players/{player_id}/check-ins-by-season", response_model=List[SeasonCount]
)
async def get_check_ins_by_season(player_id: str, store: CachedRecordStore = Depends(get_store)):
    try:
        return await player_stats_service.get_check_ins_by_season(store, player_id)
    except Exception as e:
        raise to_http_exception(e, "getting check-ins by season")


@router.get(
    "/api/statistics/players/{player1_id}/compare/{player2_id}", response_model=PlayerComparison
)
async def compare_players(
    player1_id: str, player2_id: str, store: CachedRecordStore = Depends(get_store)
):
    """Partner/opponent counts and head-to-head history of two players."""
    try:
        return await player_stats_service.get_player_comparison(store, player1_id, player2_id)
    except Exception as e:
        raise to_http_exception(e, "comparing players")


@router.get(
    "/api/statistics/players/{player1_id}/head-to-head/{player2_id}", response_model=HeadToHead
)
async def get_head_to_head(
    player1_id: str, player2_id: str, store: CachedRecordStore = Depends(get_store)
):
    try:
        return await player_stats_service.get_player_head_to_head(store, player1_id, player2_id)
    except Exception as e:
        raise to_http_exception(e, "getting head-to-head")
