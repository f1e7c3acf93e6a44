"""
Pydantic models for records read from the store and for statistics results.

Record models are the single canonical shape used by the statistics services.
Historical field spellings (camelCase ids written by older clients) and
string-encoded JSON arrays are normalized here, once, on the way in.
"""

import enum
import logging
from datetime import date, datetime
from typing import Any, List, Optional
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
)

from clubstats.database.models import SessionStatus, Sport, WinnerTeam
from clubstats.utils.constants import CHECK_IN_NOTES_MAX_LENGTH
from clubstats.utils.json_utils import coerce_to_array

logger = logging.getLogger(__name__)


class AttendancePeriod(str, enum.Enum):
    """Period type selected for KPI comparisons."""

    CURRENT_SEASON = "currentSeason"
    LAST_7_DAYS = "last7days"
    LAST_30_DAYS = "last30days"
    CUSTOM = "custom"


class PreferredCategory(str, enum.Enum):
    """Match format a player mostly plays."""

    SINGLE = "Single"
    DOUBLE = "Double"
    MIXED = "Mixed"


# ============================================================================
# Store records
# ============================================================================


class PlayerRecord(BaseModel):
    """Club member."""

    model_config = ConfigDict(populate_by_name=True)
    id: str
    name: str
    level: Optional[float] = None
    training_groups: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("training_groups", "trainingGroups"),
    )
    active: bool = True

    @field_validator("training_groups", mode="before")
    @classmethod
    def _coerce_training_groups(cls, value: Any) -> List[str]:
        return [g for g in coerce_to_array(value, "training_groups") if isinstance(g, str)]


class CourtRecord(BaseModel):
    """Court with its display index."""

    id: str
    idx: int


class SessionRecord(BaseModel):
    """Training session."""

    model_config = ConfigDict(populate_by_name=True)
    id: str
    date: str
    status: SessionStatus
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )


class CheckInRecord(BaseModel):
    """A player's check-in. Accepts both player_id and playerId."""

    model_config = ConfigDict(populate_by_name=True)
    id: Optional[str] = None
    session_id: str = Field(validation_alias=AliasChoices("session_id", "sessionId"))
    player_id: str = Field(validation_alias=AliasChoices("player_id", "playerId"))
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    max_rounds: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("max_rounds", "maxRounds")
    )
    notes: Optional[str] = None


class MatchRecord(BaseModel):
    """Match within a session."""

    model_config = ConfigDict(populate_by_name=True)
    id: str
    session_id: str = Field(validation_alias=AliasChoices("session_id", "sessionId"))
    court_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("court_id", "courtId")
    )
    round: int = 1
    started_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("started_at", "startedAt")
    )
    ended_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("ended_at", "endedAt")
    )


class MatchPlayerRecord(BaseModel):
    """Player assignment to a match slot."""

    model_config = ConfigDict(populate_by_name=True)
    id: Optional[str] = None
    match_id: str = Field(validation_alias=AliasChoices("match_id", "matchId"))
    player_id: str = Field(validation_alias=AliasChoices("player_id", "playerId"))
    slot: int


class MatchResultRecord(BaseModel):
    """Recorded outcome of a match."""

    model_config = ConfigDict(populate_by_name=True)
    id: str
    match_id: str = Field(validation_alias=AliasChoices("match_id", "matchId"))
    sport: Sport
    score_data: Optional[Any] = Field(
        default=None, validation_alias=AliasChoices("score_data", "scoreData")
    )
    winner_team: WinnerTeam = Field(validation_alias=AliasChoices("winner_team", "winnerTeam"))


def _validate_items(value: Any, model: type, field_name: str) -> list:
    """Coerce a stored array and drop entries that cannot be read as `model`."""
    items = []
    for raw in coerce_to_array(value, field_name):
        if isinstance(raw, model):
            items.append(raw)
            continue
        try:
            items.append(model.model_validate(raw))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed entry in {field_name}: {e.error_count()} error(s)")
    return items


class StatisticsSnapshotRecord(BaseModel):
    """Immutable statistics record of one ended session."""

    model_config = ConfigDict(populate_by_name=True)
    id: str
    session_id: str = Field(validation_alias=AliasChoices("session_id", "sessionId"))
    session_date: str = Field(validation_alias=AliasChoices("session_date", "sessionDate"))
    season: str
    matches: List[MatchRecord] = Field(default_factory=list)
    match_players: List[MatchPlayerRecord] = Field(
        default_factory=list, validation_alias=AliasChoices("match_players", "matchPlayers")
    )
    check_ins: List[CheckInRecord] = Field(
        default_factory=list, validation_alias=AliasChoices("check_ins", "checkIns")
    )
    match_results: List[MatchResultRecord] = Field(
        default_factory=list, validation_alias=AliasChoices("match_results", "matchResults")
    )
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    @field_validator("matches", mode="before")
    @classmethod
    def _coerce_matches(cls, value: Any) -> List[MatchRecord]:
        return _validate_items(value, MatchRecord, "matches")

    @field_validator("match_players", mode="before")
    @classmethod
    def _coerce_match_players(cls, value: Any) -> List[MatchPlayerRecord]:
        return _validate_items(value, MatchPlayerRecord, "match_players")

    @field_validator("check_ins", mode="before")
    @classmethod
    def _coerce_check_ins(cls, value: Any) -> List[CheckInRecord]:
        return _validate_items(value, CheckInRecord, "check_ins")

    @field_validator("match_results", mode="before")
    @classmethod
    def _coerce_match_results(cls, value: Any) -> List[MatchResultRecord]:
        return _validate_items(value, MatchResultRecord, "match_results")


# ============================================================================
# Inputs
# ============================================================================


class CheckInCreate(BaseModel):
    """Check-in request body."""

    player_id: str = Field(validation_alias=AliasChoices("player_id", "playerId"))
    max_rounds: Optional[int] = Field(
        default=None, ge=1, validation_alias=AliasChoices("max_rounds", "maxRounds")
    )
    notes: Optional[str] = Field(default=None, max_length=CHECK_IN_NOTES_MAX_LENGTH)


class CheckInUpdate(BaseModel):
    """Check-in update body. Only provided fields are changed."""

    max_rounds: Optional[int] = Field(
        default=None, ge=1, validation_alias=AliasChoices("max_rounds", "maxRounds")
    )
    notes: Optional[str] = Field(default=None, max_length=CHECK_IN_NOTES_MAX_LENGTH)


class StatisticsFilters(BaseModel):
    """Season / date range filters for statistics views."""

    season: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    group_names: List[str] = Field(default_factory=list)


# ============================================================================
# Attendance results
# ============================================================================


class GroupAttendance(BaseModel):
    """Attendance of one training group."""

    group_name: str
    check_in_count: int
    unique_players: int
    sessions: int
    average_attendance: float


class TrainingGroupAttendanceResult(BaseModel):
    """Per-group attendance plus the union of sessions touched by any group."""

    groups: List[GroupAttendance] = Field(default_factory=list)
    total_unique_sessions: int = 0


class WeekdayAttendance(BaseModel):
    """Attendance bucketed by day of week (0 = Sunday)."""

    weekday: int
    weekday_name: str
    check_in_count: int
    unique_players: int
    sessions: int
    average_attendance: float


class WeekdayAttendanceOverTime(BaseModel):
    """Attendance of one session date."""

    date: str
    weekday: int
    weekday_name: str
    check_in_count: int
    unique_players: int


class MonthlyAttendanceTrend(BaseModel):
    month: str
    month_name: str
    check_in_count: int
    unique_players: int
    sessions: int
    average_attendance: float


class GroupAttendanceOverTime(BaseModel):
    group_name: str
    month: str
    check_in_count: int
    unique_players: int
    sessions: int


class PlayerCheckInLongTail(BaseModel):
    player_id: str
    player_name: str
    check_in_count: int


class TrainingDayComparison(BaseModel):
    """The two busiest weekdays and how far apart they are."""

    day1: WeekdayAttendance
    day2: WeekdayAttendance
    difference: int
    percentage_difference: float
    average_difference: float


class PeriodTotals(BaseModel):
    total_check_ins: int
    total_sessions: int
    unique_players: int
    average_attendance: float


class PeriodDeltas(BaseModel):
    total_check_ins: float
    total_sessions: float
    unique_players: float
    average_attendance: float


class PeriodComparison(BaseModel):
    """Totals of two explicit date ranges and their differences."""

    current: PeriodTotals
    comparison: PeriodTotals
    deltas: PeriodDeltas
    percentage_deltas: Optional[PeriodDeltas] = None


class InsightType(str, enum.Enum):
    COMPARISON = "comparison"
    MOST_ACTIVE = "mostActive"


class Insight(BaseModel):
    """One line of readable commentary on the attendance figures."""

    type: InsightType
    text: str


# ============================================================================
# KPI results
# ============================================================================


class KPIMetrics(BaseModel):
    """Headline attendance numbers."""

    total_check_ins: int = 0
    total_sessions: int = 0
    average_attendance: float = 0.0
    unique_players: int = 0


class KPIDeltas(BaseModel):
    total_check_ins: float
    total_sessions: float
    average_attendance: float
    unique_players: float


class PreviousPeriod(BaseModel):
    date_from: datetime
    date_to: datetime
    label: str
    metrics: KPIMetrics


class KPIMetricsWithDeltas(KPIMetrics):
    """KPIs with differences against the comparison period, when it has data."""

    deltas: Optional[KPIDeltas] = None
    percentage_deltas: Optional[KPIDeltas] = None
    previous_period: Optional[PreviousPeriod] = None


# ============================================================================
# Player analytics results
# ============================================================================


class PlayerCount(BaseModel):
    """A partner or opponent and how many matches were shared."""

    player_id: str
    player_name: str
    count: int


class HeadToHeadMatch(BaseModel):
    match_id: str
    session_id: str
    date: str
    player1_won: bool
    player1_team: WinnerTeam
    player2_team: WinnerTeam
    was_partner: bool
    sport: Sport
    score_data: Optional[Any] = None
    partner_names: Optional[List[str]] = None
    opponent_names: Optional[List[str]] = None


class HeadToHead(BaseModel):
    """Shared match history of two players, newest first."""

    player1_id: str
    player2_id: str
    player1_wins: int = 0
    player2_wins: int = 0
    matches: List[HeadToHeadMatch] = Field(default_factory=list)


class PlayerComparison(HeadToHead):
    """Head-to-head plus how often the two were partners or opponents."""

    partner_count: int = 0
    opponent_count: int = 0


class PlayerMatchResult(BaseModel):
    """One of a player's matches that has a recorded result."""

    match_id: str
    session_id: str
    date: str
    won: bool
    was_partner: bool
    partner_names: List[str] = Field(default_factory=list)
    opponent_names: List[str] = Field(default_factory=list)
    sport: Sport
    score_data: Optional[Any] = None


class SeasonCount(BaseModel):
    season: str
    count: int


class SeasonRecord(BaseModel):
    season: str
    wins: int
    losses: int


class PlayerStatistics(BaseModel):
    """Composite statistics of one player."""

    player_id: str
    player_name: str
    total_check_ins: int = 0
    check_ins_by_season: List[SeasonCount] = Field(default_factory=list)
    total_matches: int = 0
    matches_by_season: List[SeasonCount] = Field(default_factory=list)
    top_partners: List[PlayerCount] = Field(default_factory=list)
    top_opponents: List[PlayerCount] = Field(default_factory=list)
    preferred_category: Optional[PreferredCategory] = None
    average_level_difference: Optional[float] = None
    most_played_court: Optional[int] = None
    last_played_date: Optional[str] = None
    total_wins: int = 0
    total_losses: int = 0
    matches_with_results: int = 0
    win_rate: float = 0.0
    average_score_difference: Optional[float] = None
    record_by_season: List[SeasonRecord] = Field(default_factory=list)
    recent_matches: List[PlayerMatchResult] = Field(default_factory=list)
