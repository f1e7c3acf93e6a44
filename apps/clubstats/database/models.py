"""
SQLAlchemy ORM models for the club attendance and match statistics system.
"""

import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    Index,
    JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from clubstats.database.db import Base
from clubstats.utils.datetime_utils import utcnow

# JSONB on PostgreSQL, plain JSON everywhere else (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_id() -> str:
    """Opaque string identifier for new records."""
    return str(uuid.uuid4())


class SessionStatus(str, enum.Enum):
    """Training session status enum."""

    ACTIVE = "active"
    ENDED = "ended"


class Sport(str, enum.Enum):
    """Sport a match result was recorded for."""

    BADMINTON = "badminton"
    TENNIS = "tennis"
    PADEL = "padel"


class WinnerTeam(str, enum.Enum):
    """Winning side of a match result."""

    TEAM1 = "team1"
    TEAM2 = "team2"


class Player(Base):
    """Club members."""

    __tablename__ = "players"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    level = Column(Float, nullable=True)
    training_groups = Column(JSONType, nullable=False, default=list)  # list of group names
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_players_name", "name"),)


class Court(Base):
    """Physical courts, ordered by their display index."""

    __tablename__ = "courts"

    id = Column(String, primary_key=True, default=generate_id)
    idx = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class TrainingSession(Base):
    """A dated club training session. At most one is active at a time."""

    __tablename__ = "training_sessions"

    id = Column(String, primary_key=True, default=generate_id)
    date = Column(String, nullable=False)  # ISO-8601, local calendar date
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    check_ins = relationship("CheckIn", back_populates="session")
    matches = relationship("Match", back_populates="session")

    __table_args__ = (
        Index("idx_training_sessions_status", "status"),
        Index("idx_training_sessions_date", "date"),
    )


class CheckIn(Base):
    """A player's attendance at a session."""

    __tablename__ = "check_ins"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("training_sessions.id"), nullable=False)
    player_id = Column(String, ForeignKey("players.id"), nullable=False)
    max_rounds = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    session = relationship("TrainingSession", back_populates="check_ins")

    __table_args__ = (
        UniqueConstraint("session_id", "player_id", name="uq_check_ins_session_player"),
        Index("idx_check_ins_session", "session_id"),
    )


class Match(Base):
    """A match played on a court during a session round."""

    __tablename__ = "matches"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("training_sessions.id"), nullable=False)
    court_id = Column(String, ForeignKey("courts.id"), nullable=True)
    round = Column(Integer, nullable=False, default=1)
    started_at = Column(DateTime(timezone=True), default=utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("TrainingSession", back_populates="matches")

    __table_args__ = (Index("idx_matches_session", "session_id"),)


class MatchPlayer(Base):
    """Assignment of a player to a slot within a match."""

    __tablename__ = "match_players"

    id = Column(String, primary_key=True, default=generate_id)
    match_id = Column(String, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(String, ForeignKey("players.id"), nullable=False)
    slot = Column(Integer, nullable=False)

    __table_args__ = (Index("idx_match_players_match", "match_id"),)


class MatchResult(Base):
    """Recorded outcome of a match. One per match, re-recording updates in place."""

    __tablename__ = "match_results"

    id = Column(String, primary_key=True, default=generate_id)
    match_id = Column(String, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    sport = Column(Enum(Sport), nullable=False)
    score_data = Column(JSONType, nullable=True)
    winner_team = Column(Enum(WinnerTeam), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint("match_id", name="uq_match_results_match"),)


class StatisticsSnapshot(Base):
    """Immutable copy of an ended session's matches, players, check-ins and results."""

    __tablename__ = "statistics_snapshots"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("training_sessions.id"), nullable=False)
    session_date = Column(String, nullable=False)
    season = Column(String, nullable=False)
    matches = Column(JSONType, nullable=False, default=list)
    match_players = Column(JSONType, nullable=False, default=list)
    check_ins = Column(JSONType, nullable=False, default=list)
    match_results = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("session_id", name="uq_statistics_snapshots_session"),
        Index("idx_statistics_snapshots_season", "season"),
    )
