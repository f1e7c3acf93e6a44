"""
Match structure and player network calculations.
Pure functions and trackers shared by the statistics services.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple
from clubstats.database.models import WinnerTeam
from clubstats.models.schemas import MatchPlayerRecord
from clubstats.utils.constants import SEASON_START_MONTH
from clubstats.utils.datetime_utils import DateLike, parse_session_date


# ============================================================================
# Team Structure
# ============================================================================

class TeamStructure(NamedTuple):
    """Player ids of both sides of a match, in slot order."""

    team1: List[str]
    team2: List[str]

    def team_of(self, player_id: str) -> Optional[WinnerTeam]:
        """Which side a player is on, or None if not in the match."""
        if player_id in self.team1:
            return WinnerTeam.TEAM1
        if player_id in self.team2:
            return WinnerTeam.TEAM2
        return None

    def teammates_of(self, player_id: str) -> List[str]:
        side = self.team_of(player_id)
        if side is None:
            return []
        team = self.team1 if side == WinnerTeam.TEAM1 else self.team2
        return [pid for pid in team if pid != player_id]

    def opponents_of(self, player_id: str) -> List[str]:
        side = self.team_of(player_id)
        if side is None:
            return []
        return list(self.team2 if side == WinnerTeam.TEAM1 else self.team1)

    @property
    def player_count(self) -> int:
        return len(self.team1) + len(self.team2)


def get_team_structure(match_players: Iterable[MatchPlayerRecord]) -> TeamStructure:
    """
    Derive the two sides of a match from slot assignments.

    Players are sorted by slot. Two players are always opponents. Otherwise
    the first ceil(n/2) players form team1 and the rest team2, which gives
    2v2 for four players and 3v3 for six. A single player yields an empty
    team2.
    """
    ordered = sorted(match_players, key=lambda mp: mp.slot)
    player_ids = [mp.player_id for mp in ordered]

    if len(player_ids) == 2:
        return TeamStructure(team1=[player_ids[0]], team2=[player_ids[1]])

    split = (len(player_ids) + 1) // 2
    return TeamStructure(team1=player_ids[:split], team2=player_ids[split:])


def group_match_players(
    match_players: Iterable[MatchPlayerRecord],
) -> Dict[str, List[MatchPlayerRecord]]:
    """Group match players by match id, keeping first-seen match order."""
    groups: Dict[str, List[MatchPlayerRecord]] = {}
    for mp in match_players:
        groups.setdefault(mp.match_id, []).append(mp)
    return groups


# ============================================================================
# Seasons
# ============================================================================

def get_season_from_date(value: DateLike) -> str:
    """
    Season label for a session date, e.g. "2024-2025".

    Seasons run August 1 through July 31. The stored local calendar date is
    used as-is:

        >>> get_season_from_date("2024-07-31")
        "2023-2024"
        >>> get_season_from_date("2024-08-01")
        "2024-2025"
    """
    day = parse_session_date(value)
    start_year = day.year if day.month >= SEASON_START_MONTH else day.year - 1
    return f"{start_year}-{start_year + 1}"


def get_season_bounds(season: str) -> Tuple[date, date]:
    """First and last calendar day of a season label."""
    try:
        start_year = int(season.split("-")[0])
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid season label: {season!r}")
    return date(start_year, SEASON_START_MONTH, 1), date(start_year + 1, SEASON_START_MONTH - 1, 31)


# ============================================================================
# Scores
# ============================================================================

def calculate_score_difference(score_data: Any, player_team: WinnerTeam) -> Optional[int]:
    """
    Points won minus points lost for one side across all sets.

    Expects score data shaped like {"sets": [{"team1": 21, "team2": 15}, ...]}.
    Returns None for any other shape.
    """
    if not isinstance(score_data, dict):
        return None
    sets = score_data.get("sets")
    if not isinstance(sets, list) or not sets:
        return None

    own_key = "team1" if player_team == WinnerTeam.TEAM1 else "team2"
    other_key = "team2" if own_key == "team1" else "team1"
    diff = 0
    for game_set in sets:
        if not isinstance(game_set, dict):
            return None
        own, other = game_set.get(own_key), game_set.get(other_key)
        if not isinstance(own, (int, float)) or not isinstance(other, (int, float)):
            return None
        diff += own - other
    return diff


# ============================================================================
# PlayerNetworkStats Class
# ============================================================================

class PlayerNetworkStats:
    """Partner and opponent tallies for a single player."""

    def __init__(self, player_id: str):
        self.player_id = player_id
        self.match_count = 0
        self.games_with: Dict[str, int] = {}      # matches partnered with each player (by ID)
        self.games_against: Dict[str, int] = {}  # matches against each player (by ID)

    def _increment_dict(self, d: Dict[str, int], key: str, amount: int = 1) -> None:
        """Helper to increment a value in a dictionary, initializing if needed."""
        d[key] = d.get(key, 0) + amount

    def record_game_with(self, partner_id: str) -> None:
        """Record a match played with a partner."""
        self._increment_dict(self.games_with, partner_id)

    def record_game_against(self, opponent_id: str) -> None:
        """Record a match played against an opponent."""
        self._increment_dict(self.games_against, opponent_id)

    def top_partners(self, limit: int) -> List[Tuple[str, int]]:
        return _top_counts(self.games_with, limit)

    def top_opponents(self, limit: int) -> List[Tuple[str, int]]:
        return _top_counts(self.games_against, limit)


def _top_counts(counts: Dict[str, int], limit: int) -> List[Tuple[str, int]]:
    # Stable sort keeps first-seen order among equal counts
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit] if limit >= 0 else ranked


# ============================================================================
# NetworkTracker Class
# ============================================================================

class NetworkTracker:
    """Tracks partner/opponent relationships for all players across matches."""

    def __init__(self):
        self.players: Dict[str, PlayerNetworkStats] = {}

    def get_player(self, player_id: str) -> PlayerNetworkStats:
        """Get or create a player's stats."""
        if player_id not in self.players:
            self.players[player_id] = PlayerNetworkStats(player_id)
        return self.players[player_id]

    def process_match(self, match_players: Iterable[MatchPlayerRecord]) -> TeamStructure:
        """
        Record every partner and opponent pairing of one match.

        Args:
            match_players: The match player rows of a single match

        Returns:
            The resolved team structure
        """
        teams = get_team_structure(match_players)
        for own, other in ((teams.team1, teams.team2), (teams.team2, teams.team1)):
            for player_id in own:
                stats = self.get_player(player_id)
                stats.match_count += 1
                for partner_id in own:
                    if partner_id != player_id:
                        stats.record_game_with(partner_id)
                for opponent_id in other:
                    stats.record_game_against(opponent_id)
        return teams
