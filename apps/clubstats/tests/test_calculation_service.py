"""
Tests for the calculation service - team structure, seasons, scores and the
partner/opponent tracker.
"""
import pytest
from datetime import date

from clubstats.database.models import WinnerTeam
from clubstats.models.schemas import MatchPlayerRecord
from clubstats.services import calculation_service


def _players(match_id, *player_ids, slots=None):
    slots = slots or range(len(player_ids))
    return [
        MatchPlayerRecord(match_id=match_id, player_id=pid, slot=slot)
        for pid, slot in zip(player_ids, slots)
    ]


# ============================================================================
# Team structure
# ============================================================================

def test_two_players_are_opponents():
    """Two players are always one against one."""
    teams = calculation_service.get_team_structure(_players("m1", "a", "b"))
    assert teams.team1 == ["a"]
    assert teams.team2 == ["b"]
    assert teams.opponents_of("a") == ["b"]
    assert teams.teammates_of("a") == []


def test_four_players_split_two_against_two():
    """Slots 0,1 play slots 2,3."""
    teams = calculation_service.get_team_structure(_players("m1", "a", "b", "c", "d"))
    assert teams.team1 == ["a", "b"]
    assert teams.team2 == ["c", "d"]
    assert teams.team_of("c") == WinnerTeam.TEAM2
    assert teams.teammates_of("a") == ["b"]
    assert teams.opponents_of("b") == ["c", "d"]


def test_six_players_split_three_against_three():
    teams = calculation_service.get_team_structure(_players("m1", "a", "b", "c", "d", "e", "f"))
    assert teams.team1 == ["a", "b", "c"]
    assert teams.team2 == ["d", "e", "f"]


def test_odd_player_count_puts_extra_player_on_team1():
    teams = calculation_service.get_team_structure(_players("m1", "a", "b", "c"))
    assert teams.team1 == ["a", "b"]
    assert teams.team2 == ["c"]


def test_single_player_has_no_opponents():
    teams = calculation_service.get_team_structure(_players("m1", "a"))
    assert teams.team1 == ["a"]
    assert teams.team2 == []
    assert teams.player_count == 1


def test_team_structure_sorts_by_slot():
    """Rows arrive in any order; slots decide the sides."""
    rows = _players("m1", "d", "a", "c", "b", slots=[3, 0, 2, 1])
    teams = calculation_service.get_team_structure(rows)
    assert teams.team1 == ["a", "b"]
    assert teams.team2 == ["c", "d"]


def test_team_of_unknown_player():
    teams = calculation_service.get_team_structure(_players("m1", "a", "b"))
    assert teams.team_of("zzz") is None
    assert teams.opponents_of("zzz") == []


def test_group_match_players():
    rows = _players("m1", "a", "b") + _players("m2", "c", "d")
    groups = calculation_service.group_match_players(rows)
    assert list(groups) == ["m1", "m2"]
    assert [mp.player_id for mp in groups["m2"]] == ["c", "d"]


# ============================================================================
# Seasons
# ============================================================================

@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-07-31", "2023-2024"),
        ("2024-08-01", "2024-2025"),
        ("2025-01-15", "2024-2025"),
        ("2024-12-31T23:30:00+01:00", "2024-2025"),
        (date(2023, 9, 1), "2023-2024"),
    ],
)
def test_get_season_from_date(value, expected):
    """Seasons run August 1 through July 31."""
    assert calculation_service.get_season_from_date(value) == expected


def test_get_season_from_date_invalid():
    with pytest.raises(ValueError):
        calculation_service.get_season_from_date("not a date")


def test_get_season_bounds():
    start, end = calculation_service.get_season_bounds("2024-2025")
    assert start == date(2024, 8, 1)
    assert end == date(2025, 7, 31)


def test_get_season_bounds_invalid_label():
    with pytest.raises(ValueError):
        calculation_service.get_season_bounds("spring")


# ============================================================================
# Scores
# ============================================================================

def test_calculate_score_difference():
    score = {"sets": [{"team1": 21, "team2": 15}, {"team1": 18, "team2": 21}]}
    assert calculation_service.calculate_score_difference(score, WinnerTeam.TEAM1) == 3
    assert calculation_service.calculate_score_difference(score, WinnerTeam.TEAM2) == -3


@pytest.mark.parametrize(
    "score",
    [None, "21-15", {}, {"sets": []}, {"sets": [{"team1": 21}]}, {"sets": ["21-15"]}],
)
def test_calculate_score_difference_unreadable(score):
    assert calculation_service.calculate_score_difference(score, WinnerTeam.TEAM1) is None


# ============================================================================
# NetworkTracker
# ============================================================================

def test_network_tracker_counts_partners_and_opponents():
    """Partners count once per shared match; every opponent counts."""
    tracker = calculation_service.NetworkTracker()
    tracker.process_match(_players("m1", "a", "b", "c", "d"))
    tracker.process_match(_players("m2", "a", "c", "b", "d"))
    tracker.process_match(_players("m3", "a", "b"))

    a = tracker.get_player("a")
    assert a.match_count == 3
    assert a.games_with == {"b": 1, "c": 1}
    assert a.games_against == {"c": 1, "d": 2, "b": 2}


def test_top_partners_keeps_first_seen_order_on_ties():
    stats = calculation_service.PlayerNetworkStats("a")
    stats.record_game_with("x")
    stats.record_game_with("y")
    stats.record_game_with("z")
    stats.record_game_with("z")

    assert stats.top_partners(5) == [("z", 2), ("x", 1), ("y", 1)]
    assert stats.top_partners(1) == [("z", 2)]
