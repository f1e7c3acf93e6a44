"""
Tests for coerce_to_array and the record models that rely on it.
"""
import json

import pytest

from clubstats.models.schemas import PlayerRecord, StatisticsSnapshotRecord
from clubstats.utils.json_utils import coerce_to_array


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, []),
        ([], []),
        (["A", "B"], ["A", "B"]),
        (("A",), ["A"]),
        ('["A", "B"]', ["A", "B"]),
        (json.dumps(json.dumps(["A"])), ["A"]),
    ],
)
def test_coerce_to_array(value, expected):
    assert coerce_to_array(value) == expected


@pytest.mark.parametrize("value", ["not json", '{"a": 1}', "42", 42, {"a": 1}])
def test_coerce_to_array_malformed_returns_empty(value):
    assert coerce_to_array(value, "training_groups") == []


def test_player_training_groups_decoded_from_string():
    """A double-encoded group list is read back as a plain list."""
    player = PlayerRecord(id="p1", name="Ann", training_groups=json.dumps(json.dumps(["A", "B"])))
    assert player.training_groups == ["A", "B"]


def test_player_training_groups_camel_case_and_non_strings():
    player = PlayerRecord.model_validate(
        {"id": "p1", "name": "Ann", "trainingGroups": ["A", 3, None, "B"]}
    )
    assert player.training_groups == ["A", "B"]


def test_snapshot_accepts_legacy_spellings_and_skips_bad_rows():
    """camelCase ids are accepted; entries without a player id are dropped."""
    snapshot = StatisticsSnapshotRecord.model_validate(
        {
            "id": "s1",
            "sessionId": "sess1",
            "sessionDate": "2024-03-06",
            "season": "2023-2024",
            "matches": json.dumps([{"id": "m1", "sessionId": "sess1"}]),
            "matchPlayers": [
                {"matchId": "m1", "playerId": "a", "slot": 0},
                {"match_id": "m1", "player_id": "b", "slot": 1},
                {"match_id": "m1", "slot": 2},
            ],
            "checkIns": [
                {"sessionId": "sess1", "playerId": "a"},
                {"session_id": "sess1", "player_id": "b"},
                "garbage",
            ],
        }
    )
    assert [m.id for m in snapshot.matches] == ["m1"]
    assert [mp.player_id for mp in snapshot.match_players] == ["a", "b"]
    assert [c.player_id for c in snapshot.check_ins] == ["a", "b"]


def test_snapshot_with_missing_arrays():
    snapshot = StatisticsSnapshotRecord(
        id="s1",
        session_id="sess1",
        session_date="2024-03-06",
        season="2023-2024",
        matches=None,
        match_players="not json",
        check_ins=None,
    )
    assert snapshot.matches == []
    assert snapshot.match_players == []
    assert snapshot.check_ins == []
