"""
Tests for attendance insights.
"""
import pytest

from clubstats.models.schemas import (
    GroupAttendance,
    InsightType,
    PlayerCheckInLongTail,
    WeekdayAttendance,
)
from clubstats.services import (
    attendance_service,
    check_in_service,
    insights_service,
    session_service,
)


def _weekday(weekday, name, check_ins, sessions):
    return WeekdayAttendance(
        weekday=weekday,
        weekday_name=name,
        check_in_count=check_ins,
        unique_players=check_ins,
        sessions=sessions,
        average_attendance=attendance_service.average_attendance(check_ins, sessions),
    )


def test_training_day_insight():
    weekdays = [_weekday(1, "Monday", 10, 2), _weekday(3, "Wednesday", 15, 2)]
    comparison = attendance_service.compute_training_day_comparison(weekdays)

    insights = insights_service.training_day_insights(comparison)

    assert len(insights) == 1
    assert insights[0].type == InsightType.COMPARISON
    assert insights[0].text == (
        "Wednesday has higher attendance than Monday by 50.0% (5 more check-ins)."
    )


def test_most_active_weekday_uses_average():
    weekdays = [_weekday(1, "Monday", 12, 4), _weekday(3, "Wednesday", 10, 2)]
    insights = insights_service.weekday_insights(weekdays)
    assert insights[0].type == InsightType.MOST_ACTIVE
    assert "Wednesday" in insights[0].text
    assert "5.0 players per session" in insights[0].text


def test_group_and_player_insights():
    groups = [
        GroupAttendance(group_name="A", check_in_count=4, unique_players=2, sessions=2,
                        average_attendance=2.0),
        GroupAttendance(group_name="B", check_in_count=9, unique_players=3, sessions=3,
                        average_attendance=3.0),
    ]
    long_tail = [PlayerCheckInLongTail(player_id="p1", player_name="Ann", check_in_count=7)]

    assert "training group is B" in insights_service.group_insights(groups)[0].text
    assert insights_service.player_insights(long_tail)[0].text == (
        "The most active player is Ann with 7 check-ins in the selected period."
    )


def test_generate_insights_without_data():
    assert insights_service.generate_insights() == []


def test_generate_insights_from_snapshots(make_snapshot, make_player):
    snapshots = [
        make_snapshot("s1", "2024-03-06", check_ins=["a", "b"]),
        make_snapshot("s2", "2024-03-11", check_ins=["a"]),
    ]
    players = [make_player("a", name="Ann", groups=["A"]), make_player("b", name="Bob", groups=["A"])]
    weekdays = attendance_service.compute_weekday_attendance(snapshots, players)

    insights = insights_service.generate_insights(
        training_day_comparison=attendance_service.compute_training_day_comparison(weekdays),
        weekdays=weekdays,
        groups=attendance_service.compute_training_group_attendance(snapshots, players).groups,
        long_tail=attendance_service.compute_player_check_in_long_tail(snapshots, players),
    )

    assert [i.type for i in insights] == [
        InsightType.COMPARISON,
        InsightType.MOST_ACTIVE,
        InsightType.MOST_ACTIVE,
        InsightType.MOST_ACTIVE,
    ]
    assert insights[-1].text.startswith("The most active player is Ann")


@pytest.mark.asyncio
async def test_get_insights_reads_store(store):
    ann = await store.create_player("Ann", training_groups=["A"])
    bob = await store.create_player("Bob", training_groups=["B"])
    session = await session_service.start_or_get_active_session(store, "2024-03-06")
    await check_in_service.add_check_in(store, ann.id)
    await check_in_service.add_check_in(store, bob.id)
    await session_service.end_session(store, session.id)

    insights = await insights_service.get_insights(
        store, date_from="2024-03-01", date_to="2024-03-31", group_names=["A"]
    )

    assert [i.type for i in insights] == [InsightType.MOST_ACTIVE] * 3
    assert insights[-1].text.startswith("The most active player is Ann with 1 check-ins")
    assert await insights_service.get_insights(store, date_from="2024-04-01") == []
