"""
Tests for reading session dates.
"""
import pytest
from datetime import date, datetime

import pytz

from clubstats.utils.datetime_utils import parse_session_date


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-07-31", date(2024, 7, 31)),
        (" 2024-07-31 ", date(2024, 7, 31)),
        # UTC evening is already the next day in Copenhagen (UTC+2 in summer)
        ("2024-07-31T22:30:00Z", date(2024, 8, 1)),
        ("2024-07-31T22:30:00.000Z", date(2024, 8, 1)),
        ("2024-07-31T21:59:00+00:00", date(2024, 7, 31)),
        ("2024-12-31T23:30:00+01:00", date(2024, 12, 31)),
        # No offset: the stored date is already local
        ("2024-07-31T23:30:00", date(2024, 7, 31)),
    ],
)
def test_parse_session_date(value, expected):
    assert parse_session_date(value, "Europe/Copenhagen") == expected


def test_parse_session_date_other_timezone():
    assert parse_session_date("2024-08-01T02:00:00Z", "America/New_York") == date(2024, 7, 31)


def test_parse_session_date_objects():
    stamp = datetime(2024, 3, 6, 23, 0, tzinfo=pytz.UTC)
    assert parse_session_date(stamp) == date(2024, 3, 6)
    assert parse_session_date(date(2024, 3, 6)) == date(2024, 3, 6)


@pytest.mark.parametrize("value", ["", "06/03/2024", "not a date"])
def test_parse_session_date_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_session_date(value)
