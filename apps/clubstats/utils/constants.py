"""
Constants used across the club statistics system.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Session lifecycle
SESSION_MAX_DURATION_HOURS = float(os.getenv("SESSION_MAX_DURATION_HOURS", "5"))
CLUB_TIMEZONE = os.getenv("CLUB_TIMEZONE", "Europe/Copenhagen")  # local calendar for session dates

# Check-ins
CHECK_IN_NOTES_MAX_LENGTH = 500

# Player analytics
DEFAULT_TOP_LIMIT = 5  # partners / opponents
DEFAULT_RECENT_MATCHES_LIMIT = 5
STATISTICS_RECENT_MATCHES_LIMIT = 10
UNKNOWN_PLAYER_NAME = "Unknown player"

# Seasons run August through July
SEASON_START_MONTH = 8

# Indexed by day of week where 0 = Sunday
WEEKDAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]
