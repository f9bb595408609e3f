# FILE: voice_habits/sessions/dates.py
"""
Session calendar helpers (local date, week start)
"""
from datetime import date, datetime, timedelta
from typing import Optional

from voice_habits.services.telemetry import resolve_timezone


def local_today(tz_name: Optional[str] = None) -> date:
    """Today in the session time zone (system local time when unset)"""
    return datetime.now(resolve_timezone(tz_name)).date()


def week_start(day: date) -> date:
    """Most recent Sunday on or before day"""
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)
