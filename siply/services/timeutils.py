from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Optional

MINUTES_IN_DAY = 24 * 60

_TIME_RE = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9])")


def get_date_key(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def parse_time_to_minutes(value: str) -> Optional[int]:
    """Minutes since midnight for a strict 24h "HH:MM" string, None for anything else."""
    if not isinstance(value, str):
        return None
    match = _TIME_RE.fullmatch(value.strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time_string(total_minutes: int) -> str:
    total_minutes %= MINUTES_IN_DAY
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def set_time_on_date(day: datetime, value: str) -> datetime:
    minutes = parse_time_to_minutes(value)
    if minutes is None:
        return day
    midnight = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(minutes=minutes)


def add_minutes(value: datetime, minutes: float) -> datetime:
    return value + timedelta(minutes=minutes)


def add_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=days)


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60
