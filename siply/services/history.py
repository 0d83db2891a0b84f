from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from siply.constants import HISTORY_RETENTION_DAYS, QUICK_LOG_MAX_PRESETS, QUICK_LOG_MIN_PRESETS
from siply.services.timeutils import add_days, get_date_key


HOURS_IN_DAY = 24


def _empty_hours() -> list[int]:
    return [0] * HOURS_IN_DAY


@dataclass(slots=True)
class DaySummary:
    date: str
    total_ml: float = 0
    goal_ml: float = 0
    good_threshold_ml: float = 0
    log_hours: List[int] = field(default_factory=_empty_hours)


History = Dict[str, DaySummary]


@dataclass(slots=True)
class StreakStats:
    current_streak: int
    best_streak: int
    last7_goal_hits: int
    last30_goal_hits: int
    current_good_streak: Optional[int]
    best_good_streak: Optional[int]


def ensure_log_hours(raw: Optional[Sequence[Any]]) -> list[int]:
    base = list(raw[:HOURS_IN_DAY]) if isinstance(raw, (list, tuple)) else []
    hours = _empty_hours()
    for index, value in enumerate(base):
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            hours[index] = int(value)
    return hours


def update_history_for_log(
    history: History,
    now: datetime,
    amount_ml: float,
    goal_ml: float,
    good_threshold_ml: float,
) -> History:
    if not math.isfinite(amount_ml) or amount_ml <= 0:
        return history
    key = get_date_key(now)
    existing = history.get(key)
    hours = ensure_log_hours(existing.log_hours if existing else None)
    hours[now.hour] += 1
    updated = dict(history)
    updated[key] = DaySummary(
        date=key,
        total_ml=max(0, (existing.total_ml if existing else 0) + amount_ml),
        goal_ml=goal_ml,
        good_threshold_ml=good_threshold_ml,
        log_hours=hours,
    )
    return updated


def reset_history_for_date(history: History, key: str, goal_ml: float, good_threshold_ml: float) -> History:
    updated = dict(history)
    updated[key] = DaySummary(date=key, goal_ml=goal_ml, good_threshold_ml=good_threshold_ml)
    return updated


def trim_history(history: History, now: datetime, retention_days: int = HISTORY_RETENTION_DAYS) -> History:
    cutoff = get_date_key(add_days(now, -max(1, retention_days) + 1))
    return {key: value for key, value in history.items() if key >= cutoff}


def build_date_keys(today: datetime, days: int) -> list[str]:
    """Date keys for the last ``days`` days, oldest first, ending with ``today``."""
    return [get_date_key(add_days(today, -(days - 1 - index))) for index in range(days)]


def get_summary_for_date(
    history: History,
    key: str,
    fallback_goal_ml: float,
    fallback_good_threshold_ml: float,
) -> DaySummary:
    entry = history.get(key)
    if entry is None:
        return DaySummary(date=key, goal_ml=fallback_goal_ml, good_threshold_ml=fallback_good_threshold_ml)
    return entry


def _best_streak(flags: Iterable[bool]) -> int:
    best = current = 0
    for flag in flags:
        current = current + 1 if flag else 0
        best = max(best, current)
    return best


def _current_streak(flags: Sequence[bool]) -> int:
    count = 0
    for flag in reversed(flags):
        if not flag:
            break
        count += 1
    return count


def _goal_hit(entry: Optional[DaySummary], fallback_goal_ml: float) -> bool:
    total = entry.total_ml if entry else 0
    goal = entry.goal_ml if entry else fallback_goal_ml
    return goal > 0 and total >= goal


def _good_hit(entry: Optional[DaySummary], fallback_threshold_ml: float) -> bool:
    total = entry.total_ml if entry else 0
    threshold = entry.good_threshold_ml if entry else fallback_threshold_ml
    return threshold > 0 and total >= threshold


def compute_streak_stats(
    history: History,
    now: datetime,
    fallback_goal_ml: float,
    fallback_good_threshold_ml: float,
    gentle_enabled: bool,
) -> StreakStats:
    keys = build_date_keys(now, HISTORY_RETENTION_DAYS)
    goal_flags = [_goal_hit(history.get(key), fallback_goal_ml) for key in keys]
    good_flags = [_good_hit(history.get(key), fallback_good_threshold_ml) for key in keys]
    return StreakStats(
        current_streak=_current_streak(goal_flags),
        best_streak=_best_streak(goal_flags),
        last7_goal_hits=sum(goal_flags[-7:]),
        last30_goal_hits=sum(goal_flags[-30:]),
        current_good_streak=_current_streak(good_flags) if gentle_enabled else None,
        best_good_streak=_best_streak(good_flags) if gentle_enabled else None,
    )


def compute_best_hours(history: History, now: datetime, days: int = 30) -> list[int]:
    counts = _empty_hours()
    for key in build_date_keys(now, days):
        entry = history.get(key)
        if entry is None:
            continue
        for hour, value in enumerate(entry.log_hours[:HOURS_IN_DAY]):
            counts[hour] += value
    ranked = sorted((hour for hour in range(HOURS_IN_DAY) if counts[hour] > 0), key=lambda hour: -counts[hour])
    return ranked[:3]


def normalize_quick_log_presets(raw: Any, fallback: Sequence[int]) -> list[int]:
    if isinstance(raw, dict):
        raw = raw.get("presets")
    if not isinstance(raw, (list, tuple)):
        return list(fallback[:QUICK_LOG_MAX_PRESETS])
    cleaned: list[int] = []
    for value in raw:
        if isinstance(value, bool):
            continue
        try:
            number = int(value)
        except (TypeError, ValueError, OverflowError):
            continue
        if number > 0 and number not in cleaned:
            cleaned.append(number)
    bounded = cleaned[:QUICK_LOG_MAX_PRESETS]
    if len(bounded) >= QUICK_LOG_MIN_PRESETS:
        return bounded
    return list(fallback[:QUICK_LOG_MAX_PRESETS])
