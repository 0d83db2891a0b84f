from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional

from siply.constants import (
    DEFAULT_GENTLE_GOAL_THRESHOLD,
    DEFAULT_SIP_ML,
    DEFAULT_TARGET_LITERS,
    DEFAULT_WINDOW_END,
    DEFAULT_WINDOW_START,
)
from siply.services.timeutils import MINUTES_IN_DAY, parse_time_to_minutes


@dataclass(frozen=True, slots=True)
class HydrationSettings:
    target_liters: float = DEFAULT_TARGET_LITERS
    window_start: str = DEFAULT_WINDOW_START
    window_end: str = DEFAULT_WINDOW_END
    sip_ml: int = DEFAULT_SIP_ML
    escalation_enabled: bool = True
    sound_enabled: bool = True
    gentle_goal_enabled: bool = False
    gentle_goal_threshold: float = DEFAULT_GENTLE_GOAL_THRESHOLD

    def replace(self, **patch) -> "HydrationSettings":
        return replace(self, **patch)


@dataclass(frozen=True, slots=True)
class AutoPlan:
    interval_minutes: int
    reminders: int
    ml_per_reminder: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def liters_to_ml(liters: float) -> int:
    return round_half_up(liters * 1000)


def get_window_minutes(settings: HydrationSettings) -> int:
    start = parse_time_to_minutes(settings.window_start) or 0
    end = parse_time_to_minutes(settings.window_end) or 0
    if end > start:
        return end - start
    if end == start:
        return 0
    # wraps past midnight
    return (MINUTES_IN_DAY - start) + end


def compute_sips_per_reminder(ml_per_reminder: float, sip_ml: float) -> int:
    if sip_ml <= 0:
        return 1
    return max(1, round_half_up(ml_per_reminder / sip_ml))


def compute_auto_plan(
    remaining_ml: float,
    window_minutes: float,
    min_interval_minutes: int,
    max_reminders: int,
    desired_reminder_ml: float,
) -> Optional[AutoPlan]:
    """Decide spacing and per-reminder volume for one window.

    Prefers fewer, larger reminders (around ``desired_reminder_ml`` each) unless
    the window cannot fit them at ``min_interval_minutes`` spacing. The result
    never exceeds ``max_reminders`` and never carries less than 1 ml.
    """
    if remaining_ml <= 0 or window_minutes <= 0 or max_reminders < 1:
        return None
    min_interval = max(1, int(min_interval_minutes))

    max_by_interval = max(1, math.floor(window_minutes / min_interval))
    allowed = min(max_reminders, max_by_interval)
    if desired_reminder_ml > 0:
        desired = max(1, math.ceil(remaining_ml / desired_reminder_ml))
    else:
        desired = allowed
    initial = min(allowed, desired)

    interval = max(min_interval, math.floor(window_minutes / initial))
    adjusted = max(1, math.floor(window_minutes / interval))
    reminders = min(allowed, adjusted)
    ml_per_reminder = max(1, round_half_up(remaining_ml / reminders))
    return AutoPlan(interval_minutes=interval, reminders=reminders, ml_per_reminder=ml_per_reminder)
