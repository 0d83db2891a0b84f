from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from siply.constants import MIN_INTERVAL_MINUTES, REMINDER_TARGET_ML
from siply.services.calculations import (
    HydrationSettings,
    compute_auto_plan,
    compute_sips_per_reminder,
    get_window_minutes,
    liters_to_ml,
    round_half_up,
)
from siply.services.schedule import compute_reminder_schedule, max_base_reminders
from siply.services.timeutils import parse_time_to_minutes


DEFAULT_SETTINGS = HydrationSettings()


@dataclass(slots=True)
class HydrationPlan:
    target_ml: int
    reminders_per_day: int
    ml_per_reminder: int
    sips_per_reminder: int
    next_reminder_at: Optional[datetime]
    target_met: bool
    consumed_ml: float


def _to_number(value: Any, fallback: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return fallback
    if not math.isfinite(value):
        return fallback
    return value


def _to_boolean(value: Any, fallback: bool) -> bool:
    return value if isinstance(value, bool) else fallback


def _to_time_string(value: Any, fallback: str) -> str:
    if not isinstance(value, str) or parse_time_to_minutes(value) is None:
        return fallback
    return value.strip()


def normalize_settings(raw: Optional[Mapping[str, Any]]) -> HydrationSettings:
    """Build a settings snapshot from untrusted data, falling back field by field."""
    base = raw or {}
    default = DEFAULT_SETTINGS
    return HydrationSettings(
        target_liters=_to_number(base.get("target_liters"), default.target_liters),
        window_start=_to_time_string(base.get("window_start"), default.window_start),
        window_end=_to_time_string(base.get("window_end"), default.window_end),
        sip_ml=_to_number(base.get("sip_ml"), default.sip_ml),
        escalation_enabled=_to_boolean(base.get("escalation_enabled"), default.escalation_enabled),
        sound_enabled=_to_boolean(base.get("sound_enabled"), default.sound_enabled),
        gentle_goal_enabled=_to_boolean(base.get("gentle_goal_enabled"), default.gentle_goal_enabled),
        gentle_goal_threshold=_to_number(base.get("gentle_goal_threshold"), default.gentle_goal_threshold),
    )


def good_threshold_ml(settings: HydrationSettings) -> int:
    return round_half_up(liters_to_ml(settings.target_liters) * settings.gentle_goal_threshold / 100)


def build_hydration_plan(now: datetime, settings: HydrationSettings, consumed_ml: float) -> HydrationPlan:
    target_ml = liters_to_ml(settings.target_liters)
    schedule = compute_reminder_schedule(now, settings, consumed_ml)
    next_slot = schedule.slots[0] if schedule.slots else None
    fallback = compute_auto_plan(
        remaining_ml=max(target_ml - consumed_ml, 0),
        window_minutes=get_window_minutes(settings),
        min_interval_minutes=MIN_INTERVAL_MINUTES,
        max_reminders=max_base_reminders(settings),
        desired_reminder_ml=REMINDER_TARGET_ML,
    )
    fallback_ml = fallback.ml_per_reminder if fallback else REMINDER_TARGET_ML
    if next_slot is not None:
        ml_per_reminder = next_slot.ml_per_reminder
        sips_per_reminder = next_slot.sips_per_reminder
    else:
        ml_per_reminder = fallback_ml
        sips_per_reminder = compute_sips_per_reminder(fallback_ml, settings.sip_ml)
    return HydrationPlan(
        target_ml=target_ml,
        reminders_per_day=fallback.reminders if fallback else len(schedule.slots),
        ml_per_reminder=ml_per_reminder,
        sips_per_reminder=sips_per_reminder,
        next_reminder_at=next_slot.time if next_slot else None,
        target_met=schedule.target_met,
        consumed_ml=consumed_ml,
    )
