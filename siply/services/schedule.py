from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from siply.constants import (
    HORIZON_MINUTES,
    MAX_GENERATION_ITERATIONS,
    MAX_NOTIFICATIONS_PER_DAY,
    MIN_INTERVAL_MINUTES,
    NUDGE_MINUTES,
    REMINDER_TARGET_ML,
)
from siply.services.calculations import (
    HydrationSettings,
    compute_auto_plan,
    compute_sips_per_reminder,
    get_window_minutes,
    liters_to_ml,
    round_half_up,
)
from siply.services.timeutils import add_days, add_minutes, minutes_between, set_time_on_date


logger = logging.getLogger(__name__)


class ScheduleStatus(str, Enum):
    SUCCESS = "success"
    NO_WINDOW = "no_window"
    TARGET_MET = "target_met"
    CONFIG_ERROR = "config_error"


@dataclass(frozen=True, slots=True)
class WindowSpan:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def minutes(self) -> int:
        return max(0, math.ceil(minutes_between(self.start, self.end)))


@dataclass(frozen=True, slots=True)
class ReminderSlot:
    time: datetime
    ml_per_reminder: int
    sips_per_reminder: int
    interval_minutes: int


@dataclass(frozen=True, slots=True)
class ScheduleResult:
    slots: List[ReminderSlot] = field(default_factory=list)
    target_met: bool = False
    status: ScheduleStatus = ScheduleStatus.SUCCESS


def escalation_factor(settings: HydrationSettings) -> int:
    return 1 + len(NUDGE_MINUTES) if settings.escalation_enabled else 1


def max_base_reminders(settings: HydrationSettings) -> int:
    """Daily cap for base reminders, leaving room for the nudges attached to each."""
    return max(1, MAX_NOTIFICATIONS_PER_DAY // escalation_factor(settings))


def resolve_window_spans(now: datetime, settings: HydrationSettings) -> List[WindowSpan]:
    """Concrete spans for yesterday, today and tomorrow that touch the next 24 hours."""
    window_minutes = get_window_minutes(settings)
    if window_minutes <= 0:
        return []
    horizon_end = add_minutes(now, HORIZON_MINUTES)
    spans = []
    for offset in (-1, 0, 1):
        start = set_time_on_date(add_days(now, offset), settings.window_start)
        span = WindowSpan(start=start, end=add_minutes(start, window_minutes))
        if span.end > now and span.start <= horizon_end:
            spans.append(span)
    spans.sort(key=lambda span: span.start)
    return spans


def build_window_times(
    start: datetime,
    end: datetime,
    interval_minutes: int,
    max_count: int,
) -> List[datetime]:
    times: list[datetime] = []
    if end <= start or interval_minutes <= 0 or max_count <= 0:
        return times
    current = start
    for _ in range(min(max_count, MAX_GENERATION_ITERATIONS)):
        if current >= end:
            break
        times.append(current)
        following = add_minutes(current, interval_minutes)
        if following <= current:
            logger.warning("build_window_times stalled at %s, stopping generation", current)
            break
        current = following
    return times


def build_slots(
    times: List[datetime],
    ml_per_reminder: int,
    interval_minutes: int,
    sip_ml: float,
) -> List[ReminderSlot]:
    sips = compute_sips_per_reminder(ml_per_reminder, sip_ml)
    return [
        ReminderSlot(
            time=moment,
            ml_per_reminder=ml_per_reminder,
            sips_per_reminder=sips,
            interval_minutes=interval_minutes,
        )
        for moment in times
    ]


def _dedupe(slots: List[ReminderSlot]) -> List[ReminderSlot]:
    seen: set[datetime] = set()
    deduped: list[ReminderSlot] = []
    for slot in slots:
        if slot.time in seen:
            continue
        seen.add(slot.time)
        deduped.append(slot)
    return deduped


def _slots_for_span(
    span: WindowSpan,
    now: datetime,
    settings: HydrationSettings,
    target_ml: int,
    consumed_ml: float,
    capacity: int,
) -> List[ReminderSlot]:
    is_current = span.contains(now)
    if is_current:
        remaining_ml = max(target_ml - consumed_ml, 0)
        window_minutes = max(0, math.ceil(minutes_between(now, span.end)))
    else:
        remaining_ml = target_ml
        window_minutes = get_window_minutes(settings)
    if remaining_ml <= 0:
        return []

    plan = compute_auto_plan(
        remaining_ml=remaining_ml,
        window_minutes=window_minutes,
        min_interval_minutes=MIN_INTERVAL_MINUTES,
        max_reminders=capacity,
        desired_reminder_ml=REMINDER_TARGET_ML,
    )
    if plan is None or plan.ml_per_reminder <= 0 or plan.interval_minutes <= 0:
        return []

    max_window_slots = max(1, math.ceil(span.minutes / plan.interval_minutes))
    planned = build_window_times(span.start, span.end, plan.interval_minutes, max_window_slots)
    times = [moment for moment in planned if moment > now][:capacity]

    if is_current and not times and window_minutes > 0:
        # last stretch of the active window: one reminder right away
        immediate = add_minutes(now, 1)
        if immediate >= span.end:
            return []
        ml = max(1, round_half_up(remaining_ml))
        return build_slots([immediate], ml, 0, settings.sip_ml)
    if not times:
        return []

    ml_per_reminder = max(1, round_half_up(remaining_ml / len(times)))
    return build_slots(times, ml_per_reminder, plan.interval_minutes, settings.sip_ml)


def compute_reminder_schedule(
    now: datetime,
    settings: Optional[HydrationSettings],
    consumed_ml: float,
) -> ScheduleResult:
    """Reminder slots for the next 24 hours.

    Pure function of its arguments: nothing is cached between calls, so callers
    replace any previously delivered schedule with the fresh one. Problems are
    reported through ``ScheduleResult.status`` rather than raised.
    """
    if settings is None or settings.sip_ml <= 0 or settings.target_liters <= 0:
        return ScheduleResult(slots=[], target_met=False, status=ScheduleStatus.CONFIG_ERROR)
    if get_window_minutes(settings) <= 0:
        return ScheduleResult(slots=[], target_met=False, status=ScheduleStatus.NO_WINDOW)

    target_ml = liters_to_ml(settings.target_liters)
    target_met = consumed_ml >= target_ml
    max_base = max_base_reminders(settings)
    horizon_end = add_minutes(now, HORIZON_MINUTES)

    spans = resolve_window_spans(now, settings)
    logger.debug("Resolved %d window span(s) for %s: %s", len(spans), now, spans)

    slots: list[ReminderSlot] = []
    for span in spans:
        capacity = max_base - len(slots)
        if capacity <= 0:
            break
        span_slots = _slots_for_span(span, now, settings, target_ml, consumed_ml, capacity)
        slots.extend(slot for slot in span_slots if slot.time <= horizon_end)

    deduped = _dedupe(slots)
    logger.debug("Computed %d reminder slot(s), target_met=%s", len(deduped), target_met)
    return ScheduleResult(
        slots=deduped,
        target_met=target_met,
        status=ScheduleStatus.TARGET_MET if target_met else ScheduleStatus.SUCCESS,
    )
