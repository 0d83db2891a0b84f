from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Hashable, Optional, Tuple, Union

from aiogram import F, Router
from aiogram.filters import BaseFilter, Command, CommandObject, CommandStart
from aiogram.types import CallbackQuery, Message

from siply.bot.keyboards.common import DRINK_DONE, DRINK_PREFIX, REMINDER_PREFIX, quick_log_keyboard
from siply.config import settings as app_settings
from siply.database import get_session
from siply.scheduler import ReminderScheduler
from siply.services import storage
from siply.services.calculations import liters_to_ml
from siply.services.dedup import HandledCache
from siply.services.history import (
    DaySummary,
    StreakStats,
    compute_best_hours,
    compute_streak_stats,
    get_summary_for_date,
)
from siply.services.hydration import HydrationPlan, build_hydration_plan, good_threshold_ml
from siply.services.timeutils import get_date_key, minutes_to_time_string, parse_time_to_minutes


logger = logging.getLogger(__name__)

router = Router(name="hydration")

MAX_LOG_ML = 5000
MAX_TARGET_LITERS = 10.0


class OwnerFilter(BaseFilter):
    """Lets through updates from the configured owner only (everyone when unset)."""

    async def __call__(self, event: Union[Message, CallbackQuery]) -> bool:
        owner = app_settings.owner_chat_id
        if owner is None:
            return True
        return event.from_user is not None and event.from_user.id == owner


router.message.filter(OwnerFilter())
router.callback_query.filter(OwnerFilter())


def parse_ml(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    text = value.strip().lower().removesuffix("ml").strip()
    if not text.isdecimal():
        return None
    ml = int(text)
    if ml <= 0 or ml > MAX_LOG_ML:
        return None
    return ml


def parse_liters(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        liters = float(value.strip().lower().removesuffix("l").strip().replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(liters) or liters <= 0 or liters > MAX_TARGET_LITERS:
        return None
    return liters


def parse_switch(value: Optional[str]) -> Optional[bool]:
    if not value:
        return None
    text = value.strip().lower()
    if text in {"on", "yes", "1", "true"}:
        return True
    if text in {"off", "no", "0", "false"}:
        return False
    return None


def parse_window(value: Optional[str]) -> Optional[Tuple[str, str]]:
    parts = (value or "").replace("-", " ").split()
    if len(parts) != 2:
        return None
    start_minutes = parse_time_to_minutes(parts[0])
    end_minutes = parse_time_to_minutes(parts[1])
    if start_minutes is None or end_minutes is None or start_minutes == end_minutes:
        return None
    return minutes_to_time_string(start_minutes), minutes_to_time_string(end_minutes)


def format_plan(plan: HydrationPlan) -> str:
    lines = [
        f"Today: {plan.consumed_ml:.0f} / {plan.target_ml} ml",
    ]
    if plan.target_met:
        lines.append("Goal reached for today. Nice work!")
    if plan.next_reminder_at is not None:
        lines.append(
            f"Next reminder at {plan.next_reminder_at.strftime('%H:%M')}: "
            f"~{plan.ml_per_reminder} ml ({plan.sips_per_reminder} sips)"
        )
    else:
        lines.append("No reminders scheduled in the next 24 hours.")
    lines.append(f"About {plan.reminders_per_day} reminders per day.")
    return "\n".join(lines)


def format_stats(stats: StreakStats, best_hours: list[int], today: Optional[DaySummary] = None) -> str:
    lines = []
    if today is not None:
        lines.append(f"Today: {today.total_ml:.0f} / {today.goal_ml:.0f} ml")
    lines += [
        f"Current streak: {stats.current_streak} day(s), best: {stats.best_streak}",
        f"Goal hit {stats.last7_goal_hits}/7 last week, {stats.last30_goal_hits}/30 last month",
    ]
    if stats.current_good_streak is not None:
        lines.append(f"Gentle goal streak: {stats.current_good_streak}, best: {stats.best_good_streak}")
    if best_hours:
        lines.append("You drink most at: " + ", ".join(f"{hour:02d}:00" for hour in best_hours))
    return "\n".join(lines)


async def _send_plan(message: Message, now: datetime) -> None:
    async with get_session() as session:
        settings = await storage.load_settings(session)
        consumed_ml = await storage.get_consumed_ml(session, now)
        presets, last_used_ml = await storage.load_quick_log(session)
    plan = build_hydration_plan(now, settings, consumed_ml)
    await message.answer(format_plan(plan), reply_markup=quick_log_keyboard(presets, last_used_ml).as_markup())


async def _log_water(amount_ml: int, reminder_scheduler: ReminderScheduler) -> str:
    now = datetime.now()
    async with get_session() as session:
        result = await storage.add_consumed(session, now, amount_ml)
    await reminder_scheduler.refresh()
    verb = "Logged" if amount_ml > 0 else "Removed"
    text = f"{verb} {abs(amount_ml)} ml. Today: {result.consumed_ml:.0f} / {result.target_ml} ml"
    if result.target_met:
        text += "\nGoal reached for today!"
    return text


async def _update_and_reschedule(reminder_scheduler: ReminderScheduler, **patch) -> None:
    async with get_session() as session:
        await storage.update_settings(session, patch)
    await reminder_scheduler.refresh()


@router.message(CommandStart())
async def handle_start(message: Message, reminder_scheduler: ReminderScheduler) -> None:
    async with get_session() as session:
        await storage.complete_onboarding(session)
    await reminder_scheduler.refresh()
    await message.answer(
        "Hi! I will remind you to drink water across your day.\n"
        "Use /drink 250 to log water, /window 07:00 23:00 to set your day, "
        "/target 2.5 for the daily goal and /stats for streaks."
    )
    await _send_plan(message, datetime.now())


@router.message(Command("plan"))
async def handle_plan(message: Message) -> None:
    await _send_plan(message, datetime.now())


@router.message(Command("drink"))
async def handle_drink(message: Message, command: CommandObject, reminder_scheduler: ReminderScheduler) -> None:
    ml = parse_ml(command.args)
    if ml is None:
        await message.answer(f"Usage: /drink <ml>, for example /drink 250 (1-{MAX_LOG_ML} ml)")
        return
    await message.answer(await _log_water(ml, reminder_scheduler))


@router.message(Command("undo"))
async def handle_undo(message: Message, command: CommandObject, reminder_scheduler: ReminderScheduler) -> None:
    ml = parse_ml(command.args)
    if ml is None:
        await message.answer("Usage: /undo <ml>, for example /undo 250")
        return
    await message.answer(await _log_water(-ml, reminder_scheduler))


@router.message(Command("reset"))
async def handle_reset(message: Message, reminder_scheduler: ReminderScheduler) -> None:
    async with get_session() as session:
        await storage.reset_today(session, datetime.now())
    await reminder_scheduler.refresh()
    await message.answer("Today's progress was reset.")


@router.message(Command("target"))
async def handle_target(message: Message, command: CommandObject, reminder_scheduler: ReminderScheduler) -> None:
    liters = parse_liters(command.args)
    if liters is None:
        await message.answer(f"Usage: /target <liters>, for example /target 2.5 (up to {MAX_TARGET_LITERS:g} l)")
        return
    await _update_and_reschedule(reminder_scheduler, target_liters=liters)
    await message.answer(f"Daily goal set to {liters_to_ml(liters)} ml.")


@router.message(Command("window"))
async def handle_window(message: Message, command: CommandObject, reminder_scheduler: ReminderScheduler) -> None:
    window = parse_window(command.args)
    if window is None:
        await message.answer(
            "Usage: /window HH:MM HH:MM, for example /window 07:00 23:00.\n"
            "The end may be after midnight (/window 22:00 06:00) but must differ from the start."
        )
        return
    start, end = window
    await _update_and_reschedule(reminder_scheduler, window_start=start, window_end=end)
    await message.answer(f"Reminders will run from {start} to {end}.")


@router.message(Command("sip"))
async def handle_sip(message: Message, command: CommandObject, reminder_scheduler: ReminderScheduler) -> None:
    ml = parse_ml(command.args)
    if ml is None:
        await message.answer("Usage: /sip <ml>, for example /sip 15")
        return
    await _update_and_reschedule(reminder_scheduler, sip_ml=ml)
    await message.answer(f"One sip is now {ml} ml.")


@router.message(Command("escalation"))
async def handle_escalation(message: Message, command: CommandObject, reminder_scheduler: ReminderScheduler) -> None:
    enabled = parse_switch(command.args)
    if enabled is None:
        await message.answer("Usage: /escalation on|off")
        return
    await _update_and_reschedule(reminder_scheduler, escalation_enabled=enabled)
    await message.answer("Follow-up nudges are on." if enabled else "Follow-up nudges are off.")


@router.message(Command("sound"))
async def handle_sound(message: Message, command: CommandObject, reminder_scheduler: ReminderScheduler) -> None:
    enabled = parse_switch(command.args)
    if enabled is None:
        await message.answer("Usage: /sound on|off")
        return
    await _update_and_reschedule(reminder_scheduler, sound_enabled=enabled)
    await message.answer("Reminders will make a sound." if enabled else "Reminders will arrive silently.")


@router.message(Command("gentle"))
async def handle_gentle(message: Message, command: CommandObject) -> None:
    parts = (command.args or "").split()
    enabled = parse_switch(parts[0]) if parts else None
    threshold = None
    if len(parts) > 1:
        threshold = int(parts[1]) if parts[1].isdecimal() else -1
    if enabled is None or (threshold is not None and not 1 <= threshold <= 100):
        await message.answer("Usage: /gentle on|off [percent], for example /gentle on 80")
        return
    patch = {"gentle_goal_enabled": enabled}
    if threshold is not None:
        patch["gentle_goal_threshold"] = threshold
    async with get_session() as session:
        updated = await storage.update_settings(session, patch)
    if enabled:
        await message.answer(f"Gentle goal on: {good_threshold_ml(updated)} ml counts as a good day.")
    else:
        await message.answer("Gentle goal off.")


@router.message(Command("presets"))
async def handle_presets(message: Message, command: CommandObject) -> None:
    values = [parse_ml(part) for part in (command.args or "").split()]
    if not values or any(value is None for value in values):
        await message.answer("Usage: /presets 150 250 500")
        return
    async with get_session() as session:
        presets = await storage.update_quick_log_presets(session, values)
    await message.answer("Quick log buttons: " + ", ".join(f"{ml} ml" for ml in presets))


@router.message(Command("stats"))
async def handle_stats(message: Message) -> None:
    now = datetime.now()
    async with get_session() as session:
        settings = await storage.load_settings(session)
        history = await storage.load_history(session, now)
    goal_ml = liters_to_ml(settings.target_liters)
    good_ml = good_threshold_ml(settings)
    stats = compute_streak_stats(history, now, goal_ml, good_ml, settings.gentle_goal_enabled)
    today = get_summary_for_date(history, get_date_key(now), goal_ml, good_ml)
    await message.answer(format_stats(stats, compute_best_hours(history, now), today))


def _tap_key(callback: CallbackQuery) -> Hashable:
    if callback.message is not None:
        return (callback.message.chat.id, callback.message.message_id, callback.data)
    return (callback.id, callback.data)


async def _log_tap(
    callback: CallbackQuery,
    ml: int,
    reminder_scheduler: ReminderScheduler,
    handled_cache: HandledCache,
    now: datetime,
) -> None:
    key = _tap_key(callback)
    if not handled_cache.mark(key, now):
        logger.debug("Ignoring repeated tap %s", key)
        await callback.answer("Already logged")
        return
    text = await _log_water(ml, reminder_scheduler)
    if callback.message is None:
        await callback.answer(text)
        return
    await callback.answer(f"+{ml} ml")
    await callback.message.answer(text)


async def _default_log_ml(now: datetime) -> int:
    async with get_session() as session:
        settings = await storage.load_settings(session)
        consumed_ml = await storage.get_consumed_ml(session, now)
        _, last_used_ml = await storage.load_quick_log(session)
    return last_used_ml or build_hydration_plan(now, settings, consumed_ml).ml_per_reminder


@router.callback_query(F.data == DRINK_DONE)
async def handle_drink_done(
    callback: CallbackQuery,
    reminder_scheduler: ReminderScheduler,
    handled_cache: HandledCache,
) -> None:
    now = datetime.now()
    if handled_cache.seen(_tap_key(callback), now):
        await callback.answer("Already logged")
        return
    ml = await _default_log_ml(now)
    await _log_tap(callback, ml, reminder_scheduler, handled_cache, now)


@router.callback_query(F.data.regexp(rf"^{DRINK_PREFIX}\d+$"))
async def handle_drink_preset(
    callback: CallbackQuery,
    reminder_scheduler: ReminderScheduler,
    handled_cache: HandledCache,
) -> None:
    ml = parse_ml(callback.data.removeprefix(DRINK_PREFIX))
    if ml is None:
        await callback.answer("Unknown amount", show_alert=True)
        return
    await _log_tap(callback, ml, reminder_scheduler, handled_cache, datetime.now())


@router.callback_query(F.data.regexp(rf"^{REMINDER_PREFIX}\d+$"))
async def handle_reminder_drank(
    callback: CallbackQuery,
    reminder_scheduler: ReminderScheduler,
    handled_cache: HandledCache,
) -> None:
    ml = parse_ml(callback.data.removeprefix(REMINDER_PREFIX))
    if ml is None:
        await callback.answer("Unknown amount", show_alert=True)
        return
    await _log_tap(callback, ml, reminder_scheduler, handled_cache, datetime.now())
