from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from siply.config import settings as app_settings
from siply.constants import APP_NAME, HORIZON_MINUTES, NUDGE_MINUTES
from siply.database import get_session
from siply.services import storage
from siply.services.calculations import HydrationSettings
from siply.services.schedule import ScheduleResult, compute_reminder_schedule, max_base_reminders
from siply.services.timeutils import add_minutes


logger = logging.getLogger(__name__)

REMINDER_JOB_PREFIX = "reminder:"


class NotificationKind(str, Enum):
    BASE = "base"
    NUDGE = "nudge"
    FINAL_NUDGE = "final_nudge"


@dataclass(frozen=True, slots=True)
class NotificationRequest:
    fire_at: datetime
    kind: NotificationKind
    body: str
    ml: int
    sound: bool


def format_reminder_body(ml: int, sips: int) -> str:
    return f"Drink ~{ml} ml ({sips} sips)"


def format_nudge_body(ml: int, sips: int) -> str:
    return f"Reminder: ~{ml} ml ({sips} sips)"


def format_final_nudge_body(ml: int) -> str:
    return f"Still time for ~{ml} ml"


def build_notification_requests(
    schedule: ScheduleResult,
    settings: HydrationSettings,
    now: datetime,
) -> List[NotificationRequest]:
    """Base notification per slot plus the escalation nudges that fit in the horizon."""
    horizon_end = add_minutes(now, HORIZON_MINUTES)
    requests: list[NotificationRequest] = []
    for slot in schedule.slots[: max_base_reminders(settings)]:
        requests.append(
            NotificationRequest(
                fire_at=slot.time,
                kind=NotificationKind.BASE,
                body=format_reminder_body(slot.ml_per_reminder, slot.sips_per_reminder),
                ml=slot.ml_per_reminder,
                sound=settings.sound_enabled,
            )
        )
        if not settings.escalation_enabled:
            continue
        for offset in NUDGE_MINUTES:
            nudge_at = add_minutes(slot.time, offset)
            if nudge_at > horizon_end:
                continue
            if offset == NUDGE_MINUTES[0]:
                kind = NotificationKind.NUDGE
                body = format_nudge_body(slot.ml_per_reminder, slot.sips_per_reminder)
            else:
                kind = NotificationKind.FINAL_NUDGE
                body = format_final_nudge_body(slot.ml_per_reminder)
            requests.append(
                NotificationRequest(
                    fire_at=nudge_at,
                    kind=kind,
                    body=body,
                    ml=slot.ml_per_reminder,
                    sound=settings.sound_enabled,
                )
            )
    return requests


class ReminderScheduler:
    def __init__(
        self,
        bot: Bot,
        chat_id: Optional[int] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.bot = bot
        self.chat_id = chat_id if chat_id is not None else app_settings.owner_chat_id
        self.scheduler = scheduler or AsyncIOScheduler()
        self.clock = clock

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.add_job(
                self.refresh,
                trigger=CronTrigger(hour=0, minute=0, second=5),
                id="midnight_refresh",
                replace_existing=True,
                max_instances=1,
                misfire_grace_time=300,
            )
            self.scheduler.add_job(
                self.refresh,
                trigger=IntervalTrigger(minutes=app_settings.refresh_minutes),
                id="periodic_refresh",
                replace_existing=True,
                max_instances=1,
                misfire_grace_time=60,
            )
            self.scheduler.start()

    def scheduled_jobs(self) -> list:
        return [job for job in self.scheduler.get_jobs() if job.id.startswith(REMINDER_JOB_PREFIX)]

    def cancel_all(self) -> int:
        jobs = self.scheduled_jobs()
        for job in jobs:
            job.remove()
        return len(jobs)

    def reschedule(self, settings: HydrationSettings, consumed_ml: float, now: Optional[datetime] = None) -> int:
        """Replace every pending reminder with a freshly computed schedule."""
        now = now or self.clock()
        cancelled = self.cancel_all()
        schedule = compute_reminder_schedule(now, settings, consumed_ml)
        requests = build_notification_requests(schedule, settings, now)
        for index, request in enumerate(requests):
            self.scheduler.add_job(
                self._dispatch,
                trigger=DateTrigger(run_date=request.fire_at),
                args=[request],
                id=f"{REMINDER_JOB_PREFIX}{request.fire_at.isoformat()}:{index}",
                misfire_grace_time=120,
            )
        logger.info(
            "Rescheduled reminders: status=%s, slots=%d, notifications=%d, cancelled=%d",
            schedule.status.value,
            len(schedule.slots),
            len(requests),
            cancelled,
        )
        return len(requests)

    async def refresh(self) -> int:
        now = self.clock()
        async with get_session() as session:
            settings = await storage.load_settings(session)
            consumed_ml = await storage.get_consumed_ml(session, now)
        return self.reschedule(settings, consumed_ml, now)

    async def _dispatch(self, request: NotificationRequest) -> None:
        if self.chat_id is None:
            logger.warning("OWNER_CHAT_ID is not configured, dropping %s reminder", request.kind.value)
            return
        from siply.bot.keyboards.common import reminder_keyboard

        try:
            await self.bot.send_message(
                self.chat_id,
                f"<b>{APP_NAME}</b>\n{request.body}",
                reply_markup=reminder_keyboard(request.ml).as_markup(),
                disable_notification=not request.sound,
            )
            logger.info("Sent %s reminder for %s ml", request.kind.value, request.ml)
        except TelegramAPIError as e:
            logger.error(f"Failed to send {request.kind.value} reminder: {e}", exc_info=True)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

