from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.types import BotCommand

from siply.bot.routers import hydration
from siply.config import settings
from siply.database import init_db
from siply.scheduler import ReminderScheduler
from siply.services.dedup import HandledCache


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def setup_bot_commands(bot: Bot) -> None:
    commands_list = [
        BotCommand(command="start", description="Start reminders"),
        BotCommand(command="plan", description="Today's progress and next reminder"),
        BotCommand(command="drink", description="Log water, e.g. /drink 250"),
        BotCommand(command="undo", description="Remove logged water"),
        BotCommand(command="reset", description="Reset today's progress"),
        BotCommand(command="target", description="Daily goal in liters"),
        BotCommand(command="window", description="Reminder window, e.g. 07:00 23:00"),
        BotCommand(command="sip", description="Sip size in ml"),
        BotCommand(command="escalation", description="Follow-up nudges on/off"),
        BotCommand(command="sound", description="Sound on/off"),
        BotCommand(command="gentle", description="Gentle goal on/off"),
        BotCommand(command="presets", description="Quick log buttons"),
        BotCommand(command="stats", description="Streaks and best hours"),
    ]
    await bot.set_my_commands(commands_list)


async def main() -> None:
    await init_db()
    bot = Bot(
        token=settings.telegram_token.get_secret_value(),
        default=DefaultBotProperties(parse_mode="HTML"),
    )
    await setup_bot_commands(bot)
    if settings.owner_chat_id is None:
        logger.warning("OWNER_CHAT_ID is not set: the bot answers anyone and reminders are not delivered")
    reminder_scheduler = ReminderScheduler(bot)
    handled_cache = HandledCache(ttl=timedelta(minutes=settings.handled_ttl_minutes))
    dp = Dispatcher(reminder_scheduler=reminder_scheduler, handled_cache=handled_cache)
    dp.include_router(hydration.router)
    reminder_scheduler.start()
    await reminder_scheduler.refresh()
    try:
        await dp.start_polling(bot)
    finally:
        reminder_scheduler.shutdown()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
