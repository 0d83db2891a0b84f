from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from siply.bot.routers import hydration
from siply.services.dedup import HandledCache


def make_callback(data: str, message_id: int = 7, with_message: bool = True):
    message = None
    if with_message:
        message = SimpleNamespace(chat=SimpleNamespace(id=42), message_id=message_id, answer=AsyncMock())
    return SimpleNamespace(id=f"cb-{message_id}", data=data, message=message, answer=AsyncMock())


@pytest.fixture
def logged(monkeypatch):
    amounts = []

    async def fake_log_water(amount_ml, reminder_scheduler):
        amounts.append(amount_ml)
        return f"Logged {amount_ml} ml."

    monkeypatch.setattr(hydration, "_log_water", fake_log_water)
    return amounts


@pytest.fixture
def cache():
    return HandledCache(ttl=timedelta(minutes=60))


async def test_double_tap_on_preset_logs_once(logged, cache):
    callback = make_callback("drink:250")
    await hydration.handle_drink_preset(callback, reminder_scheduler=None, handled_cache=cache)
    await hydration.handle_drink_preset(callback, reminder_scheduler=None, handled_cache=cache)

    assert logged == [250]
    callback.answer.assert_awaited_with("Already logged")
    callback.message.answer.assert_awaited_once_with("Logged 250 ml.")


async def test_different_presets_on_same_message_both_log(logged, cache):
    await hydration.handle_drink_preset(make_callback("drink:150"), reminder_scheduler=None, handled_cache=cache)
    await hydration.handle_drink_preset(make_callback("drink:250"), reminder_scheduler=None, handled_cache=cache)
    assert logged == [150, 250]


async def test_double_tap_on_drink_done_logs_once(logged, cache, monkeypatch):
    monkeypatch.setattr(hydration, "_default_log_ml", AsyncMock(return_value=300))
    callback = make_callback("drink:done")
    await hydration.handle_drink_done(callback, reminder_scheduler=None, handled_cache=cache)
    await hydration.handle_drink_done(callback, reminder_scheduler=None, handled_cache=cache)

    assert logged == [300]
    hydration._default_log_ml.assert_awaited_once()


async def test_reminder_tap_logs_once(logged, cache):
    callback = make_callback("remind:286")
    await hydration.handle_reminder_drank(callback, reminder_scheduler=None, handled_cache=cache)
    await hydration.handle_reminder_drank(callback, reminder_scheduler=None, handled_cache=cache)
    assert logged == [286]


async def test_rejected_amount_does_not_use_up_the_tap(logged, cache):
    callback = make_callback("remind:0")
    await hydration.handle_reminder_drank(callback, reminder_scheduler=None, handled_cache=cache)
    callback.answer.assert_awaited_once_with("Unknown amount", show_alert=True)
    assert logged == []
    assert len(cache) == 0


async def test_reminder_amount_is_bounded(logged, cache):
    callback = make_callback(f"remind:{hydration.MAX_LOG_ML + 1}")
    await hydration.handle_reminder_drank(callback, reminder_scheduler=None, handled_cache=cache)
    assert logged == []


async def test_tap_without_message_answers_the_callback(logged, cache):
    callback = make_callback("drink:250", with_message=False)
    await hydration.handle_drink_preset(callback, reminder_scheduler=None, handled_cache=cache)
    assert logged == [250]
    callback.answer.assert_awaited_once_with("Logged 250 ml.")
