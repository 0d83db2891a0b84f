from __future__ import annotations

from typing import Optional, Sequence

from aiogram.utils.keyboard import InlineKeyboardBuilder

DRINK_PREFIX = "drink:"
DRINK_DONE = "drink:done"
REMINDER_PREFIX = "remind:"


def reminder_keyboard(ml: int) -> InlineKeyboardBuilder:
    builder = InlineKeyboardBuilder()
    builder.button(text=f"I drank ~{ml} ml", callback_data=f"{REMINDER_PREFIX}{ml}")
    return builder


def quick_log_keyboard(presets: Sequence[int], last_used_ml: Optional[int] = None) -> InlineKeyboardBuilder:
    builder = InlineKeyboardBuilder()
    for ml in presets:
        builder.button(text=f"{ml} ml", callback_data=f"{DRINK_PREFIX}{ml}")
    builder.button(text="I drank", callback_data=DRINK_DONE)
    rows = [max(1, len(presets)), 1]
    if last_used_ml and last_used_ml not in presets:
        builder.button(text=f"Again: {last_used_ml} ml", callback_data=f"{DRINK_PREFIX}{last_used_ml}")
        rows.append(1)
    builder.adjust(*rows)
    return builder
