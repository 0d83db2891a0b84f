from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from siply.constants import SCHEMA_VERSION
from siply.models import PROFILE_ID, HydrationDay, HydrationProfile
from siply.services.calculations import HydrationSettings, liters_to_ml
from siply.services.history import (
    History,
    normalize_quick_log_presets,
    reset_history_for_date,
    trim_history,
    update_history_for_log,
)
from siply.services.hydration import good_threshold_ml, normalize_settings
from siply.services.timeutils import get_date_key


logger = logging.getLogger(__name__)

SETTINGS_FIELDS = (
    "target_liters",
    "window_start",
    "window_end",
    "sip_ml",
    "escalation_enabled",
    "sound_enabled",
    "gentle_goal_enabled",
    "gentle_goal_threshold",
)


@dataclass(slots=True)
class LogResult:
    consumed_ml: float
    target_ml: int
    target_met: bool


def _apply_settings(profile: HydrationProfile, settings: HydrationSettings) -> None:
    for name in SETTINGS_FIELDS:
        setattr(profile, name, getattr(settings, name))
    profile.updated_at = datetime.now()


async def load_profile(session: AsyncSession) -> HydrationProfile:
    """Single profile row, created on first use and re-normalised after a schema change."""
    profile = await session.get(HydrationProfile, PROFILE_ID)
    if profile is None:
        profile = HydrationProfile(id=PROFILE_ID)
        session.add(profile)
        await session.commit()
        logger.info("Created hydration profile with default settings")
        return profile
    if profile.schema_version != SCHEMA_VERSION:
        logger.info("Migrating hydration profile from schema %s to %s", profile.schema_version, SCHEMA_VERSION)
        _apply_settings(profile, normalize_settings(profile.settings_payload()))
        profile.set_presets(profile.get_presets())
        profile.schema_version = SCHEMA_VERSION
        session.add(profile)
        await session.commit()
    return profile


async def load_settings(session: AsyncSession) -> HydrationSettings:
    profile = await load_profile(session)
    return normalize_settings(profile.settings_payload())


async def update_settings(session: AsyncSession, patch: Mapping[str, Any]) -> HydrationSettings:
    unknown = set(patch) - set(SETTINGS_FIELDS)
    if unknown:
        raise ValueError(f"Unknown settings fields: {', '.join(sorted(unknown))}")
    profile = await load_profile(session)
    merged = {**profile.settings_payload(), **patch}
    updated = normalize_settings(merged)
    _apply_settings(profile, updated)
    session.add(profile)
    await session.commit()
    logger.info("Updated settings: %s", dict(patch))
    return updated


async def _get_day(session: AsyncSession, key: str) -> Optional[HydrationDay]:
    return await session.get(HydrationDay, key)


async def get_consumed_ml(session: AsyncSession, now: datetime) -> float:
    day = await _get_day(session, get_date_key(now))
    return day.consumed_ml if day else 0


async def add_consumed(session: AsyncSession, now: datetime, amount_ml: float) -> LogResult:
    """Log water for today's date key; a negative amount undoes earlier logs."""
    settings = await load_settings(session)
    goal_ml = liters_to_ml(settings.target_liters)
    good_ml = good_threshold_ml(settings)
    key = get_date_key(now)
    day = await _get_day(session, key)
    if day is None:
        day = HydrationDay(date_key=key)

    day.consumed_ml = max(0, day.consumed_ml + amount_ml)
    day.goal_ml = goal_ml
    day.good_threshold_ml = good_ml
    if amount_ml > 0:
        updated = update_history_for_log({key: day.to_summary()}, now, amount_ml, goal_ml, good_ml)
        day.set_log_hours(updated[key].log_hours)
        profile = await load_profile(session)
        profile.last_used_ml = int(amount_ml)
        session.add(profile)
    day.updated_at = now
    session.add(day)
    await session.commit()
    await prune_history(session, now)
    logger.info("Logged %s ml, consumed today: %s / %s ml", amount_ml, day.consumed_ml, goal_ml)
    return LogResult(consumed_ml=day.consumed_ml, target_ml=goal_ml, target_met=day.consumed_ml >= goal_ml)


async def reset_today(session: AsyncSession, now: datetime) -> None:
    settings = await load_settings(session)
    key = get_date_key(now)
    day = await _get_day(session, key) or HydrationDay(date_key=key)
    reset = reset_history_for_date(
        {key: day.to_summary()}, key, liters_to_ml(settings.target_liters), good_threshold_ml(settings)
    )[key]
    day.consumed_ml = reset.total_ml
    day.goal_ml = reset.goal_ml
    day.good_threshold_ml = reset.good_threshold_ml
    day.set_log_hours(reset.log_hours)
    day.updated_at = now
    session.add(day)
    await session.commit()
    logger.info("Reset progress for %s", key)


async def load_history(session: AsyncSession, now: datetime) -> History:
    rows = (await session.exec(select(HydrationDay))).all()
    history = {row.date_key: row.to_summary() for row in rows}
    return trim_history(history, now)


async def prune_history(session: AsyncSession, now: datetime) -> int:
    rows = (await session.exec(select(HydrationDay))).all()
    keep = trim_history({row.date_key: row.to_summary() for row in rows}, now)
    stale = [row for row in rows if row.date_key not in keep]
    for row in stale:
        await session.delete(row)
    if stale:
        await session.commit()
        logger.debug("Pruned %d day(s) of history", len(stale))
    return len(stale)


async def update_quick_log_presets(session: AsyncSession, presets: Sequence[Any]) -> list[int]:
    profile = await load_profile(session)
    current = profile.get_presets()
    cleaned = normalize_quick_log_presets(list(presets), current)
    profile.set_presets(cleaned)
    session.add(profile)
    await session.commit()
    return cleaned


async def load_quick_log(session: AsyncSession) -> tuple[list[int], Optional[int]]:
    profile = await load_profile(session)
    return profile.get_presets(), profile.last_used_ml


async def complete_onboarding(session: AsyncSession) -> None:
    profile = await load_profile(session)
    if profile.onboarding_completed:
        return
    profile.onboarding_completed = True
    session.add(profile)
    await session.commit()
