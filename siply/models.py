from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from siply.constants import (
    DEFAULT_GENTLE_GOAL_THRESHOLD,
    DEFAULT_QUICK_LOG_PRESETS,
    DEFAULT_SIP_ML,
    DEFAULT_TARGET_LITERS,
    DEFAULT_WINDOW_END,
    DEFAULT_WINDOW_START,
    SCHEMA_VERSION,
)
from siply.services.history import DaySummary, ensure_log_hours, normalize_quick_log_presets


PROFILE_ID = 1


class HydrationProfile(SQLModel, table=True):
    id: int = Field(default=PROFILE_ID, primary_key=True)
    schema_version: int = SCHEMA_VERSION
    target_liters: float = DEFAULT_TARGET_LITERS
    window_start: str = DEFAULT_WINDOW_START
    window_end: str = DEFAULT_WINDOW_END
    sip_ml: float = DEFAULT_SIP_ML
    escalation_enabled: bool = True
    sound_enabled: bool = True
    gentle_goal_enabled: bool = False
    gentle_goal_threshold: float = DEFAULT_GENTLE_GOAL_THRESHOLD
    quick_log_json: str = Field(default=json.dumps(list(DEFAULT_QUICK_LOG_PRESETS)))
    last_used_ml: Optional[int] = None
    onboarding_completed: bool = False
    created_at: NaiveDatetime = Field(
        default_factory=datetime.now, nullable=False, sa_type=DateTime(timezone=False)
    )
    updated_at: NaiveDatetime = Field(
        default_factory=datetime.now, nullable=False, sa_type=DateTime(timezone=False)
    )

    def settings_payload(self) -> dict:
        return {
            "target_liters": self.target_liters,
            "window_start": self.window_start,
            "window_end": self.window_end,
            "sip_ml": self.sip_ml,
            "escalation_enabled": self.escalation_enabled,
            "sound_enabled": self.sound_enabled,
            "gentle_goal_enabled": self.gentle_goal_enabled,
            "gentle_goal_threshold": self.gentle_goal_threshold,
        }

    def get_presets(self) -> list[int]:
        try:
            raw = json.loads(self.quick_log_json) if self.quick_log_json else None
        except json.JSONDecodeError:
            raw = None
        return normalize_quick_log_presets(raw, DEFAULT_QUICK_LOG_PRESETS)

    def set_presets(self, presets: list[int]) -> None:
        self.quick_log_json = json.dumps(presets)


class HydrationDay(SQLModel, table=True):
    date_key: str = Field(primary_key=True, description="YYYY-MM-DD in local time")
    consumed_ml: float = 0
    goal_ml: float = 0
    good_threshold_ml: float = 0
    log_hours_json: str = Field(default="[]")
    updated_at: NaiveDatetime = Field(
        default_factory=datetime.now, nullable=False, sa_type=DateTime(timezone=False)
    )

    @property
    def log_hours(self) -> list[int]:
        try:
            raw = json.loads(self.log_hours_json) if self.log_hours_json else None
        except json.JSONDecodeError:
            raw = None
        return ensure_log_hours(raw)

    def set_log_hours(self, hours: list[int]) -> None:
        self.log_hours_json = json.dumps(ensure_log_hours(hours))

    def to_summary(self) -> DaySummary:
        return DaySummary(
            date=self.date_key,
            total_ml=self.consumed_ml,
            goal_ml=self.goal_ml,
            good_threshold_ml=self.good_threshold_ml,
            log_hours=self.log_hours,
        )
