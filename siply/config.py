from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    telegram_token: SecretStr = Field(SecretStr("TEST_TOKEN"), alias="TELEGRAM_TOKEN")
    owner_chat_id: Optional[int] = Field(None, alias="OWNER_CHAT_ID")
    database_url: str = Field("sqlite+aiosqlite:///./storage/siply.db", alias="DATABASE_URL")
    refresh_minutes: int = Field(30, alias="REFRESH_MINUTES")
    handled_ttl_minutes: int = Field(60, alias="HANDLED_TTL_MINUTES")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
