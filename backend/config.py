"""
Application settings loaded from environment variables (and .env).
"""
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

load_dotenv(Path(__file__).resolve().parent / ".env")


class Settings(BaseModel):
    DATABASE_PATH: str = "tasks.db"

    # Reference timezone for "today", default due times and display
    TIMEZONE: str = "UTC"
    DEFAULT_DUE_HOUR: int = 12

    # Numbered list shown in chat; positions resolve against the same limit
    CHAT_LIST_LIMIT: int = 20

    DEFAULT_PAGE_LIMIT: int = 50
    MAX_PAGE_LIMIT: int = 200

    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    @field_validator("DEFAULT_DUE_HOUR")
    @classmethod
    def check_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("DEFAULT_DUE_HOUR must be between 0 and 23")
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)


def _load_settings() -> Settings:
    """Build settings from the environment, keeping defaults for unset keys."""
    values = {
        name: os.environ[name]
        for name in Settings.model_fields
        if os.environ.get(name)
    }
    return Settings(**values)


settings = _load_settings()
