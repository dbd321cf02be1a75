"""
Towel Tracker — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from towel_tracker/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str
    TELEGRAM_WEBHOOK_SECRET: str = ""

    # Web login (HS256 key for magic links and session cookies)
    WEB_JWT_SECRET: str
    PUBLIC_URL: str = ""
    MAGIC_LINK_TTL_SECONDS: int = 15 * 60
    SESSION_TTL_SECONDS: int = 7 * 24 * 60 * 60

    # Storage provider: "sheets" | "memory"
    STORAGE_PROVIDER: str = "sheets"

    # Google Sheets (only needed when STORAGE_PROVIDER=sheets)
    SPREADSHEET_ID: str = ""
    GOOGLE_SERVICE_ACCOUNT_FILE: str = ""
    GOOGLE_CLIENT_EMAIL: str = ""
    GOOGLE_PRIVATE_KEY: str = ""

    # Defaults for new users and slots
    DEFAULT_TZ: str = "Europe/Moscow"
    DEFAULT_NOTIFY_HOUR: int = 10
    DEFAULT_THRESHOLD_DAYS: int = 3

    # Empty list means the bot answers everyone
    ALLOWED_USER_IDS: list[int] = []

    # Polling-mode reminder tick
    REMINDER_INTERVAL_MINUTES: int = 60

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("DEFAULT_NOTIFY_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        return max(0, min(23, int(v)))

    @field_validator("DEFAULT_THRESHOLD_DAYS", mode="before")
    @classmethod
    def parse_threshold(cls, v: str | int) -> int:
        return max(1, int(v))


def _require(name: str) -> str:
    value = os.getenv(name, "")
    if not value or value.startswith("your-"):
        print(f"ERROR: {name} is missing or not set in .env", file=sys.stderr)
        sys.exit(1)
    return value


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    return Settings(
        TELEGRAM_BOT_TOKEN=_require("TELEGRAM_BOT_TOKEN"),
        TELEGRAM_WEBHOOK_SECRET=os.getenv("TELEGRAM_WEBHOOK_SECRET", ""),
        WEB_JWT_SECRET=_require("WEB_JWT_SECRET"),
        PUBLIC_URL=os.getenv("PUBLIC_URL", ""),
        MAGIC_LINK_TTL_SECONDS=os.getenv("MAGIC_LINK_TTL_SECONDS", "900"),
        SESSION_TTL_SECONDS=os.getenv("SESSION_TTL_SECONDS", str(7 * 24 * 60 * 60)),
        STORAGE_PROVIDER=os.getenv("STORAGE_PROVIDER", "sheets"),
        SPREADSHEET_ID=os.getenv("SPREADSHEET_ID", ""),
        GOOGLE_SERVICE_ACCOUNT_FILE=os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", ""),
        GOOGLE_CLIENT_EMAIL=os.getenv("GOOGLE_CLIENT_EMAIL", ""),
        GOOGLE_PRIVATE_KEY=os.getenv("GOOGLE_PRIVATE_KEY", ""),
        DEFAULT_TZ=os.getenv("DEFAULT_TZ", "Europe/Moscow"),
        DEFAULT_NOTIFY_HOUR=os.getenv("DEFAULT_NOTIFY_HOUR", "10"),
        DEFAULT_THRESHOLD_DAYS=os.getenv("DEFAULT_THRESHOLD_DAYS", "3"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        REMINDER_INTERVAL_MINUTES=os.getenv("REMINDER_INTERVAL_MINUTES", "60"),
    )


# Singleton — imported by all other modules as:
#   from towel_tracker.config import settings
settings = _load_settings()
