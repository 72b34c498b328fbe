"""
Family Task Assistant — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from family_assistant/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # LLM — provider-agnostic (openai, anthropic, gemini, cohere)
    LLM_PROVIDER: str = "openai"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str
    LLM_TEMPERATURE: float | None = None    # None → each component picks its own

    # Telegram front end (only needed when running the bot)
    TELEGRAM_BOT_TOKEN: str = ""
    ALLOWED_USER_IDS: list[int] = []

    # SQLite family store
    DATABASE_PATH: str = "data/family.db"

    TIMEZONE: str = "Europe/Moscow"

    # Conversation pipeline
    HISTORY_WINDOW: int = 5
    COMPLETION_WINDOW_DAYS: int = 30

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("HISTORY_WINDOW", "COMPLETION_WINDOW_DAYS", mode="before")
    @classmethod
    def parse_positive_int(cls, v: str | int) -> int:
        return max(1, int(v))


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "openai"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        LLM_TEMPERATURE=os.getenv("LLM_TEMPERATURE") or None,
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/family.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Europe/Moscow"),
        HISTORY_WINDOW=os.getenv("HISTORY_WINDOW", "5"),
        COMPLETION_WINDOW_DAYS=os.getenv("COMPLETION_WINDOW_DAYS", "30"),
    )


# Singleton — imported by all other modules as:
#   from family_assistant.config import settings
settings = _load_settings()
