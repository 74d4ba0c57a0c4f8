"""
Settings for the hourly Bitcoin up/down bot.

Every value is read once at import time from the process environment (or a
local .env file) and exposed as a class attribute of Config. The trading
rule constants live here too so they can be tuned without code changes.
"""

import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


class Config:
    """
    Bot settings, one class attribute per environment variable.

    Secrets (Gemini key, Telegram token) have no defaults; everything else
    falls back to the values the hourly market is normally run with.
    """

    # API Keys (optional - drafts fail without it, the rule still runs)
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")

    # Generative model configuration
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_API_URL: str = os.getenv(
        "GEMINI_API_URL",
        "https://generativelanguage.googleapis.com/v1beta"
    )

    # Polymarket Configuration
    GAMMA_GRAPHQL_URL: str = os.getenv(
        "GAMMA_GRAPHQL_URL",
        "https://gamma-api.polymarket.com/query"
    )
    MARKET_SLUG: str = os.getenv("MARKET_SLUG", "bitcoin-up-or-down-september-27-9pm-et")

    # Relay Configuration
    RELAY_HOST: str = os.getenv("RELAY_HOST", "127.0.0.1")
    RELAY_PORT: int = int(os.getenv("RELAY_PORT", "3001"))
    RELAY_URL: str = os.getenv("RELAY_URL", "http://localhost:3001/api/market-data")

    # Trading Rule
    BET_SIZE: float = float(os.getenv("BET_SIZE", "10"))
    MIN_YES_PRICE: float = float(os.getenv("MIN_YES_PRICE", "0.6666"))
    MAX_YES_PRICE: float = float(os.getenv("MAX_YES_PRICE", "0.875"))
    MIN_PROFIT_THRESHOLD: float = float(os.getenv("MIN_PROFIT_THRESHOLD", "19"))
    TRIGGER_MINUTE: int = int(os.getenv("TRIGGER_MINUTE", "21"))

    # Request Timeouts (seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "30"))

    # Scheduler Configuration
    MARKET_REFRESH_SECONDS: int = int(os.getenv("MARKET_REFRESH_SECONDS", "30"))
    TIMEZONE: str = os.getenv("TIMEZONE", "America/New_York")

    # History Storage
    HISTORY_BACKEND: str = os.getenv("HISTORY_BACKEND", "sqlite")
    HISTORY_PATH: Path = Path(os.getenv("HISTORY_PATH", "data/bet_history.db"))

    # Telegram Configuration (optional)
    TELEGRAM_BOT_TOKEN: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID: Optional[str] = os.getenv("TELEGRAM_CHAT_ID")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[Path] = Path(os.getenv("LOG_FILE", "logs/bot.log")) if os.getenv("LOG_FILE") else None

    @classmethod
    def validate(cls) -> tuple[bool, list[str]]:
        """
        Validate the trading rule and scheduler settings.

        A missing GEMINI_API_KEY is not an error here: the rule is still
        evaluated and recorded, only draft generation fails.

        Returns:
            tuple: (is_valid, list_of_errors)
        """
        errors: list[str] = []

        if not (0.0 <= cls.MIN_YES_PRICE <= 1.0):
            errors.append("MIN_YES_PRICE must be between 0.0 and 1.0")

        if not (0.0 <= cls.MAX_YES_PRICE <= 1.0):
            errors.append("MAX_YES_PRICE must be between 0.0 and 1.0")

        if cls.MIN_YES_PRICE > cls.MAX_YES_PRICE:
            errors.append("MIN_YES_PRICE must be <= MAX_YES_PRICE")

        # Minute 59 is reserved for end-of-hour resolution
        if not (0 <= cls.TRIGGER_MINUTE <= 58):
            errors.append("TRIGGER_MINUTE must be between 0 and 58")

        if cls.BET_SIZE <= 0:
            errors.append("BET_SIZE must be positive")

        if cls.MARKET_REFRESH_SECONDS < 1:
            errors.append("MARKET_REFRESH_SECONDS must be at least 1")

        if cls.HISTORY_BACKEND not in ("sqlite", "json"):
            errors.append("HISTORY_BACKEND must be 'sqlite' or 'json'")

        return (len(errors) == 0, errors)

    @classmethod
    def ensure_directories(cls) -> None:
        """Create the parent directories of the history store and log file."""
        cls.HISTORY_PATH.parent.mkdir(parents=True, exist_ok=True)
        if cls.LOG_FILE:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
