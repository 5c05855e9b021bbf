"""
CardVault — Configuration & Constants

Every path, cadence, TTL and upstream setting lives here. No hardcoded
values in cache or pipeline logic.

Usage:
    from cardvault.config import settings
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Central configuration for CardVault.

    Loads from environment variables with fallback defaults.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # -----------------------------------------------------------------------
    # Card dataset (the-fab-cube/flesh-and-blood-cards, English JSON export)
    # -----------------------------------------------------------------------
    FAB_DATA_DIR: Path = Path("data/fab-cards/json/english")
    FAB_CARD_FILE: str = "card.json"
    FAB_SET_FILE: str = "set.json"
    FAB_KEYWORD_FILE: str = "keyword.json"
    CARD_RELOAD_INTERVAL_HOURS: int = 24

    # -----------------------------------------------------------------------
    # TCGCSV (free TCGPlayer mirror, no API key)
    # -----------------------------------------------------------------------
    TCGCSV_BASE_URL: str = "https://tcgcsv.com"
    TCGCSV_FAB_CATEGORY_ID: int = 65
    TCGCSV_TIMEOUT_SECONDS: float = 30.0
    TCGCSV_MAX_RETRIES: int = 3
    TCGCSV_BASE_BACKOFF_SECONDS: float = 1.0

    # -----------------------------------------------------------------------
    # Price cache
    # -----------------------------------------------------------------------
    PRICE_CACHE_TTL_HOURS: int = 24
    PRICE_FETCH_BATCH_SIZE: int = 5           # Groups fetched concurrently per batch
    PRICE_REFRESH_INTERVAL_HOURS: int = 24
    LOCAL_PRICE_FILE: str = "data/fab-prices-local.json"  # Empty string disables

    # -----------------------------------------------------------------------
    # Scheduler / runtime
    # -----------------------------------------------------------------------
    SCHEDULER_CHECK_INTERVAL_SECONDS: int = 5
    LOG_LEVEL: str = "INFO"

    @property
    def price_cache_ttl(self) -> timedelta:
        return timedelta(hours=self.PRICE_CACHE_TTL_HOURS)

    @property
    def local_price_path(self) -> Path | None:
        if not self.LOCAL_PRICE_FILE:
            return None
        return Path(self.LOCAL_PRICE_FILE)


# Singleton instance
settings = Settings()
