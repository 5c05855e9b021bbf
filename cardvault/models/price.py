"""
CardVault — Price Cache Models

PriceEntry is the only price shape callers see. All money values use
Decimal — never float.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PriceEntry(BaseModel):
    """Current known market price for one TCGPlayer product id."""

    model_config = ConfigDict(frozen=True)

    usd: Decimal | None = Field(default=None, description="Normal (non-foil) market price")
    usd_foil: Decimal | None = Field(default=None, description="Foil market price")

    @property
    def is_unknown(self) -> bool:
        return self.usd is None and self.usd_foil is None


UNKNOWN_PRICE = PriceEntry()


class RefreshOutcome(str, Enum):
    """How an ensure_loaded()/refresh() call ended."""
    FRESH = "fresh"                    # TTL not expired, no I/O performed
    REFRESHED = "refreshed"            # New map swapped in and stamped
    FAILED = "failed"                  # Old map retained, still stale
    LOCAL_FALLBACK = "local_fallback"  # Live fetch failed, snapshot file loaded


class RefreshResult(BaseModel):
    """
    Explicit outcome of a price refresh.

    A failed refresh is a normal return value, not an exception: the cache
    keeps serving its previous map and `retained_previous` says so.
    """

    outcome: RefreshOutcome
    product_count: int = 0
    groups_total: int = 0
    groups_failed: int = 0
    retained_previous: bool = False
    error: str | None = None
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (RefreshOutcome.FRESH, RefreshOutcome.REFRESHED)


class PriceCacheStatus(BaseModel):
    product_count: int
    last_fetched: datetime | None = None
    is_stale: bool
    loaded_from_local: bool = False
    refresh_in_flight: bool = False
    last_result: RefreshResult | None = None
