"""
Health report for the card and price caches.

Ready means card data is loaded. Price problems only degrade freshness,
so they are reported but never make the service unready.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from cardvault.cache.card_index import CardIndex
from cardvault.cache.price_cache import PriceCache
from cardvault.models.card import CardIndexStats
from cardvault.models.price import PriceCacheStatus


class HealthReport(BaseModel):
    """Combined cache health."""

    status: Literal["ready", "degraded"]
    cards: CardIndexStats
    prices: PriceCacheStatus


def build_health_report(card_index: CardIndex, price_cache: PriceCache) -> HealthReport:
    cards = card_index.get_stats()
    return HealthReport(
        status="ready" if cards.is_loaded else "degraded",
        cards=cards,
        prices=price_cache.get_status(),
    )
