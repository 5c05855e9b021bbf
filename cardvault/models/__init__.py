"""
Models package — export all dataset and price models.
"""

from cardvault.models.card import (
    Card,
    CardIndexStats,
    CardSearchResult,
    CardSet,
    Keyword,
    Printing,
)
from cardvault.models.price import (
    UNKNOWN_PRICE,
    PriceCacheStatus,
    PriceEntry,
    RefreshOutcome,
    RefreshResult,
)

__all__ = [
    "Card",
    "CardIndexStats",
    "CardSearchResult",
    "CardSet",
    "Keyword",
    "PriceCacheStatus",
    "PriceEntry",
    "Printing",
    "RefreshOutcome",
    "RefreshResult",
    "UNKNOWN_PRICE",
]
