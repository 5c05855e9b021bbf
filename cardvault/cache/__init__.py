from cardvault.cache.card_index import (
    CardDataLoadError,
    CardIndex,
    CardIndexNotLoadedError,
)
from cardvault.cache.price_cache import PriceCache, PriceSource
from cardvault.cache.price_store import PriceSnapshotStore

__all__ = [
    "CardDataLoadError",
    "CardIndex",
    "CardIndexNotLoadedError",
    "PriceCache",
    "PriceSnapshotStore",
    "PriceSource",
]
