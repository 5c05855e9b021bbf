"""
CardVault — Flesh and Blood Price Cache

Keeps TCGPlayer product id -> {usd, usd_foil} in memory, sourced from a
pricing mirror (TCGCSV in production) and refreshed on a 24h TTL.

Guarantees:
- Single-flight: however many callers hit a stale cache at once, exactly
  one refresh runs and they all await it.
- Availability over freshness: a failed refresh never clears the map and
  never raises. Callers get a RefreshResult describing what happened.
- Partial-failure isolation: one failing group is skipped; its products
  keep their previous prices until a later pass succeeds.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol

import structlog

from cardvault.cache.price_store import PriceSnapshotStore
from cardvault.models.price import (
    UNKNOWN_PRICE,
    PriceCacheStatus,
    PriceEntry,
    RefreshOutcome,
    RefreshResult,
)
from cardvault.pipeline.tcgcsv import TCGCSVGroup, TCGCSVPrice

logger = structlog.get_logger(__name__)

# Matches "Foil", "Rainbow Foil", "Cold Foil", "Gold Cold Foil", ...
_FOIL_PATTERN = re.compile(r"foil", re.IGNORECASE)


class PriceSource(Protocol):
    """Upstream pricing mirror. TCGCSVClient implements this."""

    async def fetch_groups(self) -> Sequence[TCGCSVGroup]: ...

    async def fetch_group_prices(self, group_id: int) -> Sequence[TCGCSVPrice]: ...


def is_foil_variant(sub_type_name: str) -> bool:
    return bool(_FOIL_PATTERN.search(sub_type_name))


def normalize_product_id(product_id: str | int | float | None) -> int | None:
    """
    Coerce a product id to int. Integral floats (12345.0) are accepted.
    Empty, zero, fractional or non-numeric ids give None.
    """
    if product_id is None or isinstance(product_id, bool):
        return None
    if isinstance(product_id, int):
        return product_id or None
    if isinstance(product_id, float):
        if not product_id.is_integer():
            return None
        return int(product_id) or None
    try:
        value = int(str(product_id).strip())
    except ValueError:
        return None
    return value or None


def merge_price_rows(
    target: dict[int, PriceEntry], rows: Sequence[TCGCSVPrice]
) -> set[int]:
    """
    Fold price rows into `target`. Foil rows fill usd_foil, others fill usd.

    Returns the product ids touched.
    """
    touched: set[int] = set()
    for row in rows:
        existing = target.get(row.product_id, UNKNOWN_PRICE)
        if is_foil_variant(row.sub_type_name):
            target[row.product_id] = existing.model_copy(
                update={"usd_foil": row.effective_price}
            )
        else:
            target[row.product_id] = existing.model_copy(
                update={"usd": row.effective_price}
            )
        touched.add(row.product_id)
    return touched


class PriceCache:
    """
    TTL-gated price table with single-flight refresh.

    Usage:
        async with TCGCSVClient() as client:
            prices = PriceCache(client)
            await prices.ensure_loaded()
            entry = prices.get_price(printing.tcgplayer_product_id)
    """

    def __init__(
        self,
        source: PriceSource,
        ttl: timedelta = timedelta(hours=24),
        batch_size: int = 5,
        snapshot_store: PriceSnapshotStore | None = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        self._source = source
        self._ttl = ttl
        self._batch_size = batch_size
        self._snapshot_store = snapshot_store

        self._price_map: dict[int, PriceEntry] = {}
        self._group_products: dict[int, set[int]] = {}
        self._last_fetched: datetime | None = None
        self._loaded_from_local = False
        self._last_result: RefreshResult | None = None
        self._refresh_task: asyncio.Task[RefreshResult] | None = None

    # -----------------------------------------------------------------------
    # Staleness / single-flight
    # -----------------------------------------------------------------------

    def is_stale(self) -> bool:
        if self._last_fetched is None:
            return True
        return datetime.now(timezone.utc) - self._last_fetched >= self._ttl

    async def ensure_loaded(self) -> RefreshResult:
        """
        Make sure prices are loaded and fresh.

        Safe to call concurrently; only one refresh runs at a time. Never
        raises on refresh failure.
        """
        if not self.is_stale():
            return RefreshResult(
                outcome=RefreshOutcome.FRESH,
                product_count=len(self._price_map),
            )

        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._guarded_refresh())
        else:
            logger.debug("price_cache_refresh_joined")

        # Shield so one cancelled caller does not cancel the shared refresh
        return await asyncio.shield(self._refresh_task)

    async def _guarded_refresh(self) -> RefreshResult:
        try:
            result = await self._load()
            self._last_result = result
            return result
        finally:
            self._refresh_task = None

    async def refresh(self) -> RefreshResult:
        """Force a full refresh (scheduled job or admin action)."""
        self._last_fetched = None
        return await self.ensure_loaded()

    # -----------------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------------

    async def _fetch_all_groups(
        self, groups: Sequence[TCGCSVGroup], new_map: dict[int, PriceEntry]
    ) -> tuple[dict[int, set[int]], list[int]]:
        """Fetch every group's prices in ordered batches of concurrent requests."""
        group_products: dict[int, set[int]] = {}
        failed: list[int] = []

        for start in range(0, len(groups), self._batch_size):
            batch = groups[start:start + self._batch_size]
            results = await asyncio.gather(
                *(self._source.fetch_group_prices(g.group_id) for g in batch),
                return_exceptions=True,
            )

            for group, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if isinstance(result, asyncio.CancelledError):
                        raise result
                    failed.append(group.group_id)
                    logger.warning(
                        "price_cache_group_failed",
                        group_id=group.group_id,
                        group_name=group.name,
                        error=str(result),
                        error_type=type(result).__name__,
                    )
                    continue
                group_products[group.group_id] = merge_price_rows(new_map, result)

        return group_products, failed

    async def _load(self) -> RefreshResult:
        logger.info("price_cache_refresh_start", cached_products=len(self._price_map))
        started = time.monotonic()

        try:
            groups = list(await self._source.fetch_groups())
            new_map: dict[int, PriceEntry] = {}
            group_products, failed = await self._fetch_all_groups(groups, new_map)

            if groups and len(failed) == len(groups):
                raise RuntimeError(f"all {len(groups)} price groups failed")

            self._carry_over_failed_groups(failed, new_map, group_products)

        except Exception as e:
            return await self._handle_failure(e)

        # Swap
        self._price_map = new_map
        self._group_products = group_products
        self._last_fetched = datetime.now(timezone.utc)
        self._loaded_from_local = False

        logger.info(
            "price_cache_refresh_complete",
            product_count=len(new_map),
            groups_total=len(groups),
            groups_failed=len(failed),
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        if self._snapshot_store is not None:
            await asyncio.to_thread(self._snapshot_store.save, dict(new_map))

        return RefreshResult(
            outcome=RefreshOutcome.REFRESHED,
            product_count=len(new_map),
            groups_total=len(groups),
            groups_failed=len(failed),
            finished_at=self._last_fetched,
        )

    def _carry_over_failed_groups(
        self,
        failed: list[int],
        new_map: dict[int, PriceEntry],
        group_products: dict[int, set[int]],
    ) -> None:
        """
        Failed groups keep last pass's prices for their products.

        A failed group with no recorded products (first live pass after a
        local fallback, or a group new since the last pass) keeps every
        previous entry that no successful group priced this pass.
        """
        unmapped: list[int] = []
        for group_id in failed:
            previous_ids = self._group_products.get(group_id)
            if previous_ids is None:
                unmapped.append(group_id)
                continue
            for product_id in previous_ids:
                if product_id not in new_map and product_id in self._price_map:
                    new_map[product_id] = self._price_map[product_id]
            group_products[group_id] = previous_ids

        if not unmapped:
            return

        carried: set[int] = set()
        for product_id, entry in self._price_map.items():
            if product_id not in new_map:
                new_map[product_id] = entry
                carried.add(product_id)
        for group_id in unmapped:
            group_products[group_id] = set(carried)

        if carried:
            logger.info(
                "price_cache_unmapped_groups_carried",
                group_ids=unmapped,
                carried_products=len(carried),
            )

    async def _load_snapshot(self) -> dict[int, PriceEntry] | None:
        try:
            return await asyncio.to_thread(self._snapshot_store.load)
        except Exception as e:
            logger.error(
                "price_snapshot_fallback_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _handle_failure(self, error: Exception) -> RefreshResult:
        """Keep whatever we have; only an empty cache falls back to the local file."""
        logger.warning(
            "price_cache_refresh_failed",
            error=str(error),
            error_type=type(error).__name__,
            retained_products=len(self._price_map),
        )

        if not self._price_map and self._snapshot_store is not None:
            local = await self._load_snapshot()
            if local:
                self._price_map = local
                self._group_products = {}
                self._loaded_from_local = True
                return RefreshResult(
                    outcome=RefreshOutcome.LOCAL_FALLBACK,
                    product_count=len(local),
                    error=str(error),
                    finished_at=datetime.now(timezone.utc),
                )

        return RefreshResult(
            outcome=RefreshOutcome.FAILED,
            product_count=len(self._price_map),
            retained_previous=bool(self._price_map),
            error=str(error),
            finished_at=datetime.now(timezone.utc),
        )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_price(self, product_id: str | int | float | None) -> PriceEntry:
        """
        Price for one TCGPlayer product id. Pure in-memory read, never blocks.

        Returns the unknown entry (usd=None, usd_foil=None) for missing,
        non-numeric or uncached ids.
        """
        normalized = normalize_product_id(product_id)
        if normalized is None:
            return UNKNOWN_PRICE
        return self._price_map.get(normalized, UNKNOWN_PRICE)

    def get_status(self) -> PriceCacheStatus:
        return PriceCacheStatus(
            product_count=len(self._price_map),
            last_fetched=self._last_fetched,
            is_stale=self.is_stale(),
            loaded_from_local=self._loaded_from_local,
            refresh_in_flight=self._refresh_task is not None,
            last_result=self._last_result,
        )
