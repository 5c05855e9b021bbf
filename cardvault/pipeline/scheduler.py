"""
CardVault — Cache Maintenance Scheduler

Keeps the in-process caches current on fixed cadences:
- Card dataset reload: 24 hours (picks up upstream dataset changes)
- Forced price refresh: 24 hours (on top of the lazy TTL refresh in PriceCache)
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime, timezone
from typing import Any

import structlog

from cardvault.cache.card_index import CardDataLoadError, CardIndex
from cardvault.cache.price_cache import PriceCache
from cardvault.config import settings
from cardvault.models.price import RefreshResult

logger = structlog.get_logger(__name__)


class Scheduler:
    """
    Async scheduler for cache maintenance jobs.

    Maintains independent poll clocks for the card reload and the price
    refresh. A failing job is logged and retried on its next window.
    """

    def __init__(
        self,
        card_index: CardIndex,
        price_cache: PriceCache,
        check_interval_seconds: float | None = None,
    ):
        self.card_index = card_index
        self.price_cache = price_cache
        self._shutdown_event = asyncio.Event()
        self._check_interval = (
            check_interval_seconds
            if check_interval_seconds is not None
            else settings.SCHEDULER_CHECK_INTERVAL_SECONDS
        )

        # Both caches are primed at startup, so clocks start now
        self._cards_last_reload: datetime = datetime.now(timezone.utc)
        self._cards_cadence_minutes = settings.CARD_RELOAD_INTERVAL_HOURS * 60

        self._prices_last_refresh: datetime = datetime.now(timezone.utc)
        self._prices_cadence_minutes = settings.PRICE_REFRESH_INTERVAL_HOURS * 60

    async def shutdown(self) -> None:
        """Signal graceful shutdown to the scheduler loop."""
        logger.info("scheduler_shutdown_requested")
        self._shutdown_event.set()

    def _should_reload_cards(self) -> bool:
        now = datetime.now(timezone.utc)
        elapsed_minutes = (now - self._cards_last_reload).total_seconds() / 60
        return elapsed_minutes >= self._cards_cadence_minutes

    def _should_refresh_prices(self) -> bool:
        now = datetime.now(timezone.utc)
        elapsed_minutes = (now - self._prices_last_refresh).total_seconds() / 60
        return elapsed_minutes >= self._prices_cadence_minutes

    async def _reload_cards(self) -> bool:
        """
        Reload the card dataset. The previous dataset keeps serving on failure.

        Returns:
            True if the reload succeeded.
        """
        logger.info("scheduler_card_reload_start")
        self._cards_last_reload = datetime.now(timezone.utc)

        try:
            await self.card_index.reload()
        except CardDataLoadError as e:
            logger.error("scheduler_card_reload_failed", error=str(e))
            return False

        stats = self.card_index.get_stats()
        logger.info(
            "scheduler_card_reload_complete",
            total_cards=stats.total_cards,
            next_reload_in_hours=settings.CARD_RELOAD_INTERVAL_HOURS,
        )
        return True

    async def _refresh_prices(self) -> RefreshResult:
        logger.info("scheduler_price_refresh_start")
        self._prices_last_refresh = datetime.now(timezone.utc)

        result = await self.price_cache.refresh()

        logger.info(
            "scheduler_price_refresh_complete",
            outcome=result.outcome.value,
            product_count=result.product_count,
            groups_failed=result.groups_failed,
            next_refresh_in_hours=settings.PRICE_REFRESH_INTERVAL_HOURS,
        )
        return result

    async def run(self) -> None:
        """
        Main scheduler loop. Runs until shutdown is signaled.

        Jobs run independently; if one fails, the other continues.
        """
        logger.info(
            "scheduler_started",
            card_reload_cadence_hours=settings.CARD_RELOAD_INTERVAL_HOURS,
            price_refresh_cadence_hours=settings.PRICE_REFRESH_INTERVAL_HOURS,
        )

        try:
            while not self._shutdown_event.is_set():
                try:
                    if self._should_reload_cards():
                        await self._reload_cards()

                    if self._should_refresh_prices():
                        await self._refresh_prices()

                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self._check_interval,
                    )
                except asyncio.TimeoutError:
                    # No shutdown signal, continue loop
                    continue
                except Exception as e:
                    logger.error(
                        "scheduler_unknown_error",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(self._check_interval)

        except asyncio.CancelledError:
            logger.info("scheduler_cancelled")
            raise
        finally:
            logger.info("scheduler_stopped")


async def run_scheduler(card_index: CardIndex, price_cache: PriceCache) -> None:
    """
    Initialize and run the scheduler with graceful shutdown handling.

    Registers SIGTERM/SIGINT handlers to trigger shutdown.
    """
    scheduler = Scheduler(card_index, price_cache)

    def handle_signal(_signum: int, _frame: Any) -> None:
        logger.info("scheduler_signal_received")
        asyncio.create_task(scheduler.shutdown())

    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM, None)
        loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT, None)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler for all signals
        logger.warning("signal_handlers_not_supported_on_platform")

    try:
        await scheduler.run()
    except Exception as e:
        logger.error("scheduler_fatal_error", error=str(e), error_type=type(e).__name__)
        raise
