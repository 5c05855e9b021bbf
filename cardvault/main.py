"""
CardVault — Application Entrypoint

Composition root: configures structlog, builds the card index and price
cache from settings, primes both, and runs the maintenance scheduler.

Run via:
    python -m cardvault.main
"""

from __future__ import annotations

import asyncio
import logging
import sys

import structlog

from cardvault.cache.card_index import CardDataLoadError, CardIndex
from cardvault.cache.price_cache import PriceCache
from cardvault.cache.price_store import PriceSnapshotStore
from cardvault.config import Settings, settings
from cardvault.pipeline.scheduler import run_scheduler
from cardvault.pipeline.tcgcsv import TCGCSVClient


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # Configure stdlib logging first (for third-party libraries)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Cache Setup
# ---------------------------------------------------------------------------


def build_card_index(config: Settings) -> CardIndex:
    return CardIndex(
        config.FAB_DATA_DIR,
        card_file=config.FAB_CARD_FILE,
        set_file=config.FAB_SET_FILE,
        keyword_file=config.FAB_KEYWORD_FILE,
    )


def build_price_cache(config: Settings, client: TCGCSVClient) -> PriceCache:
    local_path = config.local_price_path
    return PriceCache(
        client,
        ttl=config.price_cache_ttl,
        batch_size=config.PRICE_FETCH_BATCH_SIZE,
        snapshot_store=PriceSnapshotStore(local_path) if local_path else None,
    )


async def load_card_index(card_index: CardIndex) -> bool:
    """
    Initial dataset load. A failure is logged loudly and the service
    continues with no card data; lookups report "not loaded".
    """
    logger = structlog.get_logger(__name__)
    try:
        await card_index.load()
    except CardDataLoadError as e:
        logger.error(
            "card_index_startup_load_failed",
            error=str(e),
            note="continuing without FAB card data",
        )
        return False

    stats = card_index.get_stats()
    logger.info(
        "card_index_startup_load_complete",
        total_cards=stats.total_cards,
        total_sets=stats.total_sets,
    )
    return True


# ---------------------------------------------------------------------------
# Application Startup
# ---------------------------------------------------------------------------


async def main() -> None:
    """
    Application entrypoint.

    Execution order:
    1. Configure logging (structlog JSON)
    2. Load the card index from disk
    3. Prime the price cache in the background
    4. Start the scheduler (run indefinitely until shutdown signal)
    """
    _configure_logging(log_level=settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    logger.info("cardvault_startup_begin", data_dir=str(settings.FAB_DATA_DIR))

    card_index = build_card_index(settings)
    await load_card_index(card_index)

    async with TCGCSVClient() as client:
        price_cache = build_price_cache(settings, client)
        prime_task = asyncio.create_task(price_cache.ensure_loaded())

        logger.info(
            "cardvault_startup_complete",
            price_ttl_hours=settings.PRICE_CACHE_TTL_HOURS,
            price_batch_size=settings.PRICE_FETCH_BATCH_SIZE,
        )

        try:
            await run_scheduler(card_index, price_cache)
        except KeyboardInterrupt:
            logger.info("cardvault_interrupted_by_user")
        finally:
            if not prime_task.done():
                prime_task.cancel()
            logger.info("cardvault_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    asyncio.run(main())
