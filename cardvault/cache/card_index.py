"""
CardVault — In-Memory Flesh and Blood Card Index

Loads the-fab-cube card, set and keyword documents from disk and answers
point lookups in O(1) (by unique id, by name, by any printing identifier)
plus substring name search over the loaded cards.

Reloads build a complete new snapshot first and swap it in at the end, so
readers during a reload keep seeing the previous dataset rather than an
empty or half-built one.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import TypeAdapter, ValidationError

from cardvault.models.card import (
    Card,
    CardIndexStats,
    CardSearchResult,
    CardSet,
    Keyword,
)

logger = structlog.get_logger(__name__)

_CARDS = TypeAdapter(list[Card])
_SETS = TypeAdapter(list[CardSet])
_KEYWORDS = TypeAdapter(list[Keyword])


class CardIndexNotLoadedError(RuntimeError):
    """Query made before the first successful load. Try again later."""


class CardDataLoadError(RuntimeError):
    """A source document was missing or malformed."""


@dataclass(frozen=True)
class _Snapshot:
    cards: tuple[Card, ...] = ()
    by_unique_id: dict[str, Card] = field(default_factory=dict)
    by_name: dict[str, Card] = field(default_factory=dict)
    by_identifier: dict[str, Card] = field(default_factory=dict)  # "MST131" -> card
    sets: tuple[CardSet, ...] = ()
    keywords: tuple[Keyword, ...] = ()
    lowered_names: tuple[str, ...] = ()


def _build_snapshot(
    cards: list[Card], sets: list[CardSet], keywords: list[Keyword]
) -> _Snapshot:
    by_unique_id: dict[str, Card] = {}
    by_name: dict[str, Card] = {}
    by_identifier: dict[str, Card] = {}

    for card in cards:
        by_unique_id[card.unique_id] = card
        # Names are assumed unique; last one loaded wins
        by_name[card.name.lower()] = card
        for printing in card.printings:
            by_identifier[printing.id] = card

    return _Snapshot(
        cards=tuple(cards),
        by_unique_id=by_unique_id,
        by_name=by_name,
        by_identifier=by_identifier,
        sets=tuple(sets),
        keywords=tuple(keywords),
        lowered_names=tuple(card.name.lower() for card in cards),
    )


class CardIndex:
    """
    Read-heavy card index.

    Usage:
        index = CardIndex(settings.FAB_DATA_DIR)
        await index.load()
        card = index.get_by_printing_identifier("MST131")
    """

    def __init__(
        self,
        data_dir: Path | str,
        card_file: str = "card.json",
        set_file: str = "set.json",
        keyword_file: str = "keyword.json",
    ):
        data_dir = Path(data_dir)
        self._card_path = data_dir / card_file
        self._set_path = data_dir / set_file
        self._keyword_path = data_dir / keyword_file

        self._snapshot = _Snapshot()
        self._is_loaded = False
        self._last_updated: datetime | None = None
        self._load_task: asyncio.Task[None] | None = None

    # -----------------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------------

    def _read_documents(self) -> _Snapshot:
        """Blocking read + validate of all three documents. Runs off the event loop."""
        try:
            cards = _CARDS.validate_json(self._card_path.read_bytes())
            sets = _SETS.validate_json(self._set_path.read_bytes())
            keywords = _KEYWORDS.validate_json(self._keyword_path.read_bytes())
        except FileNotFoundError as e:
            raise CardDataLoadError(f"Card dataset file not found: {e.filename}") from e
        except ValidationError as e:
            raise CardDataLoadError(
                f"Card dataset is malformed: {e.error_count()} validation error(s)"
            ) from e
        except OSError as e:
            raise CardDataLoadError(f"Could not read card dataset: {e}") from e

        return _build_snapshot(cards, sets, keywords)

    async def _load(self) -> None:
        logger.info("card_index_load_start", data_dir=str(self._card_path.parent))
        started = time.monotonic()

        try:
            snapshot = await asyncio.to_thread(self._read_documents)
        except CardDataLoadError as e:
            logger.error(
                "card_index_load_failed",
                error=str(e),
                cause=type(e.__cause__).__name__ if e.__cause__ else None,
                kept_previous=self._is_loaded,
            )
            raise

        # Atomic swap: no await between these assignments
        self._snapshot = snapshot
        self._last_updated = datetime.now(timezone.utc)
        self._is_loaded = True

        logger.info(
            "card_index_loaded",
            total_cards=len(snapshot.cards),
            total_printings=len(snapshot.by_identifier),
            total_sets=len(snapshot.sets),
            total_keywords=len(snapshot.keywords),
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def _guarded_load(self) -> None:
        try:
            await self._load()
        finally:
            self._load_task = None

    async def load(self) -> None:
        """
        Read all documents and rebuild every index.

        Concurrent calls share one in-flight load. On failure the previous
        snapshot (if any) stays in place and the error propagates.

        Raises:
            CardDataLoadError: If any document is missing or malformed.
        """
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._guarded_load())
        await asyncio.shield(self._load_task)

    async def reload(self) -> None:
        """Reload from disk (scheduled daily to pick up dataset updates)."""
        logger.info("card_index_reload_requested")
        await self.load()

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def _require_loaded(self) -> _Snapshot:
        if not self._is_loaded:
            raise CardIndexNotLoadedError("CardIndex not loaded. Call .load() first.")
        return self._snapshot

    def search_cards(
        self, query: str, page: int = 1, per_page: int = 20
    ) -> CardSearchResult:
        """
        Case-insensitive substring search on card names.

        Results keep dataset order. `last_page` is ceil(total / per_page).
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if per_page < 1:
            raise ValueError(f"per_page must be >= 1, got {per_page}")

        snapshot = self._require_loaded()
        needle = query.lower().strip()

        matches = [
            card
            for card, lowered in zip(snapshot.cards, snapshot.lowered_names)
            if needle in lowered
        ]

        total = len(matches)
        offset = (page - 1) * per_page
        return CardSearchResult(
            data=matches[offset:offset + per_page],
            current_page=page,
            last_page=math.ceil(total / per_page),
            total=total,
        )

    search_by_name = search_cards

    def get_by_printing_identifier(self, identifier: str) -> Card | None:
        return self._require_loaded().by_identifier.get(identifier)

    def get_by_unique_id(self, unique_id: str) -> Card | None:
        return self._require_loaded().by_unique_id.get(unique_id)

    def get_by_name(self, name: str) -> Card | None:
        return self._require_loaded().by_name.get(name.lower())

    def get_sets(self) -> list[CardSet]:
        return list(self._require_loaded().sets)

    def get_keywords(self) -> list[Keyword]:
        return list(self._require_loaded().keywords)

    def get_stats(self) -> CardIndexStats:
        """Health info. Safe to call before load."""
        snapshot = self._snapshot
        return CardIndexStats(
            is_loaded=self._is_loaded,
            total_cards=len(snapshot.cards),
            total_sets=len(snapshot.sets),
            total_keywords=len(snapshot.keywords),
            last_updated=self._last_updated,
        )

    @property
    def is_loaded(self) -> bool:
        return self._is_loaded
