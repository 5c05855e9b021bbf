"""
CardVault — Local Price Snapshot File

After every successful live refresh the price map is written to a local JSON
file. If TCGCSV is unreachable on a cold start, the cache serves this
snapshot instead of showing every price as N/A.

File layout:
    {"lastUpdated": "...", "source": "tcgcsv", "prices": {"12345": {"usd": "4.50", "usd_foil": null}}}
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel, Field, ValidationError

from cardvault.models.price import PriceEntry

logger = structlog.get_logger(__name__)


class LocalPriceFile(BaseModel):
    last_updated: datetime = Field(..., alias="lastUpdated")
    source: Literal["tcgcsv", "manual"] = "tcgcsv"
    prices: dict[str, PriceEntry] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class PriceSnapshotStore:
    """Reads and writes the local price snapshot file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def save(self, prices: dict[int, PriceEntry]) -> bool:
        """
        Persist the price map. Returns False (and logs) on failure;
        a failed save never fails the refresh that triggered it.
        """
        document = LocalPriceFile(
            last_updated=datetime.now(timezone.utc),
            source="tcgcsv",
            prices={str(product_id): entry for product_id, entry in prices.items()},
        )
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                document.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
            )
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(
                "price_snapshot_save_failed",
                path=str(self.path),
                error=str(e),
            )
            return False

        logger.info("price_snapshot_saved", path=str(self.path), product_count=len(prices))
        return True

    def load(self) -> dict[int, PriceEntry] | None:
        """
        Read the snapshot. Returns None when the file is missing or unreadable.
        Keys that are not integers are skipped.
        """
        if not self.path.exists():
            logger.warning("price_snapshot_missing", path=str(self.path))
            return None

        try:
            document = LocalPriceFile.model_validate_json(self.path.read_bytes())
        except (OSError, ValueError, ValidationError) as e:
            logger.error("price_snapshot_load_failed", path=str(self.path), error=str(e))
            return None

        prices: dict[int, PriceEntry] = {}
        for key, entry in document.prices.items():
            try:
                prices[int(key)] = entry
            except ValueError:
                continue

        logger.info(
            "price_snapshot_loaded",
            path=str(self.path),
            product_count=len(prices),
            last_updated=document.last_updated.isoformat(),
        )
        return prices
