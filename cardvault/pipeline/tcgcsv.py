"""
CardVault — TCGCSV API Client

Fetches Flesh and Blood groups (sets) and per-group TCGPlayer prices from
TCGCSV, a free TCGPlayer data mirror (no API key). Docs: https://tcgcsv.com

This module handles only fetching — caching and refresh policy live in
cache/price_cache.py.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from cardvault.config import settings

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class _TCGCSVModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TCGCSVGroup(_TCGCSVModel):
    """One TCGPlayer group (a set or supplemental product line)."""

    group_id: int = Field(..., alias="groupId")
    name: str = ""
    abbreviation: str | None = None
    supplemental: bool = False
    published_on: str | None = Field(default=None, alias="publishedOn")
    modified_on: str | None = Field(default=None, alias="modifiedOn")


class TCGCSVPrice(_TCGCSVModel):
    """One price row. A product has one row per variant (Normal, Rainbow Foil, ...)."""

    product_id: int = Field(..., alias="productId")
    low_price: Decimal | None = Field(default=None, alias="lowPrice")
    mid_price: Decimal | None = Field(default=None, alias="midPrice")
    high_price: Decimal | None = Field(default=None, alias="highPrice")
    market_price: Decimal | None = Field(default=None, alias="marketPrice")
    direct_low_price: Decimal | None = Field(default=None, alias="directLowPrice")
    sub_type_name: str = Field(default="", alias="subTypeName")

    @field_validator(
        "low_price", "mid_price", "high_price", "market_price", "direct_low_price",
        mode="before",
    )
    @classmethod
    def parse_decimal(cls, v: Any) -> Decimal | None:
        """Safely convert price values to Decimal. Never use float for money."""
        if v is None or v == "":
            return None
        try:
            return Decimal(str(v))
        except (InvalidOperation, ValueError):
            return None

    @field_validator("sub_type_name", mode="before")
    @classmethod
    def null_sub_type(cls, v: Any) -> str:
        return v or ""

    @property
    def effective_price(self) -> Decimal | None:
        """Market price, falling back to mid price."""
        return self.market_price if self.market_price is not None else self.mid_price


class TCGCSVProduct(_TCGCSVModel):
    product_id: int = Field(..., alias="productId")
    name: str = ""
    clean_name: str = Field(default="", alias="cleanName")
    image_url: str = Field(default="", alias="imageUrl")
    group_id: int = Field(..., alias="groupId")
    url: str = ""
    modified_on: str | None = Field(default=None, alias="modifiedOn")


class TCGCSVResponse(BaseModel):
    """Top-level envelope shared by every TCGCSV listing endpoint."""

    results: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("results", mode="before")
    @classmethod
    def null_results(cls, v: Any) -> list[dict[str, Any]]:
        return v or []


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class TCGCSVClient:
    """
    Async client for TCGCSV, scoped to one TCGPlayer category.

    Usage:
        async with TCGCSVClient() as client:
            groups = await client.fetch_groups()
            prices = await client.fetch_group_prices(groups[0].group_id)
    """

    def __init__(
        self,
        base_url: str | None = None,
        category_id: int | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        base_backoff: float | None = None,
    ):
        self._base_url = base_url or settings.TCGCSV_BASE_URL
        self._category_id = category_id or settings.TCGCSV_FAB_CATEGORY_ID
        self._timeout = timeout if timeout is not None else settings.TCGCSV_TIMEOUT_SECONDS
        self._max_retries = (
            max_retries if max_retries is not None else settings.TCGCSV_MAX_RETRIES
        )
        self._base_backoff = (
            base_backoff if base_backoff is not None else settings.TCGCSV_BASE_BACKOFF_SECONDS
        )
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> TCGCSVClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_results(self, path: str) -> list[dict[str, Any]]:
        """
        GET a listing endpoint with retry logic and exponential backoff.

        Retries 429, 5xx and transport errors. Other 4xx responses raise
        immediately.
        """
        assert self._client is not None, "Client not initialized. Use 'async with'."

        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.get(path)

                if response.status_code == 429:
                    wait_time = self._base_backoff * (2 ** attempt)
                    logger.warning(
                        "tcgcsv_rate_limited",
                        attempt=attempt + 1,
                        wait_seconds=wait_time,
                        path=path,
                    )
                    last_error = httpx.HTTPStatusError(
                        "rate limited", request=response.request, response=response
                    )
                    await asyncio.sleep(wait_time)
                    continue

                response.raise_for_status()
                return TCGCSVResponse.model_validate(response.json()).results

            except httpx.HTTPStatusError as e:
                last_error = e
                logger.error(
                    "tcgcsv_http_error",
                    status_code=e.response.status_code,
                    attempt=attempt + 1,
                    path=path,
                )
                if e.response.status_code >= 500:
                    wait_time = self._base_backoff * (2 ** attempt)
                    await asyncio.sleep(wait_time)
                    continue
                raise

            except httpx.RequestError as e:
                last_error = e
                logger.error(
                    "tcgcsv_request_error",
                    error=str(e),
                    attempt=attempt + 1,
                    path=path,
                )
                wait_time = self._base_backoff * (2 ** attempt)
                await asyncio.sleep(wait_time)
                continue

        raise RuntimeError(
            f"TCGCSV request {path} failed after {self._max_retries + 1} attempts"
        ) from last_error

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def fetch_groups(self) -> list[TCGCSVGroup]:
        """Fetch every group (set) in the category."""
        rows = await self._get_results(f"/{self._category_id}/groups")
        groups = [TCGCSVGroup.model_validate(row) for row in rows]
        logger.info("tcgcsv_fetch_groups_complete", group_count=len(groups))
        return groups

    async def fetch_group_prices(self, group_id: int) -> list[TCGCSVPrice]:
        """Fetch all price rows for one group."""
        rows = await self._get_results(f"/{self._category_id}/{group_id}/prices")
        prices = [TCGCSVPrice.model_validate(row) for row in rows]
        logger.debug(
            "tcgcsv_fetch_prices_complete",
            group_id=group_id,
            price_count=len(prices),
        )
        return prices

    async def fetch_group_products(self, group_id: int) -> list[TCGCSVProduct]:
        """Fetch product metadata (names, images, urls) for one group."""
        rows = await self._get_results(f"/{self._category_id}/{group_id}/products")
        return [TCGCSVProduct.model_validate(row) for row in rows]
