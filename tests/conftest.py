"""
CardVault — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- A small the-fab-cube style dataset written to tmp_path
- A loaded CardIndex
- A fake PriceSource that counts upstream calls
- Async test support via pytest-asyncio
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from cardvault.cache.card_index import CardIndex
from cardvault.pipeline.tcgcsv import TCGCSVGroup, TCGCSVPrice


# ---------------------------------------------------------------------------
# Dataset Fixtures
# ---------------------------------------------------------------------------


def make_printing(identifier: str, product_id: str = "", **extra: Any) -> dict[str, Any]:
    printing = {
        "unique_id": f"p-{identifier}",
        "set_printing_unique_id": f"sp-{identifier[:3]}",
        "id": identifier,
        "set_id": identifier[:3],
        "edition": "N",
        "foiling": "R" if identifier.endswith("-F") else "S",
        "rarity": "C",
        "expansion_slot": False,
        "artists": ["Someone"],
        "art_variations": [],
        "flavor_text": "",
        "flavor_text_plain": "",
        "image_url": f"https://img.example/{identifier}.png",
        "image_rotation_degrees": 0,
        "tcgplayer_product_id": product_id,
        "tcgplayer_url": "",
    }
    printing.update(extra)
    return printing


def make_card(unique_id: str, name: str, printings: list[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    card = {
        "unique_id": unique_id,
        "name": name,
        "color": "Red",
        "pitch": "1",
        "cost": "0",
        "power": "",
        "defense": "",
        "health": "",
        "intelligence": "",
        "arcane": "",
        "types": ["Generic", "Action"],
        "traits": [],
        "card_keywords": [],
        "abilities_and_effects": [],
        "ability_and_effect_keywords": [],
        "granted_keywords": [],
        "removed_keywords": [],
        "interacts_with_keywords": [],
        "functional_text": "**Go again**",
        "functional_text_plain": "Go again",
        "type_text": "Generic Action",
        "played_horizontally": False,
        "blitz_legal": True,
        "cc_legal": True,
        "commoner_legal": True,
        "ll_legal": False,
        "printings": printings,
    }
    card.update(extra)
    return card


SAMPLE_CARDS = [
    make_card("u1", "Ember Hex", [
        make_printing("WTR001", "12345"),
        make_printing("WTR001-F", "12346"),
    ]),
    make_card("u2", "Snatch", [make_printing("WTR163", "20001")]),
    make_card("u3", "Command and Conquer", [
        make_printing("ARC159", "30001"),
        make_printing("DYN999", ""),
    ]),
    make_card("u4", "Sink Below", [make_printing("WTR213")]),
    make_card("u5", "Enlightened Strike", [make_printing("WTR159", "40001")]),
]

SAMPLE_SETS = [
    {"unique_id": "s1", "id": "WTR", "name": "Welcome to Rathe", "formatted_name": "Welcome to Rathe", "edition": "A"},
    {"unique_id": "s2", "id": "ARC", "name": "Arcane Rising", "formatted_name": "Arcane Rising", "edition": "F"},
]

SAMPLE_KEYWORDS = [
    {"unique_id": "k1", "name": "Go again", "description": "**Go again**", "description_plain": "Go again"},
]


def write_dataset(
    directory: Path,
    cards: list[dict[str, Any]] | None = None,
    sets: list[dict[str, Any]] | None = None,
    keywords: list[dict[str, Any]] | None = None,
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "card.json").write_text(json.dumps(SAMPLE_CARDS if cards is None else cards), encoding="utf-8")
    (directory / "set.json").write_text(json.dumps(SAMPLE_SETS if sets is None else sets), encoding="utf-8")
    (directory / "keyword.json").write_text(
        json.dumps(SAMPLE_KEYWORDS if keywords is None else keywords), encoding="utf-8"
    )
    return directory


@pytest.fixture
def dataset_dir(tmp_path: Path) -> Path:
    """Directory holding card.json, set.json and keyword.json."""
    return write_dataset(tmp_path / "english")


@pytest.fixture
async def loaded_index(dataset_dir: Path) -> CardIndex:
    index = CardIndex(dataset_dir)
    await index.load()
    return index


# ---------------------------------------------------------------------------
# Price Source Fixtures
# ---------------------------------------------------------------------------


def price_row(product_id: int, market: str | None, sub_type: str = "Normal", mid: str | None = None) -> TCGCSVPrice:
    return TCGCSVPrice.model_validate({
        "productId": product_id,
        "lowPrice": None,
        "midPrice": mid,
        "highPrice": None,
        "marketPrice": market,
        "directLowPrice": None,
        "subTypeName": sub_type,
    })


class FakePriceSource:
    """
    In-memory PriceSource. Counts calls; groups listed in `failing_groups`
    raise; `fail_groups_listing` makes fetch_groups raise.
    """

    def __init__(self, prices_by_group: dict[int, list[TCGCSVPrice]], delay: float = 0.0):
        self.prices_by_group = prices_by_group
        self.delay = delay
        self.failing_groups: set[int] = set()
        self.fail_groups_listing = False
        self.groups_calls = 0
        self.price_calls: list[int] = []

    async def fetch_groups(self) -> list[TCGCSVGroup]:
        self.groups_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_groups_listing:
            raise RuntimeError("groups listing unavailable")
        return [
            TCGCSVGroup.model_validate({"groupId": gid, "name": f"Group {gid}"})
            for gid in self.prices_by_group
        ]

    async def fetch_group_prices(self, group_id: int) -> list[TCGCSVPrice]:
        self.price_calls.append(group_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if group_id in self.failing_groups:
            raise RuntimeError(f"group {group_id} unavailable")
        return list(self.prices_by_group[group_id])


@pytest.fixture
def fake_source() -> FakePriceSource:
    return FakePriceSource({
        1: [
            price_row(12345, "4.50"),
            price_row(12346, "9.75", sub_type="Rainbow Foil"),
        ],
        2: [
            price_row(20001, "0.25"),
            price_row(20001, "1.10", sub_type="Cold Foil"),
            price_row(30001, None, mid="2.00"),
        ],
    })


