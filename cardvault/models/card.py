"""
CardVault — Card Dataset Models

Pydantic models for the-fab-cube/flesh-and-blood-cards English JSON export.
Only `unique_id` and `name` are required; every other field defaults to an
empty value so older or trimmed exports still validate. Unknown fields are
ignored.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _DatasetModel(BaseModel):
    """Base for dataset records: frozen, extra keys ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class Printing(_DatasetModel):
    """One physical or digital print of a card (e.g. "MST131")."""

    unique_id: str = ""
    set_printing_unique_id: str = ""
    id: str = Field(..., description="Printing identifier, set code + collector number")
    set_id: str = ""
    edition: str = ""       # "N" normal, "F" first edition, "A" alpha, "U" unlimited
    foiling: str = ""       # "S" standard, "R" rainbow, "C" cold, "G" gold
    rarity: str = ""
    expansion_slot: bool = False
    artists: tuple[str, ...] = ()
    art_variations: tuple[str, ...] = ()
    flavor_text: str = ""
    flavor_text_plain: str = ""
    image_url: str | None = None
    image_rotation_degrees: int = 0
    tcgplayer_product_id: str = ""
    tcgplayer_url: str = ""


class Card(_DatasetModel):
    """A canonical card, independent of printing. Owns its printings."""

    unique_id: str
    name: str
    color: str = ""
    pitch: str = ""
    cost: str = ""
    power: str = ""
    defense: str = ""
    health: str = ""
    intelligence: str = ""
    arcane: str = ""
    types: tuple[str, ...] = ()
    traits: tuple[str, ...] = ()
    card_keywords: tuple[str, ...] = ()
    abilities_and_effects: tuple[str, ...] = ()
    ability_and_effect_keywords: tuple[str, ...] = ()
    granted_keywords: tuple[str, ...] = ()
    removed_keywords: tuple[str, ...] = ()
    interacts_with_keywords: tuple[str, ...] = ()
    functional_text: str = ""
    functional_text_plain: str = ""
    type_text: str = ""
    played_horizontally: bool = False

    # Format legality
    blitz_legal: bool = False
    cc_legal: bool = False
    commoner_legal: bool = False
    ll_legal: bool = False
    silver_age_legal: bool = False

    # Special status
    blitz_living_legend: bool = False
    cc_living_legend: bool = False
    blitz_banned: bool = False
    cc_banned: bool = False
    commoner_banned: bool = False
    ll_banned: bool = False
    silver_age_banned: bool = False
    upf_banned: bool = False
    blitz_suspended: bool = False
    cc_suspended: bool = False
    commoner_suspended: bool = False
    ll_restricted: bool = False

    printings: tuple[Printing, ...] = ()


class CardSet(_DatasetModel):
    unique_id: str = ""
    id: str
    name: str = ""
    formatted_name: str = ""
    edition: str = ""


class Keyword(_DatasetModel):
    unique_id: str = ""
    name: str
    description: str = ""
    description_plain: str = ""


class CardSearchResult(BaseModel):
    """One page of a name search. `last_page` is 0 when nothing matched."""

    data: list[Card] = Field(default_factory=list)
    current_page: int
    last_page: int
    total: int


class CardIndexStats(BaseModel):
    is_loaded: bool
    total_cards: int
    total_sets: int
    total_keywords: int
    last_updated: datetime | None = None
