"""
CardVault — Card + Price Response Views

Merges a card from the CardIndex with prices from the PriceCache at query
time. The two caches never reference each other; the join key is each
printing's TCGPlayer product id.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, Field

from cardvault.models.card import Card, CardSearchResult, Printing
from cardvault.models.price import PriceEntry


class PriceLookup(Protocol):
    def get_price(self, product_id: str | int | None) -> PriceEntry: ...


class PrintingView(BaseModel):
    printing: Printing
    usd: Decimal | None = None
    usd_foil: Decimal | None = None


class CardView(BaseModel):
    card: Card
    printings: list[PrintingView] = Field(default_factory=list)
    # Headline price: the first printing's
    usd: Decimal | None = None
    usd_foil: Decimal | None = None


class CardSearchView(BaseModel):
    data: list[CardView] = Field(default_factory=list)
    current_page: int
    last_page: int
    total: int


def build_card_view(card: Card, prices: PriceLookup) -> CardView:
    printings = []
    for printing in card.printings:
        entry = prices.get_price(printing.tcgplayer_product_id)
        printings.append(
            PrintingView(printing=printing, usd=entry.usd, usd_foil=entry.usd_foil)
        )

    headline = printings[0] if printings else None
    return CardView(
        card=card,
        printings=printings,
        usd=headline.usd if headline else None,
        usd_foil=headline.usd_foil if headline else None,
    )


def build_search_view(result: CardSearchResult, prices: PriceLookup) -> CardSearchView:
    return CardSearchView(
        data=[build_card_view(card, prices) for card in result.data],
        current_page=result.current_page,
        last_page=result.last_page,
        total=result.total,
    )
