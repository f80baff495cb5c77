"""Ordered price-extraction strategies for marketplace listing pages.

Each strategy reads a parsed page and returns zero or more candidate prices.
They are tried in order and the first one that yields anything wins, so a
markup change on the marketplace degrades to the next, more generic tier
instead of breaking extraction outright.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from bs4 import BeautifulSoup, Tag

from pricing.config import ScrapeConfig
from pricing.price_text import extract_price


class PriceStrategy(Protocol):
    name: str

    def extract(self, soup: BeautifulSoup) -> list[float]:
        ...


def _innermost_with_marker(root: Tag, marker: str) -> bool:
    """True when ``root`` mentions ``marker`` and no descendant element does."""
    if marker not in root.get_text(" ", strip=True):
        return False
    return not any(marker in child.get_text(" ", strip=True) for child in root.find_all(True))


@dataclass(frozen=True)
class CardPriceStrategy:
    """Primary tier: price components of the marketplace's ad cards."""

    config: ScrapeConfig
    name: str = "card"

    def extract(self, soup: BeautifulSoup) -> list[float]:
        prices: list[float] = []
        for el in soup.select(", ".join(self.config.card_price_selectors)):
            price = extract_price(el.get_text(" ", strip=True))
            if price is not None:
                prices.append(price)
        return prices


@dataclass(frozen=True)
class ListingLinkStrategy:
    """Secondary tier: any link into the listing path with a price-ish child."""

    config: ScrapeConfig
    name: str = "listing_link"

    def _price_elements(self, link: Tag) -> list[Tag]:
        hinted = [
            el for el in link.find_all(True)
            if any(hint in " ".join(el.get("class") or []).lower() for hint in self.config.price_class_hints)
        ]
        if hinted:
            return hinted
        marker = self.config.currency_marker
        return [el for el in link.find_all(True) if _innermost_with_marker(el, marker)]

    def extract(self, soup: BeautifulSoup) -> list[float]:
        prices: list[float] = []
        for link in soup.select(f"a[href*='{self.config.listing_path}']"):
            for child in self._price_elements(link):
                price = extract_price(child.get_text(" ", strip=True))
                if price is not None:
                    prices.append(price)
                    break
        return prices


@dataclass(frozen=True)
class BoundedTextScanStrategy:
    """Last resort: short currency-marked text anywhere on the page.

    Only the first ``scan_element_cap`` elements are examined and only
    values inside the plausible range are kept, which filters out phone
    numbers, ad ids and similar digit runs.
    """

    config: ScrapeConfig
    name: str = "text_scan"

    def extract(self, soup: BeautifulSoup) -> list[float]:
        cfg = self.config
        prices: list[float] = []
        for examined, el in enumerate(soup.find_all(True)):
            if examined >= cfg.scan_element_cap:
                break
            text = el.get_text(" ", strip=True)
            if len(text) >= cfg.scan_max_text_length or not _innermost_with_marker(el, cfg.currency_marker):
                continue
            price = extract_price(text)
            if price is not None and cfg.min_plausible_price < price < cfg.max_plausible_price:
                prices.append(price)
        return prices


def default_strategies(config: ScrapeConfig | None = None) -> list[PriceStrategy]:
    cfg = config or ScrapeConfig()
    return [CardPriceStrategy(cfg), ListingLinkStrategy(cfg), BoundedTextScanStrategy(cfg)]


def extract_candidate_prices(
    soup: BeautifulSoup,
    strategies: Sequence[PriceStrategy],
) -> tuple[list[float], str | None]:
    for strategy in strategies:
        prices = strategy.extract(soup)
        if prices:
            return prices, strategy.name
    return [], None
