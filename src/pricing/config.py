from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class ScrapeConfig:
    currency_marker: str = "R$"
    listing_path: str = "/autos-e-pecas/"
    card_price_selectors: tuple[str, ...] = (
        "h3.olx-adcard__price",
        ".olx-adcard__price",
        ".olx-ad-card__price",
        "[data-testid='ad-price']",
        "[data-ds-component='DS-AdCard'] [class*='price']",
    )
    price_class_hints: tuple[str, ...] = ("price", "preco", "valor")
    scan_element_cap: int = 500
    scan_max_text_length: int = 100
    min_plausible_price: float = 1_000.0
    max_plausible_price: float = 10_000_000.0
    max_redirects: int = 5
    browser_headers: Dict[str, str] = field(
        default_factory=lambda: {
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
            ),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
        }
    )
