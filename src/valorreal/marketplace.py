from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx
from bs4 import BeautifulSoup

from pricing.config import ScrapeConfig
from pricing.slugs import build_search_url
from pricing.strategies import PriceStrategy, default_strategies, extract_candidate_prices
from pricing.summary import PriceSummary, summarize_prices
from valorreal.storage import RedisCache

logger = logging.getLogger(__name__)


def _vehicle_attr(vehicle: Any, attr: str, key: str) -> Any:
    if isinstance(vehicle, dict):
        return vehicle.get(attr, vehicle.get(key))
    return getattr(vehicle, attr, None)


class MarketplaceScraper:
    """Best-effort listing price statistics for a make/model/year.

    Any failure (network, markup, parsing) yields None. Callers must treat
    the summary as optional enrichment.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 8.0,
        cache: RedisCache | None = None,
        cache_ttl_seconds: int = 86_400,
        log_errors: bool = True,
        config: ScrapeConfig | None = None,
        strategies: Sequence[PriceStrategy] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.log_errors = log_errors
        self.config = config or ScrapeConfig()
        self.strategies = list(strategies) if strategies is not None else default_strategies(self.config)
        self._transport = transport

    def search_url(self, vehicle: Any) -> str | None:
        return build_search_url(
            self.base_url,
            _vehicle_attr(vehicle, "make", "marca"),
            _vehicle_attr(vehicle, "model", "modelo"),
            _vehicle_attr(vehicle, "model_year", "anoModelo"),
        )

    async def find_price_summary(self, vehicle: Any) -> PriceSummary | None:
        try:
            url = self.search_url(vehicle)
            if url is None:
                return None

            cached = await self._cached_summary(url)
            if cached is not None:
                return cached

            html = await self._fetch(url)
            soup = BeautifulSoup(html, "lxml")
            prices, tier = extract_candidate_prices(soup, self.strategies)
            summary = summarize_prices(prices, source_url=url, tier=tier)
            if summary is not None:
                logger.info(
                    "Marketplace prices found via %s tier",
                    tier,
                    extra={"extra_data": {"url": url, "samples": summary.sample_count}},
                )
                await self._store_summary(url, summary)
            return summary
        except Exception as exc:
            if self.log_errors:
                logger.warning("Marketplace price lookup failed: %s", exc, exc_info=True)
            return None

    async def _fetch(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
            max_redirects=self.config.max_redirects,
            headers=self.config.browser_headers,
            transport=self._transport,
        ) as client:
            resp = await client.get(url)
        if resp.status_code >= 400:
            resp.raise_for_status()
        return resp.text

    async def _cached_summary(self, url: str) -> PriceSummary | None:
        if self.cache is None:
            return None
        try:
            doc = await self.cache.get_json(f"market_prices:{url}")
            return PriceSummary.from_document(doc) if doc else None
        except Exception:
            logger.debug("Ignoring unreadable cached price summary for %s", url, exc_info=True)
            return None

    async def _store_summary(self, url: str, summary: PriceSummary) -> None:
        if self.cache is None:
            return
        await self.cache.set_json(
            f"market_prices:{url}",
            summary.to_document(),
            ttl_seconds=self.cache_ttl_seconds,
        )
