from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from pricing.summary import PriceSummary
from valorreal.errors import MissingCredentialError
from valorreal.marketplace import MarketplaceScraper
from valorreal.plates import PlateLookupClient, normalize_plate, validate_plate
from valorreal.records import VehicleRecord, utcnow
from valorreal.storage import VehicleStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    record: VehicleRecord
    market_prices: PriceSummary | None = None

    @property
    def source(self) -> str | None:
        return self.record.source

    def to_document(self) -> dict[str, Any]:
        doc = self.record.to_document()
        doc["precoMercado"] = self.market_prices.to_document() if self.market_prices else None
        return doc


@dataclass(frozen=True)
class Page:
    items: list[VehicleRecord]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_document(self) -> dict[str, Any]:
        return {
            "data": [r.to_document(include_raw=False) for r in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "totalPages": self.total_pages,
            },
        }


class ConsultaService:
    """Cache-or-fetch plate lookups over the store and the plate provider.

    Store faults on this path never reach the caller: a failed read is a
    cache miss and a failed write only loses the history entry.
    """

    def __init__(
        self,
        store: VehicleStore,
        plate_client: PlateLookupClient | None,
        scraper: MarketplaceScraper | None = None,
        freshness: timedelta = timedelta(hours=24),
    ) -> None:
        self.store = store
        self.plate_client = plate_client
        self.scraper = scraper
        self.freshness = freshness
        self.counters: dict[str, int] = {}

    def _count(self, name: str) -> None:
        self.counters[name] = self.counters.get(name, 0) + 1

    def _require_client(self) -> PlateLookupClient:
        if self.plate_client is None:
            raise MissingCredentialError()
        return self.plate_client

    async def lookup(self, plate: str, now: datetime | None = None) -> LookupResult:
        normalized = validate_plate(plate)
        now = now or utcnow()

        cached: VehicleRecord | None = None
        try:
            cached = await self.store.latest_for_plate(normalized)
        except Exception as exc:
            self._count("store_read_failures")
            logger.warning("Could not read cached lookup for %s: %s", normalized, exc)

        if cached is not None and cached.queried_at > now - self.freshness:
            self._count("cache_hits")
            return await self._enrich(replace(cached, source="cache"))

        self._count("cache_misses")
        return await self._fetch_and_store(normalized)

    async def force_lookup(self, plate: str) -> LookupResult:
        return await self._fetch_and_store(validate_plate(plate))

    async def _fetch_and_store(self, plate: str) -> LookupResult:
        record = await self._require_client().lookup(plate)
        record = replace(record, source="api")
        self._count("api_fetches")

        try:
            await self.store.insert_vehicle(record)
        except Exception as exc:
            self._count("store_write_failures")
            logger.warning("Could not persist lookup for %s: %s", plate, exc)

        return await self._enrich(record)

    async def _enrich(self, record: VehicleRecord) -> LookupResult:
        if self.scraper is None:
            return LookupResult(record=record)
        summary = await self.scraper.find_price_summary(record)
        if summary is not None:
            self._count("market_price_enrichments")
        return LookupResult(record=record, market_prices=summary)

    async def history(self, plate: str, page: int = 1, limit: int = 10) -> Page:
        return await self.list_lookups(page=page, limit=limit, plate=plate)

    async def list_lookups(self, page: int = 1, limit: int = 20, plate: str | None = None) -> Page:
        normalized = normalize_plate(plate) if plate else None
        offset = (page - 1) * limit
        items = await self.store.list_vehicles(plate=normalized, limit=limit, offset=offset)
        total = await self.store.count_vehicles(plate=normalized)
        return Page(items=items, page=page, limit=limit, total=total)

    async def statistics(self, now: datetime | None = None) -> dict[str, int]:
        now = now or utcnow()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return {
            "totalConsultas": await self.store.count_vehicles(),
            "placasUnicas": await self.store.count_distinct_plates(),
            "consultasHoje": await self.store.count_since(midnight),
            "consultasUltimos7Dias": await self.store.count_since(now - timedelta(days=7)),
        }
