from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime
from typing import Any
from uuid import uuid4

import redis.asyncio as redis
from sqlalchemy import JSON, Column, DateTime, Float, Index, MetaData, String, Table, Text, func, insert, select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from valorreal.records import VehicleRecord

logger = logging.getLogger(__name__)

metadata = MetaData()

vehicle_lookups_table = Table(
    "vehicle_lookups",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("plate", String(16), nullable=False, index=True),
    Column("make", Text, nullable=True),
    Column("model", Text, nullable=True),
    Column("year", Text, nullable=True),
    Column("model_year", Text, nullable=True),
    Column("color", Text, nullable=True),
    Column("chassis", Text, nullable=True),
    Column("renavam", Text, nullable=True),
    Column("uf", Text, nullable=True),
    Column("municipality", Text, nullable=True),
    Column("status", Text, nullable=True),
    Column("fipe_value", Text, nullable=True),
    Column("fipe_score", Float, nullable=True),
    Column("fipe_candidates", JSON, nullable=True),
    Column("raw_response", JSON, nullable=True),
    Column("return_message", Text, nullable=True),
    Column("queried_at", DateTime(timezone=True), nullable=False, index=True),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

Index(
    "ix_vehicle_lookups_plate_queried_at",
    vehicle_lookups_table.c.plate,
    vehicle_lookups_table.c.queried_at.desc(),
)


def resolve_dsn(dsn: str, db_name: str = "") -> str:
    """Apply an optional logical database name on top of a connection string."""
    if not db_name:
        return dsn
    return make_url(dsn).set(database=db_name).render_as_string(hide_password=False)


class RedisCache:
    def __init__(self, redis_url: str, namespace: str = "valorreal") -> None:
        self.redis_url = redis_url
        self.namespace = namespace
        self._client: Any = None
        self._mem: dict[str, str] = {}
        self._expiry: dict[str, float] = {}

    def _build_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def connect(self) -> None:
        try:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
            await asyncio.wait_for(self._client.ping(), timeout=0.75)
        except Exception:
            logger.warning("Redis unavailable at %s, using in-process cache", self.redis_url)
            if self._client is not None:
                await self._client.aclose()
            self._client = None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await asyncio.wait_for(self._client.ping(), timeout=0.75))
        except Exception:
            return False

    async def get_json(self, key: str) -> dict[str, Any] | None:
        full_key = self._build_key(key)
        if self._client is not None:
            try:
                raw = await self._client.get(full_key)
                return None if raw is None else json.loads(raw)
            except Exception:
                return None
        if full_key in self._expiry and time.monotonic() > self._expiry[full_key]:
            self._mem.pop(full_key, None)
            self._expiry.pop(full_key, None)
            return None
        raw = self._mem.get(full_key)
        return None if raw is None else json.loads(raw)

    async def set_json(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        full_key = self._build_key(key)
        payload = json.dumps(value)
        if self._client is not None:
            try:
                await self._client.set(full_key, payload, ex=ttl_seconds)
                return
            except Exception:
                logger.warning("Redis write failed for %s, keeping value in process", full_key)
        self._mem[full_key] = payload
        self._expiry[full_key] = time.monotonic() + ttl_seconds


class VehicleStore:
    """Append-only store of vehicle lookups.

    Records are never updated in place: a refresh inserts a new row and the
    newest ``queried_at`` per plate is the one that counts. If the database
    cannot be reached at startup the store keeps rows in process memory.
    """

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn
        self.engine: AsyncEngine | None = None
        self._fallback_mode = False
        self._mem_vehicles: list[dict[str, Any]] = []

    @property
    def in_memory(self) -> bool:
        return self.engine is None

    async def connect(self) -> None:
        try:
            self.engine = create_async_engine(self.dsn, future=True)
            await self.init_schema()
        except Exception as exc:
            logger.warning("Database unavailable, falling back to in-memory store: %s", exc)
            if self.engine is not None:
                await self.engine.dispose()
            self._fallback_mode = True
            self.engine = None

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()

    async def ping(self) -> bool:
        if self.engine is None or self._fallback_mode:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(select(1))
            return True
        except Exception:
            return False

    async def init_schema(self) -> None:
        if self.engine is None:
            return
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def insert_vehicle(self, record: VehicleRecord) -> str:
        row = record.to_row()
        row["id"] = row.get("id") or str(uuid4())
        if self.engine is None:
            self._mem_vehicles.append(row)
            return row["id"]
        async with self.engine.begin() as conn:
            await conn.execute(insert(vehicle_lookups_table).values(**row))
        return row["id"]

    def _mem_filtered(self, plate: str | None) -> list[dict[str, Any]]:
        rows = [r for r in self._mem_vehicles if plate is None or r["plate"] == plate]
        # stable sort keeps insertion order for equal timestamps
        return sorted(rows, key=lambda r: r["queried_at"], reverse=True)

    async def latest_for_plate(self, plate: str) -> VehicleRecord | None:
        if self.engine is None:
            rows = self._mem_filtered(plate)
            return VehicleRecord.from_row(rows[0]) if rows else None
        stmt = (
            select(vehicle_lookups_table)
            .where(vehicle_lookups_table.c.plate == plate)
            .order_by(vehicle_lookups_table.c.queried_at.desc())
            .limit(1)
        )
        async with self.engine.connect() as conn:
            row = (await conn.execute(stmt)).first()
        return VehicleRecord.from_row(dict(row._mapping)) if row else None

    async def list_vehicles(
        self,
        plate: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[VehicleRecord]:
        if self.engine is None:
            rows = self._mem_filtered(plate)[offset : offset + limit]
            return [VehicleRecord.from_row(r) for r in rows]
        stmt = select(vehicle_lookups_table)
        if plate is not None:
            stmt = stmt.where(vehicle_lookups_table.c.plate == plate)
        stmt = stmt.order_by(vehicle_lookups_table.c.queried_at.desc()).offset(offset).limit(limit)
        async with self.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [VehicleRecord.from_row(dict(r._mapping)) for r in rows]

    async def count_vehicles(self, plate: str | None = None) -> int:
        if self.engine is None:
            return len(self._mem_filtered(plate))
        stmt = select(func.count()).select_from(vehicle_lookups_table)
        if plate is not None:
            stmt = stmt.where(vehicle_lookups_table.c.plate == plate)
        async with self.engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())

    async def count_distinct_plates(self) -> int:
        if self.engine is None:
            return len({r["plate"] for r in self._mem_vehicles})
        stmt = select(func.count(func.distinct(vehicle_lookups_table.c.plate)))
        async with self.engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())

    async def count_since(self, since: datetime) -> int:
        if self.engine is None:
            return sum(1 for r in self._mem_vehicles if r["queried_at"] >= since)
        stmt = (
            select(func.count())
            .select_from(vehicle_lookups_table)
            .where(vehicle_lookups_table.c.queried_at >= since)
        )
        async with self.engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())
