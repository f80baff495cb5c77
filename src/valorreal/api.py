from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from valorreal.consulta import ConsultaService
from valorreal.errors import MissingCredentialError, ValorRealError
from valorreal.logging_config import configure_logging, correlation_id, new_correlation_id
from valorreal.marketplace import MarketplaceScraper
from valorreal.plates import PlateLookupClient
from valorreal.records import utcnow
from valorreal.settings import ServiceSettings
from valorreal.storage import RedisCache, VehicleStore, resolve_dsn

logger = logging.getLogger(__name__)


# ── Response Models ─────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    message: str
    timestamp: str


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, bool]


def _now_iso() -> str:
    return utcnow().isoformat()


# ── App Factory ─────────────────────────────────────────────────────

def create_app(
    settings: ServiceSettings | None = None,
    provider_transport: httpx.AsyncBaseTransport | None = None,
    marketplace_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or ServiceSettings()
    configure_logging(level=settings.log_level, fmt=settings.log_format)

    store = VehicleStore(dsn=resolve_dsn(settings.database_url, settings.db_name))
    cache = RedisCache(redis_url=settings.redis_url)

    plate_client: PlateLookupClient | None
    try:
        plate_client = PlateLookupClient(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout_seconds=settings.provider_timeout_seconds,
            transport=provider_transport,
        )
    except MissingCredentialError:
        logger.error("API_TOKEN is not configured; plate lookups are disabled")
        plate_client = None

    scraper: MarketplaceScraper | None = None
    if settings.marketplace_enrichment_enabled:
        scraper = MarketplaceScraper(
            base_url=settings.marketplace_base_url,
            timeout_seconds=settings.marketplace_timeout_seconds,
            cache=cache,
            cache_ttl_seconds=settings.market_price_cache_ttl_seconds,
            log_errors=not settings.is_production,
            transport=marketplace_transport,
        )

    consultas = ConsultaService(
        store=store,
        plate_client=plate_client,
        scraper=scraper,
        freshness=timedelta(hours=settings.cache_freshness_hours),
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await cache.connect()
        await store.connect()
        logger.info("Service ready (environment=%s)", settings.environment)
        try:
            yield
        finally:
            await cache.close()
            await store.close()

    app = FastAPI(title="Valor Real API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache
    app.state.consultas = consultas

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next: Any) -> Response:
        cid = request.headers.get("X-Correlation-ID") or new_correlation_id()
        correlation_id.set(cid)
        t0 = time.monotonic()
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        logger.debug(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"extra_data": {"elapsed_ms": round((time.monotonic() - t0) * 1000, 1)}},
        )
        return response

    # ── Error Handling ──────────────────────────────────────────────

    @app.exception_handler(ValorRealError)
    async def valorreal_error_handler(_: Request, exc: ValorRealError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Lookup failed: %s", exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error")
        return JSONResponse(
            status_code=getattr(exc, "status_code", None) or 500,
            content={"error": str(exc) or "Erro interno do servidor"},
        )

    # ── Lookups ─────────────────────────────────────────────────────

    @app.get("/api/consulta/{placa}")
    async def consultar(placa: str) -> dict[str, Any]:
        result = await consultas.lookup(placa)
        return {"success": True, "data": result.to_document(), "timestamp": _now_iso()}

    @app.get("/api/consulta/{placa}/forcar")
    async def forcar_consulta(placa: str) -> dict[str, Any]:
        result = await consultas.force_lookup(placa)
        return {"success": True, "data": result.to_document(), "timestamp": _now_iso()}

    @app.get("/api/consulta/{placa}/historico")
    async def historico(
        placa: str,
        limit: int = Query(default=10, ge=1, le=100),
        page: int = Query(default=1, ge=1),
    ) -> dict[str, Any]:
        result = await consultas.history(placa, page=page, limit=limit)
        return {"success": True, **result.to_document()}

    @app.get("/api/consultas")
    async def listar_consultas(
        limit: int = Query(default=20, ge=1, le=100),
        page: int = Query(default=1, ge=1),
        placa: str | None = None,
    ) -> dict[str, Any]:
        result = await consultas.list_lookups(page=page, limit=limit, plate=placa)
        return {"success": True, **result.to_document()}

    @app.get("/api/estatisticas")
    async def estatisticas() -> dict[str, Any]:
        return {"success": True, "data": await consultas.statistics()}

    # ── Health ──────────────────────────────────────────────────────

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", message="Servidor funcionando", timestamp=_now_iso())

    @app.get("/ready", response_model=ReadinessResponse)
    async def ready() -> ReadinessResponse:
        checks = {
            "provider_credential": plate_client is not None,
            "database": await store.ping(),
            "redis": await cache.ping(),
        }
        # lookups still work on the in-memory fallbacks; only the credential gates readiness
        if not checks["provider_credential"]:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=ReadinessResponse(status="degraded", checks=checks).model_dump(),
            )
        return ReadinessResponse(status="ready", checks=checks)

    @app.get("/metrics")
    async def get_metrics() -> dict[str, Any]:
        return {"counters": dict(consultas.counters), "store_in_memory": store.in_memory}

    return app


def main() -> None:
    settings = ServiceSettings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
