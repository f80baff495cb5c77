from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from pricing.valuation import best_valuation
from valorreal.errors import (
    InvalidPlateError,
    MissingCredentialError,
    ProviderError,
    ProviderRejectedError,
    ProviderUnreachableError,
)
from valorreal.records import VehicleRecord, utcnow

logger = logging.getLogger(__name__)

# AAA9999 (legacy) and AAA9A99 (Mercosul)
_LEGACY_PLATE = re.compile(r"^[A-Z]{3}[0-9]{4}$")
_MERCOSUL_PLATE = re.compile(r"^[A-Z]{3}[0-9][A-Z0-9][0-9]{2}$")

PROVIDER_OK_MESSAGE = "Sem erros."

_FIELD_MAP: dict[str, str] = {
    "make": "marca",
    "model": "modelo",
    "year": "ano",
    "model_year": "anoModelo",
    "color": "cor",
    "chassis": "chassi",
    "renavam": "renavam",
    "uf": "uf",
    "municipality": "municipio",
    "status": "situacao",
}


def normalize_plate(plate: str | None) -> str:
    return re.sub(r"\s", "", plate or "").upper()


def is_valid_plate(plate: str) -> bool:
    return bool(_LEGACY_PLATE.match(plate) or _MERCOSUL_PLATE.match(plate))


def validate_plate(plate: str | None) -> str:
    normalized = normalize_plate(plate)
    if not normalized:
        raise InvalidPlateError("Placa é obrigatória")
    if not is_valid_plate(normalized):
        raise InvalidPlateError()
    return normalized


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _score_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class PlateLookupClient:
    """Client for the plate lookup provider (``/consulta/{placa}/{token}``)."""

    USER_AGENT = "ValorReal-Backend/1.0"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise MissingCredentialError()
        self.base_url = base_url.rstrip("/")
        self._token = token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def lookup(self, plate: str) -> VehicleRecord:
        normalized = validate_plate(plate)
        url = f"{self.base_url}/consulta/{normalized}/{self._token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = await client.get(
                    url,
                    headers={"Accept": "application/json", "User-Agent": self.USER_AGENT},
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            logger.warning("Plate provider returned HTTP %s for %s", code, normalized)
            raise ProviderError(
                f"Erro na API Placas: {code} - {exc.response.reason_phrase}",
                upstream_status=code,
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Plate provider unreachable for %s: %s", normalized, exc)
            raise ProviderUnreachableError() from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError("Erro na API Placas: resposta inválida", upstream_status=resp.status_code) from exc
        if not isinstance(data, dict):
            raise ProviderError("Erro na API Placas: resposta inválida", upstream_status=resp.status_code)

        message = data.get("mensagemRetorno")
        if message and message != PROVIDER_OK_MESSAGE:
            raise ProviderRejectedError(str(message))

        return self.to_record(normalized, data)

    @staticmethod
    def to_record(plate: str, data: dict[str, Any]) -> VehicleRecord:
        fipe_value: str | None = None
        fipe_score: float | None = None
        candidates: list[dict[str, Any]] | None = None

        fipe = data.get("fipe")
        dados = fipe.get("dados") if isinstance(fipe, dict) else None
        if isinstance(dados, list) and dados:
            candidates = dados
            best = best_valuation(dados)
            if best is not None:
                fipe_value = _text_or_none(best.get("texto_valor"))
                fipe_score = _score_or_none(best.get("score"))

        now = utcnow()
        return VehicleRecord(
            plate=plate,
            fipe_value=fipe_value,
            fipe_score=fipe_score,
            fipe_candidates=candidates,
            raw_response=data,
            return_message=_text_or_none(data.get("mensagemRetorno")),
            queried_at=now,
            updated_at=now,
            **{attr: _text_or_none(data.get(key)) for attr, key in _FIELD_MAP.items()},
        )
