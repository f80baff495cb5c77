from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

RecordSource = Literal["cache", "api"]

# attribute name -> public document key
_DOCUMENT_KEYS: dict[str, str] = {
    "plate": "placa",
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
    "fipe_value": "valorFipe",
    "fipe_score": "valorFipeScore",
    "fipe_candidates": "dadosFipe",
    "raw_response": "dadosCompletos",
    "return_message": "mensagemRetorno",
    "source": "fonte",
    "queried_at": "dataConsulta",
    "updated_at": "ultimaAtualizacao",
}

_RAW_FIELDS = ("fipe_candidates", "raw_response")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class VehicleRecord:
    plate: str
    make: str | None = None
    model: str | None = None
    year: str | None = None
    model_year: str | None = None
    color: str | None = None
    chassis: str | None = None
    renavam: str | None = None
    uf: str | None = None
    municipality: str | None = None
    status: str | None = None
    fipe_value: str | None = None
    fipe_score: float | None = None
    fipe_candidates: list[dict[str, Any]] | None = None
    raw_response: dict[str, Any] | None = None
    return_message: str | None = None
    source: RecordSource | None = None
    queried_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: str | None = None

    def to_document(self, include_raw: bool = True) -> dict[str, Any]:
        doc: dict[str, Any] = {}
        if self.id is not None:
            doc["id"] = self.id
        for attr, key in _DOCUMENT_KEYS.items():
            if not include_raw and attr in _RAW_FIELDS:
                continue
            value = getattr(self, attr)
            doc[key] = value.isoformat() if isinstance(value, datetime) else value
        return doc

    def to_row(self) -> dict[str, Any]:
        row = {attr: getattr(self, attr) for attr in _DOCUMENT_KEYS if attr != "source"}
        row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "VehicleRecord":
        values = {attr: row.get(attr) for attr in _DOCUMENT_KEYS if attr != "source"}
        for attr in ("queried_at", "updated_at"):
            ts = values[attr]
            # some drivers (sqlite) hand back naive datetimes; stored values are UTC
            if isinstance(ts, datetime) and ts.tzinfo is None:
                values[attr] = ts.replace(tzinfo=timezone.utc)
        return cls(id=row.get("id"), **values)
