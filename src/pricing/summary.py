from __future__ import annotations

from dataclasses import dataclass
from statistics import fmean
from typing import Any, Iterable


@dataclass(frozen=True)
class PriceSummary:
    min_price: str
    max_price: str
    mean_price: str
    min_value: float
    max_value: float
    mean_value: float
    sample_count: int
    source_url: str
    tier: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "menorPreco": self.min_price,
            "maiorPreco": self.max_price,
            "precoMedio": self.mean_price,
            "valores": {
                "menor": self.min_value,
                "maior": self.max_value,
                "medio": self.mean_value,
            },
            "totalAnuncios": self.sample_count,
            "url": self.source_url,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "PriceSummary":
        values = doc.get("valores") or {}
        return cls(
            min_price=doc["menorPreco"],
            max_price=doc["maiorPreco"],
            mean_price=doc["precoMedio"],
            min_value=float(values.get("menor", 0.0)),
            max_value=float(values.get("maior", 0.0)),
            mean_value=float(values.get("medio", 0.0)),
            sample_count=int(doc["totalAnuncios"]),
            source_url=doc["url"],
        )


def format_brl(value: float) -> str:
    """Format as Brazilian reais: 50000.0 -> 'R$ 50.000,00'."""
    us = f"{value:,.2f}"
    return "R$ " + us.replace(",", "_").replace(".", ",").replace("_", ".")


def summarize_prices(
    prices: Iterable[float],
    source_url: str,
    tier: str | None = None,
) -> PriceSummary | None:
    unique = sorted({float(p) for p in prices if p is not None and p > 0})
    if not unique:
        return None
    lo, hi, avg = unique[0], unique[-1], fmean(unique)
    return PriceSummary(
        min_price=format_brl(lo),
        max_price=format_brl(hi),
        mean_price=format_brl(avg),
        min_value=lo,
        max_value=hi,
        mean_value=round(avg, 2),
        sample_count=len(unique),
        source_url=source_url,
        tier=tier,
    )
