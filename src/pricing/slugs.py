from __future__ import annotations

import re
import unicodedata
from typing import Any

DEFAULT_SEARCH_BASE = "https://www.olx.com.br/autos-e-pecas/carros-vans-e-utilitarios"


def slugify(text: str | None) -> str:
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    # "1.0" and "A/T" are word separators in model names
    decomposed = re.sub(r"[./_]", " ", decomposed)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = re.sub(r"[^a-z0-9\s-]", "", stripped).strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def year_token(model_year: Any) -> str:
    """Leading numeric token of a model-year field ("2020 Gasolina" -> "2020")."""
    return re.split(r"[\s-]", str(model_year).strip())[0]


def build_search_url(
    base_url: str,
    make: str | None,
    model: str | None,
    model_year: Any,
) -> str | None:
    if not make or not model or not model_year:
        return None
    return "/".join(
        [
            (base_url or DEFAULT_SEARCH_BASE).rstrip("/"),
            slugify(make),
            slugify(model),
            year_token(model_year),
        ]
    )
