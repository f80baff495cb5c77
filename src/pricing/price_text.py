from __future__ import annotations

import re
from typing import Any

_NOISE = re.compile(r"[^\d,.\-]")
_GROUPED = re.compile(r"(?<!\d)\d{1,3}((?:\.\d{3})*)(,\d{2})?(?!\d)")
_NON_DIGIT = re.compile(r"\D")

MIN_BARE_DIGITS = 4


def extract_price(text: Any) -> float | None:
    """Parse a BRL price out of free-form text.

    ``"R$ 50.000,00"`` -> 50000.0, ``"5000000"`` -> 5000000.0. Returns None
    when nothing price-like is found; never raises.
    """
    if not isinstance(text, str) or not text:
        return None

    cleaned = _NOISE.sub("", text)
    for match in _GROUPED.finditer(cleaned):
        groups, decimals = match.group(1), match.group(2)
        # a bare 1-3 digit run is not a grouped price
        if not groups and not decimals:
            continue
        try:
            return float(match.group(0).replace(".", "").replace(",", "."))
        except ValueError:
            continue

    digits = _NON_DIGIT.sub("", cleaned)
    if len(digits) >= MIN_BARE_DIGITS:
        return float(int(digits))
    return None
