from __future__ import annotations

from typing import Any, Sequence


def candidate_score(candidate: dict[str, Any]) -> float:
    try:
        return float(candidate.get("score") or 0)
    except (TypeError, ValueError):
        return 0.0


def best_valuation(candidates: Sequence[dict[str, Any]]) -> dict[str, Any] | None:
    """Highest-scoring valuation candidate; the first one wins on ties."""
    best: dict[str, Any] | None = None
    best_score = 0.0
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        score = candidate_score(candidate)
        if best is None or score > best_score:
            best, best_score = candidate, score
    return best
