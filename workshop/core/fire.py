"""FIRE scoring helpers (Frequency, Intensity, Recurring, Expensive)."""
from __future__ import annotations

from typing import Any, Literal, Mapping

FIRE_DIMENSIONS: tuple[str, ...] = ("frequency", "intensity", "recurring", "expensive")
FIRE_THRESHOLD = 7
HIGH_FIRE_THRESHOLD = 10
MIN_DIMENSION_SCORE = 1
MAX_DIMENSION_SCORE = 3

FireLevel = Literal["high", "medium", "low"]


def _component(scores: Mapping[str, Any] | Any, dimension: str) -> int:
    if isinstance(scores, Mapping):
        value = scores.get(dimension, MIN_DIMENSION_SCORE)
    else:
        value = getattr(scores, dimension, MIN_DIMENSION_SCORE)
    value = int(value)
    if not MIN_DIMENSION_SCORE <= value <= MAX_DIMENSION_SCORE:
        raise ValueError(f"{dimension} must be between {MIN_DIMENSION_SCORE} and {MAX_DIMENSION_SCORE}")
    return value


def calculate_fire_score(scores: Mapping[str, Any] | Any) -> int:
    """Sum the four 1-3 components; the result is always within 4..12."""

    return sum(_component(scores, dimension) for dimension in FIRE_DIMENSIONS)


def is_fire_score(score: int | None) -> bool:
    return score is not None and score >= FIRE_THRESHOLD


def fire_level(score: int | None) -> FireLevel:
    if score is not None and score >= HIGH_FIRE_THRESHOLD:
        return "high"
    if is_fire_score(score):
        return "medium"
    return "low"


__all__ = [
    "FIRE_DIMENSIONS",
    "FIRE_THRESHOLD",
    "HIGH_FIRE_THRESHOLD",
    "MAX_DIMENSION_SCORE",
    "MIN_DIMENSION_SCORE",
    "calculate_fire_score",
    "fire_level",
    "is_fire_score",
]
