"""Circumplex (valence/arousal) mapping and PANAS affect scoring.

Valence-bearing and arousal-bearing categories are configured in
``config``.  Anxiety and stress answers are inverted before averaging, since a
high reading there counts against the arousal axis in this convention.  An
axis without contributing responses is reported as ``None``; callers that
need a number go through :func:`require_axis`, which raises
``InsufficientData`` instead of inventing a zero.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .config import AROUSAL_CATEGORIES, INVERTED_AROUSAL, VALENCE_CATEGORIES
from .errors import InsufficientData
from .types import AffectCoordinate, Response

__all__ = [
    "affect_coordinate",
    "require_axis",
    "EmotionalState",
    "EMOTIONAL_STATES",
    "nearest_state",
    "panas_scores",
    "panas_level",
]


def _to_axis(values: List[float]) -> Optional[float]:
    if not values:
        return None
    mean = sum(values) / len(values)
    return round(2.0 * mean - 1.0, 6)


def affect_coordinate(responses: Iterable[Response]) -> AffectCoordinate:
    valence: List[float] = []
    arousal: List[float] = []
    for r in responses:
        if r.category in VALENCE_CATEGORIES:
            valence.append(r.normalized_value)
        elif r.category in AROUSAL_CATEGORIES:
            v = r.normalized_value
            arousal.append(1.0 - v if r.category in INVERTED_AROUSAL else v)
    return AffectCoordinate(
        valence=_to_axis(valence),
        arousal=_to_axis(arousal),
        valence_count=len(valence),
        arousal_count=len(arousal),
    )


def require_axis(coord: AffectCoordinate, axis: str) -> float:
    value = getattr(coord, axis)
    if value is None:
        raise InsufficientData(f"{axis} axis")
    return float(value)


@dataclass(frozen=True)
class EmotionalState:
    id: str
    name: str
    valence: float
    arousal: float
    interventions: Tuple[str, ...] = ()


EMOTIONAL_STATES: Tuple[EmotionalState, ...] = (
    EmotionalState("excited", "Excited", 0.7, 0.8, ("Channel energy into concrete goals",)),
    EmotionalState("happy", "Happy", 0.9, 0.3, ("Savour the positive moments", "Share good news with others")),
    EmotionalState("relaxed", "Relaxed", 0.6, -0.7, ("Keep a regular rest routine",)),
    EmotionalState("content", "Content", 0.5, -0.3, ("Practice daily gratitude",)),
    EmotionalState("sad", "Sad", -0.6, -0.4, ("Gradual behavioural activation", "Reach out to someone you trust")),
    EmotionalState("tired", "Tired", -0.3, -0.8, ("Prioritise sleep and regular breaks",)),
    EmotionalState("anxious", "Anxious", -0.5, 0.7, ("Grounding exercise (5-4-3-2-1)", "Diaphragmatic breathing")),
    EmotionalState("angry", "Angry", -0.7, 0.8, ("Pause before reacting", "Intense physical exercise")),
    EmotionalState("neutral", "Neutral", 0.0, 0.0, ("Regular emotional check-ins",)),
    EmotionalState("focused", "Focused", 0.2, 0.4, ("Work in focused blocks with planned pauses",)),
    EmotionalState("confused", "Confused", -0.2, 0.3, ("Map the situation and gather information",)),
    EmotionalState("motivated", "Motivated", 0.6, 0.6, ("Set specific, reachable goals",)),
)


def nearest_state(coord: AffectCoordinate) -> Optional[Dict[str, object]]:
    """Closest reference state by Euclidean distance, or ``None`` when an axis is undefined."""

    if coord.valence is None or coord.arousal is None:
        return None
    best: Optional[EmotionalState] = None
    best_d = math.inf
    for st in EMOTIONAL_STATES:
        d = math.hypot(coord.valence - st.valence, coord.arousal - st.arousal)
        if d < best_d:
            best, best_d = st, d
    assert best is not None
    return {
        "id": best.id,
        "name": best.name,
        "distance": round(best_d, 4),
        "confidence": round(max(0.0, 1.0 - best_d / 2.0), 4),
        "interventions": list(best.interventions),
    }


def panas_level(score: float) -> str:
    if score <= 15:
        return "very_low"
    if score <= 25:
        return "low"
    if score <= 35:
        return "moderate"
    if score <= 45:
        return "high"
    return "very_high"


def panas_scores(responses: Iterable[Response], expected_items: int = 20) -> Optional[Dict[str, object]]:
    """Positive/negative affect on the 10–50 PANAS metric.

    Each dimension is the mean 1–5 answer times ten.  Reliability is the
    reference alpha (0.85) scaled by completion.  Returns ``None`` when no
    PANAS-tagged responses exist; a dimension with no answers scores ``None``.
    """

    pos: List[float] = []
    neg: List[float] = []
    for r in responses:
        if r.scale_name != "PANAS" or r.scale_value is None:
            continue
        if not 1.0 <= r.scale_value <= 5.0:
            continue
        if r.category == "POSITIVE_AFFECT":
            pos.append(r.scale_value)
        elif r.category == "NEGATIVE_AFFECT":
            neg.append(r.scale_value)
    if not pos and not neg:
        return None
    pa = round(sum(pos) / len(pos) * 10) if pos else None
    na = round(sum(neg) / len(neg) * 10) if neg else None
    completion = min(1.0, (len(pos) + len(neg)) / float(expected_items))
    return {
        "positive_affect": pa,
        "negative_affect": na,
        "positive_level": panas_level(pa) if pa is not None else None,
        "negative_level": panas_level(na) if na is not None else None,
        "items_completed": {"positive": len(pos), "negative": len(neg)},
        "reliability": round(0.85 * completion, 3),
    }
