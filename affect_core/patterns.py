"""Rule detectors over response series and scale totals.

``detect_trend`` and ``detect_pattern`` read a category's normalized values
in chronological order.  ``detect_co_occurrences`` works on validated scale
totals and reports clinically meaningful combinations.
"""
from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

from .clinical import SELF_HARM_ITEM, ScaleTotal

SLOPE_THRESHOLD = 0.1

PHQ9_MODERATE = 10
PHQ9_SEVERE = 20
GAD7_MODERATE = 10
GAD7_SEVERE = 15


def _slope(values: Sequence[float]) -> float:
    n = len(values)
    xs = range(n)
    mx = (n - 1) / 2.0
    my = sum(values) / n
    num = sum((x - mx) * (y - my) for x, y in zip(xs, values))
    den = sum((x - mx) ** 2 for x in xs)
    return num / den if den else 0.0


def _variance(values: Sequence[float]) -> float:
    m = sum(values) / len(values)
    return sum((v - m) ** 2 for v in values) / len(values)


def detect_trend(values: Sequence[float], direction: str, window: int = 5) -> bool:
    """True when the regression slope over the last ``window`` values passes ±0.1.

    Needs at least three values.
    """

    recent = list(values)[-window:]
    if len(recent) < 3:
        return False
    slope = _slope(recent)
    if direction == "down":
        return slope < -SLOPE_THRESHOLD
    if direction == "up":
        return slope > SLOPE_THRESHOLD
    raise ValueError(f"unknown trend direction {direction!r}")


def detect_pattern(values: Sequence[float], kind: str) -> bool:
    if not values:
        return False
    if kind == "ALL_LOW":
        return all(v < 0.3 for v in values)
    if kind == "ALL_HIGH":
        return all(v > 0.7 for v in values)
    if kind == "HIGH_VOLATILITY":
        return _variance(values) > 0.1
    if kind == "CONSISTENT":
        return _variance(values) < 0.05
    raise ValueError(f"unknown pattern {kind!r}")


def detect_co_occurrences(totals: Mapping[str, ScaleTotal]) -> List[Dict[str, object]]:
    found: List[Dict[str, object]] = []
    phq = totals.get("PHQ-9")
    gad = totals.get("GAD-7")
    phq_total = phq.total if phq else 0.0
    gad_total = gad.total if gad else 0.0

    if phq and phq.self_harm_value and phq.self_harm_value > 0:
        found.append({
            "type": "CRITICAL_RISK",
            "name": "self_harm_ideation",
            "confidence": 1.0,
            "constructs": ["NEGATIVE_THOUGHTS", "DEPRESSION"],
            "evidence": [f"{SELF_HARM_ITEM} endorsed with value {phq.self_harm_value:g}/3"],
        })
    if phq_total >= PHQ9_SEVERE and gad_total >= GAD7_SEVERE:
        found.append({
            "type": "CRITICAL_RISK",
            "name": "severe_depression_and_anxiety",
            "confidence": 1.0,
            "constructs": ["DEPRESSION", "ANXIETY"],
            "evidence": [f"PHQ-9 {phq_total:g} >= {PHQ9_SEVERE}", f"GAD-7 {gad_total:g} >= {GAD7_SEVERE}"],
        })
    if phq_total >= PHQ9_MODERATE and gad_total >= GAD7_MODERATE:
        found.append({
            "type": "CO_OCCURRENCE",
            "name": "depression_with_anxiety",
            "confidence": round(min(phq_total / PHQ9_SEVERE, gad_total / GAD7_SEVERE, 1.0), 3),
            "constructs": ["DEPRESSION", "ANXIETY"],
            "evidence": [f"PHQ-9 {phq_total:g} >= {PHQ9_MODERATE}", f"GAD-7 {gad_total:g} >= {GAD7_MODERATE}"],
        })
    return found


def series_patterns(series: Mapping[str, Sequence[float]]) -> List[Dict[str, object]]:
    """Per-category trend and shape flags for the session result."""

    out: List[Dict[str, object]] = []
    for category, values in sorted(series.items()):
        flags: List[str] = []
        if detect_trend(values, "down"):
            flags.append("TREND_DOWN")
        if detect_trend(values, "up"):
            flags.append("TREND_UP")
        if len(values) >= 3:
            for kind in ("ALL_LOW", "ALL_HIGH", "HIGH_VOLATILITY", "CONSISTENT"):
                if detect_pattern(values, kind):
                    flags.append(kind)
        if flags:
            out.append({"type": "SERIES", "name": category, "flags": flags})
    return out


__all__ = [
    "detect_trend",
    "detect_pattern",
    "detect_co_occurrences",
    "series_patterns",
]
