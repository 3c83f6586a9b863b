"""Table-driven interpretation of validated clinical scales.

All functions here are pure.  Raw totals outside a scale's valid range raise
``InvalidScoreRange``; they are never clamped, because a clamped value could
hide a data error in what is effectively risk detection.

Bands and alert levels
----------------------
=========  ==========================================================
PHQ-9      0–4 MINIMAL/GREEN, 5–9 LEVE/YELLOW, 10–14 MODERATE/ORANGE,
           15–19 MODERATELY_SEVERE/RED*, 20–27 SEVERE/RED*
GAD-7      0–4 MINIMAL/GREEN, 5–9 LEVE/YELLOW, 10–14 MODERATE/ORANGE,
           15–21 SEVERE/RED*
WHO-5      percent = round(raw / 25 × 100); <28 SEVERE/RED*,
           28–50 MODERATE/ORANGE, 51–75 LEVE/YELLOW, >75 MINIMAL/GREEN
=========  ==========================================================

``*`` marks bands that require immediate action.  Any positive answer to the
PHQ-9 self-harm item forces SEVERE/RED with immediate action.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import InvalidScoreRange
from .types import (
    CategoryScoreSummary,
    Interpretation,
    Response,
    band_rank,
    level_rank,
)

__all__ = [
    "SCALES",
    "SELF_HARM_ITEM",
    "interpret_phq9",
    "interpret_gad7",
    "interpret_who5",
    "interpret_category",
    "interpret_scale",
    "interpret_scale_total",
    "scale_totals",
    "ScaleTotal",
    "CombinedAssessment",
    "combine_interpretations",
]

SELF_HARM_ITEM = "PHQ9_09"

# scale -> (min, max, expected item count, category)
SCALES: Dict[str, tuple] = {
    "PHQ-9": (0, 27, 9, "DEPRESSION"),
    "GAD-7": (0, 21, 7, "ANXIETY"),
    "WHO-5": (0, 25, 5, "WELLBEING"),
}

_RECOMMENDATIONS: Dict[str, List[str]] = {
    "MINIMAL": [
        "Keep up the habits that support your well-being",
        "Continue regular emotional check-ins",
    ],
    "LEVE": [
        "Monitor symptoms over the next weeks",
        "Keep regular sleep, exercise and social routines",
        "Consider talking to the school counsellor",
    ],
    "MODERATE": [
        "Schedule an evaluation with a mental health professional",
        "Inform the pedagogical team so follow-up can be arranged",
        "Practice relaxation and stress-management techniques",
    ],
    "MODERATELY_SEVERE": [
        "Refer to a psychologist or psychiatrist within 48-72 hours",
        "Notify guardians and the school coordination",
        "Increase monitoring frequency",
    ],
    "SEVERE": [
        "Refer for urgent professional care",
        "Notify guardians and the school coordination immediately",
        "Share crisis support contacts (CVV 188) with the student",
    ],
}

_SELF_HARM_RECOMMENDATIONS = [
    "Immediate risk assessment by a qualified professional",
    "Do not leave the student alone; contact guardians now",
    "Activate the school crisis protocol",
]


def _check_range(scale: str, score: float, lo: float, hi: float) -> None:
    if score is None or math.isnan(float(score)) or score < lo or score > hi:
        raise InvalidScoreRange(scale, score, lo, hi)


def _make(
    scale: str,
    score: float,
    band: str,
    level: str,
    description: str,
    immediate: bool = False,
    percent: Optional[int] = None,
    category: Optional[str] = None,
    extra: Sequence[str] = (),
) -> Interpretation:
    recs = list(extra) + [r for r in _RECOMMENDATIONS[band] if r not in extra]
    return Interpretation(
        scale=scale,
        score=score,
        band=band,  # type: ignore[arg-type]
        level=level,  # type: ignore[arg-type]
        description=description,
        recommendations=recs,
        requires_immediate_action=immediate,
        requires_alert=immediate or band_rank(band) >= band_rank("MODERATE"),
        percent=percent,
        category=category,
    )


def interpret_phq9(score: float, self_harm_value: Optional[float] = None) -> Interpretation:
    _check_range("PHQ-9", score, 0, 27)
    if self_harm_value is not None:
        _check_range("PHQ9_09", self_harm_value, 0, 3)
        if self_harm_value > 0:
            return _make(
                "PHQ-9", score, "SEVERE", "RED",
                "Self-harm ideation endorsed; immediate evaluation required",
                immediate=True, category="DEPRESSION", extra=_SELF_HARM_RECOMMENDATIONS,
            )
    if score <= 4:
        return _make("PHQ-9", score, "MINIMAL", "GREEN", "Minimal depressive symptoms", category="DEPRESSION")
    if score <= 9:
        return _make("PHQ-9", score, "LEVE", "YELLOW", "Mild depressive symptoms", category="DEPRESSION")
    if score <= 14:
        return _make("PHQ-9", score, "MODERATE", "ORANGE", "Moderate depressive symptoms", category="DEPRESSION")
    if score <= 19:
        return _make(
            "PHQ-9", score, "MODERATELY_SEVERE", "RED",
            "Moderately severe depressive symptoms", immediate=True, category="DEPRESSION",
        )
    return _make("PHQ-9", score, "SEVERE", "RED", "Severe depressive symptoms", immediate=True, category="DEPRESSION")


def interpret_gad7(score: float) -> Interpretation:
    _check_range("GAD-7", score, 0, 21)
    if score <= 4:
        return _make("GAD-7", score, "MINIMAL", "GREEN", "Minimal anxiety", category="ANXIETY")
    if score <= 9:
        return _make("GAD-7", score, "LEVE", "YELLOW", "Mild anxiety", category="ANXIETY")
    if score <= 14:
        return _make("GAD-7", score, "MODERATE", "ORANGE", "Moderate anxiety", category="ANXIETY")
    return _make("GAD-7", score, "SEVERE", "RED", "Severe anxiety", immediate=True, category="ANXIETY")


def who5_percent(score: float) -> int:
    return int(math.floor(score / 25.0 * 100.0 + 0.5))


def interpret_who5(score: float) -> Interpretation:
    """WHO-5 is inverted: a higher percentage means better well-being."""

    _check_range("WHO-5", score, 0, 25)
    pct = who5_percent(score)
    if pct < 28:
        return _make(
            "WHO-5", score, "SEVERE", "RED", "Very low well-being; depression screening indicated",
            immediate=True, percent=pct, category="WELLBEING",
        )
    if pct <= 50:
        return _make("WHO-5", score, "MODERATE", "ORANGE", "Low well-being", percent=pct, category="WELLBEING")
    if pct <= 75:
        return _make("WHO-5", score, "LEVE", "YELLOW", "Moderate well-being", percent=pct, category="WELLBEING")
    return _make("WHO-5", score, "MINIMAL", "GREEN", "Good well-being", percent=pct, category="WELLBEING")


RISK_CATEGORIES = ("ANXIETY", "DEPRESSION", "STRESS", "NEGATIVE_THOUGHTS")
PROTECTIVE_CATEGORIES = ("WELLBEING", "SATISFACTION", "MOOD", "SELF_ESTEEM", "ENERGY")


def interpret_category(summary: CategoryScoreSummary) -> Optional[Interpretation]:
    """Generic reading for categories without a complete validated scale.

    Works on the 0–10 category score; protective categories are read
    inverted.  Returns ``None`` for categories with no clinical reading.
    """

    score10 = round(summary.mean * 10.0, 1)
    cat = summary.category
    if cat in RISK_CATEGORIES:
        risk = score10
    elif cat in PROTECTIVE_CATEGORIES:
        risk = 10.0 - score10
    else:
        return None
    if risk >= 7.5:
        band, level, desc = "MODERATE", "ORANGE", f"Elevated {cat.lower()} indicators"
    elif risk >= 5.0:
        band, level, desc = "LEVE", "YELLOW", f"Some {cat.lower()} indicators"
    else:
        band, level, desc = "MINIMAL", "GREEN", f"{cat.capitalize()} within expected range"
    return _make(cat, score10, band, level, desc, category=cat)


def interpret_scale(scale: str, score: float, self_harm_value: Optional[float] = None) -> Interpretation:
    if scale == "PHQ-9":
        return interpret_phq9(score, self_harm_value)
    if scale == "GAD-7":
        return interpret_gad7(score)
    if scale == "WHO-5":
        return interpret_who5(score)
    raise ValueError(f"no interpretation table for scale {scale!r}")


@dataclass
class ScaleTotal:
    scale: str
    total: float
    answered: int
    expected: int
    self_harm_value: Optional[float] = None

    @property
    def complete(self) -> bool:
        return self.answered >= self.expected


def scale_totals(responses: Iterable[Response]) -> Dict[str, ScaleTotal]:
    """Sum scale-native answers per validated scale.

    Partially answered scales keep their raw sum and are reported with
    ``complete == False``; see ``interpret_scale_total``.
    """

    sums: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    self_harm: Optional[float] = None
    for r in responses:
        if r.scale_name not in SCALES or r.scale_value is None:
            continue
        sums[r.scale_name] = sums.get(r.scale_name, 0.0) + float(r.scale_value)
        counts[r.scale_name] = counts.get(r.scale_name, 0) + 1
        if r.scale_item_code == SELF_HARM_ITEM:
            self_harm = float(r.scale_value)
    out: Dict[str, ScaleTotal] = {}
    for scale, total in sums.items():
        expected = SCALES[scale][2]
        answered = counts[scale]
        out[scale] = ScaleTotal(
            scale=scale,
            total=total,
            answered=answered,
            expected=expected,
            self_harm_value=self_harm if scale == "PHQ-9" else None,
        )
    return out


def interpret_scale_total(total: ScaleTotal) -> Optional[Interpretation]:
    """Band a scale only once every item is answered.

    The one exception is the PHQ-9 self-harm item: a positive answer forces
    the SEVERE/RED reading even when the rest of the scale is missing.
    """

    if total.complete:
        return interpret_scale(total.scale, total.total, total.self_harm_value)
    if total.scale == "PHQ-9" and total.self_harm_value:
        return interpret_phq9(total.total, total.self_harm_value)
    return None


@dataclass
class CombinedAssessment:
    level: str
    requires_immediate_action: bool
    message: str
    recommendations: List[str] = field(default_factory=list)
    scales: List[str] = field(default_factory=list)


def combine_interpretations(interpretations: Sequence[Interpretation]) -> CombinedAssessment:
    """Merge several interpretations: max level, any-immediate, one message."""

    if not interpretations:
        return CombinedAssessment("GREEN", False, "No interpretations available")
    level = max((i.level for i in interpretations), key=level_rank)
    immediate = any(i.requires_immediate_action for i in interpretations)
    flagged = [i for i in interpretations if i.requires_alert]
    recs: List[str] = []
    for i in sorted(interpretations, key=lambda i: -level_rank(i.level)):
        for r in i.recommendations:
            if r not in recs:
                recs.append(r)
    if immediate:
        message = "Immediate action required: " + ", ".join(
            f"{i.scale} {i.band}" for i in flagged if i.requires_immediate_action
        )
    elif flagged:
        message = "Attention recommended: " + ", ".join(f"{i.scale} {i.band}" for i in flagged)
    else:
        message = "All evaluated scales within expected range"
    return CombinedAssessment(
        level=level,
        requires_immediate_action=immediate,
        message=message,
        recommendations=recs,
        scales=[i.scale for i in interpretations],
    )

