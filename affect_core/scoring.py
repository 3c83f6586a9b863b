from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Sequence
from datetime import datetime
import math

from .config import TREND_THRESHOLD
from .errors import InsufficientData
from .types import CategoryScoreSummary, Response, Trend


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def trend(values: Sequence[float], threshold: float = TREND_THRESHOLD) -> Trend:
    """Compare the mean of the later half of ``values`` with the earlier half.

    Values must be in chronological order; with an odd count the middle
    value belongs to the later half.
    """
    if len(values) < 2:
        raise InsufficientData("trend")
    mid = len(values) // 2
    delta = _mean(values[mid:]) - _mean(values[:mid])
    if delta > threshold:
        return "RISING"
    if delta < -threshold:
        return "FALLING"
    return "STABLE"


def _by_category(responses: Iterable[Response]) -> Dict[str, List[Response]]:
    out: Dict[str, List[Response]] = {}
    for r in sorted(responses, key=lambda r: r.order):
        out.setdefault(r.category, []).append(r)
    return out


def category_scores(responses: Iterable[Response]) -> Dict[str, CategoryScoreSummary]:
    out: Dict[str, CategoryScoreSummary] = {}
    for category, rows in _by_category(responses).items():
        values = [r.normalized_value for r in rows]
        weights = [max(r.weight, 0.0) for r in rows]
        total_w = sum(weights)
        if total_w > 0:
            mean = sum(v * w for v, w in zip(values, weights)) / total_w
        else:
            mean = _mean(values)
        plain = _mean(values)
        stddev = math.sqrt(sum((v - plain) ** 2 for v in values) / len(values))
        out[category] = CategoryScoreSummary(
            category=category,
            mean=round(mean, 4),
            min=min(values),
            max=max(values),
            stddev=round(stddev, 4),
            trend_direction=trend(values) if len(values) >= 2 else None,
            sample_count=len(values),
            total_weight=total_w,
        )
    return out


def overall_score(summaries: Dict[str, CategoryScoreSummary]) -> Optional[float]:
    """Weighted mean of the category means on a 0–100 scale."""
    if not summaries:
        return None
    num = 0.0
    den = 0.0
    for s in summaries.values():
        w = s.total_weight if s.total_weight > 0 else float(s.sample_count)
        num += s.mean * w
        den += w
    if den <= 0:
        return None
    return round(100.0 * num / den, 1)


def category_score_10(summary: CategoryScoreSummary) -> float:
    return round(summary.mean * 10.0, 1)


def session_metrics(
    responses: Sequence[Response],
    started_at: Optional[str],
    finished_at: Optional[str],
) -> Dict[str, object]:
    times = [r.response_time_seconds for r in responses if r.response_time_seconds is not None]
    total = None
    if started_at and finished_at:
        total = max(0, int((datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)).total_seconds()))
    return {
        "response_count": len(responses),
        "total_seconds": total,
        "mean_response_seconds": round(_mean(times), 2) if times else None,
    }
