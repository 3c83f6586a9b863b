"""2PL item response utilities used by the assessment engine.

This module provides the logistic response curve, Fisher information, a
damped sequential MAP (Newton) update for the respondent trait level and an
Expected A Posteriori cross-check.  Responses enter as normalized values in
``[0, 1]`` and are treated as fractional "affirmative" outcomes, so Likert
answers and yes/no answers share one likelihood.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .config import (
    EAP_BOUND,
    EAP_POINTS,
    EAP_PRIOR_SD,
    IRT_ETA,
    IRT_MAX_STEP,
)

__all__ = [
    "Observation",
    "TraitEstimate",
    "sigma",
    "p_2pl",
    "item_info",
    "map_update",
    "se_from_info",
    "confidence_from_se",
    "update",
    "eap_estimate",
]

_EPS = 1e-6


@dataclass(frozen=True)
class Observation:
    discrimination: float
    difficulty: float
    value: float


@dataclass(frozen=True)
class TraitEstimate:
    theta: float
    sem: float
    confidence: float
    info_total: float


def sigma(x: float) -> float:
    """Return the logistic function ``σ(x) = 1 / (1 + e^{−x})``.

    The positive and negative halves of the real line are handled separately
    so large magnitudes never overflow ``math.exp``.
    """

    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)


def p_2pl(theta: float, a: float, b: float) -> float:
    """Probability of an affirmative/high response under the 2PL model.

    Parameters
    ----------
    theta: float
        Current trait estimate.
    a: float
        Item discrimination, strictly positive.
    b: float
        Item difficulty (trait level of maximal information).

    Returns
    -------
    float
        ``σ(a · (theta − b))``
    """

    return sigma(a * (theta - b))


def item_info(theta: float, a: float, b: float) -> float:
    """Fisher information ``a² p (1 − p)`` contributed by one 2PL item."""

    p = p_2pl(theta, a, b)
    info = (a * a) * p * (1.0 - p)
    return max(info, 0.0)


def map_update(
    theta: float,
    a: float,
    b: float,
    value: float,
    prior_precision: float = 1.0,
    eta: float = IRT_ETA,
    max_step: float = IRT_MAX_STEP,
) -> float:
    """Perform one damped Newton/MAP step for the trait level.

    ``prior_precision`` is the information already accumulated, so steps
    shrink as evidence builds up; ``eta`` throttles and ``max_step`` caps the
    move.
    """

    p = p_2pl(theta, a, b)
    y = min(1.0, max(0.0, float(value)))
    grad = (y - p) * a
    info = (a * a) * p * (1.0 - p) + max(prior_precision, _EPS)
    step = eta * grad / max(info, _EPS)
    step = max(-max_step, min(max_step, step))
    return float(theta + step)


def se_from_info(info_total: float) -> float:
    """Convert accumulated Fisher information into a standard error."""

    return 1.0 / math.sqrt(max(info_total, _EPS))


def confidence_from_se(se: float) -> float:
    return 1.0 / (1.0 + max(se, 0.0))


def update(
    prior_theta: float,
    prior_sem: float,
    observations: Sequence[Observation],
    prior_confidence: float = 0.0,
) -> TraitEstimate:
    """Fold new observations into the running estimate.

    With no observations the prior is returned untouched, including its
    confidence (0.0 for a fresh session).  Otherwise information only grows,
    so the returned SEM never exceeds ``prior_sem``.
    """

    info_total = 1.0 / max(prior_sem * prior_sem, _EPS)
    if not observations:
        return TraitEstimate(prior_theta, prior_sem, prior_confidence, info_total)

    theta = float(prior_theta)
    for obs in observations:
        theta = map_update(theta, obs.discrimination, obs.difficulty, obs.value, prior_precision=info_total)
        info_total += item_info(theta, obs.discrimination, obs.difficulty)

    sem = min(se_from_info(info_total), prior_sem)
    return TraitEstimate(theta, sem, confidence_from_se(sem), info_total)


def _quadrature() -> List[float]:
    n = max(int(EAP_POINTS), 2)
    step = (2.0 * EAP_BOUND) / (n - 1)
    return [-EAP_BOUND + i * step for i in range(n)]


def eap_estimate(observations: Iterable[Observation]) -> Tuple[float, float]:
    """Expected A Posteriori trait level and posterior SD.

    Uses a normal prior (``EAP_PRIOR_SD``) evaluated on evenly spaced
    quadrature points; fractional outcomes contribute
    ``p^y (1 − p)^(1 − y)``.
    """

    obs = list(observations)
    points = _quadrature()
    log_post: List[float] = []
    for q in points:
        lp = -0.5 * (q / EAP_PRIOR_SD) ** 2
        for o in obs:
            p = min(max(p_2pl(q, o.discrimination, o.difficulty), _EPS), 1.0 - _EPS)
            y = min(1.0, max(0.0, o.value))
            lp += y * math.log(p) + (1.0 - y) * math.log(1.0 - p)
        log_post.append(lp)

    peak = max(log_post)
    weights = [math.exp(lp - peak) for lp in log_post]
    total = sum(weights)
    mean = sum(q * w for q, w in zip(points, weights)) / total
    var = sum(((q - mean) ** 2) * w for q, w in zip(points, weights)) / total
    return float(mean), float(math.sqrt(max(var, 0.0)))


def _demo_sequence() -> Tuple[List[float], List[float]]:
    """Developer demo: a respondent drifting towards high answers."""

    theta_hist: List[float] = []
    se_hist: List[float] = []
    est = TraitEstimate(0.0, 1.0, 0.0, 1.0)
    seq = [(1.2, -1.0, 0.75), (1.0, -0.5, 1.0), (1.5, 0.0, 0.5), (1.3, 0.5, 1.0), (1.1, 1.0, 1.0)]

    print("step |   a  |   b  |  y   | theta    |   SE")
    for idx, (a, b, y) in enumerate(seq, start=1):
        est = update(est.theta, est.sem, [Observation(a, b, y)], est.confidence)
        theta_hist.append(est.theta)
        se_hist.append(est.sem)
        print(f" {idx:2d}  | {a:4.1f} | {b:+4.1f} | {y:4.2f} | {est.theta:7.4f} | {est.sem:5.4f}")

    for prev, cur in zip(se_hist, se_hist[1:]):
        assert cur <= prev + 1e-9, "SE should be non-increasing"
    return theta_hist, se_hist


if __name__ == "__main__":  # pragma: no cover - developer utility
    assert abs(sigma(0.0) - 0.5) < 1e-9
    assert p_2pl(1.0, 1.0, 0.0) > 0.5
    assert abs(item_info(0.0, 1.0, 0.0) - 0.25) < 1e-6
    theta_hist, se_hist = _demo_sequence()
    print(f"Final θ: {theta_hist[-1]:.4f}, Final SE: {se_hist[-1]:.4f}")
    print(f"EAP check: {eap_estimate([Observation(1.0, 0.0, 1.0)] * 5)}")
