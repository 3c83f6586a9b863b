# affect_core/stopping.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .config import ADAPTIVE_MAX_FRACTION, MIN_RESPONSES, SEM_TARGET

SEM_THRESHOLD = "SEM_THRESHOLD"
POOL_EXHAUSTED = "POOL_EXHAUSTED"
MAX_ITEMS = "MAX_ITEMS"
TIMEOUT = "TIMEOUT"
CONVERGENCE = "CONVERGENCE"


@dataclass(frozen=True)
class StoppingRule:
    name: str
    min_responses: int = MIN_RESPONSES
    sem_target: float = SEM_TARGET
    max_seconds: Optional[float] = None
    convergence_threshold: Optional[float] = None
    convergence_window: int = 3


@dataclass(frozen=True)
class StopDecision:
    should_stop: bool
    reason: Optional[str] = None


DEFAULT_RULE = StoppingRule(name="DEFAULT")
SCREENING_RULE = StoppingRule(
    name="SCREENING",
    min_responses=3,
    sem_target=0.40,
    max_seconds=300.0,
    convergence_threshold=0.15,
    convergence_window=2,
)
IN_DEPTH_RULE = StoppingRule(
    name="IN_DEPTH",
    min_responses=8,
    sem_target=0.20,
    max_seconds=1800.0,
    convergence_threshold=0.05,
    convergence_window=4,
)
PRESETS: Dict[str, StoppingRule] = {
    r.name: r for r in (DEFAULT_RULE, SCREENING_RULE, IN_DEPTH_RULE)
}


def preset(name: Optional[str]) -> StoppingRule:
    return PRESETS.get((name or "DEFAULT").upper(), DEFAULT_RULE)


def max_items_for(item_count: int, adaptive: bool) -> int:
    if adaptive:
        return int(math.ceil(item_count * ADAPTIVE_MAX_FRACTION))
    return int(item_count)


def _converged(theta_history: Sequence[float], window: int, threshold: float) -> bool:
    if window < 2 or len(theta_history) < window:
        return False
    recent = list(theta_history)[-window:]
    return max(recent) - min(recent) < threshold


def evaluate(
    response_count: int,
    standard_error: float,
    *,
    presented_count: int = 0,
    max_items: Optional[int] = None,
    next_available: bool = True,
    rule: StoppingRule = DEFAULT_RULE,
    elapsed_seconds: Optional[float] = None,
    theta_history: Optional[Sequence[float]] = None,
) -> StopDecision:
    """Decide whether the session should stop after the latest response.

    Pool exhaustion and the item cap stop unconditionally.  Precision stops
    only once ``rule.min_responses`` answers exist and the SEM is strictly
    below the target.  Timeout and convergence apply only when the rule
    enables them.
    """

    if not next_available:
        return StopDecision(True, POOL_EXHAUSTED)
    if max_items is not None and presented_count >= max_items:
        return StopDecision(True, MAX_ITEMS)
    if response_count >= rule.min_responses and standard_error < rule.sem_target:
        return StopDecision(True, SEM_THRESHOLD)
    if rule.max_seconds is not None and elapsed_seconds is not None and elapsed_seconds >= rule.max_seconds:
        return StopDecision(True, TIMEOUT)
    if (
        rule.convergence_threshold is not None
        and theta_history
        and response_count >= rule.min_responses
        and _converged(theta_history, rule.convergence_window, rule.convergence_threshold)
    ):
        return StopDecision(True, CONVERGENCE)
    return StopDecision(False, None)


def progress_metrics(
    response_count: int,
    standard_error: float,
    max_items: Optional[int],
    rule: StoppingRule = DEFAULT_RULE,
) -> Dict[str, object]:
    """Progress (0..1) towards the nearest stopping criterion plus a quality label."""

    by_count = response_count / max_items if max_items else 0.0
    if standard_error > 0 and rule.sem_target > 0:
        by_precision = min(1.0, rule.sem_target / standard_error)
    else:
        by_precision = 0.0
    progress = round(min(1.0, max(by_count, by_precision)), 3)
    if standard_error < rule.sem_target:
        quality = "high"
    elif standard_error < 2 * rule.sem_target:
        quality = "medium"
    else:
        quality = "low"
    return {"progress": progress, "quality": quality}


__all__ = [
    "StoppingRule",
    "StopDecision",
    "DEFAULT_RULE",
    "SCREENING_RULE",
    "IN_DEPTH_RULE",
    "PRESETS",
    "preset",
    "max_items_for",
    "evaluate",
    "progress_metrics",
    "SEM_THRESHOLD",
    "POOL_EXHAUSTED",
    "MAX_ITEMS",
    "TIMEOUT",
    "CONVERGENCE",
]
