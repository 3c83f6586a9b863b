# affect_core/selector.py
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import (
    CATEGORY_PENALTY,
    INFO_FLOOR,
    INFO_FLOOR_EARLY,
    INFO_FLOOR_EARLY_RESPONSES,
    MAX_PER_CATEGORY,
    PRIORITY_WEIGHTS,
)
from .irt import item_info
from .types import Item


def unpresented(items: Iterable[Item], presented_ids: Iterable[str]) -> List[Item]:
    seen = set(presented_ids)
    return [it for it in items if it.id not in seen]


def _priority_boost(item: Item) -> float:
    if not item.priority:
        return 1.0
    return float(PRIORITY_WEIGHTS.get(item.priority, 1.0))


def _category_penalty(item: Item, answered_categories: Mapping[str, int]) -> float:
    count = int(answered_categories.get(item.category, 0))
    if count < MAX_PER_CATEGORY:
        return 1.0
    return CATEGORY_PENALTY ** (count - MAX_PER_CATEGORY + 1)


def _info_floor(response_count: int) -> float:
    return INFO_FLOOR_EARLY if response_count < INFO_FLOOR_EARLY_RESPONSES else INFO_FLOOR


def _adaptive_sort_key(item: Item, theta: float, answered: Mapping[str, int]) -> Tuple[float, float, str]:
    score = item_info(theta, item.discrimination, item.difficulty)
    score *= _priority_boost(item) * _category_penalty(item, answered)
    return (-score, abs(item.difficulty - theta), item.id)


def _sort_candidates(
    candidates: Sequence[Item],
    theta: float,
    adaptive: bool,
    answered: Mapping[str, int],
) -> List[Item]:
    if not adaptive:
        return sorted(candidates, key=lambda it: (it.order, it.id))
    return sorted(candidates, key=lambda it: _adaptive_sort_key(it, theta, answered))


def select_next(
    theta: float,
    candidates: Sequence[Item],
    *,
    adaptive: bool = True,
    answered_categories: Optional[Mapping[str, int]] = None,
    response_count: int = 0,
) -> Optional[Item]:
    """Pick the next item to present, or ``None`` when the pool is empty.

    Adaptive mode maximises 2PL information at ``theta`` (the candidate whose
    difficulty is closest to ``theta``, scaled by discrimination), boosted by
    clinical priority and damped for saturated categories; ties fall back to
    the smaller difficulty gap, then the lowest id.  The boost and the damping
    can outrank closeness: a HIGH-priority item or one from an unsaturated
    category may win over the item nearest ``theta``.  Fixed-order mode
    returns the lowest ``order``.
    """

    if not candidates:
        return None
    answered: Dict[str, int] = dict(answered_categories or {})

    pool: Sequence[Item] = candidates
    if adaptive:
        floor = _info_floor(response_count)
        informative = [
            it for it in candidates
            if item_info(theta, it.discrimination, it.difficulty) >= floor
        ]
        # never stall with items left: ignore the floor when it filters everything
        if informative:
            pool = informative

    ordered = _sort_candidates(pool, theta, adaptive, answered)
    return ordered[0] if ordered else None


__all__ = ["select_next", "unpresented"]
