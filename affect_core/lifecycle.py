"""Session lifecycle state machine.

Transitions never mutate their input: each one returns a new ``Session``
built with :func:`dataclasses.replace`, so a rejected request leaves the
caller's snapshot exactly as it was.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, Optional

from .config import REWARD_POINTS_PER_RESPONSE
from .errors import InvalidTransition
from .types import Session

log = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "INITIAL": frozenset({"IN_PROGRESS"}),
    "IN_PROGRESS": frozenset({"PAUSED", "FINALIZED", "CANCELLED"}),
    "PAUSED": frozenset({"IN_PROGRESS", "CANCELLED"}),
    "FINALIZED": frozenset(),
    "CANCELLED": frozenset(),
}

ACTIONS: Dict[str, str] = {
    "pause": "PAUSED",
    "resume": "IN_PROGRESS",
    "finalize": "FINALIZED",
    "cancel": "CANCELLED",
}


def _check(session: Session, requested: str, allowed_from: Iterable[str]) -> None:
    if session.status not in allowed_from or requested not in TRANSITIONS[session.status]:
        log.warning(
            "rejected transition session=%s %s->%s", session.id, session.status, requested
        )
        raise InvalidTransition(session.status, requested)


def _iso(now: datetime) -> str:
    return now.isoformat()


def _elapsed_seconds(started_at: Optional[str], now: datetime) -> Optional[int]:
    if not started_at:
        return None
    start = datetime.fromisoformat(started_at)
    return max(0, int(math.floor((now - start).total_seconds())))


def can_transition(current: str, requested: str) -> bool:
    return requested in TRANSITIONS.get(current, frozenset())


def start(session: Session, now: datetime) -> Session:
    _check(session, "IN_PROGRESS", ("INITIAL",))
    return replace(session, status="IN_PROGRESS", started_at=_iso(now))


def pause(session: Session, now: datetime) -> Session:
    _check(session, "PAUSED", ("IN_PROGRESS",))
    return replace(session, status="PAUSED", paused_at=_iso(now))


def resume(session: Session, now: datetime) -> Session:
    _check(session, "IN_PROGRESS", ("PAUSED",))
    return replace(session, status="IN_PROGRESS", paused_at=None)


def finalize(
    session: Session,
    now: datetime,
    response_times: Iterable[Optional[float]] = (),
    reason: Optional[str] = None,
) -> Session:
    """Close an in-progress session and record its timing summary.

    Records total elapsed seconds, mean response time and the reward points
    credited for the answers given.  Scoring and alerting run after this
    transition, in the engine.
    """

    _check(session, "FINALIZED", ("IN_PROGRESS",))
    recorded = list(response_times)
    times = [float(t) for t in recorded if t is not None]
    count = len(recorded)
    mean_rt = round(sum(times) / len(times), 2) if times else None
    return replace(
        session,
        status="FINALIZED",
        finished_at=_iso(now),
        total_seconds=_elapsed_seconds(session.started_at, now),
        mean_response_seconds=mean_rt,
        reward_points=REWARD_POINTS_PER_RESPONSE * count,
        finalize_reason=reason or session.finalize_reason or "MANUAL",
    )


def cancel(session: Session, now: datetime) -> Session:
    _check(session, "CANCELLED", ("IN_PROGRESS", "PAUSED"))
    return replace(
        session,
        status="CANCELLED",
        finished_at=_iso(now),
        paused_at=None,
        total_seconds=_elapsed_seconds(session.started_at, now),
    )


def apply_action(
    session: Session,
    action: str,
    now: datetime,
    response_times: Iterable[Optional[float]] = (),
) -> Session:
    if action == "pause":
        return pause(session, now)
    if action == "resume":
        return resume(session, now)
    if action == "finalize":
        return finalize(session, now, response_times)
    if action == "cancel":
        return cancel(session, now)
    raise ValueError(f"unknown session action: {action!r}")


__all__ = [
    "TRANSITIONS",
    "ACTIONS",
    "can_transition",
    "start",
    "pause",
    "resume",
    "finalize",
    "cancel",
    "apply_action",
]
