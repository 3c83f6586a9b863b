# affect_core/alerts.py
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .config import ALERT_DEDUP_HOURS
from .types import Alert, Interpretation, level_rank

log = logging.getLogger(__name__)


def kind_for(interp: Interpretation) -> str:
    if interp.band == "SEVERE":
        return "IMMEDIATE_CRISIS"
    if interp.band == "MODERATELY_SEVERE":
        return "RISK_HIGH"
    if interp.band == "MODERATE":
        return "RISK_MODERATE"
    return "RISK_LOW"


def _kind_rank(kind: str) -> int:
    return ("RISK_LOW", "RISK_MODERATE", "RISK_HIGH", "IMMEDIATE_CRISIS").index(kind)


def _within(created_at: str, now: datetime, window: timedelta) -> bool:
    try:
        created = datetime.fromisoformat(created_at)
    except ValueError:
        return False
    return now - created < window


def find_pending(
    alerts: Iterable[Alert],
    subject_id: str,
    now: datetime,
    window: Optional[timedelta] = None,
) -> Optional[Alert]:
    """Most recent PENDING alert for ``subject_id`` created inside the window."""

    win = window if window is not None else timedelta(hours=ALERT_DEDUP_HOURS)
    candidates = [
        a for a in alerts
        if a.subject_id == subject_id and a.status == "PENDING" and _within(a.created_at, now, win)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda a: a.created_at)


def raise_or_update_alert(
    existing: Iterable[Alert],
    interp: Interpretation,
    subject_id: str,
    session_id: str,
    now: datetime,
    window: Optional[timedelta] = None,
) -> Alert:
    """Return the alert to upsert for a triggering interpretation.

    Within the dedup window an existing PENDING alert for the subject is
    updated (highest level and kind kept, recommendations merged, trigger
    count incremented) instead of creating a second one.
    """

    stamp = now.isoformat()
    current = find_pending(existing, subject_id, now, window)
    kind = kind_for(interp)
    category = interp.category or interp.scale

    if current is None:
        alert = Alert(
            id=str(uuid.uuid4()),
            subject_id=subject_id,
            session_id=session_id,
            level=interp.level,
            kind=kind,  # type: ignore[arg-type]
            category=category,
            score=float(interp.score),
            recommendations=list(interp.recommendations),
            status="PENDING",
            created_at=stamp,
            updated_at=stamp,
            requires_immediate_action=interp.requires_immediate_action,
        )
        log.info(
            "alert created subject=%s level=%s kind=%s category=%s",
            subject_id, alert.level, alert.kind, category,
        )
        return alert

    escalate = level_rank(interp.level) > level_rank(current.level)
    recs = list(current.recommendations)
    for r in interp.recommendations:
        if r not in recs:
            recs.append(r)
    updated = replace(
        current,
        session_id=session_id,
        level=interp.level if escalate else current.level,
        kind=kind if _kind_rank(kind) > _kind_rank(current.kind) else current.kind,  # type: ignore[arg-type]
        category=category if escalate else current.category,
        score=float(interp.score) if escalate else current.score,
        recommendations=recs,
        updated_at=stamp,
        requires_immediate_action=current.requires_immediate_action or interp.requires_immediate_action,
        trigger_count=current.trigger_count + 1,
    )
    log.info(
        "alert updated subject=%s id=%s level=%s triggers=%d",
        subject_id, updated.id, updated.level, updated.trigger_count,
    )
    return updated


def alerts_for(
    existing: List[Alert],
    interpretations: Iterable[Interpretation],
    subject_id: str,
    session_id: str,
    now: datetime,
    window: Optional[timedelta] = None,
) -> List[Alert]:
    """Fold every triggering interpretation into at most one pending alert per window."""

    pool = list(existing)
    touched: List[Alert] = []
    for interp in interpretations:
        if not interp.requires_alert:
            continue
        alert = raise_or_update_alert(pool, interp, subject_id, session_id, now, window)
        pool = [a for a in pool if a.id != alert.id] + [alert]
        touched = [a for a in touched if a.id != alert.id] + [alert]
    return touched


__all__ = ["kind_for", "find_pending", "raise_or_update_alert", "alerts_for"]
