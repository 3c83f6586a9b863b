"""Audit trail export: one row per recorded answer and trait update.

Events come from the session store as loose dicts.  Each column has its own
converter; a value that cannot be converted is exported as empty (``None`` in
JSON) rather than guessed, so a reviewer can tell a missing trace field from a
real zero.
"""
from __future__ import annotations

import csv
import io
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

log = logging.getLogger(__name__)

Row = Dict[str, Any]


def _text(val: Any) -> Optional[str]:
    return None if val is None else str(val)


def _estimate(val: Any) -> Optional[float]:
    if val is None or isinstance(val, bool):
        return None
    try:
        return round(float(val), 6)
    except (TypeError, ValueError):
        return None


def _millis(val: Any) -> Optional[int]:
    if val is None or isinstance(val, bool):
        return None
    try:
        return int(round(float(val)))
    except (TypeError, ValueError):
        return None


# column order is the CSV header order
COLUMNS: Tuple[Tuple[str, Callable[[Any], Any]], ...] = (
    ("t", _text),
    ("session_id", _text),
    ("item_id", _text),
    ("category", _text),
    ("a", _estimate),
    ("b", _estimate),
    ("raw_value", _estimate),
    ("normalized_value", _estimate),
    ("theta_before", _estimate),
    ("theta_after", _estimate),
    ("se_after", _estimate),
    ("latency_ms", _millis),
)
FIELDNAMES: List[str] = [name for name, _ in COLUMNS]


def to_rows(events: Iterable[Optional[Dict[str, Any]]]) -> List[Row]:
    rows: List[Row] = []
    for idx, event in enumerate(events):
        event = event or {}
        unknown = set(event) - set(FIELDNAMES)
        if unknown:
            log.debug("audit event %d carries unexported keys %s", idx, sorted(unknown))
        rows.append({name: conv(event.get(name)) for name, conv in COLUMNS})
    return rows


def summarize(rows: List[Row]) -> Dict[str, Any]:
    """Trait movement over the exported rows."""

    if not rows:
        return {"items": 0, "theta_start": None, "theta_end": None, "se_end": None, "latency_ms_total": 0}
    return {
        "items": len({r["item_id"] for r in rows if r["item_id"]}),
        "theta_start": rows[0]["theta_before"],
        "theta_end": rows[-1]["theta_after"],
        "se_end": rows[-1]["se_after"],
        "latency_ms_total": sum(r["latency_ms"] or 0 for r in rows),
    }


def to_json(events: Iterable[Optional[Dict[str, Any]]]) -> Dict[str, Any]:
    rows = to_rows(events)
    return {"count": len(rows), "summary": summarize(rows), "events": rows}


def to_csv(events: Iterable[Optional[Dict[str, Any]]]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=FIELDNAMES)
    writer.writeheader()
    writer.writerows(to_rows(events))
    return buf.getvalue()


__all__ = ["COLUMNS", "FIELDNAMES", "summarize", "to_csv", "to_json", "to_rows"]
