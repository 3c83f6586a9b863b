"""JSON-file implementation of the engine's session store.

Sessions, responses and alerts live as plain JSON files under ``DATA_DIR`` so
the API survives restarts without a database.  Every write goes through a
temporary file and an atomic ``replace``; a process-wide lock serializes the
read-compare-write cycle that enforces the optimistic ``version`` check.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from affect_core.errors import ConcurrentModification, SessionNotFound
from affect_core.types import Alert, Response, Session

log = logging.getLogger(__name__)

DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
SESSIONS_DIR = DATA_ROOT / "sessions"
RESPONSES_DIR = DATA_ROOT / "responses"
EVENTS_DIR = DATA_ROOT / "events"
ALERTS_PATH = DATA_ROOT / "alerts.json"

_LOCK = threading.Lock()


def _ensure_dirs() -> None:
    for d in (DATA_ROOT, SESSIONS_DIR, RESPONSES_DIR, EVENTS_DIR):
        d.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        log.warning("unreadable store file %s", path)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonSessionStore:
    def __init__(self, root: Path | None = None) -> None:
        self.root = Path(root).resolve() if root is not None else DATA_ROOT
        self.sessions_dir = self.root / "sessions"
        self.responses_dir = self.root / "responses"
        self.events_dir = self.root / "events"
        self.alerts_path = self.root / "alerts.json"
        for d in (self.root, self.sessions_dir, self.responses_dir, self.events_dir):
            d.mkdir(parents=True, exist_ok=True)

    def _session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    # sessions
    def load_session(self, session_id: str) -> Session:
        raw = _read_json(self._session_path(session_id), None)
        if raw is None:
            raise SessionNotFound(session_id)
        return Session.from_dict(raw)

    def save_session(self, session: Session) -> Session:
        path = self._session_path(session.id)
        with _LOCK:
            raw = _read_json(path, None)
            actual = raw.get("version") if raw is not None else None
            expected_absent = raw is None and session.version == 0
            if not expected_absent and actual != session.version:
                log.warning(
                    "version conflict session=%s expected=%s actual=%s", session.id, session.version, actual
                )
                raise ConcurrentModification(session.id, session.version, actual)
            payload = session.to_dict()
            payload["version"] = session.version + 1
            _write_json(path, payload)
        return Session.from_dict(payload)

    # responses
    def append_response(self, session_id: str, response: Response) -> Response:
        path = self.responses_dir / f"{session_id}.json"
        with _LOCK:
            rows: List[Dict[str, Any]] = _read_json(path, [])
            rows.append(response.to_dict())
            _write_json(path, rows)
        return response

    def load_responses(self, session_id: str) -> List[Response]:
        rows = _read_json(self.responses_dir / f"{session_id}.json", [])
        return sorted((Response.from_dict(r) for r in rows), key=lambda r: r.order)

    # alerts
    def upsert_alert(self, alert: Alert) -> Alert:
        with _LOCK:
            index: Dict[str, Dict[str, Any]] = _read_json(self.alerts_path, {})
            index[alert.id] = alert.to_dict()
            _write_json(self.alerts_path, index)
        return alert

    def load_alerts(self, subject_id: str) -> List[Alert]:
        index: Dict[str, Dict[str, Any]] = _read_json(self.alerts_path, {})
        out = [Alert.from_dict(a) for a in index.values() if a.get("subject_id") == subject_id]
        out.sort(key=lambda a: a.created_at, reverse=True)
        return out

    # audit trace
    def append_event(self, session_id: str, event: Dict[str, object]) -> None:
        path = self.events_dir / f"{session_id}.json"
        with _LOCK:
            rows = _read_json(path, [])
            rows.append(dict(event))
            _write_json(path, rows)

    def load_events(self, session_id: str) -> List[Dict[str, object]]:
        return list(_read_json(self.events_dir / f"{session_id}.json", []))


def default_store() -> JsonSessionStore:
    _ensure_dirs()
    return JsonSessionStore(DATA_ROOT)
