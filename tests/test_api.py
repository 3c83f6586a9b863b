from __future__ import annotations

import csv
import importlib
import io
import sys

from fastapi.testclient import TestClient


_DEF_MODULES = [
    "affect_core.config",
    "api.storage",
    "api.app",
]


def _reload_app(tmp_path, monkeypatch) -> tuple[object, object]:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    for name in _DEF_MODULES:
        if name in sys.modules:
            importlib.reload(sys.modules[name])
        else:
            __import__(name)
    storage = sys.modules["api.storage"]
    app_module = sys.modules["api.app"]
    return storage, app_module


def _answer_all(client, questionnaire_ref, values, subject_id="student-1"):
    start = client.post("/sessions", json={"questionnaire_ref": questionnaire_ref, "subject_id": subject_id})
    assert start.status_code == 200, start.text
    sid = start.json()["session_id"]
    item = start.json()["item"]
    body = None
    for v in values:
        resp = client.post(
            f"/sessions/{sid}/responses",
            json={"item_id": item["id"], "value": v, "response_time_seconds": 2.5},
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        item = body["next_item"]
    return sid, body


def test_health(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)
    data = client.get("/health").json()
    assert data["status"] == "ok"
    assert "phq-9" in data["questionnaires"]


def test_full_phq9_flow_persists_to_disk(tmp_path, monkeypatch):
    storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    sid, last = _answer_all(client, "phq-9", [3, 3, 3, 3, 3, 3, 3, 3, 2])
    assert last["should_finalize"] is True
    assert last["finalize_reason"] == "POOL_EXHAUSTED"
    assert last["status"] == "FINALIZED"
    assert (storage.DATA_ROOT / "sessions" / f"{sid}.json").exists()

    session = client.get(f"/sessions/{sid}").json()
    assert session["status"] == "FINALIZED"
    assert session["response_count"] == 9
    assert len(session["presented_item_ids"]) == 9

    result = client.get(f"/sessions/{sid}/result")
    assert result.status_code == 200
    payload = result.json()
    assert payload["combined_level"] == "RED"
    assert payload["requires_immediate_action"] is True
    names = {p["name"] for p in payload["patterns"]}
    assert "self_harm_ideation" in names

    alerts = client.get("/subjects/student-1/alerts").json()["alerts"]
    assert len(alerts) == 1
    assert alerts[0]["kind"] == "IMMEDIATE_CRISIS"
    assert alerts[0]["status"] == "PENDING"


def test_text_answers_on_adaptive_checkin(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)
    start = client.post("/sessions", json={"questionnaire_ref": "checkin-adaptive", "subject_id": "s2"})
    sid = start.json()["session_id"]
    resp = client.post(f"/sessions/{sid}/responses", json={"item_id": "chk_stress_01", "value": "a lot"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["next_item"] is not None


def test_error_mapping(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)

    assert client.get("/sessions/missing").status_code == 404
    assert client.post("/sessions", json={"questionnaire_ref": "nope", "subject_id": "x"}).status_code == 404

    start = client.post("/sessions", json={"questionnaire_ref": "gad-7", "subject_id": "s3"}).json()
    sid = start["session_id"]

    bad = client.post(f"/sessions/{sid}/responses", json={"item_id": "gad7_01", "value": 9})
    assert bad.status_code == 422
    assert bad.json()["error"] == "InvalidResponseValue"

    ok = client.post(f"/sessions/{sid}/responses", json={"item_id": "gad7_01", "value": 1})
    assert ok.status_code == 200
    dup = client.post(f"/sessions/{sid}/responses", json={"item_id": "gad7_01", "value": 1})
    assert dup.status_code == 409

    assert client.patch(f"/sessions/{sid}", json={"action": "resume"}).status_code == 409
    assert client.patch(f"/sessions/{sid}", json={"action": "rewind"}).status_code == 422
    fin = client.patch(f"/sessions/{sid}", json={"action": "finalize"})
    assert fin.status_code == 200 and fin.json()["status"] == "FINALIZED"
    late = client.post(f"/sessions/{sid}/responses", json={"item_id": "gad7_02", "value": 1})
    assert late.status_code == 409


def test_audit_exports_available(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path / "enabled", monkeypatch)
    client = TestClient(app_module.app)

    sid, _ = _answer_all(client, "who-5", [4, 4, 3])

    resp_json = client.get(f"/sessions/{sid}/audit.json")
    assert resp_json.status_code == 200
    events = resp_json.json()["events"]
    assert len(events) == 3
    assert events[0]["item_id"] == "who5_01"
    assert events[0]["latency_ms"] == 2500

    resp_csv = client.get(f"/sessions/{sid}/audit.csv")
    assert resp_csv.status_code == 200
    assert resp_csv.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(resp_csv.text)))
    assert len(rows) == 3
    assert list(rows[0].keys())[:3] == ["t", "session_id", "item_id"]


def test_audit_exports_disabled(tmp_path, monkeypatch):
    monkeypatch.setenv("AUDIT_EXPORT_ENABLED", "0")
    _storage, app_module = _reload_app(tmp_path / "disabled", monkeypatch)
    client = TestClient(app_module.app)

    sid, _ = _answer_all(client, "who-5", [2])
    assert client.get(f"/sessions/{sid}/audit.json").status_code == 404
    assert client.get(f"/sessions/{sid}/audit.csv").status_code == 404


def test_malformed_choice_and_foreign_item_are_client_errors(tmp_path, monkeypatch):
    _storage, app_module = _reload_app(tmp_path, monkeypatch)
    client = TestClient(app_module.app)
    sid = client.post("/sessions", json={"questionnaire_ref": "who-5", "subject_id": "s4"}).json()["session_id"]

    bad = client.post(f"/sessions/{sid}/responses", json={"item_id": "who5_01", "value": "abc", "kind": "choice"})
    assert bad.status_code == 422
    assert bad.json()["error"] == "InvalidResponseValue"

    foreign = client.post(f"/sessions/{sid}/responses", json={"item_id": "phq9_09", "value": 1})
    assert foreign.status_code == 404
    assert foreign.json()["error"] == "ItemNotFound"
    assert client.get(f"/sessions/{sid}").json()["response_count"] == 0
    assert client.get("/subjects/s4/alerts").json()["alerts"] == []
