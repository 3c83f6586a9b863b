from __future__ import annotations

import csv
import io

from affect_core.audit_export import FIELDNAMES, summarize, to_csv, to_json, to_rows


def _event(item_id, theta_before, theta_after, se, latency_ms=1200):
    return {
        "t": "2024-03-04T09:00:00+00:00",
        "session_id": "s-1",
        "item_id": item_id,
        "category": "MOOD",
        "a": 1.2,
        "b": -0.25,
        "raw_value": 3,
        "normalized_value": 0.5,
        "theta_before": theta_before,
        "theta_after": theta_after,
        "se_after": se,
        "latency_ms": latency_ms,
    }


def test_rows_follow_column_order_and_types():
    rows = to_rows([_event("i1", 0.0, 0.1234567891, 0.9)])
    assert list(rows[0]) == FIELDNAMES
    assert rows[0]["theta_after"] == 0.123457
    assert rows[0]["raw_value"] == 3.0
    assert rows[0]["latency_ms"] == 1200


def test_missing_or_bad_values_export_as_empty():
    rows = to_rows([None, {"item_id": "i2", "a": "n/a", "latency_ms": "slow", "extra": 1}])
    assert all(v is None for v in rows[0].values())
    assert rows[1]["item_id"] == "i2"
    assert rows[1]["a"] is None
    assert rows[1]["latency_ms"] is None
    assert "extra" not in rows[1]


def test_json_payload_summarizes_trait_movement():
    payload = to_json([_event("i1", 0.0, 0.4, 0.8), _event("i2", 0.4, 0.55, 0.6, latency_ms=800)])
    assert payload["count"] == 2
    assert payload["summary"] == {
        "items": 2,
        "theta_start": 0.0,
        "theta_end": 0.55,
        "se_end": 0.6,
        "latency_ms_total": 2000,
    }
    assert [e["item_id"] for e in payload["events"]] == ["i1", "i2"]


def test_empty_export():
    assert summarize([])["items"] == 0
    assert to_json([])["events"] == []
    assert to_csv([]).strip() == ",".join(FIELDNAMES)


def test_csv_writes_blank_cells_for_missing_values():
    body = to_csv([_event("i1", 0.0, 0.2, 0.9), {"item_id": "i2"}])
    rows = list(csv.DictReader(io.StringIO(body)))
    assert len(rows) == 2
    assert rows[0]["latency_ms"] == "1200"
    assert rows[1]["theta_after"] == ""
