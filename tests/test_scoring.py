from __future__ import annotations

import pytest

from affect_core.errors import InsufficientData
from affect_core.patterns import detect_co_occurrences, detect_pattern, detect_trend, series_patterns
from affect_core.clinical import scale_totals
from affect_core.scoring import category_scores, overall_score, session_metrics, trend
from tests.conftest import build_response, build_scale_responses


def test_trend_directions():
    assert trend([0.2, 0.2, 0.6, 0.6]) == "RISING"
    assert trend([0.8, 0.7, 0.3]) == "FALLING"
    assert trend([0.5, 0.55]) == "STABLE"


def test_trend_needs_two_values():
    with pytest.raises(InsufficientData):
        trend([0.4])


def test_category_summary_fields():
    rows = [build_response("MOOD", v, i) for i, v in enumerate([0.2, 0.4, 0.6, 0.8], 1)]
    s = category_scores(rows)["MOOD"]
    assert s.mean == 0.5
    assert (s.min, s.max) == (0.2, 0.8)
    assert s.sample_count == 4
    assert s.trend_direction == "RISING"
    assert s.stddev == pytest.approx(0.2236, abs=1e-4)


def test_single_response_has_no_trend():
    s = category_scores([build_response("ENERGY", 0.3, 1)])["ENERGY"]
    assert s.trend_direction is None


def test_weighted_mean():
    rows = [build_response("MOOD", 1.0, 1, weight=3.0), build_response("MOOD", 0.0, 2, weight=1.0)]
    assert category_scores(rows)["MOOD"].mean == 0.75


def test_overall_score_range():
    rows = [build_response("MOOD", 1.0, 1), build_response("ENERGY", 0.5, 2)]
    assert overall_score(category_scores(rows)) == 75.0
    assert overall_score({}) is None


def test_session_metrics():
    rows = [build_response("MOOD", 0.5, 1, response_time_seconds=4.0), build_response("MOOD", 0.5, 2, response_time_seconds=6.0)]
    m = session_metrics(rows, "2024-03-04T09:00:00+00:00", "2024-03-04T09:02:30+00:00")
    assert m == {"response_count": 2, "total_seconds": 150, "mean_response_seconds": 5.0}


def test_detect_trend_and_patterns():
    assert detect_trend([0.9, 0.7, 0.5, 0.3], "down")
    assert not detect_trend([0.9, 0.7], "down")
    assert detect_pattern([0.1, 0.2, 0.05], "ALL_LOW")
    assert detect_pattern([0.0, 1.0, 0.0, 1.0], "HIGH_VOLATILITY")
    flags = series_patterns({"MOOD": [0.8, 0.8, 0.8]})
    assert flags == [{"type": "SERIES", "name": "MOOD", "flags": ["ALL_HIGH", "CONSISTENT"]}]


def test_co_occurrence_detection():
    rows = build_scale_responses("PHQ-9", "PHQ9", "DEPRESSION", [3, 3, 3, 2, 2, 2, 2, 2, 1], 3)
    rows += build_scale_responses("GAD-7", "GAD7", "ANXIETY", [3, 3, 2, 2, 2, 2, 2], 3)
    names = {p["name"] for p in detect_co_occurrences(scale_totals(rows))}
    assert names == {"self_harm_ideation", "severe_depression_and_anxiety", "depression_with_anxiety"}
