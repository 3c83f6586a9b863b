from __future__ import annotations

from affect_core import stopping


def test_sem_threshold_after_minimum():
    d = stopping.evaluate(5, 0.29, presented_count=5, max_items=20)
    assert d.should_stop and d.reason == stopping.SEM_THRESHOLD


def test_sem_above_target_continues():
    d = stopping.evaluate(5, 0.31, presented_count=5, max_items=20)
    assert not d.should_stop and d.reason is None


def test_precision_needs_minimum_responses():
    d = stopping.evaluate(4, 0.10, presented_count=4, max_items=20)
    assert not d.should_stop


def test_pool_exhausted_stops_unconditionally():
    d = stopping.evaluate(1, 0.9, presented_count=1, next_available=False)
    assert d.should_stop and d.reason == stopping.POOL_EXHAUSTED


def test_max_items():
    d = stopping.evaluate(11, 0.6, presented_count=11, max_items=11)
    assert d.reason == stopping.MAX_ITEMS


def test_max_items_for_adaptive_and_fixed():
    assert stopping.max_items_for(18, True) == 11
    assert stopping.max_items_for(9, False) == 9


def test_timeout_only_in_screening():
    assert not stopping.evaluate(2, 0.9, elapsed_seconds=4000).should_stop
    d = stopping.evaluate(2, 0.9, elapsed_seconds=301, rule=stopping.SCREENING_RULE)
    assert d.reason == stopping.TIMEOUT


def test_convergence_in_depth():
    history = [0.40, 0.42, 0.41, 0.43, 0.42, 0.43, 0.42, 0.42]
    d = stopping.evaluate(8, 0.5, rule=stopping.IN_DEPTH_RULE, theta_history=history)
    assert d.reason == stopping.CONVERGENCE
    assert not stopping.evaluate(8, 0.5, theta_history=history).should_stop


def test_preset_lookup_falls_back_to_default():
    assert stopping.preset("screening") is stopping.SCREENING_RULE
    assert stopping.preset("nope") is stopping.DEFAULT_RULE
    assert stopping.preset(None) is stopping.DEFAULT_RULE


def test_progress_metrics_quality():
    m = stopping.progress_metrics(5, 0.25, 10)
    assert m["quality"] == "high"
    assert m["progress"] == 1.0
    assert stopping.progress_metrics(2, 0.9, 10)["quality"] == "low"
