from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from affect_core import lifecycle
from affect_core.errors import InvalidTransition
from affect_core.types import Session

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def _fresh() -> Session:
    return Session(id="s1", subject_id="u1", questionnaire_ref="phq-9")


def test_happy_path_start_pause_resume_finalize():
    s = lifecycle.start(_fresh(), T0)
    assert s.status == "IN_PROGRESS"
    assert s.started_at == T0.isoformat()

    s = lifecycle.pause(s, T0 + timedelta(seconds=30))
    assert s.status == "PAUSED" and s.paused_at

    s = lifecycle.resume(s, T0 + timedelta(seconds=40))
    assert s.status == "IN_PROGRESS" and s.paused_at is None

    s = lifecycle.finalize(s, T0 + timedelta(seconds=95.7), [10.0, None, 20.0], reason="POOL_EXHAUSTED")
    assert s.status == "FINALIZED"
    assert s.total_seconds == 95
    assert s.mean_response_seconds == 15.0
    assert s.reward_points == 30, "points are credited per response"
    assert s.finalize_reason == "POOL_EXHAUSTED"


def test_manual_finalize_reason_default():
    s = lifecycle.finalize(lifecycle.start(_fresh(), T0), T0)
    assert s.finalize_reason == "MANUAL"


@pytest.mark.parametrize(
    "status,action",
    [
        ("INITIAL", "pause"),
        ("INITIAL", "finalize"),
        ("PAUSED", "finalize"),
        ("PAUSED", "pause"),
        ("IN_PROGRESS", "resume"),
        ("FINALIZED", "cancel"),
        ("FINALIZED", "resume"),
        ("CANCELLED", "resume"),
        ("CANCELLED", "finalize"),
    ],
)
def test_illegal_transitions_leave_session_untouched(status, action):
    s = Session(id="s1", subject_id="u1", questionnaire_ref="q", status=status)
    before = s.to_dict()
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(s, action, T0)
    assert s.to_dict() == before


def test_cancel_from_paused():
    s = lifecycle.pause(lifecycle.start(_fresh(), T0), T0)
    s = lifecycle.cancel(s, T0 + timedelta(minutes=2))
    assert s.status == "CANCELLED"
    assert s.total_seconds == 120


def test_start_twice_rejected():
    s = lifecycle.start(_fresh(), T0)
    with pytest.raises(InvalidTransition):
        lifecycle.start(s, T0)


def test_unknown_action():
    with pytest.raises(ValueError):
        lifecycle.apply_action(_fresh(), "rewind", T0)


def test_can_transition_table():
    assert lifecycle.can_transition("PAUSED", "IN_PROGRESS")
    assert not lifecycle.can_transition("FINALIZED", "IN_PROGRESS")
