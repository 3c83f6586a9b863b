"""Error taxonomy for the assessment engine.

Every error raised by the engine derives from :class:`EngineError` so the
hosting application can translate the whole family with one handler.
"""
from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str = "assessment engine error") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidTransition(EngineError):
    """Illegal session-state change; the session is left untouched."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"cannot move session from {current} to {requested}")
        self.current = current
        self.requested = requested


class SessionNotActive(InvalidTransition):
    """A response was submitted to a session that is not IN_PROGRESS."""

    def __init__(self, current: str) -> None:
        super().__init__(current, "IN_PROGRESS")
        self.message = f"session is {current}; responses are accepted only while IN_PROGRESS"


class NotFound(EngineError):
    pass


class ItemNotFound(NotFound):
    def __init__(self, item_id: str) -> None:
        super().__init__(f"item not found: {item_id}")
        self.item_id = item_id


class SessionNotFound(NotFound):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"session not found: {session_id}")
        self.session_id = session_id


class QuestionnaireNotFound(NotFound):
    def __init__(self, questionnaire_ref: str) -> None:
        super().__init__(f"questionnaire not found: {questionnaire_ref}")
        self.questionnaire_ref = questionnaire_ref


class ConcurrentModification(EngineError):
    """Optimistic write conflict. Callers retry with a freshly loaded session."""

    def __init__(self, session_id: str, expected: int, actual: Optional[int]) -> None:
        super().__init__(
            f"session {session_id} was modified concurrently (expected version {expected}, found {actual})"
        )
        self.session_id = session_id
        self.expected = expected
        self.actual = actual


class InsufficientData(EngineError):
    def __init__(self, what: str) -> None:
        super().__init__(f"insufficient data for {what}")
        self.what = what


class DuplicateItemPresentation(EngineError):
    """Internal consistency failure: an item was selected twice in one session."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"item {item_id} was already presented in this session")
        self.item_id = item_id


class DuplicateResponse(EngineError):
    def __init__(self, item_id: str) -> None:
        super().__init__(f"item {item_id} was already answered in this session")
        self.item_id = item_id


class InvalidScoreRange(EngineError):
    def __init__(self, scale: str, score: float, lo: float, hi: float) -> None:
        super().__init__(f"{scale} score {score} outside valid range [{lo}, {hi}]")
        self.scale = scale
        self.score = score
        self.lo = lo
        self.hi = hi


class InvalidResponseValue(EngineError):
    pass


__all__ = [
    "EngineError",
    "InvalidTransition",
    "SessionNotActive",
    "NotFound",
    "ItemNotFound",
    "SessionNotFound",
    "QuestionnaireNotFound",
    "ConcurrentModification",
    "InsufficientData",
    "DuplicateItemPresentation",
    "DuplicateResponse",
    "InvalidScoreRange",
    "InvalidResponseValue",
]
