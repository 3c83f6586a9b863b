from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from affect_core.engine import EngineContext, MemoryStore
from affect_core.item_bank import load_item_bank
from affect_core.types import Item, Numeric, Response


def build_item(item_id: str, category: str = "MOOD", **overrides) -> Item:
    """Deterministic item for selector and scoring tests."""

    fields = {
        "id": item_id,
        "category": category,
        "discrimination": 1.0,
        "difficulty": 0.0,
        "scale_min": 1.0,
        "scale_max": 5.0,
        "response_type": "LIKERT_5",
    }
    fields.update(overrides)
    return Item(**fields)


def build_response(
    category: str,
    normalized: float,
    order: int = 1,
    *,
    scale_name: str | None = None,
    scale_value: float | None = None,
    scale_item_code: str | None = None,
    weight: float = 1.0,
    response_time_seconds: float | None = None,
) -> Response:
    return Response(
        id=f"r{order}",
        session_id="s1",
        item_id=f"item_{order}",
        raw_value=Numeric(scale_value if scale_value is not None else normalized),
        normalized_value=normalized,
        category=category,
        scale_value=scale_value,
        response_time_seconds=response_time_seconds,
        order=order,
        weight=weight,
        scale_name=scale_name,
        scale_item_code=scale_item_code,
    )


def build_scale_responses(scale: str, code_prefix: str, category: str, values: list[float], hi: float) -> list[Response]:
    return [
        build_response(
            category,
            v / hi,
            order=idx,
            scale_name=scale,
            scale_value=v,
            scale_item_code=f"{code_prefix}_{idx:02d}",
        )
        for idx, v in enumerate(values, start=1)
    ]


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))


@pytest.fixture(scope="session")
def bank():
    return load_item_bank()


@pytest.fixture
def ctx(bank, clock) -> EngineContext:
    return EngineContext(bank=bank, store=MemoryStore(), clock=clock)
