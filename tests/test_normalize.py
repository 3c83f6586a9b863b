from __future__ import annotations

import math

import pytest

from affect_core.errors import InvalidResponseValue
from affect_core.normalize import coerce_raw, denormalize_value, normalize_value, resolve_raw
from affect_core.types import Choice, Numeric, Text
from tests.conftest import build_item


def test_likert_bounds_map_to_unit_interval():
    it = build_item("l5")
    assert normalize_value(it, Numeric(1)) == 0.0
    assert normalize_value(it, Numeric(5)) == 1.0
    assert normalize_value(it, Numeric(4)) == 0.75


def test_round_trip_on_declared_scale():
    it = build_item("phq", scale_min=0, scale_max=3, response_type="NUMERIC")
    for v in (0, 1, 2, 3):
        assert math.isclose(denormalize_value(it, normalize_value(it, Numeric(v))), v)


def test_frequency_labels_resolve():
    it = build_item("f", scale_min=0, scale_max=4, response_type="FREQUENCY")
    assert normalize_value(it, Text("Often")) == 0.75
    assert normalize_value(it, Text("never")) == 0.0


def test_yes_no_labels_with_accents():
    it = build_item("yn", scale_min=0, scale_max=1, response_type="YES_NO")
    assert normalize_value(it, Text("Sim")) == 1.0
    assert normalize_value(it, Text("Não")) == 0.0


def test_choice_index_offsets_from_scale_min():
    it = build_item("c", scale_min=1, scale_max=5)
    assert resolve_raw(it, Choice(2)) == 3.0


def test_numeric_text_is_parsed():
    it = build_item("slider", scale_min=0, scale_max=100, response_type="SLIDER")
    assert normalize_value(it, Text("62,5")) == 0.625


def test_options_list_fallback():
    it = build_item("opt", scale_min=0, scale_max=2, response_type="NUMERIC", options=["Low", "Mid", "High"])
    assert resolve_raw(it, Text("high")) == 2.0


@pytest.mark.parametrize("raw", [Numeric(6), Numeric(-1), Numeric(float("nan")), Text("banana"), Choice(9)])
def test_out_of_range_or_unknown_rejected(raw):
    with pytest.raises(InvalidResponseValue):
        normalize_value(build_item("x"), raw)


def test_coerce_raw_kinds():
    assert coerce_raw(True) == Numeric(1.0)
    assert coerce_raw(3) == Numeric(3.0)
    assert coerce_raw("often") == Text("often")
    assert coerce_raw("2", "choice") == Choice(2)
    with pytest.raises(InvalidResponseValue):
        coerce_raw(None)


@pytest.mark.parametrize("value, kind", [("abc", "choice"), ("x", "numeric"), (None, "choice"), ("1.5", "choice")])
def test_coerce_raw_rejects_unparseable_values(value, kind):
    with pytest.raises(InvalidResponseValue):
        coerce_raw(value, kind)
