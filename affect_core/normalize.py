"""Resolve raw answers into the normalized [0, 1] scale used by the engine.

Each response type declares default scale bounds and, where the UI submits
labels instead of numbers, an ordered label vocabulary.  An item's own
``scale_min``/``scale_max`` take precedence over the defaults, so the
transform is always the linear map ``(v - min) / (max - min)`` and can be
inverted with :func:`denormalize_value`.
"""
from __future__ import annotations

import math
import unicodedata
from typing import Dict, Optional, Tuple

from .errors import InvalidResponseValue
from .types import Choice, Item, Numeric, RawResponseValue, Text

__all__ = [
    "RESPONSE_TYPES",
    "scale_bounds",
    "resolve_raw",
    "normalize_value",
    "denormalize_value",
    "coerce_raw",
]

_FREQUENCY = ("never", "rarely", "sometimes", "often", "always")
_INTENSITY = ("none", "a_little", "moderate", "a_lot", "extremely")

# response_type -> (default_min, default_max, label vocabulary)
RESPONSE_TYPES: Dict[str, Tuple[float, float, Dict[str, float]]] = {
    "LIKERT_5": (1.0, 5.0, {}),
    "LIKERT_7": (1.0, 7.0, {}),
    "LIKERT_10": (0.0, 10.0, {}),
    "YES_NO": (0.0, 1.0, {"yes": 1.0, "sim": 1.0, "true": 1.0, "no": 0.0, "nao": 0.0, "false": 0.0}),
    "VISUAL_SCALE": (0.0, 100.0, {}),
    "SLIDER": (0.0, 100.0, {}),
    "FREQUENCY": (0.0, 4.0, {label: float(idx) for idx, label in enumerate(_FREQUENCY)}),
    "INTENSITY": (0.0, 4.0, {label: float(idx) for idx, label in enumerate(_INTENSITY)}),
    "EMOJI": (1.0, 5.0, {}),
    "NUMERIC": (1.0, 5.0, {}),
}


def _fold(label: str) -> str:
    decomposed = unicodedata.normalize("NFKD", label.strip().lower())
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return ascii_only.replace(" ", "_").replace("-", "_")


def scale_bounds(item: Item) -> Tuple[float, float]:
    """Return the (min, max) used for ``item``; declared bounds always win."""

    return float(item.scale_min), float(item.scale_max)


def resolve_raw(item: Item, raw: RawResponseValue) -> float:
    """Turn the tagged raw value into a scale-native number."""

    lo, hi = scale_bounds(item)
    if isinstance(raw, Numeric):
        value = float(raw.value)
    elif isinstance(raw, Choice):
        value = lo + int(raw.index)
    elif isinstance(raw, Text):
        value = _resolve_text(item, raw.value)
    else:
        raise InvalidResponseValue(f"unsupported raw value {raw!r}")

    if math.isnan(value) or value < lo or value > hi:
        raise InvalidResponseValue(
            f"value {value} outside scale [{lo}, {hi}] for item {item.id}"
        )
    return value


def _resolve_text(item: Item, text: str) -> float:
    try:
        return float(text.strip().replace(",", "."))
    except ValueError:
        pass
    _, _, labels = RESPONSE_TYPES.get(item.response_type, RESPONSE_TYPES["NUMERIC"])
    key = _fold(text)
    if key in labels:
        return float(item.scale_min) + labels[key]
    if item.options:
        folded = [_fold(opt) for opt in item.options]
        if key in folded:
            return float(item.scale_min) + folded.index(key)
    raise InvalidResponseValue(f"cannot interpret {text!r} for item {item.id} ({item.response_type})")


def normalize_value(item: Item, raw: RawResponseValue) -> float:
    lo, hi = scale_bounds(item)
    value = resolve_raw(item, raw)
    return (value - lo) / (hi - lo)


def denormalize_value(item: Item, normalized: float) -> float:
    """Inverse of :func:`normalize_value` on the numeric scale."""

    lo, hi = scale_bounds(item)
    return lo + float(normalized) * (hi - lo)


def coerce_raw(value: object, kind: Optional[str] = None) -> RawResponseValue:
    """Build a tagged value from a loosely typed payload field."""

    if kind == "text":
        return Text(value=str(value))
    if kind in ("choice", "numeric"):
        try:
            if kind == "choice":
                return Choice(index=int(value))  # type: ignore[arg-type]
            return Numeric(value=float(value))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise InvalidResponseValue(f"cannot read {value!r} as {kind}") from exc
    if isinstance(value, bool):
        return Numeric(value=1.0 if value else 0.0)
    if isinstance(value, (int, float)):
        return Numeric(value=float(value))
    if isinstance(value, str):
        return Text(value=value)
    raise InvalidResponseValue(f"unsupported raw value type {type(value).__name__}")
