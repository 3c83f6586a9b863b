from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


# trait estimation
THETA_START: float = 0.0
SE_START: float = 1.0
IRT_ETA: float = 1.0
IRT_MAX_STEP: float = 0.5
EAP_PRIOR_SD: float = 1.5
EAP_POINTS: int = 21
EAP_BOUND: float = 4.0

# stopping
MIN_RESPONSES: int = 5
SEM_TARGET: float = 0.30
ADAPTIVE_MAX_FRACTION: float = 0.6
STOPPING_PRESET: str = "DEFAULT"

# selection
INFO_FLOOR_EARLY: float = 0.01
INFO_FLOOR: float = 0.05
INFO_FLOOR_EARLY_RESPONSES: int = 3
PRIORITY_WEIGHTS: dict[str, float] = {"HIGH": 1.5, "MEDIUM": 1.0, "LOW": 0.7}
MAX_PER_CATEGORY: int = 5
CATEGORY_PENALTY: float = 0.7

# scoring
TREND_THRESHOLD: float = 0.1
VALENCE_CATEGORIES: tuple[str, ...] = ("WELLBEING", "MOOD", "SATISFACTION", "SELF_ESTEEM")
AROUSAL_CATEGORIES: tuple[str, ...] = ("ENERGY", "ANXIETY", "STRESS", "EXCITEMENT")
INVERTED_AROUSAL: tuple[str, ...] = ("ANXIETY", "STRESS")

# alerts / gamification
ALERT_DEDUP_HOURS: float = 24.0
REWARD_POINTS_PER_RESPONSE: int = 10
CLINICAL_ANALYSIS_MIN_RESPONSES: int = 5

AUDIT_EXPORT_ENABLED: bool = True

DEBUG_TRACE: bool = False
TRACE_FIELDS: tuple[str, ...] = (
    "session_id",
    "item_id",
    "category",
    "a",
    "b",
    "normalized_value",
    "theta_before",
    "theta_after",
    "se_after",
)
# // env overrides for staging/ops; defaults mirror the validated protocol.
SEM_TARGET = _env_float("SEM_TARGET", SEM_TARGET)
MIN_RESPONSES = _env_int("MIN_RESPONSES", MIN_RESPONSES)
ADAPTIVE_MAX_FRACTION = _env_float("ADAPTIVE_MAX_FRACTION", ADAPTIVE_MAX_FRACTION)
TREND_THRESHOLD = _env_float("TREND_THRESHOLD", TREND_THRESHOLD)
ALERT_DEDUP_HOURS = _env_float("ALERT_DEDUP_HOURS", ALERT_DEDUP_HOURS)
REWARD_POINTS_PER_RESPONSE = _env_int("REWARD_POINTS_PER_RESPONSE", REWARD_POINTS_PER_RESPONSE)
STOPPING_PRESET = os.getenv("STOPPING_PRESET", STOPPING_PRESET).strip().upper() or "DEFAULT"
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)
AUDIT_EXPORT_ENABLED = _env_bool("AUDIT_EXPORT_ENABLED", AUDIT_EXPORT_ENABLED)


def load_config() -> dict:
    cfg: dict = {}
    p = pathlib.Path(os.getenv("AFFECT_CONFIG", "config.json"))
    if p.exists():
        try:
            cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            cfg = {}
    e = os.environ
    if e.get("DATA_DIR"): cfg["DATA_DIR"] = e.get("DATA_DIR")
    if e.get("BANK_PATH"): cfg["BANK_PATH"] = e.get("BANK_PATH")
    if e.get("STOPPING_PRESET"): cfg["STOPPING_PRESET"] = STOPPING_PRESET
    cfg.setdefault("STOPPING_PRESET", STOPPING_PRESET)
    cfg.setdefault("ALERT_DEDUP_HOURS", ALERT_DEDUP_HOURS)
    return cfg
