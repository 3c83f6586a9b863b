from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Literal, Union

SessionStatus = Literal["INITIAL", "IN_PROGRESS", "PAUSED", "FINALIZED", "CANCELLED"]
AlertLevel = Literal["GREEN", "YELLOW", "ORANGE", "RED"]
AlertKind = Literal["RISK_LOW", "RISK_MODERATE", "RISK_HIGH", "IMMEDIATE_CRISIS"]
AlertStatus = Literal["PENDING", "ACKNOWLEDGED", "IN_FOLLOWUP", "RESOLVED"]
Band = Literal["MINIMAL", "LEVE", "MODERATE", "MODERATELY_SEVERE", "SEVERE"]
Trend = Literal["RISING", "FALLING", "STABLE"]
Priority = Literal["HIGH", "MEDIUM", "LOW"]
ItemOrigin = Literal["questionnaire", "bank"]

ALERT_LEVELS: tuple[str, ...] = ("GREEN", "YELLOW", "ORANGE", "RED")
BANDS: tuple[str, ...] = ("MINIMAL", "LEVE", "MODERATE", "MODERATELY_SEVERE", "SEVERE")
TERMINAL_STATUSES: frozenset[str] = frozenset({"FINALIZED", "CANCELLED"})


def level_rank(level: str) -> int:
    return ALERT_LEVELS.index(level)


def band_rank(band: str) -> int:
    return BANDS.index(band)


@dataclass(frozen=True)
class Item:
    id: str; category: str
    discrimination: float = 1.0
    difficulty: float = 0.0
    scale_min: float = 1.0
    scale_max: float = 5.0
    scale_name: Optional[str] = None
    scale_item_code: Optional[str] = None
    response_type: str = "NUMERIC"
    weight: float = 1.0
    order: int = 0
    domain: Optional[str] = None
    priority: Optional[Priority] = None
    text: str = ""
    options: Optional[List[str]] = None
    origin: ItemOrigin = "questionnaire"

    def __post_init__(self) -> None:
        if not self.discrimination > 0:
            raise ValueError(f"item {self.id}: discrimination must be > 0, got {self.discrimination}")
        if not self.scale_max > self.scale_min:
            raise ValueError(f"item {self.id}: scale_max must exceed scale_min")


# ---- raw response values (tagged union) ----
@dataclass(frozen=True)
class Numeric:
    value: float
    kind: Literal["numeric"] = "numeric"


@dataclass(frozen=True)
class Text:
    value: str
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class Choice:
    index: int
    kind: Literal["choice"] = "choice"


RawResponseValue = Union[Numeric, Text, Choice]


def raw_to_dict(raw: RawResponseValue) -> Dict[str, object]:
    if isinstance(raw, Choice):
        return {"kind": "choice", "index": raw.index}
    return {"kind": raw.kind, "value": raw.value}


def raw_from_dict(d: Dict[str, object]) -> RawResponseValue:
    kind = d.get("kind")
    if kind == "choice":
        return Choice(index=int(d["index"]))
    if kind == "text":
        return Text(value=str(d["value"]))
    return Numeric(value=float(d["value"]))


@dataclass
class Session:
    id: str
    subject_id: str
    questionnaire_ref: str
    status: SessionStatus = "INITIAL"
    theta: float = 0.0
    standard_error: float = 1.0
    confidence: float = 0.0
    info_total: float = 1.0
    presented_item_ids: List[str] = field(default_factory=list)
    theta_history: List[float] = field(default_factory=list)
    adaptive: bool = True
    max_items: Optional[int] = None
    started_at: Optional[str] = None
    paused_at: Optional[str] = None
    finished_at: Optional[str] = None
    total_seconds: Optional[int] = None
    mean_response_seconds: Optional[float] = None
    reward_points: int = 0
    finalize_reason: Optional[str] = None
    version: int = 0

    def to_dict(self) -> Dict[str, object]:
        """JSON-friendly representation used for persistence."""

        return {
            "id": self.id,
            "subject_id": self.subject_id,
            "questionnaire_ref": self.questionnaire_ref,
            "status": self.status,
            "theta": self.theta,
            "standard_error": self.standard_error,
            "confidence": self.confidence,
            "info_total": self.info_total,
            "presented_item_ids": list(self.presented_item_ids),
            "theta_history": list(self.theta_history),
            "adaptive": self.adaptive,
            "max_items": self.max_items,
            "started_at": self.started_at,
            "paused_at": self.paused_at,
            "finished_at": self.finished_at,
            "total_seconds": self.total_seconds,
            "mean_response_seconds": self.mean_response_seconds,
            "reward_points": self.reward_points,
            "finalize_reason": self.finalize_reason,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, object]) -> "Session":
        return cls(**d)


@dataclass(frozen=True)
class Response:
    id: str
    session_id: str
    item_id: Optional[str]
    raw_value: RawResponseValue
    normalized_value: float
    category: str
    domain_tag: Optional[str] = None
    scale_value: Optional[float] = None
    response_time_seconds: Optional[float] = None
    order: int = 0
    timestamp: Optional[str] = None
    weight: float = 1.0
    scale_name: Optional[str] = None
    scale_item_code: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "item_id": self.item_id,
            "raw_value": raw_to_dict(self.raw_value),
            "normalized_value": self.normalized_value,
            "scale_value": self.scale_value,
            "category": self.category,
            "domain_tag": self.domain_tag,
            "response_time_seconds": self.response_time_seconds,
            "order": self.order,
            "timestamp": self.timestamp,
            "weight": self.weight,
            "scale_name": self.scale_name,
            "scale_item_code": self.scale_item_code,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, object]) -> "Response":
        data = dict(d)
        data["raw_value"] = raw_from_dict(data["raw_value"])  # type: ignore[arg-type]
        return cls(**data)


@dataclass
class CategoryScoreSummary:
    category: str
    mean: float
    min: float
    max: float
    stddev: float
    trend_direction: Optional[Trend]
    sample_count: int
    total_weight: float = 0.0


@dataclass(frozen=True)
class AffectCoordinate:
    # None marks an axis without contributing responses
    valence: Optional[float]
    arousal: Optional[float]
    valence_count: int = 0
    arousal_count: int = 0


@dataclass
class Interpretation:
    scale: str
    score: float
    band: Band
    level: AlertLevel
    description: str
    recommendations: List[str] = field(default_factory=list)
    requires_immediate_action: bool = False
    requires_alert: bool = False
    percent: Optional[int] = None
    category: Optional[str] = None


@dataclass
class Alert:
    id: str
    subject_id: str
    session_id: str
    level: AlertLevel
    kind: AlertKind
    category: str
    score: float
    recommendations: List[str] = field(default_factory=list)
    status: AlertStatus = "PENDING"
    created_at: str = ""
    updated_at: Optional[str] = None
    requires_immediate_action: bool = False
    trigger_count: int = 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "subject_id": self.subject_id,
            "session_id": self.session_id,
            "level": self.level,
            "kind": self.kind,
            "category": self.category,
            "score": self.score,
            "recommendations": list(self.recommendations),
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "requires_immediate_action": self.requires_immediate_action,
            "trigger_count": self.trigger_count,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, object]) -> "Alert":
        return cls(**d)


@dataclass
class SessionResult:
    session_id: str
    status: SessionStatus
    category_scores: Dict[str, CategoryScoreSummary]
    overall_score: Optional[float]
    affect_coordinate: AffectCoordinate
    interpretations: List[Interpretation]
    alerts: List[Alert]
    combined_level: AlertLevel = "GREEN"
    requires_immediate_action: bool = False
    emotional_state: Optional[Dict[str, object]] = None
    patterns: List[Dict[str, object]] = field(default_factory=list)
    panas: Optional[Dict[str, object]] = None
    trait: Dict[str, float] = field(default_factory=dict)
    metrics: Dict[str, object] = field(default_factory=dict)
