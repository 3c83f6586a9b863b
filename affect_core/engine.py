# affect_core/engine.py
from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Protocol
import copy, logging, threading, uuid

from .types import Item, Response, Session, SessionResult, Alert, RawResponseValue, Numeric, Text, Choice
from .item_bank import ItemBank
from .normalize import coerce_raw, normalize_value, resolve_raw
from .errors import (
    ConcurrentModification,
    DuplicateItemPresentation,
    DuplicateResponse,
    InsufficientData,
    ItemNotFound,
    SessionNotActive,
    SessionNotFound,
)
from .config import (
    ALERT_DEDUP_HOURS,
    CLINICAL_ANALYSIS_MIN_RESPONSES,
    DEBUG_TRACE,
    STOPPING_PRESET,
    TRACE_FIELDS,
)
from .selector import select_next, unpresented
from .stopping import StoppingRule, evaluate, max_items_for, preset, progress_metrics
from .scoring import category_scores, overall_score, session_metrics
from .affect import affect_coordinate, nearest_state, panas_scores
from .clinical import (
    SCALES,
    SELF_HARM_ITEM,
    combine_interpretations,
    interpret_category,
    interpret_scale_total,
    scale_totals,
)
from .patterns import detect_co_occurrences, series_patterns
from .alerts import alerts_for
from . import irt, lifecycle


log = logging.getLogger(__name__)


def _emit_trace(**values: object) -> None:
    if not DEBUG_TRACE:
        return
    ordered = []
    for key in TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(str(val) for val in ordered))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(Protocol):
    """Persistence collaborator consumed by the engine."""

    def load_session(self, session_id: str) -> Session: ...
    def save_session(self, session: Session) -> Session: ...
    def append_response(self, session_id: str, response: Response) -> Response: ...
    def load_responses(self, session_id: str) -> List[Response]: ...
    def upsert_alert(self, alert: Alert) -> Alert: ...
    def load_alerts(self, subject_id: str) -> List[Alert]: ...
    def append_event(self, session_id: str, event: Dict[str, object]) -> None: ...
    def load_events(self, session_id: str) -> List[Dict[str, object]]: ...


class MemoryStore:
    """In-process store with the same optimistic-version contract as the JSON store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}
        self._responses: Dict[str, List[Response]] = {}
        self._alerts: Dict[str, Alert] = {}
        self._events: Dict[str, List[Dict[str, object]]] = {}

    def load_session(self, session_id: str) -> Session:
        with self._lock:
            s = self._sessions.get(session_id)
            if s is None:
                raise SessionNotFound(session_id)
            return copy.deepcopy(s)

    def save_session(self, session: Session) -> Session:
        with self._lock:
            stored = self._sessions.get(session.id)
            actual = stored.version if stored is not None else None
            if (stored is None and session.version != 0) or (stored is not None and stored.version != session.version):
                raise ConcurrentModification(session.id, session.version, actual)
            saved = replace(session, version=session.version + 1,
                            presented_item_ids=list(session.presented_item_ids),
                            theta_history=list(session.theta_history))
            self._sessions[session.id] = saved
            return copy.deepcopy(saved)

    def append_response(self, session_id: str, response: Response) -> Response:
        with self._lock:
            self._responses.setdefault(session_id, []).append(response)
            return response

    def load_responses(self, session_id: str) -> List[Response]:
        with self._lock:
            return sorted(self._responses.get(session_id, []), key=lambda r: r.order)

    def upsert_alert(self, alert: Alert) -> Alert:
        with self._lock:
            self._alerts[alert.id] = copy.deepcopy(alert)
            return alert

    def load_alerts(self, subject_id: str) -> List[Alert]:
        with self._lock:
            return [copy.deepcopy(a) for a in self._alerts.values() if a.subject_id == subject_id]

    def append_event(self, session_id: str, event: Dict[str, object]) -> None:
        with self._lock:
            self._events.setdefault(session_id, []).append(dict(event))

    def load_events(self, session_id: str) -> List[Dict[str, object]]:
        with self._lock:
            return [dict(e) for e in self._events.get(session_id, [])]


@dataclass
class EngineContext:
    """Everything an engine call needs; built once by the hosting application."""

    bank: ItemBank
    store: SessionStore
    clock: Callable[[], datetime] = utcnow
    stopping_rule: StoppingRule = field(default_factory=lambda: preset(STOPPING_PRESET))
    dedup_window: timedelta = field(default_factory=lambda: timedelta(hours=ALERT_DEDUP_HOURS))
    auto_finalize: bool = True


@dataclass
class StartResult:
    session: Session
    first_item: Optional[Item]


@dataclass
class SubmitResult:
    updated_theta: float
    confidence: float
    next_item: Optional[Item]
    should_finalize: bool
    finalize_reason: Optional[str]
    standard_error: float = 1.0
    session: Optional[Session] = None
    response: Optional[Response] = None
    progress: Dict[str, object] = field(default_factory=dict)


def _answered_categories(responses: List[Response]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for r in responses:
        out[r.category] = out.get(r.category, 0) + 1
    return out


def _elapsed(session: Session, now: datetime) -> Optional[float]:
    if not session.started_at:
        return None
    return (now - datetime.fromisoformat(session.started_at)).total_seconds()


def _as_raw(value: object) -> RawResponseValue:
    if isinstance(value, (Numeric, Text, Choice)):
        return value
    return coerce_raw(value)


def start_session(ctx: EngineContext, questionnaire_ref: str, subject_id: str) -> StartResult:
    q = ctx.bank.get_questionnaire(questionnaire_ref)
    items = ctx.bank.get_active_items(questionnaire_ref)
    if not items:
        raise InsufficientData(f"questionnaire {questionnaire_ref} items")

    now = ctx.clock()
    session = Session(
        id=str(uuid.uuid4()),
        subject_id=subject_id,
        questionnaire_ref=questionnaire_ref,
        adaptive=q.adaptive,
        max_items=max_items_for(len(items), q.adaptive),
    )
    session = lifecycle.start(session, now)
    first = select_next(session.theta, items, adaptive=q.adaptive)
    if first is not None:
        session.presented_item_ids.append(first.id)
    saved = ctx.store.save_session(session)
    log.info(
        "session started id=%s subject=%s questionnaire=%s adaptive=%s max_items=%s",
        saved.id, subject_id, questionnaire_ref, q.adaptive, saved.max_items,
    )
    return StartResult(session=saved, first_item=first)


def submit_response(
    ctx: EngineContext,
    session_id: str,
    item_id: str,
    raw_value: object,
    response_time_seconds: Optional[float] = None,
) -> SubmitResult:
    """Record one answer, re-estimate the trait and choose what comes next.

    The session snapshot is written once, before the response is appended,
    so a ``ConcurrentModification`` leaves nothing behind.  When a stopping
    criterion fires and ``ctx.auto_finalize`` is set, the same write closes
    the session and the clinical pass runs afterwards.
    """
    session = ctx.store.load_session(session_id)
    if session.status != "IN_PROGRESS":
        raise SessionNotActive(session.status)

    active = _active_items(ctx, session)
    item = active.get(item_id)
    if item is None:
        raise ItemNotFound(item_id)
    responses = ctx.store.load_responses(session_id)
    if any(r.item_id == item.id for r in responses):
        raise DuplicateResponse(item.id)

    raw = _as_raw(raw_value)
    normalized = normalize_value(item, raw)
    scale_value = resolve_raw(item, raw)
    now = ctx.clock()

    theta_before = session.theta
    est = irt.update(
        session.theta,
        session.standard_error,
        [irt.Observation(item.discrimination, item.difficulty, normalized)],
        session.confidence,
    )

    response = Response(
        id=str(uuid.uuid4()),
        session_id=session_id,
        item_id=item.id,
        raw_value=raw,
        normalized_value=normalized,
        scale_value=scale_value,
        category=item.category,
        domain_tag=item.domain,
        response_time_seconds=response_time_seconds,
        order=len(responses) + 1,
        timestamp=now.isoformat(),
        weight=item.weight,
        scale_name=item.scale_name,
        scale_item_code=item.scale_item_code,
    )
    all_responses = responses + [response]

    presented = list(session.presented_item_ids)
    if item.id not in presented:
        presented.append(item.id)
    answered_ids = {r.item_id for r in all_responses}
    pool = unpresented(list(active.values()), presented)
    nxt = select_next(
        est.theta,
        [it for it in pool if it.id not in answered_ids],
        adaptive=session.adaptive,
        answered_categories=_answered_categories(all_responses),
        response_count=len(all_responses),
    )

    history = list(session.theta_history) + [est.theta]
    decision = evaluate(
        len(all_responses),
        est.sem,
        presented_count=len(presented),
        max_items=session.max_items,
        next_available=nxt is not None,
        rule=ctx.stopping_rule,
        elapsed_seconds=_elapsed(session, now),
        theta_history=history,
    )

    if not decision.should_stop and nxt is not None:
        if nxt.id in presented:
            raise DuplicateItemPresentation(nxt.id)
        presented.append(nxt.id)

    updated = replace(
        session,
        theta=est.theta,
        standard_error=est.sem,
        confidence=est.confidence,
        info_total=est.info_total,
        theta_history=history,
        presented_item_ids=presented,
    )
    finalized = False
    if decision.should_stop:
        updated = replace(updated, finalize_reason=decision.reason)
        if ctx.auto_finalize:
            updated = lifecycle.finalize(
                updated, now, [r.response_time_seconds for r in all_responses], reason=decision.reason
            )
            finalized = True

    saved = ctx.store.save_session(updated)
    ctx.store.append_response(session_id, response)

    log.debug(
        "irt_update session=%s item=%s a=%.2f b=%.2f y=%.3f theta=%.4f->%.4f se=%.4f conf=%.4f",
        session_id, item.id, item.discrimination, item.difficulty, normalized,
        theta_before, est.theta, est.sem, est.confidence,
    )
    _emit_trace(
        session_id=session_id,
        item_id=item.id,
        category=item.category,
        a=item.discrimination,
        b=item.difficulty,
        normalized_value=round(normalized, 4),
        theta_before=round(theta_before, 4),
        theta_after=round(est.theta, 4),
        se_after=round(est.sem, 4),
    )
    ctx.store.append_event(session_id, {
        "t": now.isoformat(),
        "session_id": session_id,
        "item_id": item.id,
        "category": item.category,
        "a": item.discrimination,
        "b": item.difficulty,
        "raw_value": scale_value,
        "normalized_value": normalized,
        "theta_before": theta_before,
        "theta_after": est.theta,
        "se_after": est.sem,
        "latency_ms": int(round(response_time_seconds * 1000.0)) if response_time_seconds is not None else 0,
    })

    if finalized:
        log.info("session finalized id=%s reason=%s responses=%d", session_id, decision.reason, len(all_responses))
        _run_clinical_pass(ctx, saved, all_responses)
    elif item.scale_item_code == SELF_HARM_ITEM and scale_value > 0:
        _raise_self_harm_alert(ctx, saved, all_responses)

    return SubmitResult(
        updated_theta=est.theta,
        confidence=est.confidence,
        next_item=None if decision.should_stop else nxt,
        should_finalize=decision.should_stop,
        finalize_reason=decision.reason,
        standard_error=est.sem,
        session=saved,
        response=response,
        progress=progress_metrics(len(all_responses), est.sem, saved.max_items, ctx.stopping_rule),
    )


def change_session_state(ctx: EngineContext, session_id: str, action: str) -> Session:
    session = ctx.store.load_session(session_id)
    responses = ctx.store.load_responses(session_id) if action == "finalize" else []
    updated = lifecycle.apply_action(
        session, action, ctx.clock(), [r.response_time_seconds for r in responses]
    )
    saved = ctx.store.save_session(updated)
    log.info("session %s id=%s %s->%s", action, session_id, session.status, saved.status)
    if saved.status == "FINALIZED":
        _run_clinical_pass(ctx, saved, responses)
    return saved


def _active_items(ctx: EngineContext, session: Session) -> Dict[str, Item]:
    return {it.id: it for it in ctx.bank.get_active_items(session.questionnaire_ref)}


def _interpretations(responses: List[Response], summaries) -> list:
    out = []
    totals = scale_totals(responses)
    for scale in sorted(totals):
        interp = interpret_scale_total(totals[scale])
        if interp is not None:
            out.append(interp)
    if len(responses) < CLINICAL_ANALYSIS_MIN_RESPONSES:
        return out
    covered = {SCALES[s][3] for s in totals}
    for category in sorted(summaries):
        if category in covered:
            continue
        interp = interpret_category(summaries[category])
        if interp is not None:
            out.append(interp)
    return out


def _run_clinical_pass(ctx: EngineContext, session: Session, responses: List[Response]) -> List[Alert]:
    summaries = category_scores(responses)
    interps = _interpretations(responses, summaries)
    existing = ctx.store.load_alerts(session.subject_id)
    touched = alerts_for(existing, interps, session.subject_id, session.id, ctx.clock(), ctx.dedup_window)
    return [ctx.store.upsert_alert(a) for a in touched]


def _raise_self_harm_alert(ctx: EngineContext, session: Session, responses: List[Response]) -> List[Alert]:
    phq = scale_totals(responses).get("PHQ-9")
    interp = interpret_scale_total(phq) if phq is not None else None
    if interp is None:
        return []
    log.warning("self-harm item endorsed session=%s subject=%s", session.id, session.subject_id)
    existing = ctx.store.load_alerts(session.subject_id)
    touched = alerts_for(existing, [interp], session.subject_id, session.id, ctx.clock(), ctx.dedup_window)
    return [ctx.store.upsert_alert(a) for a in touched]


def get_session_result(ctx: EngineContext, session_id: str) -> SessionResult:
    session = ctx.store.load_session(session_id)
    responses = ctx.store.load_responses(session_id)
    summaries = category_scores(responses)
    coord = affect_coordinate(responses)
    scoring_open = session.status != "CANCELLED"

    interps = _interpretations(responses, summaries) if scoring_open else []
    combined = combine_interpretations(interps)
    alerts = [a for a in ctx.store.load_alerts(session.subject_id) if a.session_id == session_id]

    patterns = detect_co_occurrences(scale_totals(responses)) if scoring_open else []
    series: Dict[str, List[float]] = {}
    for r in responses:
        series.setdefault(r.category, []).append(r.normalized_value)
    patterns += series_patterns(series)

    active = _active_items(ctx, session)
    obs = []
    for r in responses:
        it = active.get(r.item_id)
        if it is not None:
            obs.append(irt.Observation(it.discrimination, it.difficulty, r.normalized_value))
    eap_theta, eap_sd = irt.eap_estimate(obs)

    metrics = session_metrics(responses, session.started_at, session.finished_at)
    metrics.update(progress_metrics(len(responses), session.standard_error, session.max_items, ctx.stopping_rule))
    metrics["reward_points"] = session.reward_points
    metrics["finalize_reason"] = session.finalize_reason

    return SessionResult(
        session_id=session_id,
        status=session.status,
        category_scores=summaries,
        overall_score=overall_score(summaries),
        affect_coordinate=coord,
        interpretations=interps,
        alerts=alerts,
        combined_level=combined.level,  # type: ignore[arg-type]
        requires_immediate_action=combined.requires_immediate_action,
        emotional_state=nearest_state(coord),
        patterns=patterns,
        panas=panas_scores(responses),
        trait={
            "theta": session.theta,
            "standard_error": session.standard_error,
            "confidence": session.confidence,
            "eap_theta": round(eap_theta, 4),
            "eap_sd": round(eap_sd, 4),
        },
        metrics=metrics,
    )


def audit_events(ctx: EngineContext, session_id: str) -> List[Dict[str, object]]:
    ctx.store.load_session(session_id)
    return ctx.store.load_events(session_id)


def _dev_check_flow() -> None:
    """Developer-only walk through a full PHQ-9 session on the bundled bank."""

    from .item_bank import load_item_bank

    ctx = EngineContext(bank=load_item_bank(), store=MemoryStore())
    started = start_session(ctx, "phq-9", "dev-subject")
    item = started.first_item
    answers = [2, 2, 1, 2, 1, 1, 2, 1, 0]
    print("[dev] phq-9 walk:")
    for idx, value in enumerate(answers, 1):
        assert item is not None, "pool ended before the last answer"
        res = submit_response(ctx, started.session.id, item.id, value, 4.0)
        print(f"  step {idx:02d} {item.id} y={value} theta={res.updated_theta:+.4f} se={res.standard_error:.4f}")
        item = res.next_item
    assert res.finalize_reason == "POOL_EXHAUSTED", res.finalize_reason

    result = get_session_result(ctx, started.session.id)
    for interp in result.interpretations:
        print(f"  {interp.scale}: {interp.score:g} {interp.band}/{interp.level}")
    print(f"  alerts={len(result.alerts)} combined={result.combined_level}")


if __name__ == "__main__":  # pragma: no cover - developer diagnostics only
    logging.basicConfig(level=logging.DEBUG)
    _dev_check_flow()
