from __future__ import annotations
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from datetime import timedelta
import json, logging, typing as t

# ---- Engine imports ----
from affect_core.config import load_config, AUDIT_EXPORT_ENABLED
from affect_core.engine import (
    EngineContext,
    audit_events,
    change_session_state,
    get_session_result,
    start_session,
    submit_response,
)
from affect_core.errors import (
    ConcurrentModification,
    DuplicateItemPresentation,
    DuplicateResponse,
    EngineError,
    InsufficientData,
    InvalidResponseValue,
    InvalidScoreRange,
    InvalidTransition,
    NotFound,
)
from affect_core.item_bank import load_item_bank
from affect_core.normalize import coerce_raw
from affect_core.stopping import preset
from affect_core.audit_export import to_json as audit_to_json, to_csv as audit_to_csv
from .storage import default_store, utcnow_iso

log = logging.getLogger(__name__)

CFG = load_config()
CTX = EngineContext(
    bank=load_item_bank(CFG.get("BANK_PATH")),
    store=default_store(),
    stopping_rule=preset(CFG.get("STOPPING_PRESET")),
    dedup_window=timedelta(hours=float(CFG.get("ALERT_DEDUP_HOURS", 24.0))),
)

app = FastAPI(title="Affect Assessment API")

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Error mapping ----
_STATUS: list[tuple[type, int]] = [
    (NotFound, 404),
    (InvalidTransition, 409),
    (ConcurrentModification, 409),
    (DuplicateResponse, 409),
    (InsufficientData, 422),
    (InvalidScoreRange, 422),
    (InvalidResponseValue, 422),
    (DuplicateItemPresentation, 500),
]


def status_for(exc: EngineError) -> int:
    for cls, code in _STATUS:
        if isinstance(exc, cls):
            return code
    return 400


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        log.error("engine invariant violated on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": exc.message, "error": type(exc).__name__})


# ---- Schemas ----
class StartReq(BaseModel):
    questionnaire_ref: str
    subject_id: str

class AnswerReq(BaseModel):
    item_id: str
    value: bool | int | float | str
    kind: t.Literal["numeric", "text", "choice"] | None = None
    response_time_seconds: float | None = None

class StateReq(BaseModel):
    action: t.Literal["pause", "resume", "finalize", "cancel"]

# ---- Helpers ----
def _serialize_result(res: t.Any) -> dict[str, t.Any]:
    return json.loads(json.dumps(res, default=lambda o: getattr(o, "__dict__", o)))


def _serialize_item(it):
    if it is None: return None
    return {
        "id": it.id,
        "category": it.category,
        "text": it.text,
        "response_type": it.response_type,
        "scale_min": it.scale_min,
        "scale_max": it.scale_max,
        "options": it.options,
    }

# ---- Health ----
@app.get("/health")
def health():
    return {
        "status": "ok",
        "time": utcnow_iso(),
        "items": len(CTX.bank),
        "questionnaires": [q.ref for q in CTX.bank.questionnaires()],
        "stopping_preset": CTX.stopping_rule.name,
        "audit_export": AUDIT_EXPORT_ENABLED,
    }

# ---- Sessions ----
@app.post("/sessions")
def start(req: StartReq):
    res = start_session(CTX, req.questionnaire_ref, req.subject_id)
    return {
        "session_id": res.session.id,
        "session": res.session.to_dict(),
        "item": _serialize_item(res.first_item),
    }


@app.post("/sessions/{sid}/responses")
def answer(sid: str, req: AnswerReq):
    raw = coerce_raw(req.value, req.kind)
    res = submit_response(CTX, sid, req.item_id, raw, req.response_time_seconds)
    return {
        "session_id": sid,
        "theta": res.updated_theta,
        "standard_error": res.standard_error,
        "confidence": res.confidence,
        "next_item": _serialize_item(res.next_item),
        "should_finalize": res.should_finalize,
        "finalize_reason": res.finalize_reason,
        "status": res.session.status if res.session else None,
        "progress": res.progress,
    }


@app.patch("/sessions/{sid}")
def change_state(sid: str, req: StateReq):
    session = change_session_state(CTX, sid, req.action)
    return session.to_dict()


@app.get("/sessions/{sid}")
def get_session(sid: str):
    session = CTX.store.load_session(sid)
    out = session.to_dict()
    out["response_count"] = len(CTX.store.load_responses(sid))
    return out


@app.get("/sessions/{sid}/result")
def get_result(sid: str):
    return _serialize_result(get_session_result(CTX, sid))

# ---- Audit export ----
@app.get("/sessions/{sid}/audit.json")
def get_audit_json(sid: str):
    if not AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")

    payload = audit_to_json(audit_events(CTX, sid))
    return {"session_id": sid, **payload}


@app.get("/sessions/{sid}/audit.csv")
def get_audit_csv(sid: str):
    if not AUDIT_EXPORT_ENABLED:
        raise HTTPException(404, "audit export disabled")

    body = audit_to_csv(audit_events(CTX, sid))
    filename = f"{sid}_audit.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )

# ---- Alerts ----
@app.get("/subjects/{subject_id}/alerts")
def list_alerts(subject_id: str, status: str | None = None):
    alerts = CTX.store.load_alerts(subject_id)
    if status:
        alerts = [a for a in alerts if a.status == status.upper()]
    return {"subject_id": subject_id, "alerts": [a.to_dict() for a in alerts]}
