"""FastAPI backend for the researcher dashboard."""

from __future__ import annotations

import logging
import os
from typing import Any, Literal

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from studylab.backend.client import get_backend
from studylab.backlog import BacklogService
from studylab.errors import (
    BackendError,
    FormalityError,
    InvalidBacklogStatus,
    NotFoundError,
    RulesVersionBumpNotConfirmed,
)
from studylab.formality.breakdown import build_view, explain_calculation
from studylab.formality.scorer import score_transcript
from studylab.formality.store import FormalityStore
from studylab.formality.tagger import tagger_info
from studylab.logging_config import setup_logging
from studylab.pipeline.runner import PipelineRunner, RunAllSelection, StatusMonitor
from studylab.pipeline.status import Stage

load_dotenv()
setup_logging()

# Hosting dashboards sometimes store env values with trailing whitespace after copy/paste.
for key in ("OPENAI_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
    value = os.environ.get(key)
    if value:
        os.environ[key] = value.strip()

logger = logging.getLogger(__name__)

app = FastAPI(title="Voice Study Researcher API", version="0.1.0")
MAX_TRANSCRIPT_CHARS = 200_000

# One monitor per process so a newer refresh supersedes an older one.
_monitors: dict[int, StatusMonitor] = {}


def _runner() -> PipelineRunner:
    backend = get_backend()
    monitor = _monitors.get(id(backend))
    if monitor is None:
        _monitors.clear()
        monitor = _monitors[id(backend)] = StatusMonitor(backend)
    return PipelineRunner(backend, monitor)


# ── Request logging middleware ────────────────────────────────────────────

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with method, path, and response time."""
    import time
    import uuid

    request_id = uuid.uuid4().hex[:8]
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s -> %s (%.0fms) [rid=%s]",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request_id,
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(NotFoundError)
async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse({"detail": str(exc)}, status_code=404)


@app.exception_handler(BackendError)
async def backend_failed(request: Request, exc: BackendError) -> JSONResponse:
    logger.warning("Backend call failed on %s: %s", request.url.path, exc)
    return JSONResponse({"detail": str(exc)}, status_code=502)


# ── Health check ──────────────────────────────────────────────────────────

@app.get("/health")
def health_check() -> JSONResponse:
    """Lightweight health check for deployment platforms."""
    return JSONResponse({"status": "ok"})


# ── Formality scoring ─────────────────────────────────────────────────────

class ScoreRequest(BaseModel):
    transcript: str
    ai_only_mode: bool = False
    per_turn_mode: bool = False
    call_id: str | None = None
    participant_id: str | None = None
    batch_name: str | None = None
    notes: str | None = None
    save: bool = False


@app.post("/api/formality/score")
async def score(req: ScoreRequest) -> dict[str, Any]:
    """Score a transcript; optionally persist the calculation."""
    if len(req.transcript) > MAX_TRANSCRIPT_CHARS:
        raise HTTPException(
            status_code=400,
            detail=f"Transcript too long. Maximum length is {MAX_TRANSCRIPT_CHARS} characters.",
        )
    try:
        calc = score_transcript(
            req.transcript,
            ai_only_mode=req.ai_only_mode,
            per_turn_mode=req.per_turn_mode,
            call_id=req.call_id,
            participant_id=req.participant_id,
            batch_name=req.batch_name,
            notes=req.notes,
        )
    except FormalityError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    if req.save:
        calc = await FormalityStore(get_backend()).save(calc)
    return {**calc.to_row(), "explanation": explain_calculation(calc)}


@app.get("/api/formality/tagger")
def tagger() -> dict[str, Any]:
    return tagger_info()


@app.get("/api/formality")
async def list_calculations(call_id: str | None = None) -> list[dict[str, Any]]:
    calcs = await FormalityStore(get_backend()).list(call_id)
    return [c.to_row() for c in calcs]


@app.get("/api/formality/{calc_id}")
async def get_calculation(calc_id: str) -> dict[str, Any]:
    calc = await FormalityStore(get_backend()).get(calc_id)
    return calc.to_row()


@app.get("/api/formality/{calc_id}/breakdown")
async def breakdown(calc_id: str, hide: list[str] | None = Query(None)) -> dict[str, Any]:
    """Coloured-token view and insights for one stored calculation."""
    calc = await FormalityStore(get_backend()).get(calc_id)
    view = build_view(calc)
    if hide:
        view = build_view(calc, view.visible - set(hide))
    return {
        "calculation": calc.to_row(),
        "legacy": view.legacy,
        "tokens": [t.to_dict() for t in view.tokens],
        "raw_text": view.raw_text,
        "insights": [{"message": i.message, "kind": i.kind} for i in view.insights],
        "visible": sorted(view.visible),
        "explanation": explain_calculation(calc),
    }


# ── Compute pipeline ──────────────────────────────────────────────────────

class RunStageRequest(BaseModel):
    recompute: bool = False
    retry: bool = False


class RunAllRequest(BaseModel):
    metrics: bool = True
    pass_a: bool = True
    pass_b: bool = True


class BumpRequest(BaseModel):
    confirm: bool = False


class EnqueueRequest(BaseModel):
    include_stale: bool = False


@app.get("/api/compute/status")
async def compute_status() -> dict[str, Any]:
    runner = _runner()
    status = await runner.monitor.fetch_status()
    return (status or runner.monitor.status).to_dict()


@app.post("/api/compute/run/{stage}")
async def run_stage(stage: Stage, req: RunStageRequest | None = None) -> dict[str, Any]:
    """Drain one stage's batch endpoint until it is empty or fails."""
    req = req or RunStageRequest()
    if stage is Stage.EVALUATION:
        raise HTTPException(
            status_code=400,
            detail="Evaluation runs through /api/compute/evaluations/enqueue and /worker.",
        )
    runner = _runner()
    result = await runner.run_stage(stage, recompute=req.recompute, retry=req.retry)
    return {
        "stage": result.stage.value,
        "processed": result.processed,
        "batches": result.batches,
        "error": result.error,
        "status": runner.monitor.status.to_dict(),
    }


@app.post("/api/compute/run-all")
async def run_all(req: RunAllRequest | None = None) -> dict[str, Any]:
    req = req or RunAllRequest()
    result = await _runner().run_all(RunAllSelection(req.metrics, req.pass_a, req.pass_b))
    return {
        "estimate": result.estimate.to_dict(),
        "results": [
            {"stage": r.stage.value, "processed": r.processed, "batches": r.batches, "error": r.error}
            for r in result.results
        ],
        "status": result.status.to_dict() if result.status else None,
    }


@app.post("/api/compute/bump")
async def bump_rules_version(req: BumpRequest) -> dict[str, Any]:
    """Bump the thematic rules version; requires ``confirm: true``."""
    try:
        version = await _runner().bump_rules_version(confirm=req.confirm)
    except RulesVersionBumpNotConfirmed as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    return {"rules_version": version}


@app.post("/api/compute/evaluations/enqueue")
async def enqueue_evaluations(req: EnqueueRequest | None = None) -> dict[str, Any]:
    req = req or EnqueueRequest()
    return await _runner().enqueue_evaluations(include_stale=req.include_stale)


@app.post("/api/compute/evaluations/worker")
async def evaluation_worker() -> dict[str, Any]:
    return await _runner().run_evaluation_worker()


# ── Researcher backlog ────────────────────────────────────────────────────

class CreateItemRequest(BaseModel):
    item_type: Literal["error", "feature"]
    title: str = Field(..., min_length=1, max_length=200)
    status: str | None = None
    priority: Literal["low", "medium", "high", "critical"] = "medium"
    details: str = ""
    linked_response_id: str | None = None
    created_by: str = ""


class StatusRequest(BaseModel):
    status: str


class ReorderRequest(BaseModel):
    ids: list[str]


class CommentRequest(BaseModel):
    body: str
    author: str = ""


class LinkRequest(BaseModel):
    url: str = Field(..., min_length=1)
    label: str = ""


@app.post("/api/backlog")
async def create_item(req: CreateItemRequest) -> dict[str, Any]:
    try:
        item = await BacklogService(get_backend()).create(**req.model_dump())
    except InvalidBacklogStatus as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return item.to_dict()


@app.get("/api/backlog/{item_type}/{status}")
async def list_lane(item_type: str, status: str) -> list[dict[str, Any]]:
    try:
        items = await BacklogService(get_backend()).list_lane(item_type, status)
    except InvalidBacklogStatus as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return [i.to_dict() for i in items]


@app.get("/api/backlog/{item_id}")
async def get_item(item_id: str) -> dict[str, Any]:
    item = await BacklogService(get_backend()).get(item_id)
    return item.to_dict()


@app.patch("/api/backlog/{item_id}/status")
async def update_status(item_id: str, req: StatusRequest) -> dict[str, Any]:
    try:
        item = await BacklogService(get_backend()).update_status(item_id, req.status)
    except InvalidBacklogStatus as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return item.to_dict()


@app.post("/api/backlog/reorder")
async def reorder(req: ReorderRequest) -> dict[str, Any]:
    try:
        await BacklogService(get_backend()).reorder(req.ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return {"reordered": len(req.ids)}


@app.post("/api/backlog/{item_id}/comments")
async def add_comment(item_id: str, req: CommentRequest) -> dict[str, Any]:
    try:
        return await BacklogService(get_backend()).add_comment(item_id, req.body, req.author)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@app.post("/api/backlog/{item_id}/links")
async def add_link(item_id: str, req: LinkRequest) -> dict[str, Any]:
    return await BacklogService(get_backend()).add_link(item_id, req.url, req.label)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    print(f"Starting researcher API on http://localhost:{port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
