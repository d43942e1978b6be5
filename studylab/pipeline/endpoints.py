"""Local stand-ins for the serverless batch endpoints.

Only the stages computed in-process are served; transcription and the
external evaluation queue need their hosted services and report nothing
to do.
"""

from __future__ import annotations

from typing import Any

from studylab import settings
from studylab.backend.local import LocalBackend
from studylab.pipeline.metrics import compute_metrics_batch
from studylab.pipeline.thematic import run_thematic_batch

# Upper bound enforced by the hosted thematic endpoint.
MAX_THEMATIC_LIMIT = 20


def _limit(body: dict[str, Any], cap: int | None = None) -> int:
    limit = body.get("limit")
    if not isinstance(limit, int) or isinstance(limit, bool):
        limit = settings.PIPELINE_BATCH_SIZE
    return min(limit, cap) if cap else limit


def register_local_functions(backend: LocalBackend) -> None:
    async def metrics(body: dict[str, Any]) -> dict[str, Any]:
        return await compute_metrics_batch(
            backend, _limit(body), recompute=body.get("recompute") is True
        )

    async def thematic(body: dict[str, Any]) -> dict[str, Any]:
        return await run_thematic_batch(
            backend,
            _limit(body, MAX_THEMATIC_LIMIT),
            recompute=body.get("recompute") is True,
            pass_a_only=body.get("passAOnly") is True,
            pass_b_only=body.get("passBOnly") is True,
        )

    def unavailable(body: dict[str, Any]) -> dict[str, Any]:
        return {"submitted": 0, "enqueued": 0, "total": 0, "message": "Not available locally"}

    backend.register_function("compute-qualitative-metrics", metrics)
    backend.register_function("run-thematic-coding", thematic)
    for name in (
        "trigger-assemblyai-transcription",
        "enqueue-vapi-evaluations",
        "worker-vapi-evaluations",
    ):
        backend.register_function(name, unavailable)
