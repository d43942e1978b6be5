"""Drives the compute pipeline: status refresh, batch draining, run-all.

Stages are drained by calling their serverless batch endpoint with a
fixed ``limit`` until the endpoint reports nothing left (``total == 0``)
or makes no progress (count ``== 0``).  Batches are strictly sequential.
A failing batch stops that stage only; work already committed by earlier
batches stays committed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from studylab import settings
from studylab.backend.base import Backend
from studylab.errors import BackendError, RulesVersionBumpNotConfirmed
from studylab.pipeline.snapshot import (
    RESPONSES,
    fetch_snapshot,
    is_participant,
    parse_rules_version,
)
from studylab.pipeline.status import PipelineStatus, Stage, compute_status, loading_status

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class StageEndpoint:
    function: str
    count_key: str  # response field holding the per-batch count
    extra: dict[str, Any] = field(default_factory=dict)
    supports_recompute: bool = True


STAGE_ENDPOINTS: dict[Stage, StageEndpoint] = {
    Stage.TRANSCRIPTION: StageEndpoint(
        "trigger-assemblyai-transcription", "submitted", supports_recompute=False
    ),
    Stage.METRICS: StageEndpoint("compute-qualitative-metrics", "computed"),
    Stage.PASS_A: StageEndpoint("run-thematic-coding", "processed", {"passAOnly": True}),
    Stage.PASS_B: StageEndpoint("run-thematic-coding", "processed", {"passBOnly": True}),
}

ENQUEUE_FUNCTION = "enqueue-vapi-evaluations"
WORKER_FUNCTION = "worker-vapi-evaluations"


@dataclass(frozen=True)
class StageRunResult:
    stage: Stage
    processed: int
    batches: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RunAllSelection:
    metrics: bool = True
    pass_a: bool = True
    pass_b: bool = True

    def stages(self) -> list[Stage]:
        chosen = [(self.metrics, Stage.METRICS), (self.pass_a, Stage.PASS_A), (self.pass_b, Stage.PASS_B)]
        return [stage for selected, stage in chosen if selected]


@dataclass(frozen=True)
class RunEstimate:
    calls: int
    cost: float  # USD
    seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "cost": self.cost,
            "seconds": self.seconds,
            "cost_display": format_cost(self.cost),
            "time_display": format_time(self.seconds),
        }


@dataclass(frozen=True)
class RunAllResult:
    estimate: RunEstimate
    results: list[StageRunResult]
    status: PipelineStatus | None


def format_cost(dollars: float) -> str:
    if dollars == 0:
        return "Free"
    if dollars < 0.01:
        return f"{dollars * 100:.1f}¢"
    return f"${dollars:.2f}"


def format_time(seconds: float) -> str:
    if seconds < 5:
        return "< 5s"
    if seconds < 60:
        return f"~{math.ceil(seconds)}s"
    return f"~{math.ceil(seconds / 60)}min"


def estimate_run_all(status: PipelineStatus, selection: RunAllSelection) -> RunEstimate:
    """Pre-run cost and time estimate from the per-call constants."""
    metrics = status.metrics.missing if selection.metrics else 0
    pass_a = status.pass_a.needs_work if selection.pass_a else 0
    pass_b = status.pass_b.needs_work if selection.pass_b else 0
    return RunEstimate(
        calls=metrics + pass_a + pass_b,
        cost=pass_a * settings.COST_PER_CALL_PASS_A + pass_b * settings.COST_PER_CALL_PASS_B,
        seconds=(
            metrics * settings.TIME_PER_CALL_METRICS
            + pass_a * settings.TIME_PER_CALL_PASS_A
            + pass_b * settings.TIME_PER_CALL_PASS_B
        ),
    )


def bump_confirmation_message(current: int) -> str:
    return (
        f"Bump thematic coding rules version from v{current} to v{current + 1}?\n\n"
        "All existing coded calls will be marked stale and will need "
        "re-coding on the next run."
    )


class StatusMonitor:
    """Holds the latest ``PipelineStatus``; later refreshes supersede earlier ones."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend
        self._generation = 0
        self.status: PipelineStatus = loading_status()

    async def fetch_status(self) -> PipelineStatus | None:
        """Recompute status from a fresh snapshot.

        Returns ``None`` when a later call started before this one
        finished; its result is discarded.  A failed fetch leaves every
        stage ``loading`` with ``error`` set.
        """
        self._generation += 1
        generation = self._generation
        self.status = loading_status(self.status.rules_version)
        try:
            snapshot = await fetch_snapshot(self._backend)
            status = compute_status(snapshot)
        except Exception as e:  # noqa: BLE001
            logger.warning("[pipeline] fetch_status failed: %s", e)
            status = loading_status(self.status.rules_version, error=f"Failed to load compute status: {e}")

        if generation != self._generation:
            logger.debug("[pipeline] discarding superseded status (gen %d)", generation)
            return None
        self.status = status
        return status


class PipelineRunner:
    """Researcher-facing operations on the compute pipeline."""

    def __init__(self, backend: Backend, monitor: StatusMonitor | None = None) -> None:
        self._backend = backend
        self.monitor = monitor or StatusMonitor(backend)

    async def run_stage(
        self,
        stage: Stage,
        recompute: bool = False,
        on_progress: ProgressCallback | None = None,
        *,
        retry: bool = False,
        refresh: bool = True,
    ) -> StageRunResult:
        """Drain ``stage``'s batch endpoint, reporting cumulative progress."""
        if stage not in STAGE_ENDPOINTS:
            raise ValueError(f"Stage {stage.value!r} has no batch endpoint")
        endpoint = STAGE_ENDPOINTS[stage]
        limit = (
            settings.TRANSCRIPTION_BATCH_SIZE
            if stage is Stage.TRANSCRIPTION
            else settings.PIPELINE_BATCH_SIZE
        )

        processed = 0
        batches = 0
        error: str | None = None
        while True:
            body: dict[str, Any] = {"limit": limit, **endpoint.extra}
            if endpoint.supports_recompute:
                body["recompute"] = recompute if batches == 0 else False
            if stage is Stage.TRANSCRIPTION:
                body["retry"] = retry
            try:
                data = await self._backend.invoke(endpoint.function, body)
                count = int(data.get(endpoint.count_key) or 0)
                remaining = int(data.get("total") or 0)
            except BackendError as e:
                logger.warning("[pipeline] %s failed after %d batches: %s", stage.value, batches, e)
                error = str(e)
                break
            except Exception as e:  # noqa: BLE001
                # A malformed batch response fails this stage only.
                logger.exception("[pipeline] %s: unexpected batch failure", stage.value)
                error = f"{type(e).__name__}: {e}"
                break
            batches += 1
            processed += count
            if on_progress is not None:
                on_progress(processed)
            if remaining == 0 or count == 0:
                break

        logger.info("[pipeline] %s: %d processed in %d batches", stage.value, processed, batches)
        if refresh:
            await self.monitor.fetch_status()
        return StageRunResult(stage=stage, processed=processed, batches=batches, error=error)

    async def bump_rules_version(self, confirm: bool = False) -> int:
        """Increment the thematic rules version by exactly one.

        Prior codes are kept; they become stale by comparison with the
        new version.  Raises ``RulesVersionBumpNotConfirmed`` unless
        ``confirm`` is true.
        """
        current = parse_rules_version(await self._backend.get_setting(settings.RULES_VERSION_KEY))
        if not confirm:
            raise RulesVersionBumpNotConfirmed(bump_confirmation_message(current))
        new_version = current + 1
        await self._backend.set_setting(settings.RULES_VERSION_KEY, str(new_version))
        logger.info("[pipeline] rules version bumped v%d -> v%d", current, new_version)
        await self.monitor.fetch_status()
        return new_version

    async def run_all(
        self,
        selection: RunAllSelection | None = None,
        on_progress: Callable[[Stage, int], None] | None = None,
    ) -> RunAllResult:
        """Run metrics, Pass A, Pass B in order with one final refresh."""
        selection = selection or RunAllSelection()
        status = self.monitor.status
        if status.loading:
            status = await self.monitor.fetch_status() or self.monitor.status
        estimate = estimate_run_all(status, selection)
        logger.info(
            "[pipeline] run all: %d calls, est. %s / %s",
            estimate.calls, format_cost(estimate.cost), format_time(estimate.seconds),
        )

        results = []
        for stage in selection.stages():
            callback = None
            if on_progress is not None:
                callback = lambda n, s=stage: on_progress(s, n)  # noqa: E731
            results.append(await self.run_stage(stage, on_progress=callback, refresh=False))

        final = await self.monitor.fetch_status()
        return RunAllResult(estimate=estimate, results=results, status=final)

    async def enqueue_evaluations(self, include_stale: bool = False) -> dict[str, Any]:
        """Queue external evaluations for unscored (and optionally stale) calls."""
        active = await self._backend.get_setting(settings.ACTIVE_METRIC_KEY) or None
        call_ids = []
        for r in await self._backend.select(RESPONSES):
            if not is_participant(r.get("prolific_id"), r.get("call_id")):
                continue
            if r.get("vapi_total_score") is None:
                call_ids.append(r["call_id"])
            elif include_stale and active and r.get("vapi_evaluation_metric_id") != active:
                call_ids.append(r["call_id"])

        if not call_ids:
            return {"enqueued": 0, "call_ids": []}
        data = await self._backend.invoke(ENQUEUE_FUNCTION, {"callIds": call_ids})
        await self.monitor.fetch_status()
        return {"enqueued": int(data.get("enqueued", len(call_ids))), "call_ids": call_ids}

    async def run_evaluation_worker(self) -> dict[str, Any]:
        """Process one round of the evaluation queue."""
        data = await self._backend.invoke(WORKER_FUNCTION, {})
        await self.monitor.fetch_status()
        return {"message": data.get("message", "Worker completed."), **data}
