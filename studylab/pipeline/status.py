"""Per-stage missing / stale / fresh buckets and traffic lights.

``compute_status`` is a pure function of a ``PipelineSnapshot``.  For
every stage ``fresh + missing + stale == total`` holds, including for
the empty snapshot (all zero, every light green except external
evaluation, which is yellow until a metric is activated).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

from studylab.pipeline.snapshot import PipelineSnapshot


class Stage(str, Enum):
    TRANSCRIPTION = "transcription"
    METRICS = "metrics"
    PASS_A = "pass_a"
    PASS_B = "pass_b"
    EVALUATION = "evaluation"


class Light(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    LOADING = "loading"


@dataclass(frozen=True)
class StageStatus:
    total: int = 0
    missing: int = 0
    stale: int = 0
    fresh: int = 0
    light: Light = Light.LOADING

    @property
    def needs_work(self) -> int:
        return self.missing + self.stale

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["light"] = self.light.value
        return data


@dataclass(frozen=True)
class TranscriptionStatus(StageStatus):
    completed: int = 0
    in_progress: int = 0
    error: int = 0


@dataclass(frozen=True)
class EvaluationStatus(StageStatus):
    pending: int = 0
    running: int = 0
    failed: int = 0
    active_metric_id: str | None = None


@dataclass(frozen=True)
class PipelineStatus:
    rules_version: int
    transcription: TranscriptionStatus
    metrics: StageStatus
    pass_a: StageStatus
    pass_b: StageStatus
    evaluation: EvaluationStatus
    error: str | None = None

    def stage(self, stage: Stage) -> StageStatus:
        return getattr(self, stage.value)

    @property
    def loading(self) -> bool:
        return self.transcription.light is Light.LOADING

    def to_dict(self) -> dict[str, Any]:
        return {
            "rules_version": self.rules_version,
            "error": self.error,
            **{s.value: self.stage(s).to_dict() for s in Stage},
        }


def loading_status(rules_version: int = 1, error: str | None = None) -> PipelineStatus:
    """Indeterminate status shown while fetching or after a failed fetch."""
    return PipelineStatus(
        rules_version=rules_version,
        transcription=TranscriptionStatus(),
        metrics=StageStatus(),
        pass_a=StageStatus(),
        pass_b=StageStatus(),
        evaluation=EvaluationStatus(),
        error=error,
    )


def _versioned_light(missing: int, stale: int) -> Light:
    if stale:
        return Light.RED
    return Light.YELLOW if missing else Light.GREEN


def _transcription(snapshot: PipelineSnapshot) -> tuple[TranscriptionStatus, frozenset[str]]:
    """Transcription buckets.

    ``fresh`` counts usable transcripts (completed with utterances) and
    ``missing`` calls never submitted.  Submitted calls without a usable
    transcript yet (in progress, errored, or completed empty) are ``stale``.
    """
    participants = snapshot.participant_call_ids
    rows = [r for r in snapshot.transcriptions.values() if r.call_id in participants]
    completed = frozenset(r.call_id for r in rows if r.status == "completed" and r.has_utterances)
    in_progress = sum(1 for r in rows if r.status in ("submitted", "processing"))
    errors = sum(1 for r in rows if r.status == "error")
    total = len(participants)
    missing = sum(1 for c in participants if c not in snapshot.transcriptions)

    if errors:
        light = Light.RED
    elif missing + in_progress:
        light = Light.YELLOW
    else:
        light = Light.GREEN
    status = TranscriptionStatus(
        total=total,
        missing=missing,
        stale=total - missing - len(completed),
        fresh=len(completed),
        light=light,
        completed=len(completed),
        in_progress=in_progress,
        error=errors,
    )
    return status, completed


def _metrics(snapshot: PipelineSnapshot, transcribed: frozenset[str]) -> StageStatus:
    missing = sum(1 for c in transcribed if c not in snapshot.metric_call_ids)
    return StageStatus(
        total=len(transcribed),
        missing=missing,
        stale=0,
        fresh=len(transcribed) - missing,
        light=Light.YELLOW if missing else Light.GREEN,
    )


def _pass_a(snapshot: PipelineSnapshot, transcribed: frozenset[str]) -> StageStatus:
    codes = snapshot.thematic_codes
    missing = sum(1 for c in transcribed if c not in codes)
    stale = sum(1 for c in transcribed if c in codes and codes[c] < snapshot.rules_version)
    return StageStatus(
        total=len(transcribed),
        missing=missing,
        stale=stale,
        fresh=len(transcribed) - missing - stale,
        light=_versioned_light(missing, stale),
    )


def _pass_b(snapshot: PipelineSnapshot) -> StageStatus:
    rows = snapshot.responses.values()
    missing = sum(1 for r in rows if not r.feedback_sentiment)
    stale = sum(
        1 for r in rows
        if r.feedback_sentiment and (r.feedback_rules_version or 0) < snapshot.rules_version
    )
    total = len(snapshot.responses)
    return StageStatus(
        total=total,
        missing=missing,
        stale=stale,
        fresh=total - missing - stale,
        light=_versioned_light(missing, stale),
    )


def _evaluation(snapshot: PipelineSnapshot) -> EvaluationStatus:
    active = snapshot.active_metric_id
    rows = snapshot.responses.values()
    missing = sum(1 for r in rows if r.vapi_total_score is None)
    stale = sum(
        1 for r in rows
        if r.vapi_total_score is not None and active and r.vapi_evaluation_metric_id != active
    )
    queue = snapshot.queue_statuses if active else ()
    failed = queue.count("failed")

    if not active:
        light = Light.YELLOW
    elif failed:
        light = Light.RED
    elif missing + stale:
        light = Light.YELLOW
    else:
        light = Light.GREEN
    total = len(snapshot.responses)
    return EvaluationStatus(
        total=total,
        missing=missing,
        stale=stale,
        fresh=total - missing - stale,
        light=light,
        pending=queue.count("pending"),
        running=queue.count("running"),
        failed=failed,
        active_metric_id=active,
    )


def compute_status(snapshot: PipelineSnapshot) -> PipelineStatus:
    transcription, transcribed = _transcription(snapshot)
    return PipelineStatus(
        rules_version=snapshot.rules_version,
        transcription=transcription,
        metrics=_metrics(snapshot, transcribed),
        pass_a=_pass_a(snapshot, transcribed),
        pass_b=_pass_b(snapshot),
        evaluation=_evaluation(snapshot),
    )


def with_rules_version(snapshot: PipelineSnapshot, version: int) -> PipelineSnapshot:
    """Copy of ``snapshot`` as it would read under another rules version."""
    return replace(snapshot, rules_version=version)
