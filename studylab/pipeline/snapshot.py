"""Joined view of the backend collections the pipeline status depends on.

``fetch_snapshot`` performs every read the status engine needs and
returns typed rows keyed by call id, restricted to participant calls.
``compute_status`` then works on the snapshot alone, without I/O.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from studylab import settings
from studylab.backend.base import Backend

logger = logging.getLogger(__name__)

RESPONSES = "experiment_responses"
TRANSCRIPTIONS = "call_transcriptions_assemblyai"
METRICS = "call_qualitative_metrics"
THEMATIC_CODES = "call_thematic_codes"
EVALUATION_QUEUE = "vapi_evaluation_queue"

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def is_participant(participant_id: str | None, call_id: str | None) -> bool:
    """Real participant calls have a 24-character Prolific id and a call id.

    Researcher and test calls use short ids and are excluded from every
    pipeline stage.
    """
    if not call_id or participant_id is None:
        return False
    return len(participant_id) == settings.PARTICIPANT_ID_LENGTH


def parse_rules_version(raw: str | None) -> int:
    """Stored rules version from its leading integer ("2.0" and "3abc" read
    as 2 and 3); missing, malformed or non-positive values read as 1.
    """
    match = _LEADING_INT.match(str(raw or ""))
    if match is None:
        return 1
    return max(int(match.group()), 1)


@dataclass(frozen=True)
class ResponseRow:
    call_id: str
    participant_id: str
    feedback_sentiment: str | None = None
    feedback_rules_version: int | None = None
    vapi_total_score: float | None = None
    vapi_evaluation_metric_id: str | None = None


@dataclass(frozen=True)
class TranscriptionRow:
    call_id: str
    status: str
    has_utterances: bool


@dataclass(frozen=True)
class PipelineSnapshot:
    """Participant-only, already joined pipeline state."""

    rules_version: int = 1
    active_metric_id: str | None = None
    responses: dict[str, ResponseRow] = field(default_factory=dict)
    transcriptions: dict[str, TranscriptionRow] = field(default_factory=dict)
    metric_call_ids: frozenset[str] = frozenset()
    # call id -> rules version of its Pass A code (None stored as 0)
    thematic_codes: dict[str, int] = field(default_factory=dict)
    queue_statuses: tuple[str, ...] = ()

    @property
    def participant_call_ids(self) -> frozenset[str]:
        return frozenset(self.responses)


async def fetch_snapshot(backend: Backend) -> PipelineSnapshot:
    """Read and join everything ``compute_status`` needs."""
    rules_version = parse_rules_version(await backend.get_setting(settings.RULES_VERSION_KEY))
    active_metric_id = await backend.get_setting(settings.ACTIVE_METRIC_KEY) or None

    responses: dict[str, ResponseRow] = {}
    for r in await backend.select(RESPONSES):
        call_id = r.get("call_id")
        if not is_participant(r.get("prolific_id"), call_id):
            continue
        responses[call_id] = ResponseRow(
            call_id=call_id,
            participant_id=r["prolific_id"],
            feedback_sentiment=r.get("feedback_sentiment"),
            feedback_rules_version=r.get("feedback_rules_version"),
            vapi_total_score=r.get("vapi_total_score"),
            vapi_evaluation_metric_id=r.get("vapi_evaluation_metric_id"),
        )

    transcriptions = {
        t["call_id"]: TranscriptionRow(
            call_id=t["call_id"],
            status=t.get("status") or "",
            has_utterances=t.get("utterances") is not None,
        )
        for t in await backend.select(TRANSCRIPTIONS, columns=["call_id", "status", "utterances"])
        if t.get("call_id") in responses
    }

    metric_ids = frozenset(
        m["call_id"] for m in await backend.select(METRICS, columns=["call_id"])
    )
    codes = {
        c["call_id"]: int(c.get("rules_version") or 0)
        for c in await backend.select(THEMATIC_CODES, columns=["call_id", "rules_version"])
    }

    queue: tuple[str, ...] = ()
    if active_metric_id:
        queue = tuple(
            q.get("status") or ""
            for q in await backend.select(
                EVALUATION_QUEUE, {"metric_id": active_metric_id}, columns=["status"]
            )
        )

    logger.debug(
        "[pipeline] snapshot: %d participant calls, rules v%d", len(responses), rules_version
    )
    return PipelineSnapshot(
        rules_version=rules_version,
        active_metric_id=active_metric_id,
        responses=responses,
        transcriptions=transcriptions,
        metric_call_ids=metric_ids,
        thematic_codes=codes,
        queue_statuses=queue,
    )
