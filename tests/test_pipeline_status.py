"""Tests for the compute pipeline status engine."""

from __future__ import annotations

import asyncio

import pytest

from studylab.backend.local import LocalBackend
from studylab.pipeline.snapshot import (
    PipelineSnapshot,
    ResponseRow,
    TranscriptionRow,
    fetch_snapshot,
    is_participant,
    parse_rules_version,
)
from studylab.pipeline.status import Light, Stage, compute_status, loading_status, with_rules_version

P1, P2, P3 = "a" * 24, "b" * 24, "c" * 24


def _snapshot(**overrides) -> PipelineSnapshot:
    base = dict(
        rules_version=2,
        active_metric_id="metric-1",
        responses={
            "call-1": ResponseRow("call-1", P1, "positive", 2, 80.0, "metric-1"),
            "call-2": ResponseRow("call-2", P2, "neutral", 1, 60.0, "metric-0"),
            "call-3": ResponseRow("call-3", P3),
        },
        transcriptions={
            "call-1": TranscriptionRow("call-1", "completed", True),
            "call-2": TranscriptionRow("call-2", "completed", True),
        },
        metric_call_ids=frozenset({"call-1"}),
        thematic_codes={"call-1": 2, "call-2": 1},
        queue_statuses=("pending",),
    )
    base.update(overrides)
    return PipelineSnapshot(**base)


def _assert_counters_add_up(status):
    for stage in Stage:
        s = status.stage(stage)
        assert s.fresh + s.missing + s.stale == s.total, stage


class TestParticipantFilter:
    def test_requires_24_char_id_and_call_id(self):
        assert is_participant(P1, "call-1")
        assert not is_participant("researcher3", "call-1")
        assert not is_participant(P1, "")
        assert not is_participant(P1, None)
        assert not is_participant(None, "call-1")

    @pytest.mark.parametrize("raw, expected", [
        ("3", 3), (None, 1), ("", 1), ("abc", 1), ("0", 1),
        ("2.0", 2), ("3abc", 3), (" 4", 4), ("-2", 1), (5, 5),
    ])
    def test_parse_rules_version(self, raw, expected):
        assert parse_rules_version(raw) == expected


class TestComputeStatus:
    def test_empty_snapshot(self):
        status = compute_status(PipelineSnapshot())
        _assert_counters_add_up(status)
        for stage in Stage:
            assert status.stage(stage).total == 0
        assert [status.stage(s).light for s in Stage] == [
            Light.GREEN, Light.GREEN, Light.GREEN, Light.GREEN, Light.YELLOW,
        ]

    def test_counters(self):
        status = compute_status(_snapshot())
        _assert_counters_add_up(status)

        assert (status.transcription.total, status.transcription.missing) == (3, 1)
        assert status.transcription.completed == 2
        assert (status.metrics.total, status.metrics.missing) == (2, 1)
        assert (status.pass_a.missing, status.pass_a.stale, status.pass_a.fresh) == (0, 1, 1)
        assert (status.pass_b.missing, status.pass_b.stale, status.pass_b.fresh) == (1, 1, 1)
        assert (status.evaluation.missing, status.evaluation.stale) == (1, 1)
        assert status.evaluation.pending == 1

    def test_lights(self):
        status = compute_status(_snapshot())
        assert status.transcription.light is Light.YELLOW
        assert status.metrics.light is Light.YELLOW
        assert status.pass_a.light is Light.RED
        assert status.pass_b.light is Light.RED
        assert status.evaluation.light is Light.YELLOW

    def test_fully_fresh_is_green(self):
        snapshot = _snapshot(
            responses={"call-1": ResponseRow("call-1", P1, "positive", 2, 80.0, "metric-1")},
            transcriptions={"call-1": TranscriptionRow("call-1", "completed", True)},
            thematic_codes={"call-1": 2},
            queue_statuses=(),
        )
        status = compute_status(snapshot)
        assert all(status.stage(s).light is Light.GREEN for s in Stage)

    def test_transcription_errors_are_red(self):
        snapshot = _snapshot(transcriptions={
            "call-1": TranscriptionRow("call-1", "error", False),
            "call-2": TranscriptionRow("call-2", "processing", False),
        })
        status = compute_status(snapshot)
        assert status.transcription.light is Light.RED
        assert (status.transcription.error, status.transcription.in_progress) == (1, 1)
        assert status.metrics.total == 0

    def test_only_usable_transcripts_are_fresh(self):
        snapshot = _snapshot(transcriptions={
            "call-1": TranscriptionRow("call-1", "completed", True),
            "call-2": TranscriptionRow("call-2", "error", False),
        })
        t = compute_status(snapshot).transcription
        assert (t.fresh, t.stale, t.missing, t.total) == (1, 1, 1, 3)
        assert t.completed == 1

    def test_failed_evaluations_are_red(self):
        status = compute_status(_snapshot(queue_statuses=("failed", "running")))
        assert status.evaluation.light is Light.RED
        assert (status.evaluation.failed, status.evaluation.running) == (1, 1)

    def test_no_active_metric_is_yellow(self):
        status = compute_status(_snapshot(active_metric_id=None))
        assert status.evaluation.light is Light.YELLOW
        assert status.evaluation.stale == 0
        assert status.evaluation.pending == 0

    def test_null_rules_version_code_is_stale(self):
        status = compute_status(_snapshot(rules_version=1, thematic_codes={"call-1": 0}))
        assert status.pass_a.stale == 1

    def test_bumping_version_only_adds_staleness(self):
        snapshot = _snapshot()
        before = compute_status(snapshot)
        after = compute_status(with_rules_version(snapshot, snapshot.rules_version + 1))
        _assert_counters_add_up(after)
        for stage in (Stage.PASS_A, Stage.PASS_B):
            assert after.stage(stage).fresh == 0
            assert after.stage(stage).stale >= before.stage(stage).stale
            assert after.stage(stage).missing == before.stage(stage).missing

    def test_loading_status(self):
        status = loading_status(3, error="boom")
        assert status.loading
        assert status.rules_version == 3
        assert status.to_dict()["pass_a"]["light"] == "loading"


class TestFetchSnapshot:
    def test_joins_backend_collections(self):
        backend = LocalBackend(
            collections={
                "experiment_responses": [
                    {"call_id": "call-1", "prolific_id": P1, "vapi_total_score": 50},
                    {"call_id": "call-r", "prolific_id": "researcher1"},
                ],
                "call_transcriptions_assemblyai": [
                    {"call_id": "call-1", "status": "completed", "utterances": []},
                    {"call_id": "call-r", "status": "completed", "utterances": []},
                ],
                "call_thematic_codes": [{"call_id": "call-1", "rules_version": None}],
                "vapi_evaluation_queue": [
                    {"metric_id": "m1", "status": "pending"},
                    {"metric_id": "other", "status": "failed"},
                ],
            },
            settings={"thematic_coding_rules_version": "4", "active_vapi_evaluation_metric_id": "m1"},
        )
        snapshot = asyncio.run(fetch_snapshot(backend))
        assert snapshot.rules_version == 4
        assert snapshot.participant_call_ids == frozenset({"call-1"})
        assert list(snapshot.transcriptions) == ["call-1"]
        assert snapshot.transcriptions["call-1"].has_utterances
        assert snapshot.thematic_codes == {"call-1": 0}
        assert snapshot.queue_statuses == ("pending",)
