"""Tests for the between-condition formality comparison."""

from __future__ import annotations

import asyncio

import pytest

from studylab.backend.local import LocalBackend
from studylab.evaluation.compare import (
    compare_conditions,
    describe,
    load_condition_scores,
    mann_whitney,
    welch_t_test,
)

FORMAL = [62.0, 65.0, 70.0, 68.0, 66.0]
INFORMAL = [45.0, 50.0, 48.0, 52.0, 47.0]


class TestStatistics:
    def test_describe(self):
        d = describe([1.0, 2.0, 3.0])
        assert d["n"] == 3
        assert d["mean"] == 2.0
        assert d["std"] == 1.0
        assert d["median"] == 2.0
        assert describe([]) == {"n": 0}

    def test_welch_detects_clear_difference(self):
        result = welch_t_test(FORMAL, INFORMAL)
        assert result["p_value"] < 0.001
        assert result["mean_diff"] == pytest.approx(17.8)
        assert result["cohens_d"] > 2
        low, high = result["ci95"]
        assert low < 17.8 < high

    def test_welch_needs_two_per_group(self):
        assert "error" in welch_t_test([1.0], INFORMAL)

    def test_mann_whitney(self):
        result = mann_whitney(FORMAL, INFORMAL)
        assert result["u"] == 0
        assert result["rank_biserial_r"] == 1.0

    def test_compare_conditions(self):
        result = compare_conditions({"formal": FORMAL, "informal": INFORMAL})
        assert result["conditions"] == ["formal", "informal"]
        assert result["descriptives"]["formal"]["n"] == 5
        assert "levene" in result["assumptions"]
        assert "shapiro_group1" in result["assumptions"]


class TestLoadScores:
    def test_latest_score_per_participant_call(self):
        p1, p2 = "a" * 24, "b" * 24
        backend = LocalBackend(collections={
            "experiment_responses": [
                {"call_id": "c1", "prolific_id": p1, "assistant_type": "formal"},
                {"call_id": "c2", "prolific_id": p2, "ai_formality_score": 0.1},
                {"call_id": "c3", "prolific_id": "researcher", "assistant_type": "formal"},
            ],
            "formality_calculations": [
                {"linked_call_id": "c1", "f_score": 60, "ai_only_mode": True, "created_at": "2025-01-01"},
                {"linked_call_id": "c1", "f_score": 64, "ai_only_mode": True, "created_at": "2025-02-01"},
                {"linked_call_id": "c1", "f_score": 90, "ai_only_mode": False, "created_at": "2025-03-01"},
                {"linked_call_id": "c2", "f_score": 41, "ai_only_mode": True, "created_at": "2025-01-01"},
                {"linked_call_id": "c3", "f_score": 99, "ai_only_mode": True, "created_at": "2025-01-01"},
            ],
        })
        scores = asyncio.run(load_condition_scores(backend))
        assert scores == {"formal": [64.0], "informal": [41.0]}
