"""Between-condition comparison of formality scores.

Joins stored formality calculations to each participant's assistant
condition (formal / informal) and compares the two groups:
  - descriptive statistics per group
  - Welch's t-test with Cohen's d (pooled SD) and a 95% CI
  - Mann-Whitney U with rank-biserial r
  - Levene and Shapiro-Wilk assumption checks

Usage:
    python -m studylab.main compare
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from scipy import stats

from studylab.backend.base import Backend
from studylab.formality.store import COLLECTION as CALCULATIONS
from studylab.pipeline.metrics import resolve_assistant_type
from studylab.pipeline.snapshot import RESPONSES, is_participant

logger = logging.getLogger(__name__)


def describe(values: list[float]) -> dict[str, Any]:
    arr = np.asarray(values, dtype=float)
    n = arr.size
    if n == 0:
        return {"n": 0}
    return {
        "n": n,
        "mean": round(float(arr.mean()), 2),
        "std": round(float(arr.std(ddof=1)), 2) if n > 1 else 0.0,
        "sem": round(float(stats.sem(arr)), 3) if n > 1 else 0.0,
        "median": round(float(np.median(arr)), 2),
        "min": round(float(arr.min()), 2),
        "max": round(float(arr.max()), 2),
    }


def welch_t_test(group1: list[float], group2: list[float]) -> dict[str, Any]:
    a = np.asarray(group1, dtype=float)
    b = np.asarray(group2, dtype=float)
    n1, n2 = a.size, b.size
    if n1 < 2 or n2 < 2:
        return {"error": f"Need at least 2 scores per group, found {n1} and {n2}."}

    t, p = stats.ttest_ind(a, b, equal_var=False)
    v1, v2 = a.var(ddof=1), b.var(ddof=1)
    se1, se2 = v1 / n1, v2 / n2
    df = (se1 + se2) ** 2 / (se1 ** 2 / (n1 - 1) + se2 ** 2 / (n2 - 1)) if se1 + se2 else float("nan")
    pooled = np.sqrt(((n1 - 1) * v1 + (n2 - 1) * v2) / (n1 + n2 - 2))
    diff = float(a.mean() - b.mean())
    se = float(np.sqrt(se1 + se2))
    t_crit = float(stats.t.ppf(0.975, df)) if np.isfinite(df) else 1.96
    return {
        "t": round(float(t), 4),
        "df": round(float(df), 2),
        "p_value": round(float(p), 4),
        "mean_diff": round(diff, 3),
        "cohens_d": round(diff / pooled, 3) if pooled else 0.0,
        "ci95": [round(diff - t_crit * se, 3), round(diff + t_crit * se, 3)],
    }


def mann_whitney(group1: list[float], group2: list[float]) -> dict[str, Any]:
    n1, n2 = len(group1), len(group2)
    if not n1 or not n2:
        return {"error": "Both groups need at least one score."}
    u1, p = stats.mannwhitneyu(group1, group2, alternative="two-sided")
    u = min(float(u1), n1 * n2 - float(u1))
    return {
        "u": u,
        "p_value": round(float(p), 4),
        "rank_biserial_r": round(1 - 2 * u / (n1 * n2), 3),
    }


def assumption_checks(group1: list[float], group2: list[float]) -> dict[str, Any]:
    checks: dict[str, Any] = {}
    if len(group1) >= 2 and len(group2) >= 2:
        w, p = stats.levene(group1, group2)
        checks["levene"] = {"w": round(float(w), 4), "p_value": round(float(p), 4)}
    for name, group in (("group1", group1), ("group2", group2)):
        if len(group) >= 3:
            w, p = stats.shapiro(group)
            checks[f"shapiro_{name}"] = {"w": round(float(w), 4), "p_value": round(float(p), 4)}
    return checks


def compare_conditions(scores: dict[str, list[float]], first: str = "formal", second: str = "informal") -> dict[str, Any]:
    """Compare F-scores of two assistant conditions."""
    g1 = scores.get(first, [])
    g2 = scores.get(second, [])
    return {
        "conditions": [first, second],
        "descriptives": {first: describe(g1), second: describe(g2)},
        "welch": welch_t_test(g1, g2),
        "mann_whitney": mann_whitney(g1, g2),
        "assumptions": assumption_checks(g1, g2),
    }


async def load_condition_scores(backend: Backend, ai_only: bool = True) -> dict[str, list[float]]:
    """Latest F-score per participant call, grouped by assistant condition."""
    responses = {
        r["call_id"]: r
        for r in await backend.select(RESPONSES)
        if is_participant(r.get("prolific_id"), r.get("call_id"))
    }
    latest: dict[str, float] = {}
    for row in await backend.select(CALCULATIONS, order_by="created_at"):
        call_id = row.get("linked_call_id")
        if call_id in responses and bool(row.get("ai_only_mode")) == ai_only:
            latest[call_id] = float(row["f_score"])

    grouped: dict[str, list[float]] = {}
    for call_id, score in latest.items():
        condition = resolve_assistant_type(responses[call_id])
        if condition is None:
            continue
        grouped.setdefault(condition, []).append(score)
    logger.info(
        "[compare] %s", ", ".join(f"{k}: n={len(v)}" for k, v in sorted(grouped.items())) or "no data"
    )
    return grouped
