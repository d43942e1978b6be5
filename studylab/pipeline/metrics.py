"""Qualitative engagement and sentiment metrics per call.

Computed from AssemblyAI utterances ``{speaker, text, start, end,
sentiment?}``.  The assistant greets first in every call, so the first
speaker label is the AI and the other label is the user (flip with
``first_speaker_is_user``).  Sentiment maps POSITIVE=+1, NEGATIVE=-1,
anything else 0.

``compute_metrics_batch`` mirrors the ``compute-qualitative-metrics``
endpoint contract so the local backend can serve it.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import numpy as np

from studylab.backend.base import Backend
from studylab.pipeline.snapshot import METRICS, RESPONSES, TRANSCRIPTIONS

logger = logging.getLogger(__name__)

_SENTIMENT_SCORES = {"POSITIVE": 1, "NEGATIVE": -1}


def sentiment_to_score(sentiment: str | None) -> int:
    return _SENTIMENT_SCORES.get(sentiment or "", 0)


def _mean(values: np.ndarray) -> float | None:
    return float(values.mean()) if values.size else None


def _word_count(text: str | None) -> int:
    return len((text or "").split())


def _speakers(utterances: list[dict[str, Any]], first_speaker_is_user: bool) -> tuple[str, str]:
    """Return ``(user_label, ai_label)``."""
    first = utterances[0].get("speaker")
    other = "B" if first == "A" else "A"
    return (first, other) if first_speaker_is_user else (other, first)


def compute_call_metrics(
    utterances: list[dict[str, Any]] | None,
    sentiment_results: list[dict[str, Any]] | None = None,
    audio_duration_ms: int | None = None,
    first_speaker_is_user: bool = False,
) -> dict[str, Any] | None:
    """Compute the metrics row for one call; ``None`` without utterances."""
    if not utterances:
        return None

    user_label, ai_label = _speakers(utterances, first_speaker_is_user)
    user = [u for u in utterances if u.get("speaker") == user_label]
    ai = [u for u in utterances if u.get("speaker") == ai_label]

    scores = [sentiment_to_score(u["sentiment"]) for u in user if u.get("sentiment")]
    if not scores and sentiment_results:
        # per-sentence results when utterances lack sentiment
        scores = [
            sentiment_to_score(r.get("sentiment"))
            for r in sentiment_results
            if r.get("speaker") == user_label
        ]
    arr = np.asarray(scores, dtype=float)
    n = arr.size

    third = math.ceil(n / 3) or 1
    early, mid, late = arr[:third], arr[third:third * 2], arr[third * 2:]

    user_words = sum(_word_count(u.get("text")) for u in user)
    ai_words = sum(_word_count(u.get("text")) for u in ai)
    total_words = user_words + ai_words
    durations = np.asarray(
        [(u.get("end") or 0) - (u.get("start") or 0) for u in user], dtype=float
    )
    speaking_ms = int(durations[durations > 0].sum()) if durations.size else 0

    return {
        "user_sentiment_mean": _mean(arr),
        # population std; undefined for fewer than two scores
        "user_sentiment_std": float(arr.std()) if n >= 2 else None,
        "sentiment_arc_early": _mean(early),
        "sentiment_arc_mid": _mean(mid),
        "sentiment_arc_late": _mean(late),
        "sentiment_positive_pct": float(np.count_nonzero(arr == 1) / n) if n else None,
        "sentiment_negative_pct": float(np.count_nonzero(arr == -1) / n) if n else None,
        "sentiment_neutral_pct": float(np.count_nonzero(arr == 0) / n) if n else None,
        "user_word_count": user_words,
        "user_turn_count": len(user),
        "user_words_per_turn": user_words / len(user) if user else None,
        "user_speaking_time_ms": speaking_ms,
        "speaking_time_ratio": user_words / total_words if total_words else None,
        "ai_word_count": ai_words,
        "ai_turn_count": len(ai),
        "total_duration_ms": audio_duration_ms,
    }


def resolve_assistant_type(response: dict[str, Any] | None) -> str | None:
    """Condition label, inferred from the formality flag on older rows."""
    if not response:
        return None
    if response.get("assistant_type"):
        return response["assistant_type"]
    score = response.get("ai_formality_score")
    if score is None:
        return None
    return "formal" if score >= 0.5 else "informal"


async def compute_metrics_batch(
    backend: Backend, limit: int = 10, recompute: bool = False
) -> dict[str, int]:
    """Compute metrics for up to ``limit`` transcribed calls.

    Returns ``{"computed": n, "total": remaining}`` where ``total`` is
    the number of calls still needing work after this batch.
    """
    transcriptions = [
        t for t in await backend.select(TRANSCRIPTIONS, {"status": "completed"})
        if t.get("utterances") is not None
    ]
    done: set[str] = set()
    if not recompute:
        done = {m["call_id"] for m in await backend.select(METRICS, columns=["call_id"])}
    candidates = [t for t in transcriptions if t["call_id"] not in done]
    responses = {r.get("call_id"): r for r in await backend.select(RESPONSES)}

    computed = 0
    for t in candidates[:limit]:
        metrics = compute_call_metrics(
            t.get("utterances"), t.get("sentiment_results"), t.get("audio_duration_ms")
        )
        if metrics is None:
            logger.info("[metrics] %s skipped (no utterances)", t["call_id"])
            continue
        row = {
            "call_id": t["call_id"],
            "assistant_type": resolve_assistant_type(responses.get(t["call_id"])),
            **metrics,
        }
        await backend.delete(METRICS, {"call_id": t["call_id"]})
        await backend.insert(METRICS, row)
        computed += 1

    logger.info("[metrics] computed %d of %d candidates", computed, len(candidates))
    return {"computed": computed, "total": len(candidates) - computed}
