"""Two-pass LLM thematic coding.

Pass A codes a call transcript into ``call_thematic_codes``; Pass B
codes the participant's free-text feedback onto ``experiment_responses``.
Model output is clamped to the coding scheme and every coded record is
stamped with the rules version current at coding time, which is what
makes it fresh or stale in the pipeline status.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage

from studylab import settings
from studylab.backend.base import Backend
from studylab.llm import get_chat_llm
from studylab.pipeline.snapshot import (
    RESPONSES,
    THEMATIC_CODES,
    TRANSCRIPTIONS,
    parse_rules_version,
)

logger = logging.getLogger(__name__)

PASS_A_PROMPT = """\
You are a qualitative researcher coding voice conversation transcripts.
Analyze the conversation and return ONLY valid JSON matching this schema exactly:

{
  "comfort_score": <integer 1-5>,
  "rapport_level": "<cold|neutral|warm|personal>",
  "self_disclosure": <true|false>,
  "user_initiated_topics": ["<topic>", ...],
  "notable_moments": ["<brief description>", ...],
  "overall_conversation_quality": <integer 1-5>
}

Definitions:
- comfort_score: How comfortable the user seemed overall (1=very uncomfortable, 5=very comfortable)
- rapport_level: cold=purely transactional, neutral=polite, warm=friendly, personal=user shared personal info/feelings
- self_disclosure: true if user voluntarily shared personal information, feelings, or experiences
- user_initiated_topics: Topics the user brought up unprompted; 0-5 items, short labels
- notable_moments: Memorable exchanges (humor, vulnerability, disagreement, confusion); 0-3 items
- overall_conversation_quality: 1=poor, 5=excellent

Return ONLY the JSON object.
"""

PASS_B_PROMPT = """\
You are a qualitative researcher coding participant feedback about a voice AI assistant.
Analyze the feedback and return ONLY valid JSON matching this schema exactly:

{
  "feedback_sentiment": "<positive|neutral|negative>",
  "feedback_themes": ["<theme>", ...],
  "feedback_satisfaction_inferred": <integer 1-5>,
  "feedback_condition_perception": "<brief description>"
}

Definitions:
- feedback_sentiment: Overall emotional tone of the feedback
- feedback_themes: Key themes, max 8 short labels e.g. "natural", "robotic", "helpful",
  "friendly", "formal", "informal", "clear", "confusing", "engaging", "empathetic",
  "trustworthy", "privacy concern" (add new labels as needed, keep them short)
- feedback_satisfaction_inferred: Inferred satisfaction 1=very dissatisfied, 5=very satisfied
- feedback_condition_perception: 1-2 sentences on how they perceived the assistant's style

Return ONLY the JSON object.
"""

RAPPORT_LEVELS = ("cold", "neutral", "warm", "personal")
SENTIMENTS = ("positive", "neutral", "negative")
FEEDBACK_FIELDS = (
    "voice_assistant_feedback",
    "communication_style_feedback",
    "experiment_feedback",
)
MIN_FEEDBACK_CHARS = 5

INSUFFICIENT_FEEDBACK: dict[str, Any] = {
    "feedback_sentiment": "neutral",
    "feedback_themes": [],
    "feedback_satisfaction_inferred": 3,
    "feedback_condition_perception": "insufficient feedback",
}


def _parse_json(raw: str) -> dict[str, Any]:
    """Parse JSON from model output, stripping markdown fences if needed."""
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1].rsplit("```", 1)[0]
    return json.loads(text)


def _response_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content)


def clamp_int(value: Any, low: int, high: int, fallback: int) -> int:
    try:
        n = int(float(value))
    except (TypeError, ValueError):
        return fallback
    return max(low, min(high, n))


def one_of(value: Any, options: tuple[str, ...], fallback: str) -> str:
    return value if value in options else fallback


def _list(value: Any, limit: int) -> list:
    return list(value)[:limit] if isinstance(value, list) else []


def _ask(system_prompt: str, content: str) -> dict[str, Any]:
    llm = get_chat_llm()
    response = llm.invoke([SystemMessage(content=system_prompt), HumanMessage(content=content)])
    return _parse_json(_response_text(response.content))


def format_transcript(transcription: dict[str, Any]) -> str:
    """Render utterances as ``AI:`` / ``User:`` lines (speaker A is the AI)."""
    utterances = transcription.get("utterances") or []
    if utterances:
        return "\n".join(
            f"{'AI' if u.get('speaker') == 'A' else 'User'}: {u.get('text', '')}"
            for u in utterances
        )
    return transcription.get("transcript_text") or "(no transcript)"


def collect_feedback(response: dict[str, Any]) -> str:
    parts = [response.get(f) for f in FEEDBACK_FIELDS if response.get(f)]
    return "\n\n---\n\n".join(parts).strip()


def code_transcript(transcript: str, rules_version: int) -> dict[str, Any]:
    """Pass A for one transcript; failures come back with an ``error`` key."""
    try:
        raw = _ask(PASS_A_PROMPT, f"Conversation transcript:\n\n{transcript}")
    except (json.JSONDecodeError, IndexError) as e:
        logger.warning("Pass A parse error: %s", e)
        return {"error": f"Pass A parse error: {e}"}
    except Exception as e:
        logger.warning("Pass A failed: %s", e)
        return {"error": f"Pass A failed: {e}"}

    return {
        "comfort_score": clamp_int(raw.get("comfort_score"), 1, 5, 3),
        "rapport_level": one_of(raw.get("rapport_level"), RAPPORT_LEVELS, "neutral"),
        "self_disclosure": bool(raw.get("self_disclosure")),
        "user_initiated_topics": _list(raw.get("user_initiated_topics"), 10),
        "notable_moments": _list(raw.get("notable_moments"), 10),
        "overall_conversation_quality": clamp_int(raw.get("overall_conversation_quality"), 1, 5, 3),
        "model_used": settings.LLM_MODEL_NAME,
        "rules_version": rules_version,
    }


def code_feedback(feedback: str, rules_version: int) -> dict[str, Any]:
    """Pass B for one participant's feedback text."""
    if len(feedback.strip()) < MIN_FEEDBACK_CHARS:
        return {**INSUFFICIENT_FEEDBACK, "feedback_rules_version": rules_version}
    try:
        raw = _ask(PASS_B_PROMPT, f"Participant feedback:\n\n{feedback}")
    except (json.JSONDecodeError, IndexError) as e:
        logger.warning("Pass B parse error: %s", e)
        return {"error": f"Pass B parse error: {e}"}
    except Exception as e:
        logger.warning("Pass B failed: %s", e)
        return {"error": f"Pass B failed: {e}"}

    perception = raw.get("feedback_condition_perception")
    return {
        "feedback_sentiment": one_of(raw.get("feedback_sentiment"), SENTIMENTS, "neutral"),
        "feedback_themes": _list(raw.get("feedback_themes"), 15),
        "feedback_satisfaction_inferred": clamp_int(raw.get("feedback_satisfaction_inferred"), 1, 5, 3),
        "feedback_condition_perception": perception[:500] if isinstance(perception, str) else None,
        "feedback_rules_version": rules_version,
    }


async def run_thematic_batch(
    backend: Backend,
    limit: int = 10,
    recompute: bool = False,
    pass_a_only: bool = False,
    pass_b_only: bool = False,
) -> dict[str, Any]:
    """Code up to ``limit`` calls still missing (or stale for) a pass.

    Pass A needs a completed transcript; Pass B runs over every response
    with a call id.  Returns ``{"processed", "errors", "total",
    "rules_version"}``, ``total`` being the calls still needing work after
    this batch.
    """
    version = parse_rules_version(await backend.get_setting(settings.RULES_VERSION_KEY))
    transcriptions = {
        t["call_id"]: t
        for t in await backend.select(TRANSCRIPTIONS, {"status": "completed"})
        if t.get("utterances") is not None
    }
    responses = {r["call_id"]: r for r in await backend.select(RESPONSES) if r.get("call_id")}

    codes = {c["call_id"]: c.get("rules_version") or 0 for c in await backend.select(THEMATIC_CODES)}

    def needs_a(call_id: str) -> bool:
        return not pass_b_only and call_id in transcriptions and (
            recompute or codes.get(call_id, 0) < version
        )

    def needs_b(call_id: str) -> bool:
        r = responses.get(call_id)
        return not pass_a_only and r is not None and (
            recompute
            or not r.get("feedback_sentiment")
            or (r.get("feedback_rules_version") or 0) < version
        )

    call_ids = list(dict.fromkeys([*transcriptions, *responses]))
    candidates = [c for c in call_ids if needs_a(c) or needs_b(c)]

    processed = errors = 0
    for call_id in candidates[:limit]:
        ok = False
        failed = False
        if needs_a(call_id):
            coded = code_transcript(format_transcript(transcriptions[call_id]), version)
            if "error" in coded:
                failed = True
            else:
                await backend.delete(THEMATIC_CODES, {"call_id": call_id})
                await backend.insert(THEMATIC_CODES, {"call_id": call_id, **coded})
                ok = True
        if needs_b(call_id):
            coded = code_feedback(collect_feedback(responses[call_id]), version)
            if "error" in coded:
                failed = True
            else:
                await backend.update(RESPONSES, {"call_id": call_id}, coded)
                ok = True
        processed += ok
        errors += failed

    logger.info("[thematic] v%d: %d processed, %d errors", version, processed, errors)
    return {
        "processed": processed,
        "errors": errors,
        "total": len(candidates) - processed,
        "rules_version": version,
    }
