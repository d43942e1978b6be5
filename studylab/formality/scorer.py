"""Heylighen & Dewaele formality scorer.

    F = (noun% + adj% + prep% + art% - pron% - verb% - adv% - intj% + 100) / 2

Percentages are taken over *every* emitted token, so words whose tags
carry no formality weight (determiners, conjunctions, "to", numbers)
still enlarge the denominator.  All functions here are pure; storing a
result is the caller's job (see ``studylab.formality.store``).
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from studylab import settings
from studylab.errors import EmptyTranscriptError
from studylab.formality.models import (
    CategoryBreakdown,
    CategoryStats,
    FormalityCalculation,
    FormulaBreakdown,
    Token,
    TurnScore,
    round_half_up,
)
from studylab.formality.tagger import (
    CATEGORY_ORDER,
    FormalityCategory as C,
    Tagger,
    get_tagger,
    map_tag,
)
from studylab.formality.transcript import preprocess_text, split_turns

logger = logging.getLogger(__name__)


def classify_tokens(text: str, tagger: Tagger | None = None) -> list[Token]:
    """Preprocess, POS-tag and categorize ``text``."""
    tagger = tagger or get_tagger()
    processed = preprocess_text(text)
    if not processed:
        return []
    return [
        Token(text=word, pos_tag=pos, category=map_tag(pos))
        for word, pos in tagger.tag(processed)
    ]


def compute_category_breakdown(tokens: Sequence[Token]) -> CategoryBreakdown:
    total = len(tokens)
    counts = Counter(t.category for t in tokens if t.category is not None)
    stats = {
        c: CategoryStats(
            count=counts.get(c, 0),
            percentage=(100.0 * counts.get(c, 0) / total) if total else 0.0,
        )
        for c in CATEGORY_ORDER
    }
    return CategoryBreakdown(total_tokens=total, stats=stats)


def compute_formula_breakdown(breakdown: CategoryBreakdown) -> FormulaBreakdown:
    pct = breakdown.percentage
    intermediate = (
        pct(C.NOUN) + pct(C.ADJECTIVE) + pct(C.PREPOSITION) + pct(C.ARTICLE)
        - pct(C.PRONOUN) - pct(C.VERB) - pct(C.ADVERB) - pct(C.INTERJECTION)
        + 100
    )
    return FormulaBreakdown(
        noun_pct=pct(C.NOUN),
        adj_pct=pct(C.ADJECTIVE),
        prep_pct=pct(C.PREPOSITION),
        art_pct=pct(C.ARTICLE),
        pron_pct=pct(C.PRONOUN),
        verb_pct=pct(C.VERB),
        adv_pct=pct(C.ADVERB),
        intj_pct=pct(C.INTERJECTION),
        intermediate_sum=intermediate,
    )


def compute_f_score(formula: FormulaBreakdown) -> int:
    """``round(intermediate_sum / 2)`` with half-up rounding."""
    return round_half_up(formula.intermediate_sum / 2)


def interpret(f_score: float) -> tuple[str, str]:
    """Return ``(interpretation, interpretation_label)`` for a score."""
    return settings.classify_formality(f_score)


def _score_tokens(
    tokens: list[Token],
) -> tuple[CategoryBreakdown, FormulaBreakdown, int]:
    if not tokens:
        raise EmptyTranscriptError()
    breakdown = compute_category_breakdown(tokens)
    formula = compute_formula_breakdown(breakdown)
    return breakdown, formula, compute_f_score(formula)


def _score_turns(text: str, tagger: Tagger | None) -> list[TurnScore]:
    results: list[TurnScore] = []
    ai_turns = [t for t in split_turns(text) if t.speaker == "ai"]
    for position, turn in enumerate(ai_turns):
        tokens = classify_tokens(turn.text, tagger)
        if not tokens:
            continue
        breakdown, formula, f_score = _score_tokens(tokens)
        interpretation, label = interpret(f_score)
        results.append(TurnScore(
            turn_index=position,
            turn_text=turn.preview,
            result=FormalityCalculation(
                f_score=f_score,
                total_tokens=breakdown.total_tokens,
                interpretation=interpretation,
                interpretation_label=label,
                category_data=breakdown,
                formula_breakdown=formula,
                tokens_data=tuple(tokens),
                original_transcript=turn.text,
                ai_only_mode=True,
            ),
        ))
    return results


def score_transcript(
    text: str,
    ai_only_mode: bool = False,
    per_turn_mode: bool = False,
    tagger: Tagger | None = None,
    *,
    call_id: str | None = None,
    participant_id: str | None = None,
    batch_name: str | None = None,
    notes: str | None = None,
) -> FormalityCalculation:
    """Score a whole transcript, optionally restricted to the assistant.

    In per-turn mode each assistant turn is scored independently and
    ``average_turn_score`` is their arithmetic mean; the whole-transcript
    score is still computed alongside, over the same assistant text so the
    two are comparable.  Raises ``EmptyTranscriptError``
    when the (filtered) transcript has no scorable tokens.
    """
    scored_text = text
    if ai_only_mode or per_turn_mode:
        scored_text = " ".join(t.text for t in split_turns(text) if t.speaker == "ai")

    tokens = classify_tokens(scored_text, tagger)
    breakdown, formula, f_score = _score_tokens(tokens)
    interpretation, label = interpret(f_score)

    warning = None
    if breakdown.total_tokens < settings.SHORT_TRANSCRIPT_TOKENS:
        warning = (
            f"Transcript is short ({breakdown.total_tokens} tokens); "
            "the F-score may be unreliable."
        )
        logger.info("[formality] %s", warning)

    turns: list[TurnScore] = []
    average: float | None = None
    if per_turn_mode:
        turns = _score_turns(text, tagger)
        if turns:
            average = sum(t.result.f_score for t in turns) / len(turns)

    logger.debug(
        "[formality] scored %d tokens -> F=%d (%s)",
        breakdown.total_tokens, f_score, interpretation,
    )
    return FormalityCalculation(
        f_score=f_score,
        total_tokens=breakdown.total_tokens,
        interpretation=interpretation,
        interpretation_label=label,
        category_data=breakdown,
        formula_breakdown=formula,
        tokens_data=tuple(tokens),
        original_transcript=text,
        linked_call_id=call_id,
        linked_prolific_id=participant_id,
        ai_only_mode=ai_only_mode,
        per_turn_mode=per_turn_mode,
        per_turn_results=tuple(turns),
        average_turn_score=average,
        batch_name=batch_name,
        notes=notes,
        warning=warning,
    )
