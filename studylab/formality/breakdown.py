"""Breakdown view of a stored formality calculation.

Re-derives the coloured-token transcript and the qualitative insight
list from a persisted ``FormalityCalculation``.  Everything here is pure
presentation logic; nothing is re-scored.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from studylab.formality.models import CategoryBreakdown, FormalityCalculation
from studylab.formality.tagger import CATEGORY_ORDER, FormalityCategory as C

# Visibility key for tokens whose tag carries no formality weight.
NEUTRAL_KEY = "neutral"


@dataclass(frozen=True)
class CategoryStyle:
    color: str
    label: str


CATEGORY_COLORS: dict[str, CategoryStyle] = {
    C.NOUN.value: CategoryStyle("green", "Noun"),
    C.ADJECTIVE.value: CategoryStyle("emerald", "Adjective"),
    C.PREPOSITION.value: CategoryStyle("teal", "Preposition"),
    C.ARTICLE.value: CategoryStyle("cyan", "Article"),
    C.PRONOUN.value: CategoryStyle("red", "Pronoun"),
    C.VERB.value: CategoryStyle("orange", "Verb"),
    C.ADVERB.value: CategoryStyle("amber", "Adverb"),
    C.INTERJECTION.value: CategoryStyle("rose", "Interjection"),
    NEUTRAL_KEY: CategoryStyle("gray", "Not counted"),
}

INITIAL_VISIBLE: frozenset[str] = frozenset(
    [c.value for c in CATEGORY_ORDER] + [NEUTRAL_KEY]
)


@dataclass(frozen=True)
class RenderedToken:
    text: str
    pos_tag: str
    key: str  # category value or NEUTRAL_KEY
    color: str
    label: str
    effect: str | None  # "+", "-" or None when not counted
    hidden: bool

    @property
    def tooltip(self) -> str:
        lines = [f"POS Tag: {self.pos_tag}", f"Category: {self.label}"]
        if self.effect == "+":
            lines.append("Effect: + Increases formality")
        elif self.effect == "-":
            lines.append("Effect: - Decreases formality")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "pos_tag": self.pos_tag,
            "key": self.key,
            "color": self.color,
            "label": self.label,
            "effect": self.effect,
            "hidden": self.hidden,
            "tooltip": self.tooltip,
        }


@dataclass(frozen=True)
class Insight:
    message: str
    kind: str  # "positive" | "negative" | "neutral"


@dataclass(frozen=True)
class BreakdownView:
    """Everything the breakdown page shows for one calculation."""

    calculation: FormalityCalculation
    legacy: bool
    tokens: tuple[RenderedToken, ...]
    raw_text: str | None
    insights: tuple[Insight, ...]
    visible: frozenset[str]


def toggle_category(visible: Iterable[str], key: str) -> frozenset[str]:
    """Return ``visible`` with ``key`` flipped."""
    current = frozenset(visible)
    return current - {key} if key in current else current | {key}


def render_tokens(
    calc: FormalityCalculation, visible: Iterable[str] | None = None
) -> list[RenderedToken]:
    """Style each stored token; empty for legacy records without tokens."""
    shown = INITIAL_VISIBLE if visible is None else frozenset(visible)
    rendered: list[RenderedToken] = []
    for token in calc.tokens_data or ():
        key = token.category.value if token.category else NEUTRAL_KEY
        style = CATEGORY_COLORS[key]
        rendered.append(RenderedToken(
            text=token.text,
            pos_tag=token.pos_tag,
            key=key,
            color=style.color,
            label=style.label,
            effect=token.category.effect if token.category else None,
            hidden=key not in shown,
        ))
    return rendered


# (category, comparison, threshold, kind, message template) evaluated in order.
_INSIGHT_RULES: tuple[tuple[C, Callable[[float, float], bool], float, str, str], ...] = (
    (C.VERB, operator.gt, 25, "negative",
     "High verb usage ({pct:.1f}%) is lowering the score significantly"),
    (C.PRONOUN, operator.gt, 12, "negative",
     "Pronoun-heavy text ({pct:.1f}%) indicates conversational style"),
    (C.NOUN, operator.lt, 15, "neutral",
     "Low noun percentage ({pct:.1f}%) compared to formal writing"),
    (C.NOUN, operator.gt, 25, "positive",
     "High noun density ({pct:.1f}%) contributes to formal tone"),
    (C.ADJECTIVE, operator.gt, 10, "positive",
     "Good adjective usage ({pct:.1f}%) adds formality"),
    (C.INTERJECTION, operator.gt, 2, "negative",
     "Interjections present ({pct:.1f}%) - typical of informal speech"),
)

BALANCED_INSIGHT = Insight(
    "The text shows a balanced distribution of word categories", "neutral"
)


def insights(category_data: CategoryBreakdown) -> list[Insight]:
    found = []
    for category, compare, threshold, kind, template in _INSIGHT_RULES:
        pct = category_data.percentage(category)
        if compare(pct, threshold):
            found.append(Insight(template.format(pct=pct), kind))
    return found or [BALANCED_INSIGHT]


def build_view(
    calc: FormalityCalculation, visible: Iterable[str] | None = None
) -> BreakdownView:
    """Assemble the breakdown; records without tokens fall back to raw text."""
    shown = INITIAL_VISIBLE if visible is None else frozenset(visible)
    legacy = not calc.tokens_data
    return BreakdownView(
        calculation=calc,
        legacy=legacy,
        tokens=() if legacy else tuple(render_tokens(calc, shown)),
        raw_text=calc.original_transcript if legacy else None,
        insights=tuple(insights(calc.category_data)),
        visible=shown,
    )


def explain_calculation(calc: FormalityCalculation) -> str:
    """Plain-text walk through the formula for one calculation."""
    f = calc.formula_breakdown
    lines = [
        f"F-score: {calc.f_score} ({calc.interpretation_label})",
        f"Total tokens: {calc.total_tokens}",
        "",
        "F = (noun + adj + prep + art - pron - verb - adv - intj + 100) / 2",
        (
            f"F = ({f.noun_pct:.2f} + {f.adj_pct:.2f} + {f.prep_pct:.2f} + {f.art_pct:.2f}"
            f" - {f.pron_pct:.2f} - {f.verb_pct:.2f} - {f.adv_pct:.2f} - {f.intj_pct:.2f}"
            " + 100) / 2"
        ),
        f"F = {f.intermediate_sum:.2f} / 2 = {f.intermediate_sum / 2:.2f} -> {calc.f_score}",
    ]
    if calc.per_turn_mode and calc.average_turn_score is not None:
        lines.append(
            f"Average per-turn score: {calc.average_turn_score:.1f} "
            f"over {len(calc.per_turn_results)} turns"
        )
    if calc.warning:
        lines += ["", f"Warning: {calc.warning}"]
    return "\n".join(lines)
