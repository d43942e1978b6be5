"""Typed records produced by the formality scorer.

A ``FormalityCalculation`` is immutable once created; it is persisted as
a row of the ``formality_calculations`` collection via ``to_row()`` and
re-hydrated with ``FormalityCalculation.from_row()`` by the breakdown
view.  Legacy rows may lack ``tokens_data``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from studylab.formality.tagger import CATEGORY_ORDER, FormalityCategory

# Column keys used for each category in the stored ``category_data``.
CATEGORY_KEYS: dict[FormalityCategory, str] = {
    FormalityCategory.NOUN: "nouns",
    FormalityCategory.ADJECTIVE: "adjectives",
    FormalityCategory.PREPOSITION: "prepositions",
    FormalityCategory.ARTICLE: "articles",
    FormalityCategory.PRONOUN: "pronouns",
    FormalityCategory.VERB: "verbs",
    FormalityCategory.ADVERB: "adverbs",
    FormalityCategory.INTERJECTION: "interjections",
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores (12.5 -> 13), not to even."""
    # Round to 9 places first so float noise (e.g. 74.49999999) cannot
    # flip a true .5 boundary.
    return int(math.floor(round(value, 9) + 0.5))


@dataclass(frozen=True)
class Token:
    """One scorable token with its POS tag and formality category."""

    text: str
    pos_tag: str
    category: FormalityCategory | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.text,
            "pos_tag": self.pos_tag,
            "category": self.category.value if self.category else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        category = data.get("category")
        return cls(
            text=data.get("token", data.get("text", "")),
            pos_tag=data.get("pos_tag", data.get("posTag", "Unknown")),
            category=FormalityCategory(category) if category else None,
        )


@dataclass(frozen=True)
class CategoryStats:
    count: int = 0
    percentage: float = 0.0


@dataclass(frozen=True)
class CategoryBreakdown:
    """Counts and percentages for all eight categories."""

    total_tokens: int
    stats: dict[FormalityCategory, CategoryStats]

    def __getitem__(self, category: FormalityCategory) -> CategoryStats:
        return self.stats.get(category, CategoryStats())

    def percentage(self, category: FormalityCategory) -> float:
        return self[category].percentage

    @property
    def counted_tokens(self) -> int:
        return sum(s.count for s in self.stats.values())

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {
            CATEGORY_KEYS[c]: {"count": self[c].count, "percentage": self[c].percentage}
            for c in CATEGORY_ORDER
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], total_tokens: int) -> CategoryBreakdown:
        stats = {}
        for c in CATEGORY_ORDER:
            raw = data.get(CATEGORY_KEYS[c]) or {}
            stats[c] = CategoryStats(
                count=int(raw.get("count", 0)),
                percentage=float(raw.get("percentage", 0.0)),
            )
        return cls(total_tokens=total_tokens, stats=stats)


@dataclass(frozen=True)
class FormulaBreakdown:
    """The eight percentages as they enter the F-score formula."""

    noun_pct: float
    adj_pct: float
    prep_pct: float
    art_pct: float
    pron_pct: float
    verb_pct: float
    adv_pct: float
    intj_pct: float
    intermediate_sum: float

    def to_dict(self) -> dict[str, float]:
        return {
            "noun_pct": self.noun_pct,
            "adj_pct": self.adj_pct,
            "prep_pct": self.prep_pct,
            "art_pct": self.art_pct,
            "pron_pct": self.pron_pct,
            "verb_pct": self.verb_pct,
            "adv_pct": self.adv_pct,
            "intj_pct": self.intj_pct,
            "intermediate_sum": self.intermediate_sum,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormulaBreakdown:
        return cls(**{k: float(data.get(k, 0.0)) for k in (
            "noun_pct", "adj_pct", "prep_pct", "art_pct",
            "pron_pct", "verb_pct", "adv_pct", "intj_pct", "intermediate_sum",
        )})


@dataclass(frozen=True)
class TurnScore:
    """Score for a single assistant turn (per-turn mode)."""

    turn_index: int
    turn_text: str  # preview, truncated
    result: FormalityCalculation

    def to_dict(self) -> dict[str, Any]:
        return {
            "turn_index": self.turn_index,
            "turn_text": self.turn_text,
            "result": self.result.to_row(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TurnScore:
        return cls(
            turn_index=int(data["turn_index"]),
            turn_text=data.get("turn_text", ""),
            result=FormalityCalculation.from_row(data["result"]),
        )


@dataclass(frozen=True)
class FormalityCalculation:
    """Immutable result of one scoring run."""

    f_score: int
    total_tokens: int
    interpretation: str
    interpretation_label: str
    category_data: CategoryBreakdown
    formula_breakdown: FormulaBreakdown
    tokens_data: tuple[Token, ...] | None
    original_transcript: str = ""
    id: str | None = None
    created_at: str | None = None
    linked_call_id: str | None = None
    linked_prolific_id: str | None = None
    ai_only_mode: bool = False
    per_turn_mode: bool = False
    per_turn_results: tuple[TurnScore, ...] = field(default_factory=tuple)
    average_turn_score: float | None = None
    batch_name: str | None = None
    notes: str | None = None
    warning: str | None = None

    def to_row(self) -> dict[str, Any]:
        """Serialize to a ``formality_calculations`` row."""
        return {
            "id": self.id,
            "created_at": self.created_at,
            "f_score": self.f_score,
            "total_tokens": self.total_tokens,
            "interpretation": self.interpretation,
            "interpretation_label": self.interpretation_label,
            "category_data": self.category_data.to_dict(),
            "formula_breakdown": self.formula_breakdown.to_dict(),
            "tokens_data": (
                [t.to_dict() for t in self.tokens_data]
                if self.tokens_data is not None
                else None
            ),
            "original_transcript": self.original_transcript,
            "linked_call_id": self.linked_call_id,
            "linked_prolific_id": self.linked_prolific_id,
            "ai_only_mode": self.ai_only_mode,
            "per_turn_mode": self.per_turn_mode,
            "per_turn_results": [t.to_dict() for t in self.per_turn_results],
            "average_turn_score": self.average_turn_score,
            "batch_name": self.batch_name,
            "notes": self.notes,
            "warning": self.warning,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> FormalityCalculation:
        total = int(row.get("total_tokens", 0))
        tokens = row.get("tokens_data")
        return cls(
            id=row.get("id"),
            created_at=row.get("created_at"),
            f_score=round_half_up(float(row["f_score"])),
            total_tokens=total,
            interpretation=row.get("interpretation", ""),
            interpretation_label=row.get("interpretation_label", ""),
            category_data=CategoryBreakdown.from_dict(row.get("category_data") or {}, total),
            formula_breakdown=FormulaBreakdown.from_dict(row.get("formula_breakdown") or {}),
            tokens_data=tuple(Token.from_dict(t) for t in tokens) if tokens is not None else None,
            original_transcript=row.get("original_transcript") or "",
            linked_call_id=row.get("linked_call_id"),
            linked_prolific_id=row.get("linked_prolific_id"),
            ai_only_mode=bool(row.get("ai_only_mode", False)),
            per_turn_mode=bool(row.get("per_turn_mode", False)),
            per_turn_results=tuple(
                TurnScore.from_dict(t) for t in row.get("per_turn_results") or []
            ),
            average_turn_score=row.get("average_turn_score"),
            batch_name=row.get("batch_name"),
            notes=row.get("notes"),
            warning=row.get("warning"),
        )
