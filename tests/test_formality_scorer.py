"""Tests for transcript parsing, POS tagging and the F-score computation."""

from __future__ import annotations

import pytest

from studylab.errors import EmptyTranscriptError
from studylab.formality.scorer import (
    classify_tokens,
    compute_category_breakdown,
    compute_f_score,
    compute_formula_breakdown,
    score_transcript,
)
from studylab.formality.tagger import (
    CATEGORY_ORDER,
    FormalityCategory as C,
    LexiconTagger,
    map_tag,
    tagger_info,
)
from studylab.formality.transcript import extract_ai_turns, preprocess_text, split_turns, tokenize
from studylab.formality.models import FormalityCalculation, FormulaBreakdown


class TestTranscript:
    TRANSCRIPT = "AI: Hello there! How are you?\nUser: I'm fine, thanks.\nAI: Great. Let's begin."

    def test_split_turns_newline_separated(self):
        turns = split_turns(self.TRANSCRIPT)
        assert [t.speaker for t in turns] == ["ai", "user", "ai"]
        assert turns[0].text == "Hello there! How are you?"
        assert [t.index for t in turns] == [0, 1, 2]

    def test_split_turns_inline(self):
        turns = split_turns("AI: hi there User: hello AI: bye now")
        assert [(t.speaker, t.text) for t in turns] == [
            ("ai", "hi there"), ("user", "hello"), ("ai", "bye now"),
        ]

    def test_text_before_first_marker_is_dropped(self):
        assert extract_ai_turns("preamble AI: kept") == ["kept"]

    def test_turn_preview_truncates(self):
        turn = split_turns("AI: " + "word " * 40)[0]
        assert turn.preview.endswith("...")
        assert len(turn.preview) == 103

    def test_preprocess_keeps_inword_apostrophes(self):
        assert preprocess_text("You’ve got it, RIGHT?!") == "you've got it right"

    def test_preprocess_ai_only(self):
        assert preprocess_text(self.TRANSCRIPT, ai_only=True) == (
            "hello there how are you great let's begin"
        )

    def test_tokenize_drops_numbers(self):
        assert tokenize("i have 2 cats and 3b dogs") == ["i", "have", "cats", "and", "dogs"]


class TestTagger:
    def test_closed_classes(self):
        tagger = LexiconTagger()
        tags = dict(tagger.tag("the i of and um"))
        assert tags == {
            "the": "Article",
            "i": "Pronoun",
            "of": "Preposition",
            "and": "Conjunction",
            "um": "Interjection",
        }

    def test_context_disambiguates_noun_and_verb(self):
        tagger = LexiconTagger()
        assert tagger.tag("the work") == [("the", "Article"), ("work", "Noun")]
        assert tagger.tag("i work") == [("i", "Pronoun"), ("work", "Verb")]

    def test_suffix_rules(self):
        tagger = LexiconTagger()
        assert tagger.tag_word("quickly") == "Adverb"
        assert tagger.tag_word("wonderful") == "Adjective"
        assert tagger.tag_word("walked") == "PastTense"
        assert tagger.tag_word("zebras") == "Plural"

    def test_contractions(self):
        tagger = LexiconTagger()
        assert tagger.tag_word("don't") == "Auxiliary"
        assert tagger.tag_word("can't") == "Modal"
        assert tagger.tag_word("isn't") == "Copula"

    def test_noun_after_preposition(self):
        assert LexiconTagger().tag("at work")[1] == ("work", "Noun")
        assert LexiconTagger().tag("to work")[1] == ("work", "Infinitive")

    def test_tagging_is_deterministic(self):
        text = "we should probably talk about the weather today"
        assert LexiconTagger().tag(text) == LexiconTagger().tag(text)

    def test_map_tag(self):
        assert map_tag("Copula") is C.VERB
        assert map_tag("Plural") is C.NOUN
        assert map_tag("Determiner") is None
        assert map_tag("SomethingElse") is None

    def test_category_effects(self):
        assert [c.effect for c in CATEGORY_ORDER] == ["+"] * 4 + ["-"] * 4

    def test_tagger_info_lists_every_category(self):
        info = tagger_info()
        assert info["name"] == "studylab-lexicon"
        assert [m["category"] for m in info["category_mapping"]] == [c.value for c in CATEGORY_ORDER]
        assert info["article_list"] == ["a", "an", "the"]


class TestFScore:
    def test_worked_example(self):
        calc = score_transcript("The cat is happy.")
        assert calc.total_tokens == 4
        for category in (C.ARTICLE, C.NOUN, C.VERB, C.ADJECTIVE):
            assert calc.category_data.percentage(category) == pytest.approx(25.0)
        assert calc.formula_breakdown.intermediate_sum == pytest.approx(150.0)
        assert calc.f_score == 75
        assert calc.interpretation == "highly-formal"
        assert calc.interpretation_label == "Highly Formal"

    def test_bounds(self):
        assert score_transcript("I you we").f_score == 0
        assert score_transcript("cat dog").f_score == 100

    def test_half_rounds_up(self):
        formula = FormulaBreakdown(0, 0, 0, 0, 25, 25, 25, 0, intermediate_sum=25.0)
        assert compute_f_score(formula) == 13

    def test_uncounted_tokens_enlarge_denominator(self):
        tokens = classify_tokens("the cat and this dog")
        breakdown = compute_category_breakdown(tokens)
        assert breakdown.total_tokens == 5
        assert breakdown.counted_tokens == 3
        assert breakdown.percentage(C.NOUN) == pytest.approx(40.0)
        assert sum(breakdown[c].percentage for c in CATEGORY_ORDER) <= 100.0

    def test_formula_uses_breakdown_percentages(self):
        breakdown = compute_category_breakdown(classify_tokens("the cat is happy"))
        formula = compute_formula_breakdown(breakdown)
        assert formula.noun_pct == pytest.approx(25.0)
        assert formula.pron_pct == 0.0

    def test_empty_transcript_raises(self):
        with pytest.raises(EmptyTranscriptError):
            score_transcript("123 !!! ...")

    def test_ai_only_without_ai_turns_raises(self):
        with pytest.raises(EmptyTranscriptError):
            score_transcript("User: just me talking here", ai_only_mode=True)

    def test_ai_only_ignores_user_turns(self):
        calc = score_transcript("User: um yeah I guess so AI: The cat is happy.", ai_only_mode=True)
        assert calc.f_score == 75
        assert calc.total_tokens == 4
        assert calc.ai_only_mode is True

    def test_short_transcript_warning(self):
        assert "short" in score_transcript("The cat is happy.").warning

    def test_long_transcript_has_no_warning(self):
        assert score_transcript("the cat is happy " * 20).warning is None

    def test_tokens_are_stored(self):
        calc = score_transcript("The cat is happy.")
        assert [(t.text, t.pos_tag) for t in calc.tokens_data] == [
            ("the", "Article"), ("cat", "Noun"), ("is", "Copula"), ("happy", "Adjective"),
        ]

    def test_links_and_metadata(self):
        calc = score_transcript(
            "The cat is happy.", call_id="call-1", participant_id="p" * 24,
            batch_name="pilot", notes="check",
        )
        assert calc.linked_call_id == "call-1"
        assert calc.linked_prolific_id == "p" * 24
        assert calc.batch_name == "pilot"
        assert calc.notes == "check"


class TestPerTurn:
    TRANSCRIPT = "AI: The cat is happy. User: ok sure AI: I really think so."

    def test_scores_each_ai_turn(self):
        calc = score_transcript(self.TRANSCRIPT, per_turn_mode=True)
        assert [t.turn_index for t in calc.per_turn_results] == [0, 1]
        assert [t.result.f_score for t in calc.per_turn_results] == [75, 13]
        assert calc.average_turn_score == pytest.approx(44.0)

    def test_turn_text_is_preview(self):
        calc = score_transcript(self.TRANSCRIPT, per_turn_mode=True)
        assert calc.per_turn_results[0].turn_text == "The cat is happy."

    def test_no_ai_turns_is_unscorable(self):
        with pytest.raises(EmptyTranscriptError):
            score_transcript("User: the cat is happy", per_turn_mode=True)

    def test_whole_score_covers_the_same_ai_text(self):
        text = "AI: The committee reviewed the proposal. User: yeah um I I dunno lol"
        calc = score_transcript(text, per_turn_mode=True)
        (turn,) = calc.per_turn_results
        assert calc.total_tokens == turn.result.total_tokens == 5
        assert calc.f_score == turn.result.f_score
        assert calc.original_transcript == text

    def test_off_by_default(self):
        calc = score_transcript(self.TRANSCRIPT)
        assert calc.per_turn_results == ()
        assert calc.average_turn_score is None


class TestRowRoundTrip:
    def test_row_keeps_tokens_and_turns(self):
        calc = score_transcript(TestPerTurn.TRANSCRIPT, per_turn_mode=True, call_id="c1")
        restored = FormalityCalculation.from_row(calc.to_row())
        assert restored == calc

    def test_stored_fractional_score_rounds_half_up(self):
        row = score_transcript("The cat is happy.").to_row()
        row["f_score"] = 62.5
        assert FormalityCalculation.from_row(row).f_score == 63
        row["f_score"] = "61.5"
        assert FormalityCalculation.from_row(row).f_score == 62

    def test_legacy_row_without_tokens(self):
        row = score_transcript("The cat is happy.").to_row()
        row["tokens_data"] = None
        restored = FormalityCalculation.from_row(row)
        assert restored.tokens_data is None
        assert restored.f_score == 75
