"""Tests for the NLTK-backed tagger and the tagger selection."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from studylab.errors import FormalityError
from studylab.formality.scorer import score_transcript
from studylab.formality.tagger import (
    FormalityCategory as C,
    LexiconTagger,
    PerceptronTagger,
    get_tagger,
    load_perceptron_model,
    map_tag,
    penn_to_tag,
    tagger_info,
)


def _fake_model(*penn_tags: str) -> MagicMock:
    model = MagicMock()
    model.tag.side_effect = lambda tokens: list(zip(tokens, penn_tags))
    return model


def _categories(tagged):
    return {word: map_tag(tag) for word, tag in tagged}


class TestPennMapping:
    def test_articles_split_from_determiners(self):
        assert penn_to_tag("the", "DT") == "Article"
        assert penn_to_tag("some", "DT") == "Determiner"

    def test_subordinators_split_from_prepositions(self):
        assert penn_to_tag("because", "IN") == "Conjunction"
        assert penn_to_tag("at", "IN") == "Preposition"

    def test_copulas(self):
        assert penn_to_tag("is", "VBZ") == "Copula"
        assert penn_to_tag("runs", "VBZ") == "PresentTense"

    def test_unknown_penn_tag_is_not_counted(self):
        assert map_tag(penn_to_tag("#", "SYM")) is None

    def test_worked_example_through_penn_tags(self):
        tagger = PerceptronTagger(model=_fake_model("DT", "NN", "VBZ", "JJ"))
        calc = score_transcript("The cat is happy.", tagger=tagger)
        assert [t.pos_tag for t in calc.tokens_data] == ["Article", "Noun", "Copula", "Adjective"]
        assert calc.f_score == 75

    def test_demonstrative_before_verb_is_pronoun(self):
        tagger = PerceptronTagger(model=_fake_model("DT", "VBZ", "JJ"))
        assert tagger.tag("that sounds great")[0] == ("that", "Pronoun")

    def test_demonstrative_before_noun_stays_determiner(self):
        tagger = PerceptronTagger(model=_fake_model("DT", "NN"))
        assert tagger.tag("that book")[0] == ("that", "Determiner")

    def test_empty_text_skips_model(self):
        model = _fake_model()
        assert PerceptronTagger(model=model).tag("") == []
        model.tag.assert_not_called()


class TestSelection:
    def test_suite_uses_lexicon(self):
        assert isinstance(get_tagger(), LexiconTagger)
        assert tagger_info()["name"] == "studylab-lexicon"

    def test_perceptron_by_name(self):
        tagger = get_tagger("perceptron")
        assert isinstance(tagger, PerceptronTagger)
        assert tagger_info(tagger)["type"].startswith("NLTK")

    def test_unknown_tagger(self):
        with pytest.raises(FormalityError, match="Unknown tagger"):
            get_tagger("spacy-large")


class TestConversationalWords:
    """Words the lexicon tagger used to get wrong, checked on both taggers."""

    CASES = [
        ("i am at work", "work", C.NOUN),
        ("how are you doing", "doing", C.VERB),
        ("your favorite book", "favorite", C.ADJECTIVE),
        ("thanks", "thanks", C.NOUN),
    ]

    @pytest.mark.parametrize("text,word,category", CASES)
    def test_lexicon(self, text, word, category):
        assert _categories(LexiconTagger().tag(text))[word] is category

    def test_lexicon_tags_leading_demonstrative_as_pronoun(self):
        assert LexiconTagger().tag("that sounds great") == [
            ("that", "Pronoun"), ("sounds", "PresentTense"), ("great", "Adjective"),
        ]
        assert LexiconTagger().tag_word("that's") == "Pronoun"

    @pytest.fixture(scope="class")
    def perceptron(self):
        try:
            load_perceptron_model()
        except FormalityError as e:
            pytest.skip(str(e))
        return PerceptronTagger()

    @pytest.mark.parametrize("text,word,category", CASES)
    def test_perceptron(self, perceptron, text, word, category):
        assert _categories(perceptron.tag(text))[word] is category

    def test_perceptron_leading_that_is_not_a_conjunction(self, perceptron):
        tagged = dict(perceptron.tag("that sounds great"))
        assert tagged["that"] != "Conjunction"
        assert map_tag(tagged["great"]) is C.ADJECTIVE
