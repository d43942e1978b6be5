"""Part-of-speech tagging and the POS-tag → formality-category table.

The tagger is swappable: anything with a ``tag(text)`` method returning
``[(token, pos_tag), ...]`` can be passed to the scorer.  Two ship here,
picked by the ``FORMALITY_TAGGER`` setting:

* ``perceptron`` (default): NLTK's averaged-perceptron tagger.  Penn
  Treebank tags are translated to the native tag names below before they
  reach ``TAG_TO_CATEGORY``.
* ``lexicon``: a deterministic lexicon + suffix + one-token-context
  tagger built on ``studylab.formality.lexicon``.  It needs no model
  download.

The category mapping is plain data (``TAG_TO_CATEGORY``) so it can be
unit-tested independently of whichever tagger produced the tags.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

import nltk
from nltk.tag.perceptron import PerceptronTagger as NltkPerceptronTagger

from studylab import settings
from studylab.errors import FormalityError
from studylab.formality import lexicon
from studylab.formality.transcript import tokenize

logger = logging.getLogger(__name__)


class FormalityCategory(str, Enum):
    """The eight Heylighen & Dewaele word classes."""

    NOUN = "noun"
    ADJECTIVE = "adjective"
    PREPOSITION = "preposition"
    ARTICLE = "article"
    PRONOUN = "pronoun"
    VERB = "verb"
    ADVERB = "adverb"
    INTERJECTION = "interjection"

    @property
    def effect(self) -> str:
        """``+`` when the class raises formality, ``-`` when it lowers it."""
        return "+" if self in FORMAL_CATEGORIES else "-"


FORMAL_CATEGORIES: frozenset[FormalityCategory] = frozenset({
    FormalityCategory.NOUN,
    FormalityCategory.ADJECTIVE,
    FormalityCategory.PREPOSITION,
    FormalityCategory.ARTICLE,
})

# Fixed display / iteration order.
CATEGORY_ORDER: tuple[FormalityCategory, ...] = tuple(FormalityCategory)

# Tags that carry no formality weight (determiners, conjunctions, "to",
# number words) map to None and are reported as "not counted".
TAG_TO_CATEGORY: dict[str, FormalityCategory | None] = {
    "Noun": FormalityCategory.NOUN,
    "Plural": FormalityCategory.NOUN,
    "Possessive": FormalityCategory.NOUN,
    "Adjective": FormalityCategory.ADJECTIVE,
    "Preposition": FormalityCategory.PREPOSITION,
    "Article": FormalityCategory.ARTICLE,
    "Pronoun": FormalityCategory.PRONOUN,
    "Verb": FormalityCategory.VERB,
    "Infinitive": FormalityCategory.VERB,
    "PresentTense": FormalityCategory.VERB,
    "PastTense": FormalityCategory.VERB,
    "Gerund": FormalityCategory.VERB,
    "Copula": FormalityCategory.VERB,
    "Auxiliary": FormalityCategory.VERB,
    "Modal": FormalityCategory.VERB,
    "Adverb": FormalityCategory.ADVERB,
    "Interjection": FormalityCategory.INTERJECTION,
    "Determiner": None,
    "Conjunction": None,
    "Particle": None,
    "Value": None,
}

UNKNOWN_TAG = "Unknown"


def map_tag(pos_tag: str) -> FormalityCategory | None:
    """Map a POS tag to its formality category (None = not counted)."""
    return TAG_TO_CATEGORY.get(pos_tag)


class Tagger(Protocol):
    """Anything that can POS-tag preprocessed text."""

    name: str
    description: str

    def tag(self, text: str) -> list[tuple[str, str]]:
        ...


# Previous-token tags after which an ambiguous word reads as a noun
# ("the work", "my call", "a nice walk").
_NOUN_CONTEXT = frozenset({"Article", "Determiner", "Adjective", "Possessive"})
# ... and after which it reads as a verb ("I like", "to work", "can help").
_VERB_CONTEXT = frozenset({"Pronoun", "Modal", "Auxiliary", "Particle", "Noun", "Plural"})

_POSSESSIVE_PRONOUNS = frozenset({"my", "your", "his", "her", "its", "our", "their", "whose"})

_NEGATED_MODALS = {"ca": "can", "wo": "will", "sha": "shall"}

_VERB_TAGS = frozenset(t for t, c in TAG_TO_CATEGORY.items() if c is FormalityCategory.VERB)


def resolve_demonstratives(tagged: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Retag "this/that/these/those" as pronouns when no noun follows.

    A demonstrative directly before a verb ("that sounds great") or at
    the end of the text ("I like that") is standing in for a noun phrase.
    """
    resolved = list(tagged)
    for i, (word, pos) in enumerate(resolved):
        if word not in lexicon.DEMONSTRATIVES or pos == "Pronoun":
            continue
        next_tag = resolved[i + 1][1] if i + 1 < len(resolved) else None
        if next_tag is None or next_tag in _VERB_TAGS:
            resolved[i] = (word, "Pronoun")
    return resolved


def _verb_stem(word: str) -> str | None:
    """Return the lexicon base form of a regularly inflected verb, if any."""
    candidates: list[str] = []
    if word.endswith("ing") and len(word) > 4:
        stem = word[:-3]
        candidates += [stem, stem + "e"]
        if len(stem) > 2 and stem[-1] == stem[-2]:
            candidates.append(stem[:-1])
    elif word.endswith("ied") and len(word) > 4:
        candidates.append(word[:-3] + "y")
    elif word.endswith("ed") and len(word) > 3:
        stem = word[:-2]
        candidates += [stem, word[:-1]]
        if len(stem) > 2 and stem[-1] == stem[-2]:
            candidates.append(stem[:-1])
    elif word.endswith("ies") and len(word) > 4:
        candidates.append(word[:-3] + "y")
    elif word.endswith("es") and len(word) > 3:
        candidates += [word[:-2], word[:-1]]
    elif word.endswith("s") and not word.endswith("ss") and len(word) > 2:
        candidates.append(word[:-1])

    for candidate in candidates:
        if candidate in lexicon.VERB_BASES:
            return candidate
    return None


def _inflection_tag(word: str) -> str:
    if word.endswith("ing"):
        return "Gerund"
    if word.endswith("ed"):
        return "PastTense"
    return "PresentTense"


class LexiconTagger:
    """Deterministic rule-based tagger (lexicon → context → suffix → noun)."""

    name = "studylab-lexicon"
    description = "Deterministic lexicon and suffix rule tagger"

    def tag(self, text: str) -> list[tuple[str, str]]:
        tagged: list[tuple[str, str]] = []
        prev_tag: str | None = None
        for token in tokenize(text):
            pos = self.tag_word(token, prev_tag)
            tagged.append((token, pos))
            prev_tag = "Possessive" if token in _POSSESSIVE_PRONOUNS else pos
        return resolve_demonstratives(tagged)

    def tag_word(self, word: str, prev_tag: str | None = None) -> str:
        """Tag a single lowercase token given the previous token's tag."""
        if word in lexicon.ARTICLES:
            return "Article"
        if "'" in word and word not in lexicon.PRONOUNS:
            return self._tag_contraction(word, prev_tag)
        if word in lexicon.PRONOUNS:
            return "Pronoun"
        if word in lexicon.INTERJECTIONS:
            return "Interjection"
        if word in lexicon.LEXICAL_NOUNS:
            return "Plural" if word.endswith("s") else "Noun"
        if word in lexicon.MODALS:
            return "Modal"
        if word in lexicon.COPULAS:
            return "Copula"
        if word in lexicon.AUXILIARIES:
            return "Auxiliary"
        if word in lexicon.PREPOSITIONS:
            if word in lexicon.VERB_BASES and prev_tag in _VERB_CONTEXT:
                return "Verb"
            return "Preposition"
        if word in lexicon.CONJUNCTIONS:
            return "Conjunction"
        if word in lexicon.DETERMINERS:
            return "Determiner"
        if word in lexicon.PARTICLES:
            return "Particle"
        if word in lexicon.NUMBERS:
            return "Value"
        if word in lexicon.ADVERBS:
            return "Adverb"

        if word in lexicon.VERB_BASES:
            # "the work", "at work"
            if prev_tag in _NOUN_CONTEXT or prev_tag == "Preposition":
                return "Noun"
            if word in lexicon.ADJECTIVES and prev_tag not in _VERB_CONTEXT:
                return "Adjective"
            return "Infinitive" if prev_tag == "Particle" else "Verb"
        if word in lexicon.IRREGULAR_VERB_FORMS:
            return "PastTense"
        if word in lexicon.ADJECTIVES:
            return "Adjective"

        if _verb_stem(word) is not None:
            if prev_tag in _NOUN_CONTEXT:
                return "Plural" if word.endswith("s") else "Noun"
            return _inflection_tag(word)
        if word.endswith("ing") and len(word) > 4 and word not in lexicon.ING_NOUNS:
            return "Noun" if prev_tag in _NOUN_CONTEXT else "Gerund"
        if word.endswith("ed") and len(word) > 4 and word not in lexicon.ED_NON_VERBS:
            return "PastTense"
        if word.endswith("ly") and len(word) > 3 and word not in lexicon.LY_EXCEPTIONS:
            return "Adverb"
        for suffix in lexicon.ADJECTIVE_SUFFIXES:
            if word.endswith(suffix) and len(word) > len(suffix) + 2:
                return "Adjective"

        if word.endswith("s") and not word.endswith("ss") and len(word) > 3:
            return "Plural"
        return "Noun"

    def _tag_contraction(self, word: str, prev_tag: str | None) -> str:
        if word.endswith("n't"):
            base = word[:-3]
            base = _NEGATED_MODALS.get(base, base)
            if base in lexicon.MODALS:
                return "Modal"
            if base in lexicon.COPULAS:
                return "Copula"
            return "Auxiliary"

        head, _, tail = word.partition("'")
        if not head:
            return UNKNOWN_TAG
        if head in lexicon.DEMONSTRATIVES:
            return "Pronoun"
        head_tag = self.tag_word(head, prev_tag)
        if tail == "s" and head_tag in ("Noun", "Plural"):
            return "Possessive"
        return head_tag


# Penn Treebank tag → native tag name.  Anything missing is "Unknown".
PENN_TO_TAG: dict[str, str] = {
    "NN": "Noun", "NNP": "Noun", "FW": "Noun",
    "NNS": "Plural", "NNPS": "Plural",
    "POS": "Possessive",
    "JJ": "Adjective", "JJR": "Adjective", "JJS": "Adjective",
    "IN": "Preposition",
    "DT": "Determiner", "PDT": "Determiner", "WDT": "Determiner",
    "PRP": "Pronoun", "PRP$": "Pronoun", "WP": "Pronoun", "WP$": "Pronoun", "EX": "Pronoun",
    "VB": "Verb", "VBP": "PresentTense", "VBZ": "PresentTense",
    "VBD": "PastTense", "VBN": "PastTense", "VBG": "Gerund",
    "MD": "Modal",
    "RB": "Adverb", "RBR": "Adverb", "RBS": "Adverb", "WRB": "Adverb",
    "TO": "Particle", "RP": "Particle",
    "UH": "Interjection",
    "CC": "Conjunction",
    "CD": "Value",
}

PERCEPTRON_MODEL = "averaged_perceptron_tagger_eng"


def penn_to_tag(word: str, penn_tag: str) -> str:
    """Translate one Penn tag, splitting the classes Penn merges.

    Penn tags articles and other determiners alike (DT), and subordinating
    conjunctions alike with prepositions (IN).
    """
    if word in lexicon.ARTICLES:
        return "Article"
    pos = PENN_TO_TAG.get(penn_tag, UNKNOWN_TAG)
    if pos == "Preposition" and word in lexicon.CONJUNCTIONS:
        return "Conjunction"
    if pos in _VERB_TAGS and word in lexicon.COPULAS:
        return "Copula"
    return pos


@functools.lru_cache(maxsize=1)
def load_perceptron_model() -> NltkPerceptronTagger:
    """Load NLTK's English perceptron model, fetching it on first use."""
    try:
        return NltkPerceptronTagger()
    except LookupError:
        logger.info("[formality] downloading NLTK model %s", PERCEPTRON_MODEL)
        if not nltk.download(PERCEPTRON_MODEL, quiet=True):
            raise FormalityError(
                f"NLTK model {PERCEPTRON_MODEL!r} is not installed and could not be downloaded"
            ) from None
        return NltkPerceptronTagger()


class PerceptronTagger:
    """NLTK averaged-perceptron tagger speaking the native tag names."""

    name = "nltk-averaged-perceptron"
    description = "NLTK averaged perceptron (Penn Treebank tags)"

    def __init__(self, model: Any = None) -> None:
        self._model = model

    @property
    def model(self) -> Any:
        if self._model is None:
            self._model = load_perceptron_model()
        return self._model

    def tag(self, text: str) -> list[tuple[str, str]]:
        tokens = tokenize(text)
        if not tokens:
            return []
        tagged = [(word, penn_to_tag(word, penn)) for word, penn in self.model.tag(tokens)]
        return resolve_demonstratives(tagged)


TAGGERS: dict[str, Callable[[], Tagger]] = {
    "perceptron": PerceptronTagger,
    "lexicon": LexiconTagger,
}


@functools.lru_cache(maxsize=None)
def _build_tagger(name: str) -> Tagger:
    factory = TAGGERS.get(name)
    if factory is None:
        raise FormalityError(f"Unknown tagger {name!r} (choose from {', '.join(TAGGERS)})")
    return factory()


def get_tagger(name: str | None = None) -> Tagger:
    """Return the tagger named by ``name`` or the ``FORMALITY_TAGGER`` setting."""
    return _build_tagger(name or settings.FORMALITY_TAGGER)


def tagger_info(tagger: Tagger | None = None) -> dict:
    """Describe the tagging setup for the reproducibility panel."""
    tagger = tagger or get_tagger()
    mapping: dict[FormalityCategory, list[str]] = {c: [] for c in CATEGORY_ORDER}
    for tag, category in TAG_TO_CATEGORY.items():
        if category is not None:
            mapping[category].append(tag)

    return {
        "name": tagger.name,
        "type": tagger.description,
        "tokenization_rules": [
            "Lowercase all text",
            "Remove punctuation except apostrophes inside words (e.g. \"you've\")",
            "Split on whitespace",
            "Keep only alphabetic tokens (numbers are ignored)",
            "Stopwords are NOT removed",
        ],
        "article_list": sorted(lexicon.ARTICLES),
        "category_mapping": [
            {"category": c.value, "tags": mapping[c], "f_score_sign": c.effect}
            for c in CATEGORY_ORDER
        ],
        "not_counted_tags": sorted(t for t, c in TAG_TO_CATEGORY.items() if c is None),
        "formula": "F = (noun% + adj% + prep% + art% - pron% - verb% - adv% - intj% + 100) / 2",
    }
