"""Shared fixtures.

The suite scores with the lexicon tagger so expected F-scores do not
depend on the NLTK model; ``test_perceptron_tagger.py`` covers NLTK.
"""

from __future__ import annotations

import pytest

import studylab.settings as settings


@pytest.fixture(autouse=True)
def lexicon_tagger(monkeypatch):
    monkeypatch.setenv("FORMALITY_TAGGER", "lexicon")
    settings.reset()
    yield
    settings.reset()
