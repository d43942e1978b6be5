"""Transcript normalization, tokenization and speaker-turn parsing.

Transcripts arrive as ``AI: ... User: ...`` text, either newline
separated or inline.  Everything here is pure string handling; POS
tagging lives in ``studylab.formality.tagger``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_SPEAKER_SPLIT = re.compile(r"(?=\bAI:|\bUser:)", re.IGNORECASE)
_AI_PREFIX = re.compile(r"^AI:\s*", re.IGNORECASE)
_USER_PREFIX = re.compile(r"^User:\s*", re.IGNORECASE)
_TRAILING_USER = re.compile(r"\bUser:[\s\S]*", re.IGNORECASE)
_TRAILING_AI = re.compile(r"\bAI:[\s\S]*", re.IGNORECASE)
_INWORD_APOSTROPHE = re.compile(r"(\w)'(\w)")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_ALPHA_TOKEN = re.compile(r"^[a-z]+'?[a-z]*$|^[a-z]*'?[a-z]+$")

_APOSTROPHE_PLACEHOLDER = "__APOSTROPHE__"

TURN_PREVIEW_CHARS = 100


@dataclass(frozen=True)
class Turn:
    """One speaker turn of a transcript."""

    index: int
    speaker: str  # "ai" | "user"
    text: str

    @property
    def preview(self) -> str:
        if len(self.text) > TURN_PREVIEW_CHARS:
            return self.text[:TURN_PREVIEW_CHARS] + "..."
        return self.text


def _normalize_quotes(text: str) -> str:
    text = text.replace("’", "'").replace("‘", "'")
    return text.replace("“", '"').replace("”", '"')


def split_turns(text: str) -> list[Turn]:
    """Split a transcript into speaker turns on ``AI:`` / ``User:`` markers.

    Text before the first marker and empty turns are dropped.
    """
    turns: list[Turn] = []
    for segment in _SPEAKER_SPLIT.split(text or ""):
        trimmed = segment.strip()
        if _AI_PREFIX.match(trimmed):
            speaker = "ai"
            content = _TRAILING_USER.sub("", _AI_PREFIX.sub("", trimmed, count=1))
        elif _USER_PREFIX.match(trimmed):
            speaker = "user"
            content = _TRAILING_AI.sub("", _USER_PREFIX.sub("", trimmed, count=1))
        else:
            continue
        content = content.strip()
        if content:
            turns.append(Turn(index=len(turns), speaker=speaker, text=content))
    return turns


def extract_ai_turns(text: str) -> list[str]:
    """Return the assistant's utterances in order."""
    return [t.text for t in split_turns(text) if t.speaker == "ai"]


def preprocess_text(text: str, ai_only: bool = False) -> str:
    """Normalize text for scoring.

    - optionally keep only AI utterances
    - lowercase
    - strip punctuation, keeping apostrophes inside words ("you've")
    - collapse whitespace
    """
    processed = _normalize_quotes(text or "")
    if ai_only:
        processed = " ".join(extract_ai_turns(processed))

    processed = processed.lower()
    processed = _INWORD_APOSTROPHE.sub(rf"\1{_APOSTROPHE_PLACEHOLDER}\2", processed)
    processed = _PUNCTUATION.sub(" ", processed)
    processed = processed.replace(_APOSTROPHE_PLACEHOLDER, "'")
    return _WHITESPACE.sub(" ", processed).strip()


def tokenize(text: str) -> list[str]:
    """Split preprocessed text into alphabetic tokens (numbers are dropped)."""
    return [tok for tok in text.split() if _ALPHA_TOKEN.match(tok)]
