"""Project-wide settings and shared scoring / pipeline constants.

All environment-dependent values are read **lazily** on first access
(not at import time) and cached via ``functools.lru_cache``.  Call
``reset()`` in tests to clear the cache after changing env vars;
no ``importlib.reload`` required.
"""

from __future__ import annotations

import functools
import os
from typing import TYPE_CHECKING, Final


def _float_env(name: str, default: float) -> float:
    """Parse float environment values with a safe fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    """Parse integer environment values with a safe fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ── Constants (never change at runtime) ──────────────────────────────────

# Formality interpretation bands: (exclusive upper bound, key, label).
# The last band has no upper bound.  Shared by the scorer and the
# breakdown renderer so the cut points live in exactly one place.
FORMALITY_BANDS: Final[tuple[tuple[float | None, str, str], ...]] = (
    (40, "very-informal", "Very Informal"),
    (50, "conversational", "Conversational"),
    (60, "moderately-formal", "Moderately Formal"),
    (None, "highly-formal", "Highly Formal"),
)

# Prolific participant IDs are exactly 24 characters; researcher test
# calls use short ids such as "researcher3".
PARTICIPANT_ID_LENGTH: Final[int] = 24

# Settings-store keys consumed by the compute pipeline.
RULES_VERSION_KEY: Final[str] = "thematic_coding_rules_version"
ACTIVE_METRIC_KEY: Final[str] = "active_vapi_evaluation_metric_id"

# Run-all estimates (gpt-4o-mini, conservative).
COST_PER_CALL_PASS_A: Final[float] = 0.00048
COST_PER_CALL_PASS_B: Final[float] = 0.00018
TIME_PER_CALL_METRICS: Final[float] = 0.05
TIME_PER_CALL_PASS_A: Final[float] = 2.5
TIME_PER_CALL_PASS_B: Final[float] = 1.5


# ── Lazy settings cache ──────────────────────────────────────────────────

@functools.lru_cache(maxsize=1)
def _load_settings() -> dict[str, object]:
    """Read env-dependent settings once and cache the result."""
    return {
        "SHORT_TRANSCRIPT_TOKENS": _int_env("SHORT_TRANSCRIPT_TOKENS", 50),
        "PIPELINE_BATCH_SIZE": _int_env("PIPELINE_BATCH_SIZE", 10),
        "TRANSCRIPTION_BATCH_SIZE": _int_env("TRANSCRIPTION_BATCH_SIZE", 25),
        "REQUEST_TIMEOUT": _float_env("REQUEST_TIMEOUT", 30.0),
        "LLM_MODEL_NAME": os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini"),
        "FORMALITY_TAGGER": os.getenv("FORMALITY_TAGGER", "perceptron").strip().lower(),
        "SUPABASE_URL": os.getenv("SUPABASE_URL", "").strip(),
        "SUPABASE_SERVICE_ROLE_KEY": os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip(),
    }


def reset() -> None:
    """Clear the cached settings. Call from tests after monkeypatching env vars."""
    _load_settings.cache_clear()


# Type declarations for static analysis (not set at runtime so
# ``__getattr__`` is invoked on attribute access).
if TYPE_CHECKING:
    SHORT_TRANSCRIPT_TOKENS: int
    PIPELINE_BATCH_SIZE: int
    TRANSCRIPTION_BATCH_SIZE: int
    REQUEST_TIMEOUT: float
    LLM_MODEL_NAME: str
    FORMALITY_TAGGER: str
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str


def __getattr__(name: str) -> object:
    """PEP 562 module-level ``__getattr__`` for lazy env reads."""
    settings = _load_settings()
    if name in settings:
        return settings[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


# ── Public helpers ────────────────────────────────────────────────────────


def classify_formality(f_score: float) -> tuple[str, str]:
    """Map an F-score to its ``(interpretation, label)`` band."""
    for upper, key, label in FORMALITY_BANDS:
        if upper is None or f_score < upper:
            return key, label
    # FORMALITY_BANDS always ends with an open band
    raise AssertionError("unreachable")
