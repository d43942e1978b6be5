"""Unified backend accessor selecting Supabase or the local in-memory store."""

from __future__ import annotations

import logging

from studylab import settings
from studylab.backend.base import Backend
from studylab.paths import LOCAL_STORE_PATH

logger = logging.getLogger(__name__)

_BACKEND: Backend | None = None


def reset() -> None:
    """Clear the cached backend choice. Call from tests."""
    global _BACKEND  # noqa: PLW0603
    _BACKEND = None


def set_backend(backend: Backend) -> None:
    """Install a specific backend (tests, embedding applications)."""
    global _BACKEND  # noqa: PLW0603
    _BACKEND = backend


def get_backend() -> Backend:
    """Return the process-wide backend, choosing one on first use.

    Supabase is used when both ``SUPABASE_URL`` and
    ``SUPABASE_SERVICE_ROLE_KEY`` are set; otherwise the local store,
    seeded from ``data/local_store.json`` if that file exists.
    """
    global _BACKEND  # noqa: PLW0603
    if _BACKEND is not None:
        return _BACKEND

    url = settings.SUPABASE_URL
    key = settings.SUPABASE_SERVICE_ROLE_KEY
    if url and key:
        from studylab.backend.supabase import SupabaseBackend

        _BACKEND = SupabaseBackend(url, key)
        logger.info("[backend] Using Supabase at %s", url)
    else:
        from studylab.backend.local import LocalBackend
        from studylab.pipeline.endpoints import register_local_functions

        local = LocalBackend.from_file(LOCAL_STORE_PATH)
        register_local_functions(local)
        _BACKEND = local
        logger.info("[backend] Supabase not configured, using local store.")
    return _BACKEND
