from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

for name in [
    "hetu.security.csrf",
    "hetu.auth.session",
    "hetu.uploads",
    "hetu.main",
]:
    importlib.import_module(name)


_CACHED_SETTINGS = [
    ("hetu.config", "get_engine_cache_size"),
    ("hetu.config", "get_supabase_url"),
    ("hetu.config", "get_supabase_anon_key"),
    ("hetu.config", "get_supabase_jwt_secret"),
    ("hetu.config", "get_session_cookie_name"),
    ("hetu.config", "get_storage_base_url"),
    ("hetu.config", "get_revalidate_secret"),
    ("hetu.config", "get_turnstile_secret"),
    ("hetu.config", "is_turnstile_required"),
    ("hetu.config", "get_autocomplete_api_base"),
    ("hetu.security.csrf", "get_csrf_settings"),
    ("hetu.auth.supabase", "get_auth_client"),
]


def _clear_cached_settings() -> None:
    for module_name, attr in _CACHED_SETTINGS:
        getattr(importlib.import_module(module_name), attr).cache_clear()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Start each test from a clean environment and fresh caches."""

    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    for name in ("DEV_NO_AUTH", "SUPABASE_JWT_SECRET", "TURNSTILE_REQUIRED", "REVALIDATE_SECRET"):
        monkeypatch.delenv(name, raising=False)
    _clear_cached_settings()

    from hetu.cache import reset_response_cache
    from hetu.db import reset_engine_cache

    reset_engine_cache()
    reset_response_cache()
    try:
        yield
    finally:
        _clear_cached_settings()
        reset_response_cache()
