"""Application configuration helpers backed by environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _read_flag(name: str) -> bool | None:
    """Return the parsed boolean value for ``name`` if explicitly set."""

    value = os.getenv(name)
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized.lower() in _TRUE_VALUES


def _read_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip()
    return normalized or default


__all__ = [
    "get_admin_table",
    "get_autocomplete_api_base",
    "get_engine_cache_size",
    "get_main_table",
    "get_revalidate_secret",
    "get_session_cookie_name",
    "get_storage_base_url",
    "get_supabase_anon_key",
    "get_supabase_jwt_secret",
    "get_supabase_url",
    "get_turnstile_secret",
    "is_dev_no_auth",
    "is_turnstile_required",
]


def get_main_table() -> str:
    """Return the table holding the public music library.

    Read at model import time, so it is intentionally not cached here.
    """

    return _read_str("MAIN_TABLE", "music") or "music"


def get_admin_table() -> str:
    """Return the administrative working table edited by curators."""

    return _read_str("ADMIN_TABLE", "temp") or "temp"


@lru_cache(maxsize=1)
def get_engine_cache_size() -> int:
    """Return how many database engines may be kept alive at once."""

    raw = _read_str("DB_ENGINE_CACHE_SIZE")
    if raw is None:
        return 10
    try:
        value = int(raw)
    except ValueError:
        return 10
    return max(1, value)


@lru_cache(maxsize=1)
def get_supabase_url() -> Optional[str]:
    url = _read_str("SUPABASE_URL")
    return url.rstrip("/") if url else None


@lru_cache(maxsize=1)
def get_supabase_anon_key() -> Optional[str]:
    return _read_str("SUPABASE_ANON_KEY")


@lru_cache(maxsize=1)
def get_supabase_jwt_secret() -> Optional[str]:
    """Return the shared JWT secret used to verify sessions offline."""

    return _read_str("SUPABASE_JWT_SECRET")


@lru_cache(maxsize=1)
def get_session_cookie_name() -> str:
    return _read_str("SESSION_COOKIE_NAME", "sb-access-token") or "sb-access-token"


@lru_cache(maxsize=1)
def get_storage_base_url() -> str:
    """Return the object storage origin for covers and scores."""

    url = _read_str("STORAGE_BASE_URL", "https://cover.hetu-music.com")
    return (url or "").rstrip("/")


@lru_cache(maxsize=1)
def get_revalidate_secret() -> Optional[str]:
    return _read_str("REVALIDATE_SECRET")


@lru_cache(maxsize=1)
def get_turnstile_secret() -> Optional[str]:
    return _read_str("TURNSTILE_SECRET_KEY")


@lru_cache(maxsize=1)
def is_turnstile_required() -> bool:
    """Return ``True`` when login must present a human-verification token."""

    flag = _read_flag("TURNSTILE_REQUIRED")
    if flag is None:
        return True
    return flag


@lru_cache(maxsize=1)
def get_autocomplete_api_base() -> str:
    url = _read_str("AUTOCOMPLETE_API_BASE", "http://hetu-api:3000")
    return (url or "").rstrip("/")


def is_dev_no_auth() -> bool:
    """Return ``True`` when a synthetic developer identity should be used."""

    flag = _read_flag("DEV_NO_AUTH")
    return bool(flag)
