"""Double-submit CSRF tokens.

A random token is stored in a cookie and handed to the client, which echoes
it back in the ``X-CSRF-Token`` header on state-changing requests. A request
passes only when both values are present and identical.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

from fastapi import HTTPException, Request, status
from starlette.responses import Response

from ..config import _read_flag, _read_str
from ..observability.metrics import increment_csrf_rejection


logger = logging.getLogger(__name__)

CSRF_HEADER_NAME = "x-csrf-token"
TOKEN_BYTES = 32
TOKEN_MAX_AGE = 60 * 60


@dataclass(frozen=True)
class CsrfSettings:
    cookie_name: str = "csrf-token"
    header_name: str = CSRF_HEADER_NAME
    httponly: bool = True
    secure: bool = True
    samesite: Literal["lax", "strict", "none"] = "strict"
    path: str = "/"
    max_age: int = TOKEN_MAX_AGE


def _flag_or(name: str, default: bool) -> bool:
    flag = _read_flag(name)
    return default if flag is None else flag


@lru_cache(maxsize=1)
def get_csrf_settings() -> CsrfSettings:
    samesite = (_read_str("CSRF_COOKIE_SAMESITE", "strict") or "strict").lower()
    if samesite not in ("lax", "strict", "none"):
        logger.warning("Ignoring unsupported CSRF_COOKIE_SAMESITE value %r", samesite)
        samesite = "strict"
    return CsrfSettings(
        cookie_name=_read_str("CSRF_COOKIE_NAME", "csrf-token") or "csrf-token",
        httponly=_flag_or("CSRF_COOKIE_HTTPONLY", True),
        secure=_flag_or("CSRF_COOKIE_SECURE", True),
        samesite=samesite,  # type: ignore[arg-type]
    )


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def issue_token(
    response: Response,
    settings: Optional[CsrfSettings] = None,
    *,
    httponly: Optional[bool] = None,
) -> str:
    """Create a token, store it on ``response`` as a cookie and return it."""

    cfg = settings or get_csrf_settings()
    token = generate_token()
    response.set_cookie(
        cfg.cookie_name,
        token,
        max_age=cfg.max_age,
        path=cfg.path,
        secure=cfg.secure,
        httponly=cfg.httponly if httponly is None else httponly,
        samesite=cfg.samesite,
    )
    return token


def _is_present(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_token(cookie_value: Optional[str], header_value: Optional[str]) -> bool:
    """Return ``True`` only when both tokens are non-blank and byte-equal."""

    if not _is_present(cookie_value) or not _is_present(header_value):
        return False
    return hmac.compare_digest(cookie_value.encode("utf-8"), header_value.encode("utf-8"))


def verify_request(request: Request, settings: Optional[CsrfSettings] = None) -> bool:
    cfg = settings or get_csrf_settings()
    cookie_value = request.cookies.get(cfg.cookie_name)
    header_value = request.headers.get(cfg.header_name)
    return validate_token(cookie_value, header_value)


def reject(request: Request) -> HTTPException:
    increment_csrf_rejection()
    logger.info("Rejected %s %s: invalid CSRF token", request.method, request.url.path)
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid CSRF token")


async def csrf_protect(request: Request) -> None:
    """Dependency for routes that need CSRF protection but no session."""

    if not verify_request(request):
        raise reject(request)


def clear_token(response: Response, settings: Optional[CsrfSettings] = None) -> None:
    cfg = settings or get_csrf_settings()
    response.delete_cookie(
        cfg.cookie_name,
        path=cfg.path,
        secure=cfg.secure,
        httponly=cfg.httponly,
        samesite=cfg.samesite,
    )
