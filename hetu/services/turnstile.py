"""Server-side verification of Cloudflare Turnstile tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ..config import get_turnstile_secret


logger = logging.getLogger(__name__)

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


class TurnstileConfigError(RuntimeError):
    """No secret key is configured, so tokens cannot be checked."""


class TurnstileUnavailable(RuntimeError):
    pass


@dataclass
class TurnstileResult:
    success: bool
    error_codes: List[str] = field(default_factory=list)


def verify_turnstile_token(token: str, remote_ip: Optional[str] = None, *, timeout: float = 5.0) -> TurnstileResult:
    secret = get_turnstile_secret()
    if not secret:
        raise TurnstileConfigError("TURNSTILE_SECRET_KEY is not configured")

    payload = {"secret": secret, "response": token}
    if remote_ip:
        payload["remoteip"] = remote_ip
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(SITEVERIFY_URL, json=payload)
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Turnstile verification unavailable: %s", exc)
        raise TurnstileUnavailable(str(exc)) from exc

    if not isinstance(data, dict):
        raise TurnstileUnavailable("Unexpected siteverify response")
    codes = data.get("error-codes") or []
    if not data.get("success"):
        logger.info("Turnstile token rejected: %s", ", ".join(codes) or "no error codes")
    return TurnstileResult(success=bool(data.get("success")), error_codes=list(codes))
