import base64
import json
import logging
import re
import time
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from ..config import get_session_cookie_name, get_supabase_jwt_secret, is_dev_no_auth
from ..observability.metrics import increment_auth_failure
from .supabase import AuthProviderError, get_auth_client


logger = logging.getLogger(__name__)

BEARER_PATTERN = re.compile(r"^Bearer ([A-Za-z0-9\-._~+/]+=*)$")
SSR_COOKIE_PATTERN = re.compile(r"^(sb-[A-Za-z0-9_-]+-auth-token)(?:\.(\d+))?$")
REFRESH_COOKIE_NAME = "sb-refresh-token"
JWT_AUDIENCE = "authenticated"


class SessionExpired(Exception):
    pass


def summarize_identity(identity: Optional[Mapping[str, Any]]) -> str:
    """Return a stable, human-readable description for ``identity``."""

    if not isinstance(identity, Mapping):
        return "anonymous"
    parts: List[str] = []
    sub = identity.get("sub")
    if sub:
        parts.append(f"sub={sub}")
    email = identity.get("email")
    if email:
        parts.append(f"email={email}")
    return ", ".join(parts) if parts else "anonymous"


def _dev_user() -> Dict[str, Any]:
    return {
        "sub": "dev-user",
        "email": "dev@example.com",
        "claims": {"dev_no_auth": True},
        "access_token": None,
    }


def _decode_ssr_cookie(raw: str) -> Optional[str]:
    """Return the access token stored in the provider's SSR session cookie."""

    value = raw
    if value.startswith("base64-"):
        encoded = value[len("base64-"):]
        padded = encoded + "=" * (-len(encoded) % 4)
        try:
            value = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            logger.debug("Session cookie is not valid base64")
            return None
    try:
        payload = json.loads(value)
    except ValueError:
        logger.debug("Session cookie is not valid JSON")
        return None
    if isinstance(payload, list) and payload:
        # Older SSR helpers stored [access_token, refresh_token, ...]
        token = payload[0]
        return token if isinstance(token, str) and token else None
    if isinstance(payload, Mapping):
        token = payload.get("access_token")
        return token if isinstance(token, str) and token else None
    return None


def _token_from_cookies(cookies: Mapping[str, str]) -> Optional[str]:
    direct = cookies.get(get_session_cookie_name())
    if direct:
        return direct

    chunks: Dict[str, Dict[int, str]] = {}
    for name, value in cookies.items():
        match = SSR_COOKIE_PATTERN.match(name)
        if not match:
            continue
        base, index = match.group(1), match.group(2)
        chunks.setdefault(base, {})[int(index) if index is not None else -1] = value
    for base, parts in chunks.items():
        if -1 in parts:
            raw = parts[-1]
        else:
            raw = "".join(parts[i] for i in sorted(parts))
        token = _decode_ssr_cookie(raw)
        if token:
            return token
    return None


def extract_access_token(request: Request) -> Optional[str]:
    """Return the caller's access token from the header or session cookies.

    A present but malformed ``Authorization`` header counts as no session; it
    never falls back to cookies.
    """

    auth_header = request.headers.get("authorization")
    if auth_header is not None:
        match = BEARER_PATTERN.match(auth_header)
        if not match:
            logger.debug("Rejecting malformed Authorization header for %s", request.url.path)
            return None
        return match.group(1)
    return _token_from_cookies(request.cookies)


def _validate_exp(payload: Mapping[str, Any]) -> None:
    exp = payload.get("exp")
    try:
        exp_value = float(exp)
    except (TypeError, ValueError):
        logger.debug("Session token for %s has invalid 'exp' claim: %r", summarize_identity(payload), exp)
        raise SessionExpired()
    now = time.time()
    if now > exp_value:
        logger.debug(
            "Session token for %s expired (exp=%s, now=%s)",
            summarize_identity(payload),
            exp_value,
            now,
        )
        raise SessionExpired()


def _verify_jwt(token: str, secret: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            options={"verify_exp": False},
        )
    except JWTError:
        logger.debug("Failed to verify session token signature", exc_info=True)
        raise SessionExpired()
    _validate_exp(payload)
    return payload


def resolve_user_from_token(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return an identity dictionary for ``token`` or ``None`` when there is no live session."""

    if is_dev_no_auth():
        logger.debug("DEV_NO_AUTH enabled; returning synthetic developer identity")
        return _dev_user()
    if not token:
        return None

    secret = get_supabase_jwt_secret()
    if secret:
        try:
            claims = _verify_jwt(token, secret)
        except SessionExpired:
            return None
        return {
            "sub": claims.get("sub"),
            "email": claims.get("email"),
            "claims": claims,
            "access_token": token,
        }

    try:
        user = get_auth_client().get_user(token)
    except AuthProviderError:
        logger.exception("Failed to resolve session with the auth provider")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Authentication failed")
    if not user or not user.get("id"):
        return None
    return {
        "sub": user.get("id"),
        "email": user.get("email"),
        "claims": user,
        "access_token": token,
    }


def get_session_identity(request: Request) -> Optional[Dict[str, Any]]:
    """Dependency returning the caller's identity, or ``None`` when anonymous."""

    identity = resolve_user_from_token(extract_access_token(request))
    if identity:
        logger.debug(
            "Authenticated %s request for %s as %s",
            request.method,
            request.url.path,
            summarize_identity(identity),
        )
    return identity


def unauthorized() -> HTTPException:
    increment_auth_failure()
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
