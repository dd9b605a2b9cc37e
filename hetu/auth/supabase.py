"""Thin client for the hosted auth provider's REST API (Supabase GoTrue)."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx

from ..config import get_supabase_anon_key, get_supabase_url


logger = logging.getLogger(__name__)


class AuthProviderError(RuntimeError):
    """The auth provider could not be reached or answered unexpectedly."""


class InvalidCredentials(Exception):
    """The provider rejected an email/password pair."""


class AuthClient:
    def __init__(self, base_url: str, api_key: str, *, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.api_key}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}/auth/v1{path}"

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Return the user owning ``access_token``, or ``None`` if it is not valid."""

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(self._url("/user"), headers=self._headers(access_token))
        except httpx.HTTPError as exc:
            raise AuthProviderError(f"Auth provider unreachable: {exc}") from exc
        if response.status_code in (401, 403):
            logger.debug("Auth provider rejected access token (status=%s)", response.status_code)
            return None
        if response.status_code >= 400:
            raise AuthProviderError(f"Auth provider returned {response.status_code}")
        payload = response.json()
        return payload if isinstance(payload, dict) else None

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """Exchange credentials for a session payload (access and refresh tokens)."""

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self._url("/token"),
                    params={"grant_type": "password"},
                    headers=self._headers(),
                    json={"email": email, "password": password},
                )
        except httpx.HTTPError as exc:
            raise AuthProviderError(f"Auth provider unreachable: {exc}") from exc
        if response.status_code in (400, 401, 422):
            raise InvalidCredentials(email)
        if response.status_code >= 400:
            raise AuthProviderError(f"Auth provider returned {response.status_code}")
        session = response.json()
        if not isinstance(session, dict) or not session.get("access_token"):
            raise InvalidCredentials(email)
        return session

    def sign_out(self, access_token: str) -> None:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self._url("/logout"), headers=self._headers(access_token))
        except httpx.HTTPError as exc:
            raise AuthProviderError(f"Auth provider unreachable: {exc}") from exc
        # An already expired token has nothing left to revoke.
        if response.status_code >= 400 and response.status_code not in (401, 403):
            raise AuthProviderError(f"Sign-out failed with {response.status_code}")

    def update_user(self, access_token: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.put(
                    self._url("/user"),
                    headers=self._headers(access_token),
                    json=attributes,
                )
        except httpx.HTTPError as exc:
            raise AuthProviderError(f"Auth provider unreachable: {exc}") from exc
        if response.status_code >= 400:
            message = None
            try:
                body = response.json()
                message = body.get("msg") or body.get("message") or body.get("error_description")
            except ValueError:
                pass
            raise AuthProviderError(message or f"Update failed with {response.status_code}")
        return response.json()


@lru_cache(maxsize=1)
def get_auth_client() -> AuthClient:
    url = get_supabase_url()
    key = get_supabase_anon_key()
    if not url or not key:
        raise AuthProviderError("SUPABASE_URL and SUPABASE_ANON_KEY must be configured")
    return AuthClient(url, key)
