"""Proxy to the internal song metadata search service."""

from typing import Any, Optional

import httpx

from ..config import get_autocomplete_api_base


class AutoCompleteNotFound(LookupError):
    pass


class AutoCompleteError(RuntimeError):
    pass


def search_metadata(title: str, album: Optional[str] = None, *, timeout: float = 10.0) -> Any:
    params = {"title": title}
    if album:
        params["album"] = album
    url = f"{get_autocomplete_api_base()}/api/song/search"
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.get(url, params=params, headers={"Accept": "application/json"})
    except httpx.HTTPError as exc:
        raise AutoCompleteError(f"Metadata search unreachable: {exc}") from exc
    if response.status_code == 404:
        raise AutoCompleteNotFound(title)
    if response.status_code >= 400:
        raise AutoCompleteError(f"Metadata search failed with {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise AutoCompleteError("Metadata search returned invalid JSON") from exc
