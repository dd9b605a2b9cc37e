"""Validation and forwarding of cover and score images to object storage."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

import httpx

from .config import get_storage_base_url


logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE = 100 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 100
FALLBACK_FILE_NAME = "unnamed_file"

_JPEG_PREFIX = b"\xff\xd8\xff"
_JPEG_MARKERS = {0xE0, 0xE1, 0xE2, 0xE3, 0xE8}
_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_RESERVED_CHARS = re.compile(r'[<>:"|?*\x00-\x1f\x7f]')


@dataclass(frozen=True)
class UploadConfig:
    kind: str
    max_file_size: int
    allowed_types: Tuple[str, ...]
    base_url: str
    extension: str
    content_type: str

    def describe_types(self) -> str:
        names = []
        for content_type in self.allowed_types:
            name = content_type.split("/", 1)[-1].upper()
            if name not in names:
                names.append(name)
        return ", ".join(names)


@dataclass
class FileValidation:
    valid: bool
    error: Optional[str] = None


@dataclass
class UploadResult:
    success: bool
    object_name: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None
    details: dict = field(default_factory=dict)


def cover_config() -> UploadConfig:
    return UploadConfig(
        kind="cover",
        max_file_size=MAX_UPLOAD_SIZE,
        allowed_types=("image/jpeg", "image/jpg"),
        base_url=f"{get_storage_base_url()}/cover",
        extension="jpg",
        content_type="image/jpeg",
    )


def score_config() -> UploadConfig:
    return UploadConfig(
        kind="score",
        max_file_size=MAX_UPLOAD_SIZE,
        allowed_types=("image/png",),
        base_url=f"{get_storage_base_url()}/nmn",
        extension="png",
        content_type="image/png",
    )


def config_for(kind: str) -> UploadConfig:
    if kind == "cover":
        return cover_config()
    if kind == "score":
        return score_config()
    raise ValueError(f"Unknown upload kind: {kind}")


def _normalize_content_type(value: Optional[str]) -> str:
    if not value:
        return ""
    return value.split(";", 1)[0].strip().lower()


def validate_file(file: Any, config: UploadConfig) -> FileValidation:
    """Check the declared content type and size of ``file`` against ``config``.

    ``file`` only needs ``content_type`` and ``size`` attributes, which
    Starlette's ``UploadFile`` provides. Expected failures are reported in the
    result, never raised.
    """

    content_type = _normalize_content_type(getattr(file, "content_type", None))
    if content_type not in config.allowed_types:
        return FileValidation(False, f"Only {config.describe_types()} files may be uploaded")

    size = getattr(file, "size", None)
    if size is None:
        return FileValidation(False, "File size is unknown")
    if size > config.max_file_size:
        max_mb = round(config.max_file_size / (1024 * 1024))
        return FileValidation(False, f"File size must not exceed {max_mb}MB")
    return FileValidation(True)


def verify_magic_number(buffer: bytes, content_type: str) -> bool:
    """Return ``True`` when the leading bytes of ``buffer`` match ``content_type``."""

    kind = _normalize_content_type(content_type)
    if kind in ("image/jpeg", "image/jpg"):
        return len(buffer) >= 4 and buffer.startswith(_JPEG_PREFIX) and buffer[3] in _JPEG_MARKERS
    if kind == "image/png":
        return buffer.startswith(_PNG_SIGNATURE)
    if kind == "image/webp":
        return len(buffer) >= 12 and buffer[:4] == b"RIFF" and buffer[8:12] == b"WEBP"
    return False


def validate_file_content(buffer: bytes, content_type: str) -> FileValidation:
    if not buffer:
        return FileValidation(False, "File is empty")
    if not verify_magic_number(buffer, content_type):
        return FileValidation(False, "File content does not match its declared type")
    return FileValidation(True)


def sanitize_file_name(name: Optional[str]) -> str:
    """Make ``name`` safe to use as an object key."""

    if not name:
        return FALLBACK_FILE_NAME
    cleaned = name.replace("/", "").replace("\\", "")
    cleaned = cleaned.replace("..", "")
    cleaned = _RESERVED_CHARS.sub("", cleaned).strip()
    if len(cleaned) > MAX_FILE_NAME_LENGTH:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and stem and len(ext) < MAX_FILE_NAME_LENGTH - 1:
            cleaned = f"{stem[: MAX_FILE_NAME_LENGTH - len(ext) - 1]}.{ext}"
        else:
            cleaned = cleaned[:MAX_FILE_NAME_LENGTH]
    return cleaned or FALLBACK_FILE_NAME


def object_name(identifier: str, config: UploadConfig) -> str:
    return f"{sanitize_file_name(str(identifier))}.{config.extension}"


def object_url(identifier: str, config: UploadConfig) -> str:
    return f"{config.base_url}/{object_name(identifier, config)}"


def _error_from_body(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


def upload_file(
    buffer: bytes,
    identifier: str,
    config: UploadConfig,
    client: Optional[httpx.Client] = None,
) -> UploadResult:
    """PUT ``buffer`` to object storage under a name derived from ``identifier``.

    Storage has to confirm with a JSON object whose ``success`` field is
    truthy. A non-2xx status, an empty or unparseable body, or a missing or
    falsy ``success`` is a failure. Nothing is retried.
    """

    name = object_name(identifier, config)
    check = validate_file_content(buffer, config.content_type)
    if not check.valid:
        return UploadResult(False, object_name=name, error=check.error)

    url = f"{config.base_url}/{name}"
    headers = {"Content-Type": config.content_type}
    try:
        if client is None:
            with httpx.Client(timeout=30.0) as http:
                response = http.put(url, content=buffer, headers=headers)
        else:
            response = client.put(url, content=buffer, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("Upload of %s failed: %s", name, exc)
        return UploadResult(False, object_name=name, error=f"Upload failed: {exc}")

    if not response.is_success:
        message = _error_from_body(response) or f"Upload failed: {response.status_code} {response.reason_phrase}"
        logger.warning("Storage rejected %s with status %s", name, response.status_code)
        return UploadResult(False, object_name=name, error=message)

    try:
        body: Any = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict) or not body.get("success"):
        error = body.get("error") if isinstance(body, dict) else None
        logger.warning("Storage did not confirm upload of %s", name)
        return UploadResult(
            False,
            object_name=name,
            error=str(error or "Upload failed"),
            details=body if isinstance(body, dict) else {},
        )
    return UploadResult(True, object_name=name, url=body.get("url") or url, details=body)


def check_file_exists(
    identifier: str,
    config: UploadConfig,
    client: Optional[httpx.Client] = None,
) -> Tuple[bool, str]:
    """Return whether the object for ``identifier`` exists, and its URL."""

    url = object_url(identifier, config)
    if client is None:
        with httpx.Client(timeout=5.0) as http:
            response = http.head(url)
    else:
        response = client.head(url)
    return response.status_code == 200, url
