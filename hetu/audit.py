"""Audit trail for curator edits to songs and profiles."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Union

from sqlmodel import Session

from .models import AuditLog


def record_audit_log(
    session: Session,
    *,
    entity_type: str,
    entity_id: Union[int, str],
    action: str,
    actor_user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Add an :class:`AuditLog` row to the caller's transaction.

    Song ids are integers and profile ids are auth subjects; both are stored
    as text. The caller commits.
    """

    log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor_user_id=actor_user_id,
        details=details or {},
    )
    session.add(log)
    return log


def record_song_change(
    session: Session,
    *,
    song_id: int,
    table: str,
    action: str,
    actor_user_id: Optional[str] = None,
    fields: Optional[Iterable[str]] = None,
    title: Optional[str] = None,
) -> AuditLog:
    """Log a create or update of a song row in ``table``."""

    details: Dict[str, Any] = {"table": table}
    if title is not None:
        details["title"] = title
    if fields is not None:
        details["fields"] = sorted(f for f in fields if f != "updated_at")
    return record_audit_log(
        session,
        entity_type="song",
        entity_id=song_id,
        action=action,
        actor_user_id=actor_user_id,
        details=details,
    )
