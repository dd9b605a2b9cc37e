from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlmodel import Column, Field, SQLModel

from .config import get_admin_table, get_main_table


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SongBase(SQLModel):
    """Columns shared by the public library and the curators' working table.

    Columns are declared through ``sa_type`` rather than ``sa_column`` so each
    table class receives its own ``Column`` objects.
    """

    title: str = Field(max_length=100, index=True)
    album: Optional[str] = Field(default=None, max_length=100)
    genre: Optional[List[str]] = Field(default=None, sa_type=JSON)
    lyricist: Optional[List[str]] = Field(default=None, sa_type=JSON)
    composer: Optional[List[str]] = Field(default=None, sa_type=JSON)
    arranger: Optional[List[str]] = Field(default=None, sa_type=JSON)
    artist: Optional[List[str]] = Field(default=None, sa_type=JSON)
    albumartist: Optional[List[str]] = Field(default=None, sa_type=JSON)
    type: Optional[List[str]] = Field(default=None, sa_type=JSON)
    length: Optional[int] = None
    hascover: Optional[bool] = None
    nmn_status: Optional[bool] = None
    date: Optional[str] = Field(default=None, max_length=30)
    comment: Optional[str] = Field(default=None, sa_type=Text)
    lyrics: Optional[str] = Field(default=None, sa_type=Text)
    track: Optional[int] = None
    tracktotal: Optional[int] = None
    discnumber: Optional[int] = None
    disctotal: Optional[int] = None
    kugolink: Optional[str] = Field(default=None, max_length=200)
    qmlink: Optional[str] = Field(default=None, max_length=200)
    nelink: Optional[str] = Field(default=None, max_length=200)


class Song(SongBase, table=True):
    __tablename__ = get_main_table()

    id: Optional[int] = Field(default=None, primary_key=True)
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class AdminSong(SongBase, table=True):
    __tablename__ = get_admin_table()

    id: Optional[int] = Field(default=None, primary_key=True)
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class UserProfile(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: Optional[str] = Field(default=None, sa_column=Column(String(length=100), nullable=True))
    display: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    intro: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: gen_id("audit"), primary_key=True)
    entity_type: str = Field(index=True)
    entity_id: str = Field(index=True)
    action: str = Field(index=True)
    actor_user_id: Optional[str] = Field(default=None, index=True)
    details: Dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
