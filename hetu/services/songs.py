"""Data access for song records, including the optimistic lock on edits."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Type, Union

from sqlalchemy import update
from sqlmodel import Session, select

from ..audit import record_song_change
from ..config import get_storage_base_url
from ..models import AdminSong, Song, SongBase, utcnow
from ..schemas import SongDetailOut, SongListItem, SongOut
from .lyrics import process_lyrics


logger = logging.getLogger(__name__)

SongModel = Union[Song, AdminSong]

SONG_FIELDS = frozenset(SongBase.model_fields.keys())
_LEADING_YEAR = re.compile(r"^(\d{4})")


class SongNotFoundError(LookupError):
    def __init__(self, song_id: int):
        super().__init__(f"Song {song_id} not found")
        self.song_id = song_id


class SongConflictError(RuntimeError):
    """The stored row changed after the caller last read it."""

    def __init__(self, song_id: int):
        super().__init__(f"Song {song_id} was modified concurrently")
        self.song_id = song_id


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_song_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    match = _LEADING_YEAR.match(text)
    if match:
        return datetime(int(match.group(1)), 1, 1)
    return None


def song_year(value: Optional[str]) -> Optional[int]:
    parsed = parse_song_date(value)
    return parsed.year if parsed else None


def sort_songs(songs: Iterable[SongModel]) -> List[SongModel]:
    """Newest release first; songs without a usable date keep their order at the end."""

    dated = []
    undated = []
    for song in songs:
        parsed = parse_song_date(song.date)
        if parsed is None:
            undated.append(song)
        else:
            dated.append((parsed.replace(tzinfo=None), song))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [song for _, song in dated] + undated


def cover_url(song: SongBase, song_id: Any) -> str:
    base = f"{get_storage_base_url()}/cover"
    if song.hascover is True:
        return f"{base}/{song_id}.jpg"
    if song.hascover is False:
        return f"{base}/proto.jpg"
    return f"{base}/default.jpg"


def score_url(song_id: Any) -> str:
    return f"{get_storage_base_url()}/nmn/{song_id}.png"


def to_song_out(song: SongModel) -> SongOut:
    data = song.model_dump()
    updated_at = data.get("updated_at")
    if isinstance(updated_at, datetime):
        data["updated_at"] = _as_utc(updated_at)
    return SongOut(**data, year=song_year(song.date))


def to_song_list_item(song: SongModel) -> SongListItem:
    fields = song.model_dump(include=set(SongListItem.model_fields) - {"year"})
    return SongListItem(**fields, year=song_year(song.date))


def to_song_detail(song: SongModel) -> SongDetailOut:
    base = to_song_out(song).model_dump()
    return SongDetailOut(
        **base,
        normal_lyrics=process_lyrics(song.lyrics or "").lyrics,
        cover_url=cover_url(song, song.id),
        score_url=score_url(song.id),
    )


def list_songs(session: Session, model: Type[SongModel] = Song) -> List[SongModel]:
    rows = session.exec(select(model).order_by(model.id)).all()
    return sort_songs(rows)


def get_song(session: Session, song_id: int, model: Type[SongModel] = Song) -> SongModel:
    song = session.get(model, song_id)
    if song is None:
        raise SongNotFoundError(song_id)
    return song


def _song_values(patch: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in patch.items() if key in SONG_FIELDS}


def create_song(
    session: Session,
    payload: Dict[str, Any],
    *,
    model: Type[SongModel] = AdminSong,
    actor_user_id: Optional[str] = None,
) -> SongModel:
    song = model(**_song_values(payload), updated_at=utcnow())
    session.add(song)
    session.flush()
    record_song_change(
        session,
        song_id=song.id,
        table=model.__tablename__,
        action="create",
        actor_user_id=actor_user_id,
        title=song.title,
    )
    session.commit()
    session.refresh(song)
    logger.info("Created song %s in %s", song.id, model.__tablename__)
    return song


def update_song(
    session: Session,
    song_id: int,
    patch: Dict[str, Any],
    expected_updated_at: datetime,
    *,
    model: Type[SongModel] = AdminSong,
    actor_user_id: Optional[str] = None,
) -> SongModel:
    """Apply ``patch`` only if the row still carries ``expected_updated_at``.

    The check and the write are a single conditional UPDATE, so of several
    writers holding the same timestamp exactly one wins. Raises
    :class:`SongConflictError` for the others and :class:`SongNotFoundError`
    when the row does not exist.
    """

    expected = _as_utc(expected_updated_at)
    new_timestamp = utcnow()
    if new_timestamp <= expected:
        new_timestamp = expected + timedelta(microseconds=1)

    values = _song_values(patch)
    values["updated_at"] = new_timestamp
    table = model.__table__
    stmt = (
        update(table)
        .where(table.c.id == song_id, table.c.updated_at == expected)
        .values(**values)
    )
    result = session.connection().execute(stmt)
    if result.rowcount != 1:
        session.rollback()
        if session.get(model, song_id) is None:
            raise SongNotFoundError(song_id)
        logger.info("Rejected stale update of song %s (expected updated_at=%s)", song_id, expected.isoformat())
        raise SongConflictError(song_id)

    record_song_change(
        session,
        song_id=song_id,
        table=model.__tablename__,
        action="update",
        actor_user_id=actor_user_id,
        fields=values,
    )
    session.commit()
    song = session.get(model, song_id)
    if song is None:
        raise SongNotFoundError(song_id)
    session.refresh(song)
    return song
