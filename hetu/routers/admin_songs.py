"""Curator CRUD over the administrative song table."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth import require_user, require_user_csrf
from ..db import get_session
from ..models import AdminSong
from ..observability.metrics import increment_song_conflict
from ..schemas import SongIn, SongOut, SongUpdate
from ..services.songs import (
    SongConflictError,
    SongNotFoundError,
    create_song,
    get_song,
    list_songs,
    to_song_out,
    update_song,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/songs", tags=["admin"])

CONFLICT_MESSAGE = "The song was modified by someone else; refresh the page and try again"


@router.get("", response_model=List[SongOut], summary="List songs in the working table")
def list_admin_songs(current_user=Depends(require_user), session=Depends(get_session)):
    return [to_song_out(song) for song in list_songs(session, AdminSong)]


@router.get("/{song_id}", response_model=SongOut, summary="Get one song from the working table")
def get_admin_song(song_id: int, current_user=Depends(require_user), session=Depends(get_session)):
    try:
        return to_song_out(get_song(session, song_id, AdminSong))
    except SongNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found")


@router.post("", response_model=SongOut, status_code=status.HTTP_201_CREATED, summary="Create a song")
def create_admin_song(
    payload: SongIn,
    current_user=Depends(require_user_csrf),
    session=Depends(get_session),
):
    song = create_song(
        session,
        payload.model_dump(exclude_unset=True),
        model=AdminSong,
        actor_user_id=current_user.get("sub"),
    )
    return to_song_out(song)


@router.put("/{song_id}", response_model=SongOut, summary="Update a song")
def update_admin_song(
    song_id: int,
    payload: SongUpdate,
    current_user=Depends(require_user_csrf),
    session=Depends(get_session),
):
    patch = payload.model_dump(exclude_unset=True, exclude={"updated_at"})
    try:
        song = update_song(
            session,
            song_id,
            patch,
            payload.updated_at,
            model=AdminSong,
            actor_user_id=current_user.get("sub"),
        )
    except SongNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found")
    except SongConflictError:
        increment_song_conflict()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONFLICT_MESSAGE)
    return to_song_out(song)
