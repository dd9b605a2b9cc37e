"""Public, cacheable read endpoints for the music library."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..cache import FILTERS_KEY, LIST_KEY, detail_key, get_response_cache
from ..db import get_session
from ..models import Song
from ..schemas import FilterOptions, SongDetailOut, SongsPage
from ..services.library import (
    calculate_filter_options,
    filter_songs,
    paginate,
    search_songs,
)
from ..services.songs import SongNotFoundError, get_song, list_songs, to_song_detail, to_song_list_item


router = APIRouter(prefix="/api/songs", tags=["songs"])

LIST_CACHE_CONTROL = "public, s-maxage=1800, stale-while-revalidate=86400"
DETAIL_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=86400"
LIST_TTL = 1800.0
DETAIL_TTL = 3600.0


def _set_cache_headers(response: Response, cache_control: str, max_age: int) -> None:
    response.headers["Cache-Control"] = cache_control
    response.headers["CDN-Cache-Control"] = f"public, max-age={max_age}"
    response.headers["Vary"] = "Accept-Encoding"


def _library(session):
    """Sorted song summaries plus raw lyrics by id, cached between revalidations."""

    def load():
        songs = list_songs(session, Song)
        return (
            [to_song_list_item(song) for song in songs],
            {song.id: song.lyrics for song in songs if song.lyrics},
        )

    return get_response_cache().get_or_set(LIST_KEY, load, ttl=LIST_TTL)


@router.get("", response_model=SongsPage, summary="Search and list songs")
def list_public_songs(
    response: Response,
    session=Depends(get_session),
    q: Optional[str] = Query(None, max_length=100),
    lyrics: bool = Query(False, description="Also match the query against lyric text"),
    type: Optional[str] = Query(None),
    year: Optional[List[str]] = Query(None, description="Repeat for several years"),
    lyricist: Optional[str] = Query(None),
    composer: Optional[str] = Query(None),
    arranger: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
):
    songs, lyric_texts = _library(session)
    matched = search_songs(songs, q, lyrics=lyric_texts if lyrics else None)
    matched = filter_songs(
        matched,
        song_type=type,
        years=year,
        lyricist=lyricist,
        composer=composer,
        arranger=arranger,
    )
    items, total, total_pages, has_next = paginate(matched, page, size)
    _set_cache_headers(response, LIST_CACHE_CONTROL, 1800)
    return SongsPage(
        items=items,
        total=total,
        page=page,
        size=size,
        has_next=has_next,
        total_pages=total_pages,
    )


@router.get("/filters", response_model=FilterOptions, summary="Filter choices for the song list")
def song_filters(response: Response, session=Depends(get_session)):
    songs, _ = _library(session)
    options = get_response_cache().get_or_set(FILTERS_KEY, lambda: calculate_filter_options(songs), ttl=LIST_TTL)
    _set_cache_headers(response, LIST_CACHE_CONTROL, 1800)
    return options


@router.get("/{song_id}", response_model=SongDetailOut, summary="Song detail")
def song_detail(song_id: int, response: Response, session=Depends(get_session)):
    cache = get_response_cache()
    detail = cache.get(detail_key(song_id))
    if detail is None:
        try:
            detail = to_song_detail(get_song(session, song_id, Song))
        except SongNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found")
        cache.set(detail_key(song_id), detail, ttl=DETAIL_TTL)
    _set_cache_headers(response, DETAIL_CACHE_CONTROL, 3600)
    return detail
