"""Search, filtering and paging over the public song list."""

from __future__ import annotations

import difflib
import math
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas import FilterOptions, SongListItem
from .lyrics import lyrics_for_search


ALL = "all"
UNKNOWN = "unknown"
TYPE_ORDER = ["原创", "合作", "文宣", "商业", "墨宝", "翻唱", "参与"]

SEARCH_WEIGHTS: Dict[str, float] = {
    "title": 0.35,
    "album": 0.25,
    "lyricist": 0.2,
    "composer": 0.1,
    "arranger": 0.1,
}
# A field matches when its distance from the query is at most this much.
SEARCH_THRESHOLD = 0.4

_LATIN_INITIAL = re.compile(r"^[A-Za-z]")


def _normalize(value: Optional[str]) -> str:
    if not value:
        return ""
    return " ".join(value.lower().split())


def _similarity(query: str, text: str) -> float:
    """Similarity of ``query`` to the best matching window of ``text``."""

    if not query or not text:
        return 0.0
    if query in text:
        return 1.0
    best = difflib.SequenceMatcher(None, query, text).ratio()
    width = len(query)
    if len(text) > width:
        for start in range(len(text) - width + 1):
            window = text[start : start + width]
            best = max(best, difflib.SequenceMatcher(None, query, window).ratio())
            if best >= 1.0:
                break
    return best


def _field_texts(song: SongListItem, field: str) -> List[str]:
    value = getattr(song, field, None)
    if value is None:
        return []
    if isinstance(value, list):
        return [_normalize(item) for item in value if item]
    return [_normalize(value)]


def score_song(song: SongListItem, query: str) -> float:
    """Weighted relevance of ``song`` for ``query``; 0 when no field is close enough."""

    needle = _normalize(query)
    score = 0.0
    for field, weight in SEARCH_WEIGHTS.items():
        best = max((_similarity(needle, text) for text in _field_texts(song, field)), default=0.0)
        if best >= 1.0 - SEARCH_THRESHOLD:
            score += weight * best
    return score


def search_songs(
    songs: Sequence[SongListItem],
    query: Optional[str],
    *,
    lyrics: Optional[Dict[int, str]] = None,
) -> List[SongListItem]:
    """Fuzzy search over metadata, best matches first.

    When ``lyrics`` (song id to raw LRC) is given, songs whose lyric text
    contains the query are appended after the metadata matches.
    """

    if not query or not query.strip():
        return list(songs)
    scored: List[Tuple[float, int, SongListItem]] = []
    for index, song in enumerate(songs):
        score = score_song(song, query)
        if score > 0:
            scored.append((score, index, song))
    scored.sort(key=lambda item: (-item[0], item[1]))
    results = [song for _, _, song in scored]

    if lyrics:
        needle = _normalize(query)
        matched = {song.id for song in results}
        for song in songs:
            if song.id in matched:
                continue
            if needle in _normalize(lyrics_for_search(lyrics.get(song.id) or "")):
                results.append(song)
    return results


def _matches_names(values: Optional[List[str]], selected: Optional[str]) -> bool:
    if not selected or selected == ALL:
        return True
    if selected == UNKNOWN:
        return not values
    return bool(values) and selected in values


def _matches_year(year: Optional[int], selected: Optional[Sequence[str]]) -> bool:
    choices = [str(item) for item in (selected or []) if str(item)]
    if not choices or ALL in choices:
        return True
    if year is None:
        return UNKNOWN in choices
    return str(year) in choices


def filter_songs(
    songs: Iterable[SongListItem],
    *,
    song_type: Optional[str] = None,
    years: Optional[Sequence[str]] = None,
    lyricist: Optional[str] = None,
    composer: Optional[str] = None,
    arranger: Optional[str] = None,
) -> List[SongListItem]:
    return [
        song
        for song in songs
        if _matches_names(song.type, song_type)
        and _matches_year(song.year, years)
        and _matches_names(song.lyricist, lyricist)
        and _matches_names(song.composer, composer)
        and _matches_names(song.arranger, arranger)
    ]


def sort_names(names: Iterable[str]) -> List[str]:
    """Names starting with a Latin letter first (case-insensitive), then the rest."""

    latin = sorted((n for n in names if _LATIN_INITIAL.match(n)), key=lambda n: (n.casefold(), n))
    others = sorted(n for n in names if not _LATIN_INITIAL.match(n))
    return latin + others


def _collect(songs: Sequence[SongListItem], field: str) -> Tuple[List[str], bool]:
    seen: List[str] = []
    unknown = False
    for song in songs:
        values = getattr(song, field) or []
        if not values:
            unknown = True
            continue
        for value in values:
            if value not in seen:
                seen.append(value)
    return seen, unknown


def _with_sentinels(values: List[str], unknown: bool) -> List[str]:
    return [ALL, *values, *([UNKNOWN] if unknown else [])]


def calculate_filter_options(songs: Sequence[SongListItem]) -> FilterOptions:
    types, unknown_type = _collect(songs, "type")
    ordered_types = [t for t in TYPE_ORDER if t in types] + [t for t in types if t not in TYPE_ORDER]

    years = sorted({song.year for song in songs if song.year}, reverse=True)
    unknown_year = any(not song.year for song in songs)

    lyricists, unknown_lyricist = _collect(songs, "lyricist")
    composers, unknown_composer = _collect(songs, "composer")
    arrangers, unknown_arranger = _collect(songs, "arranger")

    return FilterOptions(
        types=_with_sentinels(ordered_types, unknown_type),
        years=_with_sentinels([str(year) for year in years], unknown_year),
        lyricists=_with_sentinels(sort_names(lyricists), unknown_lyricist),
        composers=_with_sentinels(sort_names(composers), unknown_composer),
        arrangers=_with_sentinels(sort_names(arrangers), unknown_arranger),
    )


def paginate(items: Sequence[SongListItem], page: int, size: int) -> Tuple[List[SongListItem], int, int, bool]:
    """Return ``(page_items, total, total_pages, has_next)``."""

    total = len(items)
    offset = (page - 1) * size
    total_pages = math.ceil(total / size) if size else 0
    return list(items[offset : offset + size]), total, total_pages, offset + size < total
