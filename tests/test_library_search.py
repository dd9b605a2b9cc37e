from __future__ import annotations

from hetu.schemas import SongListItem
from hetu.services.library import (
    ALL,
    UNKNOWN,
    calculate_filter_options,
    filter_songs,
    paginate,
    score_song,
    search_songs,
    sort_names,
)


def _song(song_id, title, **fields):
    return SongListItem(id=song_id, title=title, **fields)


SONGS = [
    _song(1, "Moonlight", album="Night", lyricist=["Alice"], composer=["Bob"], type=["原创"], year=2021),
    _song(2, "Sunrise", album="Morning", lyricist=["Carol"], composer=["Alice"], type=["翻唱"], year=2019),
    _song(3, "河图", album="风起", lyricist=["张三"], arranger=["李四"], type=["合作", "原创"], year=2021),
    _song(4, "Untitled"),
]


def test_empty_query_returns_everything():
    assert search_songs(SONGS, "  ") == SONGS


def test_exact_title_ranks_first():
    results = search_songs(SONGS, "moonlight")
    assert results[0].id == 1


def test_fuzzy_typo_matches():
    assert [s.id for s in search_songs(SONGS, "moonlite")] == [1]


def test_unrelated_query_matches_nothing():
    assert search_songs(SONGS, "zzzzqqq") == []


def test_name_fields_are_searched():
    ids = {s.id for s in search_songs(SONGS, "alice")}
    assert ids == {1, 2}


def test_title_weight_beats_composer_weight():
    # Alice is lyricist of 1 (0.2) and composer of 2 (0.1).
    assert score_song(SONGS[0], "alice") > score_song(SONGS[1], "alice")


def test_lyrics_search_appends_lyric_matches():
    lyrics = {4: "[00:01.00]hidden words here"}
    assert search_songs(SONGS, "hidden words") == []
    assert [s.id for s in search_songs(SONGS, "hidden words", lyrics=lyrics)] == [4]


def test_filters_with_sentinels():
    assert [s.id for s in filter_songs(SONGS, song_type="原创")] == [1, 3]
    assert [s.id for s in filter_songs(SONGS, song_type=UNKNOWN)] == [4]
    assert [s.id for s in filter_songs(SONGS, song_type=ALL)] == [1, 2, 3, 4]
    assert [s.id for s in filter_songs(SONGS, years=["2021"])] == [1, 3]
    assert [s.id for s in filter_songs(SONGS, years=["2019", UNKNOWN])] == [2, 4]
    assert [s.id for s in filter_songs(SONGS, years=[ALL, "2019"])] == [1, 2, 3, 4]
    assert [s.id for s in filter_songs(SONGS, composer="Alice")] == [2]
    assert [s.id for s in filter_songs(SONGS, arranger=UNKNOWN)] == [1, 2, 4]
    assert [s.id for s in filter_songs(SONGS, lyricist="Alice", years=["2021"])] == [1]


def test_filter_options():
    options = calculate_filter_options(SONGS)
    assert options.types == [ALL, "原创", "合作", "翻唱", UNKNOWN]
    assert options.years == [ALL, "2021", "2019", UNKNOWN]
    assert options.lyricists == [ALL, "Alice", "Carol", "张三", UNKNOWN]
    assert options.composers == [ALL, "Alice", "Bob", UNKNOWN]
    assert options.arrangers == [ALL, "李四", UNKNOWN]


def test_filter_options_without_unknowns():
    options = calculate_filter_options(SONGS[:2])
    assert options.types == [ALL, "原创", "翻唱"]
    assert options.years[-1] == "2019"


def test_sort_names_puts_latin_first():
    assert sort_names(["张三", "bob", "Alice", "1st"]) == ["Alice", "bob", "1st", "张三"]


def test_paginate():
    items, total, pages, has_next = paginate(list(range(45)), page=2, size=20)
    assert items == list(range(20, 40))
    assert (total, pages, has_next) == (45, 3, True)
    items, total, pages, has_next = paginate(list(range(45)), page=3, size=20)
    assert items == list(range(40, 45))
    assert has_next is False
    assert paginate([], 1, 20) == ([], 0, 0, False)
