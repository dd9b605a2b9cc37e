"""Helpers for LRC formatted lyrics."""

import re
from dataclasses import dataclass, field
from typing import Dict, List

_METADATA_LINE = re.compile(r"^\[(?:ti|ar|al|by|offset|re|ve):", re.IGNORECASE)
_TIMESTAMP = re.compile(r"\[(\d{1,2}:\d{2}(?:\.\d{2,3})?)\]")
_TIME_PARTS = re.compile(r"^(\d{1,2}):(\d{2})(?:\.(\d{2,3}))?$")
_CREDIT_LINE = re.compile(r"^(作词|作曲|编曲)\s*[:：]\s*(.+)$")
_NAME_SEPARATORS = re.compile(r"[/、,，]")

_CREDIT_FIELDS = {"作词": "lyricist", "作曲": "composer", "编曲": "arranger"}


@dataclass(frozen=True)
class LyricLine:
    time: float
    text: str


@dataclass
class ProcessedLyrics:
    lyrics: str = ""
    lines: List[LyricLine] = field(default_factory=list)


@dataclass
class LrcValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def parse_time(value: str) -> float:
    """Convert ``mm:ss.xx`` (or ``mm:ss.xxx``) to seconds; 0 when unparseable."""

    match = _TIME_PARTS.match(value)
    if not match:
        return 0.0
    minutes, seconds, fraction = match.groups()
    total = int(minutes) * 60 + int(seconds)
    if fraction:
        total += int(fraction) / (10 ** len(fraction))
    return total


def process_lyrics(content: str) -> ProcessedLyrics:
    """Turn LRC text into plain lyrics ordered by timestamp.

    Metadata tags and lines without a timestamp are dropped. A line carrying
    several timestamps is repeated once per timestamp, and identical
    time/text pairs are kept once.
    """

    if not content or not isinstance(content, str):
        return ProcessedLyrics()

    collected: List[LyricLine] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or _METADATA_LINE.match(line):
            continue
        stamps = _TIMESTAMP.findall(line)
        if not stamps:
            continue
        text = _TIMESTAMP.sub("", line).strip()
        if not text:
            continue
        for stamp in stamps:
            collected.append(LyricLine(parse_time(stamp), text))

    collected.sort(key=lambda item: item.time)
    unique: List[LyricLine] = []
    seen = set()
    for item in collected:
        if item in seen:
            continue
        seen.add(item)
        unique.append(item)
    return ProcessedLyrics(lyrics="\n".join(item.text for item in unique), lines=unique)


def validate_lrc_format(content: str) -> LrcValidation:
    if not content or not isinstance(content, str):
        return LrcValidation(False, ["LRC content is empty or not a string"])

    errors: List[str] = []
    has_timestamp = False
    for number, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        for stamp in _TIMESTAMP.findall(line):
            has_timestamp = True
            _, seconds, _ = _TIME_PARTS.match(stamp).groups()
            if int(seconds) >= 60:
                errors.append(f"Invalid timestamp format at line {number}: [{stamp}]")
    if not has_timestamp:
        errors.append("No valid timestamps found in LRC content")
    return LrcValidation(not errors, errors)


def lyrics_for_search(content: str) -> str:
    """Return lyric text flattened to one line for substring matching."""

    if not content:
        return ""
    parts: List[str] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or _METADATA_LINE.match(line):
            continue
        text = _TIMESTAMP.sub("", line).strip()
        if text:
            parts.append(text)
    return " ".join(parts)


def parse_lyric_metadata(content: str) -> Dict[str, List[str]]:
    """Extract lyricist, composer and arranger credits embedded in the lyrics."""

    credits: Dict[str, List[str]] = {}
    if not content:
        return credits
    for raw in content.splitlines():
        text = _TIMESTAMP.sub("", raw).strip()
        match = _CREDIT_LINE.match(text)
        if not match:
            continue
        key = _CREDIT_FIELDS[match.group(1)]
        names = [name.strip() for name in _NAME_SEPARATORS.split(match.group(2)) if name.strip()]
        if names and key not in credits:
            credits[key] = names
    return credits
