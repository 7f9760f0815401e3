"""Filename parser: extracts media metadata from release-style filenames.

Handles the common naming patterns:
  Movies:  Movie.Title.Year.Quality.Source.Codec.ext
  Series:  Show.Name.SXXEXX.Episode.Title.Quality.Source.ext
  Music:   Artist - Album - 01 - Track.ext
  Books:   Author - Title.ext  /  Title (Author).ext

Parsed results are plain dicts. Optional fields are left out entirely when
they don't apply, so naming templates can tell "absent" from "empty".
"""
from __future__ import annotations

import re

VIDEO_EXTENSIONS = {
    ".mkv", ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".m4v", ".ts", ".m2ts",
}
AUDIO_EXTENSIONS = {
    ".mp3", ".flac", ".wav", ".aac", ".ogg", ".wma", ".m4a", ".opus", ".alac",
}
BOOK_EXTENSIONS = {
    ".epub", ".mobi", ".pdf", ".azw", ".azw3", ".cbz", ".cbr",
}
MEDIA_EXTENSIONS = VIDEO_EXTENSIONS | AUDIO_EXTENSIONS | BOOK_EXTENSIONS

# First match wins in each list.
QUALITY_PATTERNS = [
    (re.compile(r"2160p|4k|uhd", re.I), "2160p"),
    (re.compile(r"1080p|1080i", re.I), "1080p"),
    (re.compile(r"720p", re.I), "720p"),
    (re.compile(r"480p|dvdrip", re.I), "480p"),
    (re.compile(r"576p", re.I), "576p"),
]

SOURCE_PATTERNS = [
    (re.compile(r"bluray|blu-ray|bdrip|brrip", re.I), "BluRay"),
    (re.compile(r"web-?dl", re.I), "WEB-DL"),
    (re.compile(r"webrip", re.I), "WEBRip"),
    (re.compile(r"hdtv", re.I), "HDTV"),
    (re.compile(r"dvdrip|dvd", re.I), "DVD"),
    (re.compile(r"remux", re.I), "REMUX"),
]

CODEC_PATTERNS = [
    (re.compile(r"x265|hevc|h\.?265", re.I), "x265"),
    (re.compile(r"x264|h\.?264|avc", re.I), "x264"),
    (re.compile(r"xvid", re.I), "XviD"),
    (re.compile(r"av1", re.I), "AV1"),
]

EPISODE_PATTERNS = [
    re.compile(r"S(\d{1,2})E(\d{1,4})", re.I),                 # S01E01, S01E1015
    re.compile(r"(?<!\d)(\d{1,2})x(\d{1,3})(?!\d)", re.I),     # 1x01
    re.compile(r"Season\s*(\d+).*Episode\s*(\d+)", re.I),      # Season 1 Episode 1
    re.compile(r"\[(\d{1,2})x(\d{1,3})\]", re.I),              # [1x01]
]

YEAR_PATTERN = re.compile(r"(?:^|[._\s(])(\d{4})(?=[._\s)]|$)")

# Where the episode title (or a year-less movie title) stops.
RELEASE_MARKER = re.compile(r"(?<![A-Za-z0-9])(720p|1080p|2160p|4k|hdtv|web|bluray)", re.I)

SEGMENT_SPLIT = re.compile(r"\s+-\s+")
_TRACK_PREFIX = re.compile(r"^\d+[\s._-]*")
_TRAILING_AUTHOR = re.compile(r"\(([^)]+)\)\s*$")
_DANGLING = re.compile(r"^[\s\-\[(]+|[\s\-\[(]+$")


def get_extension(filename: str) -> str:
    """Return the last ``.ext`` segment of ``filename`` as written, or ``""``."""
    match = re.search(r"\.[^./\\]+$", filename or "")
    return match.group(0) if match else ""


def is_video_file(filename: str) -> bool:
    return get_extension(filename).lower() in VIDEO_EXTENSIONS


def is_audio_file(filename: str) -> bool:
    return get_extension(filename).lower() in AUDIO_EXTENSIONS


def is_book_file(filename: str) -> bool:
    return get_extension(filename).lower() in BOOK_EXTENSIONS


def is_media_file(filename: str) -> bool:
    return get_extension(filename).lower() in MEDIA_EXTENSIONS


def media_type_for_extension(ext: str) -> str:
    lower = (ext or "").lower()
    if lower in AUDIO_EXTENSIONS:
        return "music"
    if lower in BOOK_EXTENSIONS:
        return "book"
    if lower in VIDEO_EXTENSIONS:
        return "movie"
    return "unknown"


def clean_title(raw: str) -> str:
    """Turn a release-style fragment into a human readable title."""
    text = re.sub(r"\.(?!\s)", " ", raw or "")
    text = text.replace("_", " ")
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"\[.*?\]", "", text)
    text = re.sub(r"\(.*?\)", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return _DANGLING.sub("", text)


def parse_filename(filename: str) -> dict:
    """Parse a media filename into a ParsedMedia dict. Never raises."""
    filename = filename or ""
    ext = get_extension(filename)
    name = filename[: -len(ext)] if ext else filename

    result = {
        "type": media_type_for_extension(ext),
        "title": "",
        "extension": ext,
        "original_filename": filename,
    }

    kind = result["type"]
    if kind == "movie":
        _parse_video(name, result)
    elif kind == "music":
        _parse_music(name, result)
    elif kind == "book":
        _parse_book(name, result)
    else:
        result["title"] = clean_title(name)
    return result


def _parse_video(name, result):
    for pattern in EPISODE_PATTERNS:
        match = pattern.search(name)
        if match:
            _parse_series(name, match, result)
            break
    else:
        _parse_movie(name, result)
    _extract_technical_info(name, result)


def _parse_series(name, match, result):
    result["type"] = "series"
    result["season"] = int(match.group(1))
    result["episode"] = int(match.group(2))
    result["title"] = clean_title(name[: match.start()])

    after = name[match.end():]
    marker = RELEASE_MARKER.search(after)
    if marker:
        episode_title = clean_title(after[: marker.start()])
        if episode_title:
            result["episode_title"] = episode_title


def _parse_movie(name, result):
    years = list(YEAR_PATTERN.finditer(name))
    if years:
        # A leading year is usually part of the title ("1917.2019.1080p").
        match = next((m for m in years if m.start(1) > 0), years[0])
        result["year"] = int(match.group(1))
        if match.start(1) == 0:
            result["title"] = clean_title(name)
        else:
            result["title"] = clean_title(name[: match.start()])
        return

    marker = RELEASE_MARKER.search(name)
    if marker:
        result["title"] = clean_title(name[: marker.start()])
    else:
        result["title"] = clean_title(name)


def _parse_music(name, result):
    parts = SEGMENT_SPLIT.split(name)
    if len(parts) >= 3:
        result["artist"] = clean_title(parts[0])
        result["album"] = clean_title(parts[1])
        rest = " - ".join(parts[2:])
        track = re.match(r"^(\d+)", parts[2].strip(), re.ASCII)
        if track:
            result["track"] = int(track.group(1))
            rest = _TRACK_PREFIX.sub("", rest.strip())
        result["title"] = clean_title(rest)
    elif len(parts) == 2:
        track = re.fullmatch(r"\d+", parts[0].strip(), re.ASCII)
        if track:
            result["track"] = int(track.group(0))
        else:
            result["artist"] = clean_title(parts[0])
        result["title"] = clean_title(parts[1])
    else:
        result["title"] = clean_title(name)
    _drop_empty(result, ("artist", "album"))


def _parse_book(name, result):
    parts = SEGMENT_SPLIT.split(name)
    if len(parts) >= 2:
        result["author"] = clean_title(parts[0])
        result["title"] = clean_title(" - ".join(parts[1:]))
    else:
        match = _TRAILING_AUTHOR.search(name)
        if match:
            result["author"] = clean_title(match.group(1))
            result["title"] = clean_title(name[: match.start()])
        else:
            result["title"] = clean_title(name)
    _drop_empty(result, ("author",))


def _extract_technical_info(name, result):
    for field, patterns in (
        ("quality", QUALITY_PATTERNS),
        ("source", SOURCE_PATTERNS),
        ("codec", CODEC_PATTERNS),
    ):
        for pattern, value in patterns:
            if pattern.search(name):
                result[field] = value
                break


def _drop_empty(result, keys):
    for key in keys:
        if key in result and not result[key]:
            del result[key]
