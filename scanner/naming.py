"""Naming templates: customizable file and folder naming patterns.

Templates contain ``{Token}`` placeholders filled from a parsed media dict.

Series:  {Series.Title} {Series.CleanTitle} {Season} {Season:00} {Episode}
         {Episode:00} {Episode.Title}
Movies:  {Movie.Title} {Movie.CleanTitle} {Year}
Music:   {Artist} {Artist.CleanName} {Album} {Album.CleanName} {Track}
         {Track:00} {Title}
Books:   {Author} {Author.CleanName} {Title} {Title.CleanTitle}
Common:  {Quality} {Source} {Codec} {Extension}

Tokens without a value are dropped, as are any unknown tokens.
"""
from __future__ import annotations

import os
import re

DEFAULT_NAMING_CONFIG = {
    "series": {
        "folder_format": "{Series.CleanTitle}",
        "season_folder_format": "Season {Season:00}",
        "file_format": "{Series.CleanTitle} - S{Season:00}E{Episode:00} - {Episode.Title}{Quality}{Extension}",
    },
    "movies": {
        "folder_format": "{Movie.CleanTitle} ({Year})",
        "file_format": "{Movie.CleanTitle} ({Year}){Quality}{Extension}",
    },
    "music": {
        "artist_folder_format": "{Artist.CleanName}",
        "album_folder_format": "{Album.CleanName}",
        "file_format": "{Track:00} - {Title}{Extension}",
    },
    "books": {
        "author_folder_format": "{Author.CleanName}",
        "file_format": "{Title.CleanTitle}{Extension}",
    },
}

# parsed["type"] -> section of the naming config
CONFIG_SECTIONS = {
    "series": "series",
    "movie": "movies",
    "music": "music",
    "book": "books",
}

MAX_NAME_LENGTH = 200

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*]')
_LEFTOVER_TOKEN = re.compile(r"\{[^}]+\}")
_EMPTY_GROUP = re.compile(r"\(\s*\)|\[\s*\]")
_DOUBLE_DASH = re.compile(r"\s*-\s*-\s*")
_EDGE_DASH = re.compile(r"^\s*-\s*|\s*-\s*$")
# "Show - S01E02 - [720p].mkv": a dash with nothing left to introduce
_ORPHAN_DASH = re.compile(r"\s*-\s*(?=(?:\s*\[[^\]]*\])?(?:\.[^.\s]+)?$)")
_SPACE_BEFORE_EXT = re.compile(r"\s+(?=\.[^.\s]+$)")


def clean_for_filename(value) -> str:
    """Make a string safe for use as a file or folder name."""
    text = _INVALID_CHARS.sub("", str(value or ""))
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"\.+$", "", text)
    return text.strip()[:MAX_NAME_LENGTH]


def _raw(value):
    # Raw tokens keep their text but can never introduce a path separator.
    return re.sub(r"[/\\]", "", str(value)) if value not in (None, "") else None


def _clean(value):
    return clean_for_filename(value) if value not in (None, "") else None


def apply_template(template: str, parsed: dict, extras: dict | None = None) -> str:
    """Replace tokens in ``template`` with values from ``parsed``."""
    result = template or ""

    def replace(token, value):
        nonlocal result
        if value is None or value == "":
            return
        result = result.replace(token, str(value))

    def replace_padded(base, value):
        nonlocal result
        if value is None:
            return
        result = re.sub(
            r"\{" + re.escape(base) + r":(0+)\}",
            lambda m: str(value).zfill(len(m.group(1))),
            result,
        )
        replace("{%s}" % base, value)

    quality = parsed.get("quality")
    replace("{Quality}", f" [{quality}]" if quality else None)
    replace("{Source}", parsed.get("source"))
    replace("{Codec}", parsed.get("codec"))
    replace("{Extension}", parsed.get("extension"))

    kind = parsed.get("type")
    title = parsed.get("title")
    if kind == "series":
        replace("{Series.Title}", _raw(title))
        replace("{Series.CleanTitle}", _clean(title))
        replace_padded("Season", parsed.get("season"))
        replace_padded("Episode", parsed.get("episode"))
        episode_title = _clean(parsed.get("episode_title"))
        replace("{Episode.Title}", f" - {episode_title}" if episode_title else None)
    elif kind == "movie":
        replace("{Movie.Title}", _raw(title))
        replace("{Movie.CleanTitle}", _clean(title))
        replace("{Year}", parsed.get("year"))
    elif kind == "music":
        replace("{Artist}", _raw(parsed.get("artist")))
        replace("{Artist.CleanName}", _clean(parsed.get("artist")))
        replace("{Album}", _raw(parsed.get("album")))
        replace("{Album.CleanName}", _clean(parsed.get("album")))
        replace_padded("Track", parsed.get("track"))
        replace("{Title}", _clean(title))
        replace("{Title.CleanTitle}", _clean(title))
    elif kind == "book":
        replace("{Author}", _raw(parsed.get("author")))
        replace("{Author.CleanName}", _clean(parsed.get("author")))
        replace("{Title}", _clean(title))
        replace("{Title.CleanTitle}", _clean(title))

    for key, value in (extras or {}).items():
        replace("{%s}" % key, value)

    result = _LEFTOVER_TOKEN.sub("", result)
    result = _EMPTY_GROUP.sub("", result)
    result = re.sub(r"\s+", " ", result)
    result = _DOUBLE_DASH.sub(" - ", result)
    result = _EDGE_DASH.sub("", result)
    result = _ORPHAN_DASH.sub(" ", result, count=1)
    result = re.sub(r"\s+", " ", result)
    result = _SPACE_BEFORE_EXT.sub("", result)
    return result.strip()


def _section(config, kind):
    config = config or DEFAULT_NAMING_CONFIG
    name = CONFIG_SECTIONS[kind]
    return config.get(name) or DEFAULT_NAMING_CONFIG[name]


def generate_folder_path(parsed: dict, config: dict | None = None) -> list:
    """Folder segments (relative to the library root) for a parsed item."""
    kind = parsed.get("type")
    if kind not in CONFIG_SECTIONS:
        return []
    section = _section(config, kind)
    parts = []
    if kind == "series":
        parts.append(apply_template(section["folder_format"], parsed))
        if parsed.get("season") is not None:
            parts.append(apply_template(section["season_folder_format"], parsed))
    elif kind == "movie":
        parts.append(apply_template(section["folder_format"], parsed))
    elif kind == "music":
        if parsed.get("artist"):
            parts.append(apply_template(section["artist_folder_format"], parsed))
        if parsed.get("album"):
            parts.append(apply_template(section["album_folder_format"], parsed))
    elif kind == "book":
        if parsed.get("author"):
            parts.append(apply_template(section["author_folder_format"], parsed))
    return [p for p in parts if p]


def generate_filename(parsed: dict, config: dict | None = None) -> str:
    kind = parsed.get("type")
    if kind not in CONFIG_SECTIONS:
        return parsed.get("original_filename", "")
    filename = apply_template(_section(config, kind)["file_format"], parsed)
    extension = parsed.get("extension")
    if "." not in filename and extension:
        filename += extension
    return filename


def preview_organized_path(parsed: dict, root: str, config: dict | None = None) -> dict:
    """Compute where ``parsed`` would land under ``root``."""
    folder_path = os.path.join(root, *generate_folder_path(parsed, config))
    filename = generate_filename(parsed, config)
    return {
        "folder_path": folder_path,
        "filename": filename,
        "full_path": os.path.join(folder_path, filename),
    }
