"""ffprobe/ffmpeg wrappers plus a title-based fallback when probing is unavailable."""
from __future__ import annotations

import json
import logging
import shutil
import subprocess
from typing import Any, Dict, Optional, Tuple

import config

logger = logging.getLogger("curatarr")

FFPROBE_ARGS = [
    "-v", "error",
    "-print_format", "json",
    "-show_format",
    "-show_streams",
    "-show_error",
]
PROBE_TIMEOUT_SEC = 30
DECODE_TIMEOUT_SEC = 60
DECODE_SECONDS = 30


def safe_int(value) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def safe_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_ratio(value) -> Optional[float]:
    """'24000/1001' -> 23.976..."""
    if not value or not isinstance(value, str):
        return safe_float(value)
    if "/" not in value:
        return safe_float(value)
    num, _, den = value.partition("/")
    num_f, den_f = safe_float(num), safe_float(den)
    if num_f is None or not den_f:
        return None
    return num_f / den_f


def ffprobe_available(ffprobe_bin=None) -> bool:
    return shutil.which(ffprobe_bin or config.FFPROBE_BIN) is not None


def run_ffprobe(media_path, ffprobe_bin=None, timeout=PROBE_TIMEOUT_SEC) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Return (json, error_str). Never raises for per-file failures."""
    cmd = [ffprobe_bin or config.FFPROBE_BIN, *FFPROBE_ARGS, str(media_path)]
    try:
        proc = subprocess.run(cmd, check=False, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        return None, f"ffprobe not found: {cmd[0]}"
    except subprocess.TimeoutExpired:
        return None, f"ffprobe timed out after {timeout}s"
    except OSError as e:
        return None, f"ffprobe exec error: {e}"

    if proc.returncode != 0:
        stderr = (proc.stderr or "").strip()
        return None, stderr or f"ffprobe exited {proc.returncode}"

    try:
        return json.loads(proc.stdout or "{}"), None
    except json.JSONDecodeError as e:
        return None, f"ffprobe output was not valid JSON: {e}"


def run_decode_check(media_path, ffmpeg_bin=None, seconds=DECODE_SECONDS, timeout=DECODE_TIMEOUT_SEC):
    """Decode the first ``seconds`` of a file and collect ffmpeg's error lines.

    Returns ``{"corrupted": bool, "errors": [...]}``. A decoder that can't be
    run counts as "not corrupted"; the probe step already reports unreadable files.
    """
    cmd = [ffmpeg_bin or config.FFMPEG_BIN, "-v", "error", "-i", str(media_path),
           "-t", str(seconds), "-f", "null", "-"]
    try:
        proc = subprocess.run(cmd, check=False, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Decode check skipped for %s: %s", media_path, e)
        return {"corrupted": False, "errors": []}
    lines = [l for l in (proc.stderr or "").splitlines() if "error" in l.lower()]
    return {"corrupted": len(lines) > 3, "errors": lines[:5]}


def summarize(ff: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce raw ffprobe JSON to the metadata the verifiers look at."""
    fmt = ff.get("format") or {}
    streams = ff.get("streams") or []
    if not isinstance(streams, list):
        streams = []
    video = [s for s in streams if isinstance(s, dict) and s.get("codec_type") == "video"]
    audio = [s for s in streams if isinstance(s, dict) and s.get("codec_type") == "audio"]
    subs = [s for s in streams if isinstance(s, dict) and s.get("codec_type") == "subtitle"]

    out: Dict[str, Any] = {
        "container": fmt.get("format_name"),
        "duration_sec": safe_float(fmt.get("duration")),
        "bitrate_kbps": (safe_int(fmt.get("bit_rate")) or 0) // 1000 or None,
        "audio": [
            {
                "codec": s.get("codec_name"),
                "channels": safe_int(s.get("channels")),
                "language": (s.get("tags") or {}).get("language"),
            }
            for s in audio
        ],
        "subtitles": [
            {
                "language": (s.get("tags") or {}).get("language"),
                "forced": bool((s.get("disposition") or {}).get("forced")),
            }
            for s in subs
        ],
    }
    if video:
        v = video[0]
        stream_bitrate = safe_int(v.get("bit_rate"))
        out["video"] = {
            "codec": v.get("codec_name"),
            "width": safe_int(v.get("width")),
            "height": safe_int(v.get("height")),
            "bitrate_kbps": stream_bitrate // 1000 if stream_bitrate else out["bitrate_kbps"],
            "framerate": parse_ratio(v.get("avg_frame_rate")) or parse_ratio(v.get("r_frame_rate")),
        }
    return out


def stub_probe(title: str) -> Dict[str, Any]:
    """Guess metadata from quality tokens in a release title."""
    t = (title or "").lower()
    md: Dict[str, Any] = {"container": "mkv", "duration_sec": 45, "audio": [], "subtitles": [], "stub": True}
    if "2160p" in t:
        md["video"] = {"height": 2160, "bitrate_kbps": 6000}
    elif "1080p" in t:
        md["video"] = {"height": 1080, "bitrate_kbps": 1800}
    elif "720p" in t:
        md["video"] = {"height": 720, "bitrate_kbps": 900}
    elif t:
        md["video"] = {"height": 480, "bitrate_kbps": 600}
    return md


def probe_file(path=None, title="", ffprobe_bin=None) -> Dict[str, Any]:
    """Probe ``path`` when possible, otherwise fall back to :func:`stub_probe`."""
    if not path or not ffprobe_available(ffprobe_bin):
        return stub_probe(title)
    data, err = run_ffprobe(path, ffprobe_bin=ffprobe_bin)
    if data is None:
        logger.info("ffprobe failed for %s (%s), using title heuristics", path, err)
        return stub_probe(title)
    return summarize(data)
