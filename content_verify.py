"""Content verification for downloaded media.

Catches the usual bad grabs: samples and trailers, double/triple-screen fakes,
quality misrepresentation (labeled 1080p but actually 480p), truncated or
corrupted files, and executables posing as media (via security_scan).
"""
from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone

import probe
import security_scan
from scanner.file_parser import parse_filename

logger = logging.getLogger("curatarr")

# (ratio, name, tolerance)
SUSPICIOUS_ASPECT_RATIOS = [
    (32 / 9, "double-screen-wide", 0.1),
    (48 / 9, "triple-screen", 0.1),
    (4 / 1, "ultra-wide-fake", 0.1),
    (8 / 3, "double-4:3", 0.1),
]

QUALITY_RESOLUTION_MAP = {
    "2160p": {"min_height": 2000, "min_bitrate": 8000},
    "4k": {"min_height": 2000, "min_bitrate": 8000},
    "1080p": {"min_height": 1000, "min_bitrate": 2000},
    "720p": {"min_height": 700, "min_bitrate": 1000},
    "480p": {"min_height": 460, "min_bitrate": 500},
}

SUSPICIOUS_FILENAME_PATTERNS = [
    re.compile(r"\b%s\b" % word, re.I)
    for word in (
        "sample", "trailer", "teaser", "promo", "preview", "cam", "ts", "hdts",
        "screener", "scr", "dvdscr", "wp", "fake",
    )
]

MIN_FULL_LENGTH_SEC = 300

DEFAULT_OPTIONS = {
    "expected_title": None,
    "expected_quality": None,
    "expected_duration_min": None,
    "expected_duration_max": None,
    "min_bitrate_kbps": None,
    "check_aspect_ratio": True,
    "check_corruption": False,
    "check_security": True,
}

CHECK_NAMES = (
    "security_check",
    "duration_check",
    "aspect_ratio_check",
    "bitrate_check",
    "quality_check",
    "corruption_check",
)


def _issue(kind, severity, message, **details):
    issue = {"type": kind, "severity": severity, "message": message}
    if details:
        issue["details"] = details
    return issue


def analyze_aspect_ratio(width, height):
    if not width or not height:
        return None
    ratio = width / height
    for expected, name, tolerance in SUSPICIOUS_ASPECT_RATIOS:
        if abs(ratio - expected) < tolerance:
            return _issue(
                "suspicious_aspect_ratio", "error",
                f"Detected {name} layout - likely a fake or cam recording",
                ratio=f"{ratio:.2f}", expected=expected, pattern=name,
            )
    if ratio > 3.0 or ratio < 0.5:
        return _issue(
            "unusual_aspect_ratio", "warning",
            f"Unusual aspect ratio ({ratio:.2f}) - verify content manually",
            ratio=f"{ratio:.2f}",
        )
    return None


def check_quality_mismatch(claimed_quality, actual_height, actual_bitrate):
    expected = QUALITY_RESOLUTION_MAP.get((claimed_quality or "").lower())
    if not expected:
        return None
    if actual_height < expected["min_height"] * 0.9:
        return _issue(
            "quality_mismatch", "error",
            f"Labeled as {claimed_quality} but actual resolution is {actual_height}p",
            claimed=claimed_quality, actual_height=actual_height,
            expected_min_height=expected["min_height"],
        )
    if actual_bitrate and actual_bitrate < expected["min_bitrate"] * 0.5:
        return _issue(
            "bitrate_mismatch", "warning",
            f"Bitrate ({actual_bitrate}kbps) is very low for {claimed_quality}",
            claimed=claimed_quality, actual_bitrate=actual_bitrate,
            expected_min_bitrate=expected["min_bitrate"],
        )
    return None


def suspicious_filename_issues(file_path):
    # Match against the stem so a ".ts" container isn't read as a telesync tag.
    stem = os.path.splitext(os.path.basename(file_path))[0]
    return [
        _issue(
            "suspicious_filename", "warning",
            f"Filename contains suspicious keyword: {os.path.basename(file_path)}",
            pattern=pattern.pattern,
        )
        for pattern in SUSPICIOUS_FILENAME_PATTERNS
        if pattern.search(stem.replace(".", " ").replace("_", " "))
    ]


def _normalize_title(title):
    return re.sub(r"[^a-z0-9]+", " ", (title or "").lower()).strip()


def check_title_mismatch(file_path, expected_title):
    """Warn when the parsed filename title shares nothing with ``expected_title``."""
    expected = _normalize_title(expected_title)
    if not expected:
        return None
    parsed = _normalize_title(parse_filename(os.path.basename(file_path))["title"])
    if not parsed or expected in parsed or parsed in expected:
        return None
    return _issue(
        "title_mismatch", "warning",
        f"Filename title '{parsed}' does not match expected '{expected_title}'",
        expected=expected_title, parsed=parsed,
    )


def _result(ok, passed, issues, security_issues, metadata, checks):
    return {
        "ok": ok,
        "passed": passed,
        "issues": issues,
        "security_issues": security_issues,
        "metadata": metadata,
        "checks": checks,
        "verified_at": datetime.now(timezone.utc).isoformat(),
    }


def _metadata(raw, file_size):
    fmt = raw.get("format") or {}
    streams = raw.get("streams") if isinstance(raw.get("streams"), list) else []
    video = next((s for s in streams if s.get("codec_type") == "video"), None) or {}
    audio = [s for s in streams if s.get("codec_type") == "audio"]
    subs = [s for s in streams if s.get("codec_type") == "subtitle"]

    duration = probe.safe_int(fmt.get("duration"))
    width = probe.safe_int(video.get("width"))
    height = probe.safe_int(video.get("height"))
    bitrate = probe.safe_int(video.get("bit_rate")) or probe.safe_int(fmt.get("bit_rate"))
    metadata = {
        "duration": duration,
        "width": width,
        "height": height,
        "aspect_ratio": f"{width}:{height}" if width and height else None,
        "bitrate": bitrate // 1000 if bitrate else None,
        "codec": video.get("codec_name"),
        "container": fmt.get("format_name"),
        "audio_tracks": len(audio),
        "subtitle_tracks": len(subs),
        "file_size": file_size,
    }
    return metadata


def verify_content(file_path, options=None):
    """Run every enabled check against ``file_path``. Never modifies the file."""
    opts = dict(DEFAULT_OPTIONS)
    opts.update({k: v for k, v in (options or {}).items() if v is not None})
    checks = {name: "skip" for name in CHECK_NAMES}
    issues = []
    security_issues = []

    try:
        file_size = os.stat(file_path).st_size
    except OSError:
        return _result(
            False, False,
            [_issue("file_not_found", "error", "File not accessible")],
            [], {}, checks,
        )

    if opts["check_security"]:
        checks["security_check"] = "pass"
        scan = security_scan.scan_file(file_path)
        security_issues.extend(scan["issues"])
        if not scan["safe"]:
            checks["security_check"] = "fail"
            for sec in scan["issues"]:
                if sec["severity"] == "critical":
                    issues.append({
                        "type": "security_threat",
                        "severity": "error",
                        "message": sec["message"],
                        "details": sec.get("details", {}),
                    })

    issues.extend(suspicious_filename_issues(file_path))
    title_issue = check_title_mismatch(file_path, opts["expected_title"])
    if title_issue:
        issues.append(title_issue)

    raw, err = probe.run_ffprobe(file_path)
    if raw is None:
        logger.info("Probe failed for %s: %s", file_path, err)
        issues.append(_issue(
            "probe_failed", "error",
            "Could not analyze file - may be corrupted or invalid format",
        ))
        return _result(False, False, issues, security_issues, {"file_size": file_size}, checks)

    metadata = _metadata(raw, file_size)
    duration = metadata["duration"]
    width, height, bitrate = metadata["width"], metadata["height"], metadata["bitrate"]

    min_minutes = opts["expected_duration_min"]
    max_minutes = opts["expected_duration_max"]
    if min_minutes or max_minutes:
        checks["duration_check"] = "pass"
        if duration and min_minutes and duration < min_minutes * 60:
            checks["duration_check"] = "fail"
            issues.append(_issue(
                "duration_too_short", "error",
                f"Duration ({duration // 60} min) is shorter than expected ({min_minutes} min)",
                actual=duration, expected=min_minutes * 60,
            ))
        if duration and max_minutes and duration > max_minutes * 60:
            checks["duration_check"] = "fail"
            issues.append(_issue(
                "duration_too_long", "warning",
                f"Duration ({duration // 60} min) is longer than expected ({max_minutes} min)",
                actual=duration, expected=max_minutes * 60,
            ))

    if duration and duration < MIN_FULL_LENGTH_SEC:
        issues.append(_issue(
            "very_short_duration", "error",
            f"File is only {duration // 60} minutes - likely a sample or trailer",
            duration=duration,
        ))

    if opts["check_aspect_ratio"] and width and height:
        checks["aspect_ratio_check"] = "pass"
        aspect = analyze_aspect_ratio(width, height)
        if aspect:
            checks["aspect_ratio_check"] = "fail"
            issues.append(aspect)

    if opts["expected_quality"] and height:
        checks["quality_check"] = "pass"
        mismatch = check_quality_mismatch(opts["expected_quality"], height, bitrate or 0)
        if mismatch:
            checks["quality_check"] = "fail"
            issues.append(mismatch)

    min_bitrate = opts["min_bitrate_kbps"]
    if min_bitrate and bitrate:
        checks["bitrate_check"] = "pass" if bitrate >= min_bitrate else "fail"
        if bitrate < min_bitrate:
            issues.append(_issue(
                "low_bitrate", "warning",
                f"Bitrate ({bitrate}kbps) is below minimum ({min_bitrate}kbps)",
                actual=bitrate, minimum=min_bitrate,
            ))

    if opts["check_corruption"]:
        decode = probe.run_decode_check(file_path)
        checks["corruption_check"] = "fail" if decode["corrupted"] else "pass"
        if decode["corrupted"]:
            issues.append(_issue(
                "file_corrupted", "error",
                "File appears to be corrupted or have encoding errors",
                errors=decode["errors"],
            ))

    if metadata["audio_tracks"] == 0:
        issues.append(_issue("no_audio", "warning", "No audio tracks found - file may be incomplete"))

    has_errors = any(i["severity"] == "error" for i in issues)
    passed = not has_errors and security_scan.is_safe(security_issues)
    return _result(True, passed, issues, security_issues, metadata, checks)


def quick_verify(file_path):
    """Cheap verification (no decode pass); issue messages only."""
    result = verify_content(file_path, {"check_aspect_ratio": True, "check_corruption": False})
    return {
        "ok": result["ok"],
        "passed": result["passed"],
        "issues": [i["message"] for i in result["issues"]],
    }
