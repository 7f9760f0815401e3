"""Phase verification for library items (title heuristics + metadata thresholds)."""
from __future__ import annotations

from datetime import datetime, timezone

import probe

PHASES = ("downloader", "arr", "player", "all")

DEFAULT_THRESHOLDS = {
    "min_duration_sec": 60,
    "min_bitrate_kbps_by_height": {"720": 1500, "1080": 2500, "2160": 8000},
    "allowed_containers": ["mp4", "mkv"],
}

_SEVERITY_RANK = {"none": 0, "info": 1, "warn": 2, "error": 3}


def thresholds_from_settings(settings):
    settings = settings or {}
    thresholds = dict(DEFAULT_THRESHOLDS)
    if isinstance(settings.get("min_duration_sec"), (int, float)):
        thresholds["min_duration_sec"] = settings["min_duration_sec"]
    if settings.get("min_bitrate_kbps_by_height"):
        thresholds["min_bitrate_kbps_by_height"] = {
            str(k): v for k, v in settings["min_bitrate_kbps_by_height"].items()
        }
    if settings.get("allowed_containers"):
        thresholds["allowed_containers"] = list(settings["allowed_containers"])
    return thresholds


def assess_metadata(md, thresholds):
    issues = []
    if not md:
        return issues
    video = md.get("video") or {}

    duration = md.get("duration_sec") or 0
    min_duration = thresholds.get("min_duration_sec")
    if isinstance(min_duration, (int, float)) and 0 < duration < min_duration:
        issues.append({
            "kind": "short_duration",
            "severity": "warn",
            "message": f"Duration {duration:g}s < {min_duration}s",
        })

    allowed = [str(c).lower() for c in thresholds.get("allowed_containers") or []]
    container = md.get("container")
    if allowed and container:
        # ffprobe reports families like "matroska,webm" or "mov,mp4,m4a,3gp,3g2,mj2"
        names = {c.strip().lower() for c in str(container).split(",")}
        if "matroska" in names:
            names.add("mkv")
        if not names & set(allowed):
            issues.append({
                "kind": "container_unsupported",
                "severity": "warn",
                "message": f"Container {container}",
            })

    by_height = thresholds.get("min_bitrate_kbps_by_height") or {}
    height, bitrate = video.get("height"), video.get("bitrate_kbps")
    if height and bitrate:
        minimum = by_height.get(str(height))
        if isinstance(minimum, (int, float)) and bitrate < minimum:
            issues.append({
                "kind": "encoding_low_bitrate",
                "severity": "warn",
                "message": f"{bitrate}kbps < {minimum}kbps for {height}p",
            })
    return issues


def top_severity(issues):
    level = "none"
    for issue in issues:
        severity = issue.get("severity", "info")
        if _SEVERITY_RANK.get(severity, 0) > _SEVERITY_RANK[level]:
            level = severity
    return level


def run_verify(data, probe_file=probe.probe_file):
    """Verify a library item.

    ``data`` carries ``phase``, ``kind``, ``id``, ``title`` and optionally
    ``path`` and ``settings``. Metadata comes from ``probe_file``, which falls
    back to title heuristics when there is nothing to probe.
    """
    title = (data.get("title") or "").lower()
    issues = []
    if "sample" in title:
        issues.append({"kind": "wrong_content", "severity": "error", "message": 'Title contains "sample"'})
    if "camrip" in title or "tsrip" in title:
        issues.append({"kind": "encoding_low_quality", "severity": "warn", "message": "Potential cam/TS rip"})

    metadata = probe_file(data.get("path"), data.get("title") or "")
    issues.extend(assess_metadata(metadata, thresholds_from_settings(data.get("settings"))))
    return {
        "phase": data.get("phase") or "all",
        "issues": issues,
        "analyzed_at": datetime.now(timezone.utc).isoformat(),
        "top_severity": top_severity(issues),
    }
