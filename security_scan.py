"""Security scanner for downloaded media.

Flags files that are (or hide) something executable: executables and scripts,
shortcut files, double extensions (movie.mkv.exe), autorun-style names,
executable magic bytes behind a media extension, and archives carrying any of
the above. Read-only: nothing is quarantined or deleted here.
"""
from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import tarfile
import zipfile
from datetime import datetime, timezone

logger = logging.getLogger("curatarr")

EXECUTABLE_EXTENSIONS = {
    ".exe", ".bat", ".cmd", ".com", ".pif", ".scr", ".msi", ".msp", ".msc", ".dll", ".sys", ".drv",
}
SCRIPT_EXTENSIONS = {
    ".ps1", ".psm1", ".psd1", ".vbs", ".vbe", ".js", ".jse", ".ws", ".wsf", ".wsc", ".wsh",
    ".hta", ".reg", ".inf",
}
ARCHIVE_EXTENSIONS = {
    ".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".xz", ".iso", ".cab", ".arj",
}
SHORTCUT_EXTENSIONS = {".lnk", ".url", ".desktop"}

VALID_MEDIA_EXTENSIONS = {
    # video
    ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm", ".m4v", ".mpg", ".mpeg", ".ts",
    ".m2ts", ".vob", ".ogv", ".3gp", ".divx", ".xvid",
    # audio
    ".mp3", ".flac", ".wav", ".aac", ".ogg", ".wma", ".m4a", ".opus", ".aiff", ".ape", ".alac",
    # subtitles
    ".srt", ".ass", ".ssa", ".sub", ".idx", ".vtt",
    # artwork
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp",
    # info files
    ".nfo", ".txt", ".sfv",
}

EXECUTABLE_SIGNATURES = [
    (b"MZ", "Windows Executable (MZ)"),
    (b"\x7fELF", "Linux Executable (ELF)"),
    (b"\xca\xfe\xba\xbe", "macOS Universal Binary"),
    (b"\xfe\xed\xfa\xce", "macOS Mach-O (32-bit)"),
    (b"\xfe\xed\xfa\xcf", "macOS Mach-O (64-bit)"),
    (b"\xcf\xfa\xed\xfe", "macOS Mach-O (64-bit LE)"),
]

SUSPICIOUS_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"\.(mkv|mp4|avi|mov)\.exe$",
        r"\.(mkv|mp4|avi|mov)\.scr$",
        r"\.(mkv|mp4|avi|mov)\s+\.exe$",
        r"autorun\.inf$",
        r"desktop\.ini$",
        r"thumbs\.db$",
        r"\.ds_store$",
        r"setup\.exe$",
        r"install.*\.exe$",
        r"crack.*\.exe$",
        r"keygen.*\.exe$",
        r"patch.*\.exe$",
        r"readme\.exe$",
        r"password.*\.txt$",
    )
]

ARCHIVE_LIST_TIMEOUT_SEC = 10


def _issue(kind, severity, message, file=None, **details):
    issue = {"type": kind, "severity": severity, "message": message}
    if file:
        issue["file"] = file
    if details:
        issue["details"] = details
    return issue


def _ext(name):
    return os.path.splitext(name)[1].lower()


def dangerous_extension(filename):
    """Issue for an executable/script/shortcut/double extension, or None."""
    base = os.path.basename(filename)
    ext = _ext(base)
    double = _double_extension(base)
    if double:
        return _issue(
            "double_extension", "critical",
            f"Double extension attack detected: {base}", base, extensions=list(double),
        )
    if ext in EXECUTABLE_EXTENSIONS:
        return _issue("executable_file", "critical", f"Executable file detected: {base}", base, extension=ext)
    if ext in SCRIPT_EXTENSIONS:
        return _issue("script_file", "critical", f"Script file detected: {base}", base, extension=ext)
    if ext in SHORTCUT_EXTENSIONS:
        return _issue(
            "shortcut_file", "danger",
            f"Shortcut file detected (can execute commands): {base}", base, extension=ext,
        )
    return None


def _double_extension(base):
    """``(".mkv", ".exe")`` for names like movie.mkv.exe, else None."""
    parts = base.lower().split(".")
    if len(parts) <= 2:
        return None
    last, second_last = "." + parts[-1], "." + parts[-2]
    if second_last in VALID_MEDIA_EXTENSIONS and (
        last in EXECUTABLE_EXTENSIONS or last in SCRIPT_EXTENSIONS
    ):
        return second_last, last
    return None


def suspicious_pattern(filename):
    base = os.path.basename(filename)
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(base):
            return _issue(
                "suspicious_filename", "danger",
                f"Suspicious filename pattern: {base}", base, pattern=pattern.pattern,
            )
    return None


def check_signature(file_path):
    """Detect executable magic bytes in a file that claims to be media."""
    ext = _ext(file_path)
    if ext not in VALID_MEDIA_EXTENSIONS:
        return None
    try:
        with open(file_path, "rb") as f:
            head = f.read(8)
    except OSError:
        return None
    for magic, name in EXECUTABLE_SIGNATURES:
        if head.startswith(magic):
            return _issue(
                "disguised_executable", "critical",
                f"File appears to be {name} disguised as media", file_path,
                detected_type=name, claimed_extension=ext,
            )
    return None


def _run_lister(cmd):
    if not shutil.which(cmd[0]):
        return None
    try:
        proc = subprocess.run(
            cmd, check=False, capture_output=True, text=True, timeout=ARCHIVE_LIST_TIMEOUT_SEC,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Archive listing with %s failed: %s", cmd[0], e)
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout


def list_archive(archive_path):
    """Return (names, encrypted). ``names`` is None when the archive can't be listed."""
    ext = _ext(archive_path)
    if ext == ".zip" and zipfile.is_zipfile(archive_path):
        try:
            with zipfile.ZipFile(archive_path) as zf:
                infos = zf.infolist()
        except (OSError, zipfile.BadZipFile):
            return None, False
        encrypted = any(info.flag_bits & 0x1 for info in infos)
        return [info.filename for info in infos], encrypted
    if ext in (".tar", ".gz", ".bz2", ".xz"):
        try:
            if tarfile.is_tarfile(archive_path):
                with tarfile.open(archive_path) as tf:
                    return tf.getnames(), False
        except (OSError, tarfile.TarError):
            return None, False
        return None, False
    if ext == ".rar":
        out = _run_lister(["unrar", "lb", archive_path])
        if out is None:
            return None, False
        return [line.strip() for line in out.splitlines() if line.strip()], False
    if ext in (".7z", ".zip", ".iso", ".cab", ".arj"):
        out = _run_lister(["7z", "l", "-slt", archive_path])
        if out is None:
            return None, False
        names = [m.group(1).strip() for m in re.finditer(r"^Path = (.+)$", out, re.M)]
        # First "Path =" line is the archive itself.
        return names[1:], "Encrypted = +" in out
    return None, False


def check_archive_contents(archive_path):
    ext = _ext(archive_path)
    if ext not in ARCHIVE_EXTENSIONS:
        return []
    issues = []
    names, encrypted = list_archive(archive_path)
    for name in names or []:
        inner_ext = _ext(name)
        base = os.path.basename(name.rstrip("/\\"))
        if inner_ext in EXECUTABLE_EXTENSIONS:
            issues.append(_issue(
                "archive_contains_executable", "critical",
                f"Archive contains executable: {name}", archive_path, contained_file=name,
            ))
        if inner_ext in SCRIPT_EXTENSIONS:
            issues.append(_issue(
                "archive_contains_script", "critical",
                f"Archive contains script: {name}", archive_path, contained_file=name,
            ))
        if base.lower() == "autorun.inf":
            issues.append(_issue(
                "archive_contains_autorun", "critical",
                "Archive contains autorun.inf (auto-execute risk)", archive_path, contained_file=name,
            ))
    if not names or encrypted:
        issues.append(_issue(
            "archive_possibly_encrypted", "warning",
            "Archive may be password-protected (common for malware)", archive_path,
        ))
    return issues


def _summary(issues, scanned_files):
    return {
        "ok": True,
        "safe": is_safe(issues),
        "issues": issues,
        "scanned_files": scanned_files,
        "scanned_at": datetime.now(timezone.utc).isoformat(),
    }


def is_safe(issues):
    return not any(i["severity"] in ("critical", "danger") for i in issues)


def scan_file(file_path):
    """Scan one file."""
    issues = []
    for issue in (dangerous_extension(file_path), suspicious_pattern(file_path), check_signature(file_path)):
        if issue:
            issues.append(issue)
    issues.extend(check_archive_contents(file_path))
    return _summary(issues, 1)


def scan_directory(dir_path, recursive=True):
    """Scan every file below ``dir_path``. Unreadable folders are skipped."""
    issues = []
    scanned = 0
    pending = [dir_path]
    while pending:
        current = pending.pop(0)
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.debug("Security scan skipped %s: %s", current, e)
            continue
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if recursive:
                    pending.append(entry.path)
                continue
            if not entry.is_file():
                continue
            scanned += 1
            for issue in (dangerous_extension(entry.name), suspicious_pattern(entry.name)):
                if issue:
                    issue["file"] = entry.path
                    issues.append(issue)
            signature = check_signature(entry.path)
            if signature:
                issues.append(signature)
            if _ext(entry.name) in ARCHIVE_EXTENSIONS:
                issues.append(_issue(
                    "archive_found", "warning", f"Archive file found: {entry.name}", entry.path,
                ))
                issues.extend(check_archive_contents(entry.path))
    return _summary(issues, scanned)


def quick_safety_check(filename):
    """Filename-only verdict: ``{"safe": bool, "reason"?: str}``."""
    ext = _ext(filename)
    if _double_extension(os.path.basename(filename)):
        return {"safe": False, "reason": "Double extension detected"}
    if ext in EXECUTABLE_EXTENSIONS:
        return {"safe": False, "reason": "Executable file"}
    if ext in SCRIPT_EXTENSIONS:
        return {"safe": False, "reason": "Script file"}
    if ext in SHORTCUT_EXTENSIONS:
        return {"safe": False, "reason": "Shortcut file"}
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(filename):
            return {"safe": False, "reason": "Suspicious filename pattern"}
    return {"safe": True}
