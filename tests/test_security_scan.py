import tarfile
import zipfile

import security_scan


def test_dangerous_extensions():
    assert security_scan.dangerous_extension("setup.exe")["type"] == "executable_file"
    assert security_scan.dangerous_extension("run.ps1")["type"] == "script_file"
    assert security_scan.dangerous_extension("Movie.url")["severity"] == "danger"
    assert security_scan.dangerous_extension("Movie.2010.mkv") is None


def test_double_extension_is_reported_as_such():
    issue = security_scan.dangerous_extension("/downloads/Inception.2010.mkv.exe")
    assert issue["type"] == "double_extension"
    assert issue["details"]["extensions"] == [".mkv", ".exe"]
    assert issue["file"] == "Inception.2010.mkv.exe"


def test_suspicious_pattern():
    assert security_scan.suspicious_pattern("autorun.inf")["type"] == "suspicious_filename"
    assert security_scan.suspicious_pattern("keygen_v2.exe") is not None
    assert security_scan.suspicious_pattern("Heat.1995.mkv") is None


def test_executable_disguised_as_media(tmp_path):
    fake = tmp_path / "Heat.1995.mkv"
    fake.write_bytes(b"MZ\x90\x00\x03\x00\x00\x00")
    issue = security_scan.check_signature(str(fake))
    assert issue["type"] == "disguised_executable"
    assert issue["details"]["claimed_extension"] == ".mkv"

    other = tmp_path / "payload.bin"
    other.write_bytes(b"MZ\x90\x00")
    assert security_scan.check_signature(str(other)) is None


def test_zip_carrying_an_executable(tmp_path):
    archive = tmp_path / "release.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("Movie.mkv", b"video")
        zf.writestr("bonus/setup.exe", b"MZ")
    issues = security_scan.check_archive_contents(str(archive))
    assert [i["type"] for i in issues] == ["archive_contains_executable"]
    assert issues[0]["details"]["contained_file"] == "bonus/setup.exe"


def test_empty_archive_is_flagged_as_possibly_encrypted(tmp_path):
    archive = tmp_path / "empty.zip"
    with zipfile.ZipFile(archive, "w"):
        pass
    issues = security_scan.check_archive_contents(str(archive))
    assert [i["type"] for i in issues] == ["archive_possibly_encrypted"]
    assert security_scan.is_safe(issues)


def test_tar_carrying_a_script(tmp_path):
    script = tmp_path / "evil.ps1"
    script.write_text("Write-Host hi")
    archive = tmp_path / "pack.tar"
    with tarfile.open(archive, "w") as tf:
        tf.add(script, arcname="evil.ps1")
    issues = security_scan.check_archive_contents(str(archive))
    assert [i["type"] for i in issues] == ["archive_contains_script"]


def test_scan_directory(tmp_path):
    (tmp_path / "Heat.1995.mkv").write_bytes(b"video")
    (tmp_path / "extras").mkdir()
    (tmp_path / "extras" / "readme.exe").write_bytes(b"MZ")
    with zipfile.ZipFile(tmp_path / "pack.zip", "w") as zf:
        zf.writestr("autorun.inf", b"[autorun]")

    result = security_scan.scan_directory(str(tmp_path))
    types = sorted(i["type"] for i in result["issues"])

    assert result["ok"] is True
    assert result["safe"] is False
    assert result["scanned_files"] == 3
    assert types == [
        "archive_contains_autorun",
        "archive_contains_script",
        "archive_found",
        "executable_file",
        "suspicious_filename",
    ]
    exe_issue = next(i for i in result["issues"] if i["type"] == "executable_file")
    assert exe_issue["file"] == str(tmp_path / "extras" / "readme.exe")


def test_scan_directory_non_recursive(tmp_path):
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "setup.exe").write_bytes(b"MZ")
    result = security_scan.scan_directory(str(tmp_path), recursive=False)
    assert result["safe"] is True
    assert result["scanned_files"] == 0


def test_scan_file_clean(tmp_path):
    clean = tmp_path / "Heat.1995.mkv"
    clean.write_bytes(b"\x1aE\xdf\xa3")
    result = security_scan.scan_file(str(clean))
    assert result["safe"] is True
    assert result["issues"] == []
    assert result["scanned_files"] == 1


def test_quick_safety_check():
    assert security_scan.quick_safety_check("Heat.1995.mkv") == {"safe": True}
    assert security_scan.quick_safety_check("Heat.1995.mkv.exe")["reason"] == "Double extension detected"
    assert security_scan.quick_safety_check("setup.exe")["reason"] == "Executable file"
    assert security_scan.quick_safety_check("run.vbs")["reason"] == "Script file"
    assert security_scan.quick_safety_check("link.lnk")["reason"] == "Shortcut file"
    assert security_scan.quick_safety_check("passwords.txt")["reason"] == "Suspicious filename pattern"
