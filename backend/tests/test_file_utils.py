"""Tests for file storage helpers, byte ranges and ZIP archives."""

from __future__ import annotations

import io
import os
import zipfile

import pytest
from starlette.datastructures import UploadFile

from sharelink.core.errors import NoFilesFound, ValidationError
from sharelink.models.share import FileEntry
from sharelink.utils.archive import archive_names, build_zip, remove_temp_file
from sharelink.utils.file_manager import FileManager, guess_mime_type, sanitize_filename
from sharelink.utils.format_utils import format_bytes
from sharelink.utils.ranges import RangeNotSatisfiable, open_file_range, parse_range_header


# ---------------------------------------------------------------------------
# file manager
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\notes.txt", "notes.txt"),
        ('bad:name?.txt', "bad_name_.txt"),
        ("", "file"),
        (None, "file"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected


def test_guess_mime_type():
    assert guess_mime_type("photo.png") == "image/png"
    assert guess_mime_type("photo.png", "image/webp") == "image/webp"
    assert guess_mime_type("blob", "application/octet-stream") == "application/octet-stream"
    assert guess_mime_type("blob") == "application/octet-stream"


def test_unique_paths_stay_inside_uploads(file_manager):
    first = file_manager.unique_path("../x.txt")
    second = file_manager.unique_path("../x.txt")
    assert first != second
    assert file_manager.is_within_uploads(first)
    assert not file_manager.is_within_uploads("/etc/passwd")


@pytest.mark.asyncio
async def test_save_upload_streams_to_disk(file_manager):
    upload = UploadFile(io.BytesIO(b"hello world"), filename="greeting.txt")
    entry = await file_manager.save_upload(upload)

    assert entry.original_name == "greeting.txt"
    assert entry.size_bytes == 11
    assert entry.mime_type == "text/plain"
    with open(entry.storage_path, "rb") as f:
        assert f.read() == b"hello world"


@pytest.mark.asyncio
async def test_save_upload_rejects_oversized_file(upload_dir):
    manager = FileManager(str(upload_dir), max_file_size=4)
    upload = UploadFile(io.BytesIO(b"too many bytes"), filename="big.bin")

    with pytest.raises(ValidationError) as exc_info:
        await manager.save_upload(upload)

    assert exc_info.value.code == "FILE_TOO_LARGE"
    assert os.listdir(upload_dir) == []


def test_delete_file_is_best_effort(file_manager, make_file):
    entry = make_file()
    assert file_manager.file_exists(entry.storage_path)
    assert file_manager.delete_file(entry.storage_path) is True
    assert not file_manager.file_exists(entry.storage_path)
    assert file_manager.delete_file(entry.storage_path) is False
    assert file_manager.delete_files([entry.storage_path, "/nonexistent/x"]) == 0


def test_delete_file_refuses_paths_outside_uploads(file_manager, tmp_path):
    outside = tmp_path / "keep.txt"
    outside.write_bytes(b"keep")
    sneaky = os.path.join(file_manager.upload_dir, "..", "keep.txt")

    assert file_manager.delete_file(str(outside)) is False
    assert file_manager.delete_file(sneaky) is False
    assert outside.exists()


def test_uploads_stats(file_manager, make_file):
    make_file("a.txt", b"x" * 10)
    make_file("b.txt", b"x" * 2048)
    stats = file_manager.uploads_stats()
    assert stats["fileCount"] == 2
    assert stats["totalSize"] == 2058
    assert stats["totalSizeFormatted"] == "2.01 KB"


def test_ensure_upload_dir_creates_directory(tmp_path):
    manager = FileManager(str(tmp_path / "nested" / "uploads"))
    manager.ensure_upload_dir()
    assert os.path.isdir(manager.upload_dir)


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 Bytes"), (512, "512 Bytes"), (1536, "1.50 KB"), (5 * 1024 * 1024, "5.00 MB")],
)
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected


# ---------------------------------------------------------------------------
# byte ranges
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, None),
        ("", None),
        ("bytes=0-4", (0, 4)),
        ("bytes=5-", (5, 9)),
        ("bytes=-3", (7, 9)),
        ("bytes=-50", (0, 9)),
        ("bytes=2-100", (2, 9)),
        ("bytes=0-1,4-5", None),
        ("items=0-4", None),
        ("bytes=a-b", None),
        ("garbage", None),
    ],
)
def test_parse_range_header(header, expected):
    assert parse_range_header(header, 10) == expected


@pytest.mark.parametrize("header", ["bytes=10-", "bytes=20-30", "bytes=5-2", "bytes=-0"])
def test_unsatisfiable_ranges(header):
    with pytest.raises(RangeNotSatisfiable) as exc_info:
        parse_range_header(header, 10)
    assert exc_info.value.file_size == 10


def test_open_file_range(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"0123456789")
    assert b"".join(open_file_range(str(path), 2, 5, chunk_size=3)) == b"2345"
    assert b"".join(open_file_range(str(path), 0, 9)) == b"0123456789"


def test_open_file_range_survives_unlink(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"0123456789")
    body = open_file_range(str(path), 0, 9)
    os.remove(path)
    assert b"".join(body) == b"0123456789"


def test_open_file_range_fails_fast_on_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        open_file_range(str(tmp_path / "missing.bin"), 0, 9)


# ---------------------------------------------------------------------------
# archives
# ---------------------------------------------------------------------------


def _entry(name, path="/nowhere"):
    return FileEntry(original_name=name, storage_path=path, size_bytes=0)


def test_archive_names_disambiguate_duplicates():
    files = [_entry("report.pdf"), _entry("report.pdf"), _entry("notes"), _entry("report.pdf"), _entry("notes")]
    assert archive_names(files) == ["report.pdf", "report_1.pdf", "notes", "report_2.pdf", "notes_1"]


def test_build_zip_contains_every_file(make_file):
    files = [make_file("a.txt", b"alpha"), make_file("a.txt", b"beta"), make_file("c.txt", b"gamma")]
    path, added = build_zip(files)
    try:
        assert added == 3
        with zipfile.ZipFile(path) as zf:
            assert sorted(zf.namelist()) == ["a.txt", "a_1.txt", "c.txt"]
            assert zf.read("a_1.txt") == b"beta"
    finally:
        remove_temp_file(path)
    assert not os.path.exists(path)


def test_build_zip_skips_missing_files(make_file):
    present = make_file("here.txt", b"here")
    gone = make_file("gone.txt", b"gone")
    os.remove(gone.storage_path)

    path, added = build_zip([present, gone])
    try:
        assert added == 1
        with zipfile.ZipFile(path) as zf:
            assert zf.namelist() == ["here.txt"]
    finally:
        remove_temp_file(path)


def test_build_zip_with_no_files_present():
    with pytest.raises(NoFilesFound):
        build_zip([_entry("a.txt"), _entry("b.txt")])
