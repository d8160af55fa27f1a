"""Shared fixtures: a controllable clock, a store over a temp uploads dir, and the app."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from sharelink.core.config import Settings
from sharelink.crud.crud_share import ShareStore
from sharelink.main import create_app
from sharelink.models.share import FileEntry
from sharelink.services.download_gate import DownloadGate
from sharelink.utils.file_manager import FileManager

PIN_SECRET = "test-secret"


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def file_manager(upload_dir):
    return FileManager(str(upload_dir))


@pytest.fixture
def store(file_manager, clock):
    return ShareStore(file_manager, pin_secret=PIN_SECRET, clock=clock)


@pytest.fixture
def gate(store):
    return DownloadGate(store)


@pytest.fixture
def make_file(upload_dir):
    """Write a file into the uploads dir and return its FileEntry."""
    counter = itertools.count()

    def _make(name: str = "a.txt", content: bytes = b"0123456789") -> FileEntry:
        path = upload_dir / f"{next(counter)}-{name}"
        path.write_bytes(content)
        return FileEntry(
            original_name=name,
            storage_path=str(path),
            size_bytes=len(content),
            mime_type="text/plain",
        )

    return _make


@pytest.fixture
def settings(upload_dir):
    return Settings(
        UPLOAD_DIR=str(upload_dir),
        PIN_SECRET=PIN_SECRET,
        CLEANUP_INTERVAL_SECONDS=3600,
    )


@pytest.fixture
def app(settings, clock):
    return create_app(settings, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
