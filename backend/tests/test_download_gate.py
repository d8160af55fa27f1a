"""Tests for download authorization: check order, PIN handling, caps and eviction."""

from __future__ import annotations

import os
import threading

import pytest

from sharelink.core.errors import (
    DownloadLimitReached,
    InvalidPin,
    PinRequired,
    ShareExpired,
    ShareNotFound,
)


def test_pin_protected_share_with_cap(gate, store, make_file):
    entry = make_file()
    record = store.create([entry], pin="1234", ttl_minutes=5, max_downloads=2)

    with pytest.raises(PinRequired):
        gate.authorize(record.slug)
    with pytest.raises(InvalidPin):
        gate.authorize(record.slug, "0000")

    # Failed attempts are not counted
    assert store.get(record.slug).downloads == 0

    assert gate.authorize(record.slug, "1234").downloads == 1
    assert gate.authorize(record.slug, "1234").downloads == 2

    # The share is still stored until the deferred cleanup runs, but closed
    with pytest.raises(DownloadLimitReached):
        gate.authorize(record.slug, "1234")
    assert store.get(record.slug) is None
    assert not os.path.exists(entry.storage_path)

    with pytest.raises(ShareNotFound):
        gate.authorize(record.slug, "1234")


def test_unknown_slug(gate):
    with pytest.raises(ShareNotFound) as exc_info:
        gate.authorize("missing")
    assert exc_info.value.status_code == 404


def test_share_without_pin_ignores_supplied_pin(gate, store, make_file):
    record = store.create([make_file()])
    assert gate.authorize(record.slug, "9999").downloads == 1


def test_pin_errors_report_requires_pin(gate, store, make_file):
    record = store.create([make_file()], pin="1234")
    with pytest.raises(PinRequired) as exc_info:
        gate.authorize(record.slug, "")
    assert exc_info.value.to_dict()["requiresPin"] is True
    assert exc_info.value.status_code == 401

    with pytest.raises(InvalidPin) as exc_info:
        gate.authorize(record.slug, "4321")
    assert exc_info.value.to_dict() == {
        "error": "PIN required or incorrect",
        "code": "INVALID_PIN",
        "requiresPin": True,
    }


def test_expired_share_is_evicted_on_access(gate, store, make_file, clock):
    entry = make_file()
    record = store.create([entry], ttl_minutes=1)

    clock.advance(seconds=59)
    gate.authorize(record.slug)

    clock.advance(seconds=2)
    with pytest.raises(ShareExpired):
        gate.authorize(record.slug)
    assert store.get(record.slug) is None
    assert not os.path.exists(entry.storage_path)

    # Once expired, always gone, even before any sweep
    with pytest.raises(ShareNotFound):
        gate.authorize(record.slug)


def test_expiry_boundary_is_inclusive(gate, store, make_file, clock):
    record = store.create([make_file()], ttl_minutes=1)
    clock.advance(minutes=1)
    assert gate.authorize(record.slug).downloads == 1


def test_expiry_is_checked_before_pin(gate, store, make_file, clock):
    record = store.create([make_file()], pin="1234", ttl_minutes=1)
    clock.advance(minutes=2)
    with pytest.raises(ShareExpired):
        gate.authorize(record.slug, "0000")


def test_limit_is_checked_before_pin(gate, store, make_file):
    record = store.create([make_file()], pin="1234", max_downloads=1)
    gate.authorize(record.slug, "1234")
    with pytest.raises(DownloadLimitReached):
        gate.authorize(record.slug)


def test_authorize_without_consuming(gate, store, make_file):
    record = store.create([make_file()], pin="1234", max_downloads=1)
    checked = gate.authorize(record.slug, "1234", consume=False)
    assert checked.downloads == 0
    assert store.get(record.slug).downloads == 0


def test_concurrent_downloads_respect_cap(gate, store, make_file):
    cap = 5
    record = store.create([make_file()], max_downloads=cap)
    outcomes = []
    barrier = threading.Barrier(30)

    def worker():
        barrier.wait()
        try:
            gate.authorize(record.slug)
            outcomes.append("ok")
        except (DownloadLimitReached, ShareNotFound):
            outcomes.append("refused")

    threads = [threading.Thread(target=worker) for _ in range(30)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == cap
    assert outcomes.count("refused") == 30 - cap


def test_check_available_only_checks_expiry(gate, store, make_file, clock):
    record = store.create([make_file()], pin="1234", ttl_minutes=1, max_downloads=1)
    gate.authorize(record.slug, "1234")

    # Exhausted and PIN-protected, but still reported while it exists
    assert gate.check_available(record.slug).downloads == 1

    clock.advance(minutes=2)
    with pytest.raises(ShareExpired):
        gate.check_available(record.slug)
    assert store.get(record.slug) is None


def test_pin_matches(gate, store, make_file):
    open_share = store.create([make_file()])
    locked = store.create([make_file()], pin="1234")

    assert gate.pin_matches(open_share, None)
    assert gate.pin_matches(locked, "1234")
    assert not gate.pin_matches(locked, "1235")
    assert not gate.pin_matches(locked, None)


def test_delete_requires_pin_when_protected(gate, store, make_file):
    entry = make_file()
    record = store.create([entry], pin="1234")

    with pytest.raises(PinRequired) as exc_info:
        gate.authorize_delete(record.slug)
    assert exc_info.value.message == "PIN required to delete this share"
    with pytest.raises(PinRequired):
        gate.authorize_delete(record.slug, "0000")
    assert store.get(record.slug) is not None

    assert gate.authorize_delete(record.slug, "1234") is True
    assert store.get(record.slug) is None
    assert not os.path.exists(entry.storage_path)


def test_delete_open_share_and_unknown_slug(gate, store, make_file):
    record = store.create([make_file()])
    assert gate.authorize_delete(record.slug) is True
    with pytest.raises(ShareNotFound):
        gate.authorize_delete(record.slug)
