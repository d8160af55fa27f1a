"""
Authorization and accounting for share access.

The checks run in a fixed order: existence, expiry, download limit, PIN. Expiry
and limit come first so that a dead link never reveals whether it had a PIN.
"""

import logging
from datetime import datetime
from typing import Optional

from sharelink.core.errors import DownloadLimitReached, InvalidPin, PinRequired, ShareExpired
from sharelink.crud.crud_share import ShareStore
from sharelink.models.share import ShareRecord
from sharelink.utils.pin import verify_pin

logger = logging.getLogger(__name__)


class DownloadGate:
    def __init__(self, store: ShareStore):
        self.store = store

    def pin_matches(self, record: ShareRecord, pin: Optional[str]) -> bool:
        if not record.has_pin:
            return True
        return bool(pin) and verify_pin(pin, record.pin_hash, self.store.pin_secret)

    def _check_pin(self, record: ShareRecord, pin: Optional[str]) -> None:
        if not record.has_pin:
            return
        if not pin:
            raise PinRequired(extra={"requiresPin": True})
        if not verify_pin(pin, record.pin_hash, self.store.pin_secret):
            raise InvalidPin(extra={"requiresPin": True})

    def authorize(self, slug: str, pin: Optional[str] = None, consume: bool = True) -> ShareRecord:
        """
        Authorize one download of ``slug``. On success the download is counted before
        the caller starts serving files, and the returned record carries the new count.
        """

        def guard(record: ShareRecord, now: datetime) -> None:
            if record.is_expired(now):
                raise ShareExpired()
            if record.is_exhausted():
                raise DownloadLimitReached()
            self._check_pin(record, pin)

        record = self.store.authorize(slug, guard, consume=consume)
        if consume:
            logger.debug("Download %d authorized for %s", record.downloads, slug)
        return record

    def check_available(self, slug: str) -> ShareRecord:
        """Existence and expiry only. An expired share is evicted."""

        def guard(record: ShareRecord, now: datetime) -> None:
            if record.is_expired(now):
                raise ShareExpired()

        return self.store.authorize(slug, guard, consume=False)

    def authorize_delete(self, slug: str, pin: Optional[str] = None) -> bool:
        """Explicit deletion. A PIN-protected share needs its PIN."""

        def guard(record: ShareRecord, now: datetime) -> None:
            if record.has_pin and not self.pin_matches(record, pin):
                raise PinRequired("PIN required to delete this share")

        record = self.store.authorize(slug, guard, consume=False)
        return self.store.delete(slug, expected_id=record.id, reason="deleted_by_request")
