import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from sharelink.core.errors import TERMINAL_AUTH_ERRORS, ShareNotFound, ValidationError
from sharelink.models.share import FileEntry, ShareMetadata, ShareRecord
from sharelink.utils.file_manager import FileManager
from sharelink.utils.pin import hash_pin, validate_pin_format
from sharelink.utils.slug import reserve_slug

logger = logging.getLogger(__name__)

# Called with the record and the current time while the store lock is held.
# Raises an AuthError to refuse access.
Guard = Callable[[ShareRecord, datetime], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShareStore:
    """
    The in-memory share registry.

    Every read-then-write sequence (slug reservation, download counting, expiry
    eviction) runs under a single store-wide lock. Backing files are removed only
    after the lock is released.
    """

    def __init__(
        self,
        file_manager: FileManager,
        *,
        pin_secret: str,
        slug_length: int = 6,
        slug_max_length: int = 64,
        min_ttl_minutes: int = 1,
        max_ttl_minutes: int = 10080,
        min_downloads: int = 1,
        max_downloads: int = 1000,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.file_manager = file_manager
        self.pin_secret = pin_secret
        self.slug_length = slug_length
        self.slug_max_length = slug_max_length
        self.min_ttl_minutes = min_ttl_minutes
        self.max_ttl_minutes = max_ttl_minutes
        self.min_downloads = min_downloads
        self.max_downloads = max_downloads
        self.clock = clock

        self._lock = threading.Lock()
        self._shares: Dict[str, ShareRecord] = {}
        self._owned_paths: Set[str] = set()
        # slug -> (id of the record that reached its download cap, when it was queued)
        self._deferred: Dict[str, Tuple[str, datetime]] = {}

    @classmethod
    def from_settings(cls, settings, file_manager: FileManager, clock: Callable[[], datetime] = utcnow) -> "ShareStore":
        return cls(
            file_manager,
            pin_secret=settings.PIN_SECRET,
            slug_length=settings.SLUG_LENGTH,
            slug_max_length=settings.SLUG_MAX_LENGTH,
            min_ttl_minutes=settings.MIN_TTL_MINUTES,
            max_ttl_minutes=settings.MAX_TTL_MINUTES,
            min_downloads=settings.MIN_DOWNLOADS,
            max_downloads=settings.MAX_DOWNLOADS,
            clock=clock,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._shares)

    def __contains__(self, slug: str) -> bool:
        with self._lock:
            return slug in self._shares

    def now(self) -> datetime:
        return self.clock()

    # --- Create ---

    @staticmethod
    def _in_range(value, low: int, high: int) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high

    def validate_options(
        self,
        pin: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
        max_downloads: Optional[int] = None,
    ) -> None:
        """Check the share options alone, so callers can reject a request before storing files."""
        if pin is not None and not validate_pin_format(pin):
            raise ValidationError("PIN must be exactly 4 digits", code="INVALID_PIN_FORMAT")

        if ttl_minutes is not None and not self._in_range(ttl_minutes, self.min_ttl_minutes, self.max_ttl_minutes):
            raise ValidationError(
                f"TTL must be between {self.min_ttl_minutes} and {self.max_ttl_minutes} minutes",
                code="INVALID_TTL",
            )

        if max_downloads is not None and not self._in_range(max_downloads, self.min_downloads, self.max_downloads):
            raise ValidationError(
                f"Max downloads must be between {self.min_downloads} and {self.max_downloads}",
                code="INVALID_MAX_DOWNLOADS",
            )

    def _validate_files(self, files: List[FileEntry]) -> None:
        if not files:
            raise ValidationError("No files uploaded", code="NO_FILES")
        paths = [f.storage_path for f in files]
        if len(set(paths)) != len(paths):
            raise ValidationError("A file may only be listed once per share", code="INVALID_FILES")

    def create(
        self,
        files: Iterable[FileEntry],
        custom_slug: Optional[str] = None,
        pin: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
        max_downloads: Optional[int] = None,
        metadata: Optional[ShareMetadata] = None,
    ) -> ShareRecord:
        files = list(files)
        self._validate_files(files)
        self.validate_options(pin, ttl_minutes, max_downloads)
        pin_hash = hash_pin(pin, self.pin_secret) if pin is not None else None

        with self._lock:
            if any(f.storage_path in self._owned_paths for f in files):
                raise ValidationError("File is already owned by another share", code="INVALID_FILES")

            slug = reserve_slug(
                custom_slug,
                self._shares.__contains__,
                length=self.slug_length,
                max_length=self.slug_max_length,
            )
            now = self.clock()
            record = ShareRecord(
                slug=slug,
                id=str(uuid.uuid4()),
                files=tuple(files),
                created_at=now,
                expires_at=now + timedelta(minutes=ttl_minutes) if ttl_minutes is not None else None,
                max_downloads=max_downloads,
                downloads=0,
                pin_hash=pin_hash,
                metadata=metadata or ShareMetadata(),
            )
            self._shares[slug] = record
            self._owned_paths.update(record.storage_paths)

        if custom_slug and slug != custom_slug:
            logger.info("Custom slug %r unavailable, using %s", custom_slug, slug)
        logger.info("New share created: %s (%d files)", slug, len(files))
        return record

    # --- Read ---

    def get(self, slug: str) -> Optional[ShareRecord]:
        """Plain lookup. Does not check expiry."""
        with self._lock:
            return self._shares.get(slug)

    def list(self) -> List[ShareRecord]:
        """Snapshot of every stored record, including expired ones not yet swept."""
        with self._lock:
            return list(self._shares.values())

    @property
    def pending_cleanup(self) -> List[str]:
        with self._lock:
            return list(self._deferred)

    # --- Delete ---

    def _evict_locked(self, slug: str, expected_id: Optional[str] = None) -> Optional[ShareRecord]:
        record = self._shares.get(slug)
        if record is None or (expected_id is not None and record.id != expected_id):
            return None
        del self._shares[slug]
        self._owned_paths.difference_update(record.storage_paths)
        queued = self._deferred.get(slug)
        if queued is not None and queued[0] == record.id:
            del self._deferred[slug]
        return record

    def _release_files(self, record: ShareRecord, reason: str) -> None:
        deleted = self.file_manager.delete_files(record.storage_paths)
        logger.info("Share deleted: %s (%s, %d/%d files removed)", record.slug, reason, deleted, len(record.files))

    def delete(self, slug: str, expected_id: Optional[str] = None, reason: str = "deleted") -> bool:
        """
        Remove a share and its backing files. With ``expected_id`` the delete only
        applies if the slug still names that record.
        """
        with self._lock:
            record = self._evict_locked(slug, expected_id)
        if record is None:
            return False
        self._release_files(record, reason)
        return True

    # --- Download accounting ---

    def _increment_locked(self, record: ShareRecord) -> ShareRecord:
        record = replace(record, downloads=record.downloads + 1)
        self._shares[record.slug] = record
        if record.is_exhausted():
            self._deferred[record.slug] = (record.id, self.clock())
        return record

    def increment_download(self, slug: str) -> int:
        """
        Count one download. Reaching the cap queues the share for deferred cleanup
        so the download in flight can finish first.
        """
        with self._lock:
            record = self._shares.get(slug)
            if record is None:
                raise ShareNotFound()
            return self._increment_locked(record).downloads

    def authorize(self, slug: str, guard: Guard, consume: bool = True) -> ShareRecord:
        """
        Look up ``slug`` and run ``guard`` against it, then count the download when
        ``consume`` is set, all in one critical section. A guard raising an expiry or
        limit error evicts the share before the error propagates.
        """
        with self._lock:
            record = self._shares.get(slug)
            if record is None:
                raise ShareNotFound()
            try:
                guard(record, self.clock())
            except TERMINAL_AUTH_ERRORS as e:
                error = e
                evicted = self._evict_locked(slug)
            else:
                return self._increment_locked(record) if consume else record

        self._release_files(evicted, error.code.lower())
        raise error

    def run_deferred_cleanup(self, slug: Optional[str] = None, older_than: Optional[timedelta] = None) -> List[str]:
        """
        Delete shares that reached their download cap. Returns their slugs.

        ``slug`` limits the cleanup to one share. ``older_than`` keeps entries queued
        more recently than that, giving the download that used up the cap time to
        finish.
        """
        with self._lock:
            now = self.clock()
            due = [
                (queued_slug, record_id)
                for queued_slug, (record_id, queued_at) in self._deferred.items()
                if (slug is None or queued_slug == slug) and (older_than is None or now - queued_at >= older_than)
            ]
            evicted = []
            for queued_slug, record_id in due:
                del self._deferred[queued_slug]
                evicted.append(self._evict_locked(queued_slug, expected_id=record_id))

        removed = []
        for record in evicted:
            if record is not None:
                self._release_files(record, "download_limit_reached")
                removed.append(record.slug)
        return removed

    # --- Expiry ---

    def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Evict every expired share. Returns the evicted slugs."""
        with self._lock:
            now = now or self.clock()
            dead = [slug for slug, record in self._shares.items() if record.is_expired(now)]
            evicted = [self._evict_locked(slug) for slug in dead]

        for record in evicted:
            self._release_files(record, "expired")
        return [record.slug for record in evicted]
