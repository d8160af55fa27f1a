from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class FileEntry:
    original_name: str
    storage_path: str  # owned exclusively by one share
    size_bytes: int
    mime_type: str = "application/octet-stream"


@dataclass(frozen=True)
class ShareMetadata:
    """Diagnostic information about the uploader. Never used for authorization."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class ShareRecord:
    slug: str
    id: str
    files: Tuple[FileEntry, ...]
    created_at: datetime
    expires_at: Optional[datetime] = None  # None: never expires
    max_downloads: Optional[int] = None  # None: unlimited
    downloads: int = 0
    pin_hash: Optional[str] = None  # None: no PIN required
    metadata: ShareMetadata = field(default_factory=ShareMetadata)

    @property
    def has_pin(self) -> bool:
        return self.pin_hash is not None

    @property
    def total_size(self) -> int:
        return sum(f.size_bytes for f in self.files)

    @property
    def file_names(self) -> List[str]:
        return [f.original_name for f in self.files]

    @property
    def storage_paths(self) -> List[str]:
        return [f.storage_path for f in self.files]

    @property
    def remaining_downloads(self) -> Optional[int]:
        if self.max_downloads is None:
            return None
        return max(0, self.max_downloads - self.downloads)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def is_exhausted(self) -> bool:
        return self.max_downloads is not None and self.downloads >= self.max_downloads

    def time_remaining(self, now: datetime) -> Optional[timedelta]:
        if self.expires_at is None:
            return None
        return max(timedelta(0), self.expires_at - now)
