from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from sharelink.models.share import ShareRecord
from sharelink.utils.format_utils import duration_millis, to_millis


# JSON uses camelCase keys; timestamps are epoch milliseconds
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilesSummary(CamelModel):
    count: int
    total_size: int
    names: List[str]

class SingleFileSummary(CamelModel):
    name: str
    size: int
    type: str

class SecuritySummary(CamelModel):
    has_pin: bool
    expires_at: Optional[int] = None
    max_downloads: Optional[int] = None

    @classmethod
    def from_record(cls, record: ShareRecord) -> "SecuritySummary":
        return cls(
            has_pin=record.has_pin,
            expires_at=to_millis(record.expires_at),
            max_downloads=record.max_downloads,
        )

class UploadResponse(CamelModel):
    success: bool = True
    slug: str
    url: str
    qr_code: str
    files: FilesSummary
    security: SecuritySummary
    created_at: int

class SingleUploadResponse(CamelModel):
    success: bool = True
    slug: str
    url: str
    qr_code: str
    file: SingleFileSummary
    security: SecuritySummary
    created_at: int


# Public info for the share page (hide sensitive info)
class ShareInfo(CamelModel):
    slug: str
    files_count: int
    total_size: int
    created_at: int
    downloads: int
    max_downloads: Optional[int] = None
    has_pin: bool
    expires_at: Optional[int] = None
    file_names: List[str]
    is_expired: bool = False

    @classmethod
    def from_record(cls, record: ShareRecord) -> "ShareInfo":
        return cls(
            slug=record.slug,
            files_count=len(record.files),
            total_size=record.total_size,
            created_at=to_millis(record.created_at),
            downloads=record.downloads,
            max_downloads=record.max_downloads,
            has_pin=record.has_pin,
            expires_at=to_millis(record.expires_at),
            file_names=record.file_names,
        )

class ShareSummary(CamelModel):
    slug: str
    files_count: int
    total_size: int
    created_at: int
    downloads: int
    has_pin: bool
    expires_at: Optional[int] = None
    max_downloads: Optional[int] = None
    url: str
    time_remaining: Optional[int] = None

    @classmethod
    def from_record(cls, record: ShareRecord, url: str, now: datetime) -> "ShareSummary":
        return cls(
            slug=record.slug,
            files_count=len(record.files),
            total_size=record.total_size,
            created_at=to_millis(record.created_at),
            downloads=record.downloads,
            has_pin=record.has_pin,
            expires_at=to_millis(record.expires_at),
            max_downloads=record.max_downloads,
            url=url,
            time_remaining=duration_millis(record.time_remaining(now)),
        )

class ShareList(CamelModel):
    success: bool = True
    count: int
    shares: List[ShareSummary]

class ShareStats(CamelModel):
    slug: str
    downloads: int
    max_downloads: Optional[int] = None
    remaining_downloads: Optional[int] = None
    created_at: int
    expires_at: Optional[int] = None
    time_remaining: Optional[int] = None
    is_expired: bool

    @classmethod
    def from_record(cls, record: ShareRecord, now: datetime) -> "ShareStats":
        return cls(
            slug=record.slug,
            downloads=record.downloads,
            max_downloads=record.max_downloads,
            remaining_downloads=record.remaining_downloads,
            created_at=to_millis(record.created_at),
            expires_at=to_millis(record.expires_at),
            time_remaining=duration_millis(record.time_remaining(now)),
            is_expired=record.is_expired(now),
        )

class ShareAccess(CamelModel):
    pin: Optional[str] = None

class MessageResponse(CamelModel):
    success: bool = True
    message: str
