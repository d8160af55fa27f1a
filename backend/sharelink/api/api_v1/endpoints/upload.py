import logging
import os
from typing import Any, List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from sharelink import schemas
from sharelink.api import deps
from sharelink.core.config import Settings
from sharelink.core.errors import ValidationError
from sharelink.crud.crud_share import ShareStore
from sharelink.models.share import FileEntry, ShareMetadata, ShareRecord
from sharelink.utils import qr
from sharelink.utils.file_manager import FileManager
from sharelink.utils.format_utils import to_millis

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_int(value: Optional[str], code: str, message: str) -> Optional[int]:
    """Form fields arrive as strings; an empty field means 'not set'."""
    if value is None or value.strip() == "":
        return None
    try:
        return int(value.strip())
    except ValueError:
        raise ValidationError(message, code=code) from None


def _check_uploads(files: List[UploadFile], settings: Settings) -> None:
    if not files:
        raise ValidationError("No files uploaded", code="NO_FILES")
    if len(files) > settings.MAX_FILES:
        raise ValidationError(
            f"Too many files. Maximum is {settings.MAX_FILES} files per upload", code="TOO_MANY_FILES"
        )
    for upload in files:
        ext = os.path.splitext(upload.filename or "")[1].lower()
        if ext in settings.BLOCKED_EXTENSIONS:
            raise ValidationError(
                f"File type {ext} is not allowed for security reasons", code="FILE_TYPE_NOT_ALLOWED"
            )


async def _create_share(
    request: Request,
    files: List[UploadFile],
    pin: Optional[str],
    custom_slug: Optional[str],
    ttl: Optional[str],
    max_downloads: Optional[str],
) -> tuple:
    """
    Validate the form, store the uploaded files and register the share.
    Files already written are removed if anything fails.
    """
    settings: Settings = deps.get_settings(request)
    store: ShareStore = deps.get_store(request)
    file_manager: FileManager = deps.get_file_manager(request)

    _check_uploads(files, settings)
    pin = pin or None
    ttl_minutes = _parse_int(
        ttl, "INVALID_TTL",
        f"TTL must be between {settings.MIN_TTL_MINUTES} and {settings.MAX_TTL_MINUTES} minutes (1 week)",
    )
    download_cap = _parse_int(
        max_downloads, "INVALID_MAX_DOWNLOADS",
        f"Max downloads must be between {settings.MIN_DOWNLOADS} and {settings.MAX_DOWNLOADS}",
    )
    # Range checks happen here, before anything is written to disk
    store.validate_options(pin, ttl_minutes, download_cap)

    saved: List[FileEntry] = []
    record: Optional[ShareRecord] = None
    try:
        for upload in files:
            saved.append(await file_manager.save_upload(upload))

        record = store.create(
            saved,
            custom_slug=custom_slug or None,
            pin=pin,
            ttl_minutes=ttl_minutes,
            max_downloads=download_cap,
            metadata=ShareMetadata(
                ip=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
            ),
        )
        url = deps.share_url(request, record.slug)
        qr_code = await run_in_threadpool(qr.make_data_url, url, settings.QR_DEFAULT_SIZE)
    except Exception:
        logger.warning("Upload failed, discarding %d stored file(s)", len(saved))
        if record is not None:
            await run_in_threadpool(store.delete, record.slug, expected_id=record.id, reason="upload_failed")
        else:
            await run_in_threadpool(file_manager.delete_files, [entry.storage_path for entry in saved])
        raise

    return record, url, qr_code


@router.post("", response_model=schemas.UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_files(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    pin: Optional[str] = Form(None),
    custom_slug: Optional[str] = Form(None, alias="customSlug"),
    ttl: Optional[str] = Form(None),
    max_downloads: Optional[str] = Form(None, alias="maxDownloads"),
) -> Any:
    """
    Upload up to MAX_FILES files and create a share for them.
    """
    record, url, qr_code = await _create_share(request, files or [], pin, custom_slug, ttl, max_downloads)

    return schemas.UploadResponse(
        slug=record.slug,
        url=url,
        qr_code=qr_code,
        files=schemas.FilesSummary(
            count=len(record.files),
            total_size=record.total_size,
            names=record.file_names,
        ),
        security=schemas.SecuritySummary.from_record(record),
        created_at=to_millis(record.created_at),
    )


@router.post("/single", response_model=schemas.SingleUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_single_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
    pin: Optional[str] = Form(None),
    custom_slug: Optional[str] = Form(None, alias="customSlug"),
    ttl: Optional[str] = Form(None),
    max_downloads: Optional[str] = Form(None, alias="maxDownloads"),
) -> Any:
    """
    Upload a single file (alternative endpoint).
    """
    if file is None:
        raise ValidationError("No file uploaded", code="NO_FILE")

    record, url, qr_code = await _create_share(request, [file], pin, custom_slug, ttl, max_downloads)
    entry = record.files[0]

    return schemas.SingleUploadResponse(
        slug=record.slug,
        url=url,
        qr_code=qr_code,
        file=schemas.SingleFileSummary(name=entry.original_name, size=entry.size_bytes, type=entry.mime_type),
        security=schemas.SecuritySummary.from_record(record),
        created_at=to_millis(record.created_at),
    )
