import logging
import os
import time
from typing import Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, Request
from fastapi.responses import Response, StreamingResponse

from sharelink import schemas
from sharelink.api import deps
from sharelink.core.errors import BackingFileNotFound, ShareNotFound
from sharelink.crud.crud_share import ShareStore
from sharelink.models.share import FileEntry, ShareRecord
from sharelink.services.download_gate import DownloadGate
from sharelink.utils.archive import build_zip, remove_temp_file
from sharelink.utils.file_manager import FileManager
from sharelink.utils.ranges import RangeNotSatisfiable, open_file_range, parse_range_header

logger = logging.getLogger(__name__)

router = APIRouter()


def _content_disposition(filename: str) -> str:
    # URL encode the filename to handle non-ASCII characters
    return f"attachment; filename*=UTF-8''{quote(filename)}"


def _serve_single_file(entry: FileEntry, range_header: Optional[str], file_manager: FileManager) -> Response:
    if not file_manager.file_exists(entry.storage_path):
        raise BackingFileNotFound()

    file_size = os.path.getsize(entry.storage_path)
    headers = {
        "Content-Disposition": _content_disposition(entry.original_name),
        "Accept-Ranges": "bytes",
    }

    try:
        byte_range = parse_range_header(range_header, file_size)
    except RangeNotSatisfiable:
        return Response(status_code=416, headers={"Content-Range": f"bytes */{file_size}"})

    if byte_range is None:
        start, end, status_code = 0, file_size - 1, 200
    else:
        (start, end), status_code = byte_range, 206
        headers["Content-Range"] = f"bytes {start}-{end}/{file_size}"
    headers["Content-Length"] = str(end - start + 1)

    # Opened before responding: a cleanup that unlinks the file later cannot cut the body short
    try:
        body = open_file_range(entry.storage_path, start, end)
    except FileNotFoundError:
        raise BackingFileNotFound() from None

    return StreamingResponse(
        body,
        status_code=status_code,
        media_type=entry.mime_type or "application/octet-stream",
        headers=headers,
    )


def _serve_zip(record: ShareRecord, background_tasks: BackgroundTasks) -> Response:
    zip_path, added = build_zip(record.files)
    if added < len(record.files):
        logger.warning("Share %s: archived %d of %d files", record.slug, added, len(record.files))

    file_size = os.path.getsize(zip_path)
    body = open_file_range(zip_path, 0, file_size - 1)
    background_tasks.add_task(remove_temp_file, zip_path)

    zip_name = f"sharelink-{record.slug}-{int(time.time() * 1000)}.zip"
    return StreamingResponse(
        body,
        media_type="application/zip",
        headers={
            "Content-Disposition": _content_disposition(zip_name),
            "Content-Length": str(file_size),
        },
    )


@router.get("", response_model=schemas.ShareList)
def list_shares(
    request: Request,
    store: ShareStore = Depends(deps.get_store),
) -> Any:
    """
    List all stored shares. May include expired shares the sweeper has not reached yet.
    """
    now = store.now()
    shares = [
        schemas.ShareSummary.from_record(record, deps.share_url(request, record.slug), now)
        for record in store.list()
    ]
    return schemas.ShareList(count=len(shares), shares=shares)


@router.get("/{slug}/info", response_model=schemas.ShareInfo)
def get_share_info(
    slug: str,
    gate: DownloadGate = Depends(deps.get_gate),
) -> Any:
    """
    Get public share info. An expired share is removed and reported as expired.
    """
    record = gate.check_available(slug)
    return schemas.ShareInfo.from_record(record)


@router.get("/{slug}/download")
def download_share(
    slug: str,
    background_tasks: BackgroundTasks,
    pin: Optional[str] = None,
    x_download_pin: Optional[str] = Header(None),
    range_header: Optional[str] = Header(None, alias="range"),
    store: ShareStore = Depends(deps.get_store),
    gate: DownloadGate = Depends(deps.get_gate),
    file_manager: FileManager = Depends(deps.get_file_manager),
) -> Any:
    """
    Download the shared files. One file is sent as-is (byte ranges supported),
    several are streamed as a ZIP archive.
    """
    record = gate.authorize(slug, pin or x_download_pin)

    if record.is_exhausted():
        # Runs once the response has been sent
        background_tasks.add_task(store.run_deferred_cleanup, slug=record.slug)

    if len(record.files) == 1:
        return _serve_single_file(record.files[0], range_header, file_manager)
    return _serve_zip(record, background_tasks)


@router.get("/{slug}/stats", response_model=schemas.ShareStats)
def get_share_stats(
    slug: str,
    store: ShareStore = Depends(deps.get_store),
) -> Any:
    """
    Get download statistics.
    """
    record = store.get(slug)
    if record is None:
        raise ShareNotFound("Share not found")
    return schemas.ShareStats.from_record(record, store.now())


@router.delete("/{slug}", response_model=schemas.MessageResponse)
def delete_share(
    slug: str,
    access: Optional[schemas.ShareAccess] = Body(None),
    gate: DownloadGate = Depends(deps.get_gate),
) -> Any:
    """
    Delete a share and its files. A PIN-protected share needs its PIN.
    """
    if not gate.authorize_delete(slug, access.pin if access else None):
        raise ShareNotFound("Share not found")
    return schemas.MessageResponse(message="Share deleted successfully")
