from typing import Optional

from fastapi import Request

from sharelink.core.config import Settings
from sharelink.crud.crud_share import ShareStore
from sharelink.services.download_gate import DownloadGate
from sharelink.utils.file_manager import FileManager


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ShareStore:
    return request.app.state.store


def get_gate(request: Request) -> DownloadGate:
    return request.app.state.gate


def get_file_manager(request: Request) -> FileManager:
    return request.app.state.file_manager


def base_url(request: Request) -> str:
    settings = get_settings(request)
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")
    return str(request.base_url).rstrip("/")


def share_url(request: Request, slug: str, pin: Optional[str] = None) -> str:
    """Canonical download URL for a share, optionally carrying a PIN."""
    url = f"{base_url(request)}{get_settings(request).API_STR}/share/{slug}/download"
    if pin:
        url += f"?pin={pin}"
    return url
