from typing import List, Optional
from pydantic import Field

from .share import CamelModel


class QRCodeOptions(CamelModel):
    margin: int = Field(2, ge=0, le=20)
    dark_color: str = "#000000"
    light_color: str = "#FFFFFF"
    error_level: str = "M"

class QRCustomRequest(CamelModel):
    data: Optional[str] = None
    format: str = "dataurl"
    size: int = 200
    options: QRCodeOptions = Field(default_factory=QRCodeOptions)

class QRDataUrl(CamelModel):
    qr_code: str
    url: Optional[str] = None
    slug: Optional[str] = None
    data: Optional[str] = None

class QRInfo(CamelModel):
    slug: str
    url: str
    qr_endpoint: str
    available_formats: List[str]
    has_pin: bool
    expires_at: Optional[int] = None
    files_count: int
