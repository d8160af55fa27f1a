from .share import (
    FilesSummary,
    MessageResponse,
    SecuritySummary,
    ShareAccess,
    ShareInfo,
    ShareList,
    ShareStats,
    ShareSummary,
    SingleFileSummary,
    SingleUploadResponse,
    UploadResponse,
)
from .qr import QRCodeOptions, QRCustomRequest, QRDataUrl, QRInfo
from .health import Health
