"""Typed errors raised by the share registry and mapped to HTTP responses in ``main``."""

from typing import Any, Dict, Optional


class ShareLinkError(Exception):
    status_code: int = 500
    code: str = "SERVER_ERROR"
    message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.message
        self.code = code or self.code
        self.status_code = status_code or self.status_code
        self.extra = extra or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        body.update(self.extra)
        return body


# --- Validation: bad input, rejected before any state is touched ---

class ValidationError(ShareLinkError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request"


# --- Authorization: the share cannot be used by this caller ---

class AuthError(ShareLinkError):
    status_code = 401
    code = "UNAUTHORIZED"
    message = "Unauthorized"


class ShareNotFound(AuthError):
    status_code = 404
    code = "SHARE_NOT_FOUND"
    message = "Share not found or expired"


class ShareExpired(AuthError):
    status_code = 404
    code = "SHARE_EXPIRED"
    message = "Share has expired"


class DownloadLimitReached(AuthError):
    status_code = 410
    code = "DOWNLOAD_LIMIT_REACHED"
    message = "Share download limit reached"


class InvalidPin(AuthError):
    status_code = 401
    code = "INVALID_PIN"
    message = "PIN required or incorrect"


class PinRequired(AuthError):
    status_code = 401
    code = "PIN_REQUIRED"
    message = "PIN required"


# Failures that end the share's life: the record is evicted when they are raised.
TERMINAL_AUTH_ERRORS = (ShareExpired, DownloadLimitReached)


# --- Storage: backing files missing or unwritable ---

class StorageError(ShareLinkError):
    status_code = 500
    code = "STORAGE_ERROR"
    message = "Storage error"


class BackingFileNotFound(StorageError):
    status_code = 404
    code = "FILE_NOT_FOUND"
    message = "File not found on server"


class NoFilesFound(StorageError):
    status_code = 404
    code = "NO_FILES_FOUND"
    message = "No files found on server"
