from datetime import datetime, timedelta
from typing import Optional


def format_bytes(size: float) -> str:
    """Convert bytes to human-readable format."""
    if size == 0:
        return "0 Bytes"
    for unit in ["Bytes", "KB", "MB", "GB", "TB"]:
        if size < 1024:
            return f"{size:.2f} {unit}" if unit != "Bytes" else f"{int(size)} {unit}"
        size /= 1024
    return f"{size:.2f} PB"


def to_millis(value: Optional[datetime]) -> Optional[int]:
    """Epoch milliseconds, the timestamp format the web client expects."""
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def duration_millis(value: Optional[timedelta]) -> Optional[int]:
    if value is None:
        return None
    return int(value.total_seconds() * 1000)
