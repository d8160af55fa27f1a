import logging
import mimetypes
import os
import random
import re
import time
from typing import Any, Dict, Iterable, Optional

from fastapi import UploadFile

from sharelink.core.errors import StorageError, ValidationError
from sharelink.models.share import FileEntry
from sharelink.utils.format_utils import format_bytes

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def sanitize_filename(filename: Optional[str]) -> str:
    """
    Reduce a client-supplied name to a bare file name safe for every platform.
    """
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", name).strip(" .")
    return name[:200] or "file"


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or declared or "application/octet-stream"


class FileManager:
    """Owns the uploads directory shared by all shares."""

    def __init__(self, upload_dir: str, max_file_size: int = 500 * 1024 * 1024):
        self.upload_dir = os.path.abspath(upload_dir)
        self.max_file_size = max_file_size

    def ensure_upload_dir(self) -> None:
        if not os.path.exists(self.upload_dir):
            os.makedirs(self.upload_dir, exist_ok=True)
            logger.info("Created uploads directory %s", self.upload_dir)

    def unique_path(self, original_name: str) -> str:
        """Record-scoped storage path; never reused by another upload."""
        unique_name = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}-{sanitize_filename(original_name)}"
        path = os.path.join(self.upload_dir, unique_name)
        while os.path.exists(path):
            unique_name = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}-{sanitize_filename(original_name)}"
            path = os.path.join(self.upload_dir, unique_name)
        return path

    async def save_upload(self, upload: UploadFile) -> FileEntry:
        """
        Stream an uploaded file into the uploads directory in 1MB chunks.
        Raises ValidationError (FILE_TOO_LARGE) and removes the partial file when the
        size limit is exceeded.
        """
        self.ensure_upload_dir()
        original_name = upload.filename or "file"
        path = self.unique_path(original_name)

        size = 0
        try:
            with open(path, "wb") as buffer:
                while content := await upload.read(CHUNK_SIZE):
                    size += len(content)
                    if size > self.max_file_size:
                        raise ValidationError(
                            f"File too large. Maximum size is {format_bytes(self.max_file_size)} per file",
                            code="FILE_TOO_LARGE",
                        )
                    buffer.write(content)
        except ValidationError:
            self.delete_file(path)
            raise
        except OSError as e:
            self.delete_file(path)
            logger.error("Failed to store upload %s: %s", original_name, e)
            raise StorageError(f"Failed to store file {original_name}") from e

        return FileEntry(
            original_name=original_name,
            storage_path=path,
            size_bytes=size,
            mime_type=guess_mime_type(original_name, upload.content_type),
        )

    def file_exists(self, path: str) -> bool:
        return os.path.isfile(path)

    def delete_file(self, path: str) -> bool:
        """
        Best effort delete. A file that is already gone is not an error; a path outside
        the uploads directory is never touched.
        """
        if not self.is_within_uploads(path):
            logger.warning("Refusing to delete %s: outside uploads directory", path)
            return False
        try:
            os.remove(path)
            logger.debug("Deleted file %s", os.path.basename(path))
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Error deleting file %s: %s", path, e)
            return False

    def delete_files(self, paths: Iterable[str]) -> int:
        return sum(1 for path in paths if self.delete_file(path))

    def is_within_uploads(self, path: str) -> bool:
        normalized = os.path.abspath(path)
        return os.path.commonpath([normalized, self.upload_dir]) == self.upload_dir

    def uploads_stats(self) -> Dict[str, Any]:
        total_size = 0
        file_count = 0
        try:
            with os.scandir(self.upload_dir) as entries:
                for entry in entries:
                    if entry.is_file():
                        file_count += 1
                        total_size += entry.stat().st_size
        except OSError as e:
            logger.warning("Could not read uploads directory %s: %s", self.upload_dir, e)

        return {
            "totalSize": total_size,
            "totalSizeFormatted": format_bytes(total_size),
            "fileCount": file_count,
            "directory": self.upload_dir,
        }
