import logging
import os
import tempfile
import zipfile
from typing import List, Sequence, Tuple

from sharelink.core.errors import NoFilesFound
from sharelink.models.share import FileEntry

logger = logging.getLogger(__name__)


def archive_names(files: Sequence[FileEntry]) -> List[str]:
    """
    In-archive names for ``files``. A name already used by an earlier file gets a
    counter suffix: ``report.pdf``, ``report_1.pdf``, ``report_2.pdf``.
    """
    used = set()
    names = []
    for entry in files:
        name = os.path.basename(entry.original_name.replace("\\", "/")) or "file"
        stem, ext = os.path.splitext(name)
        candidate = name
        counter = 1
        while candidate in used:
            candidate = f"{stem}_{counter}{ext}"
            counter += 1
        used.add(candidate)
        names.append(candidate)
    return names


def build_zip(files: Sequence[FileEntry]) -> Tuple[str, int]:
    """
    Write the share's files into a temporary ZIP and return (path, files added).

    Missing backing files are skipped. If none exist the archive is discarded and
    NoFilesFound is raised. The caller owns the returned temp file.
    """
    present = []
    for entry, name in zip(files, archive_names(files)):
        if os.path.isfile(entry.storage_path):
            present.append((entry, name))
        else:
            logger.warning("File not found: %s", entry.storage_path)

    if not present:
        raise NoFilesFound()

    temp_zip = tempfile.NamedTemporaryFile(delete=False, suffix=".zip")
    temp_zip.close()

    added = 0
    try:
        with zipfile.ZipFile(temp_zip.name, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as zipf:
            for entry, name in present:
                try:
                    zipf.write(entry.storage_path, name)
                    added += 1
                except FileNotFoundError:
                    # Removed between the existence check and the write
                    logger.warning("File vanished while archiving: %s", entry.storage_path)
    except Exception:
        remove_temp_file(temp_zip.name)
        raise

    if added == 0:
        remove_temp_file(temp_zip.name)
        raise NoFilesFound()
    return temp_zip.name, added


def remove_temp_file(path: str) -> None:
    """Helper to remove a temporary file."""
    try:
        os.remove(path)
    except OSError:
        pass
