from typing import BinaryIO, Iterator, Optional, Tuple

CHUNK_SIZE = 1024 * 1024


class RangeNotSatisfiable(Exception):
    def __init__(self, file_size: int):
        self.file_size = file_size
        super().__init__(f"Range not satisfiable for size {file_size}")


def parse_range_header(range_header: Optional[str], file_size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single ``bytes=`` range into inclusive (start, end) offsets.

    Returns None when the header is absent, malformed or asks for several ranges;
    the caller then sends the whole file. Raises RangeNotSatisfiable when the range
    lies outside the file.
    """
    if not range_header:
        return None
    try:
        unit, ranges = range_header.strip().split("=", 1)
    except ValueError:
        return None
    if unit.strip().lower() != "bytes" or "," in ranges:
        return None

    start_str, _, end_str = ranges.strip().partition("-")
    try:
        if start_str == "":
            # Suffix range: the last N bytes
            suffix = int(end_str)
            if suffix <= 0:
                raise RangeNotSatisfiable(file_size)
            start, end = max(0, file_size - suffix), file_size - 1
        else:
            start = int(start_str)
            end = int(end_str) if end_str else file_size - 1
    except ValueError:
        return None

    if start < 0 or start >= file_size or end < start:
        raise RangeNotSatisfiable(file_size)
    return start, min(end, file_size - 1)


def open_file_range(path: str, start: int, end: int, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """
    Open ``path`` now and return an iterator over bytes ``start``..``end``.

    The handle is held for the life of the iterator, so the file may be unlinked
    once this returns without cutting the stream short. Raises FileNotFoundError
    immediately if the file is already gone.
    """
    file_like = open(path, mode="rb")
    return iter_file_range(file_like, start, end, chunk_size)


def iter_file_range(file_like: BinaryIO, start: int, end: int, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    with file_like:
        file_like.seek(start)
        remaining = end - start + 1
        while remaining > 0:
            chunk = file_like.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
