# rapidprompt/core/file_reader.py
from pathlib import Path
from typing import Iterable, List

from loguru import logger

from .errors import SourceUnavailable
from .models import FileValue

DEFAULT_MAX_BYTES = 512 * 1024

# Tab, LF, CR and printable ASCII survive; every other byte is dropped
_KEEP_BYTES = bytes([9, 10, 13]) + bytes(range(32, 127))
_DROP_TABLE = bytes(b for b in range(256) if b not in _KEEP_BYTES)


def ascii_only(data: bytes) -> str:
    return data.translate(None, _DROP_TABLE).decode("ascii")


def read_files_as_text(paths: Iterable[str], max_bytes: int = DEFAULT_MAX_BYTES) -> List[FileValue]:
    """
    Reads each path as ASCII-only text, at most `max_bytes` bytes per file.

    Paths that are not regular files are skipped. Files over the cap are cut at
    the cap and flagged `truncated`; the text itself carries no marker.
    An existing file that cannot be read raises SourceUnavailable.
    """
    out: List[FileValue] = []
    for p in paths:
        path = Path(p)
        if not path.is_file():
            logger.warning(f"Skipping non-file path: {p}")
            continue
        try:
            with open(path, "rb") as f:
                data = f.read(max_bytes + 1)
        except OSError as e:
            logger.error(f"Error reading file {p}: {e}")
            raise SourceUnavailable(f"{p}: {e}") from e
        truncated = len(data) > max_bytes
        if truncated:
            logger.warning(f"Truncated {path.name} to {max_bytes} bytes.")
            data = data[:max_bytes]
        out.append(FileValue(path=str(p), text=ascii_only(data), truncated=truncated))
    logger.debug(f"Read {len(out)} files as text.")
    return out
