# rapidprompt/core/export.py
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .errors import IoDenied

MAX_NAME_ATTEMPTS = 9999
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def write_text_file(path: Union[str, Path], text: str) -> Path:
    """Writes UTF-8 text atomically (temp file in the same directory, then os.replace)."""
    target = Path(path)
    temp_file_path: Optional[Path] = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode='w',
            encoding='utf-8',
            newline='',
            dir=target.parent,
            prefix=f".{target.name}_tmp",
            delete=False
        ) as temp_f:
            temp_file_path = Path(temp_f.name)
            temp_f.write(text)
            temp_f.flush()
            os.fsync(temp_f.fileno())
        os.replace(temp_file_path, target)
        temp_file_path = None
        logger.debug(f"Wrote {len(text)} characters to {target}")
        return target
    except OSError as e:
        logger.error(f"Failed to write {target}: {e}")
        raise IoDenied(f"Could not write {target}: {e}") from e
    finally:
        if temp_file_path and temp_file_path.exists():
            logger.warning(f"Cleaning up leftover temporary file: {temp_file_path}")
            try: temp_file_path.unlink()
            except OSError as unlink_err: logger.error(f"Failed to remove temporary file {temp_file_path}: {unlink_err}")


def sanitize_for_filename(value: str) -> str:
    """Keeps ASCII letters, digits, '.', '-' and '_'; everything else becomes a single '_'."""
    out = _UNSAFE_FILENAME_CHARS.sub("_", value)
    while "__" in out:
        out = out.replace("__", "_")
    return out.strip("_")


def save_chunk_file(directory: Union[str, Path], base: str, contents: str, ext: str = "md") -> Path:
    """
    Saves one rendered document as `base.ext` in `directory`, or `base--2.ext`,
    `base--3.ext`, ... when the name is taken. Returns the path written.
    """
    dir_path = Path(directory)
    try:
        dir_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IoDenied(f"mkdir failed: {e}") from e

    ext_sanitized = sanitize_for_filename(ext.strip(".")) or "md"
    base_sanitized = sanitize_for_filename(base) or "chunk"

    for attempt in range(1, MAX_NAME_ATTEMPTS + 1):
        name = f"{base_sanitized}.{ext_sanitized}" if attempt == 1 else f"{base_sanitized}--{attempt}.{ext_sanitized}"
        candidate = dir_path / name
        if not candidate.exists():
            return write_text_file(candidate, contents)
    raise IoDenied("Failed to create a unique filename (too many conflicts)")
