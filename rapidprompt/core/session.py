# rapidprompt/core/session.py
"""
Session codec: converts the live working state to and from the portable
session file.

In memory every path is absolute. On disk every selected path and the unit
source are stored relative to the session root, so a session can be moved
to another machine or re-anchored at another root. Paths that are not under
the root are written unchanged rather than dropped.
"""
import json
import re
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

from loguru import logger
from pydantic import Field, StrictBool, StrictInt, StrictStr, ValidationError, field_validator

from .errors import SourceUnavailable, ValidationFailed
from .export import write_text_file
from .models import UnitCursor, WorkingSession
from .unit_config import UnitConfig, WireModel

SESSION_VERSION = 1
SESSION_FILE_SUFFIX = ".rag.json"

_SEPARATORS = re.compile(r"[\\/]+")
_WINDOWS_ABSOLUTE = re.compile(r"^[A-Za-z]:[\\/]")

# --- Path mapping ---

def path_separator_for(root: str) -> str:
    """The separator style of a root path: backslash if it contains one, else slash."""
    return "\\" if "\\" in root else "/"

def _with_trailing_separator(root: str, sep: str) -> str:
    return root if root.endswith(sep) else root + sep

def is_absolute_path(path: str) -> bool:
    return path.startswith("/") or path.startswith("\\") or bool(_WINDOWS_ABSOLUTE.match(path))

def to_relative(root: str, absolute: str) -> str:
    """Strips the root prefix from an absolute path. Paths outside root come back unchanged."""
    sep = path_separator_for(root)
    root_norm = _with_trailing_separator(root, sep)
    if absolute.startswith(root_norm):
        return absolute[len(root_norm):]
    abs_fixed = sep.join(_SEPARATORS.split(absolute))
    root_fixed = sep.join(_SEPARATORS.split(root_norm))
    if abs_fixed.startswith(root_fixed):
        return abs_fixed[len(root_fixed):]
    logger.debug(f"Path {absolute} is not under root {root}; stored as-is.")
    return absolute

def to_absolute(root: str, relative: str) -> str:
    """Joins a root-relative path onto root using the root's separator style."""
    if is_absolute_path(relative):
        return relative
    sep = path_separator_for(root)
    rel_norm = sep.join(_SEPARATORS.split(relative))
    return _with_trailing_separator(root, sep) + rel_norm

# --- Portable form ---

class SessionCursor(WireModel):
    index: Optional[StrictInt] = None
    id: Optional[StrictStr] = None

class SessionFile(WireModel):
    version: StrictInt
    root_path: StrictStr
    instructions: StrictStr
    selected: List[StrictStr]
    include_tree: StrictBool
    mode: Literal["folder", "spreadsheet", "block"]
    unit_source: Optional[StrictStr] = None
    unit_config: Optional[UnitConfig] = None
    cursor: Optional[SessionCursor] = None
    saved_token_count: Optional[StrictInt] = Field(default=None, ge=0)

    @field_validator("version")
    @classmethod
    def check_version(cls, value: int) -> int:
        if value != SESSION_VERSION:
            raise ValueError(f"unsupported session version {value}, expected {SESSION_VERSION}")
        return value


def to_portable(state: WorkingSession) -> SessionFile:
    root = state.root_path
    cursor = None
    if state.mode != "folder" and state.cursor is not None:
        cursor = SessionCursor(index=state.cursor.index, id=state.cursor.id)
    return SessionFile(
        version=SESSION_VERSION,
        root_path=root,
        instructions=state.instructions,
        selected=[to_relative(root, p) for p in state.selected],
        include_tree=bool(state.include_tree),
        mode=state.mode,
        unit_source=to_relative(root, state.unit_source) if state.unit_source else None,
        unit_config=state.unit_config,
        cursor=cursor,
        saved_token_count=state.token_count,
    )


def validate_session(raw: Union[str, bytes, dict, Any]) -> SessionFile:
    """Structural check of a whole session document. Any mismatch rejects it."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationFailed(f"Session file is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValidationFailed("Invalid session file: top level must be an object")
    try:
        return SessionFile.model_validate(raw)
    except ValidationError as e:
        logger.error(f"Session validation failed: {e}")
        raise ValidationFailed(f"Invalid session file: {e.error_count()} problem(s)") from e


def from_portable(session: SessionFile, root: Optional[str] = None) -> WorkingSession:
    """Rebuilds the absolute-path working state. `root` re-anchors the session elsewhere."""
    root = root or session.root_path
    cursor = None
    if session.cursor is not None:
        cursor = UnitCursor(index=session.cursor.index, id=session.cursor.id)
    return WorkingSession(
        root_path=root,
        instructions=session.instructions,
        mode=session.mode,
        selected=[to_absolute(root, p) for p in session.selected],
        include_tree=session.include_tree,
        unit_source=to_absolute(root, session.unit_source) if session.unit_source else None,
        unit_config=session.unit_config,
        cursor=cursor,
        token_count=session.saved_token_count,
    )


def dumps_session(session: SessionFile) -> str:
    return json.dumps(session.to_wire(), indent=2, ensure_ascii=False)


def read_session_file(path: Union[str, Path]) -> SessionFile:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SourceUnavailable(f"Could not read session file {path}: {e}") from e
    logger.info(f"Loaded session file: {path}")
    return validate_session(raw)


def write_session_file(path: Union[str, Path], session: SessionFile) -> Path:
    target = write_text_file(path, dumps_session(session) + "\n")
    logger.info(f"Session saved to: {target}")
    return target
