# rapidprompt/core/models.py
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Literal, TYPE_CHECKING

if TYPE_CHECKING:
    from .unit_config import UnitConfig

Mode = Literal["folder", "spreadsheet", "block"]
MODES = ("folder", "spreadsheet", "block")

@dataclass(frozen=True)
class FileNode:
    """A file or directory from one scan. Directories always carry a child list."""
    name: str
    path: str
    is_dir: bool
    children: List['FileNode'] = field(default_factory=list)

    def __hash__(self):
        return hash(self.path)

@dataclass(frozen=True)
class FileValue:
    """Text read from one selected file."""
    path: str
    text: str
    truncated: bool = False # True when the file was larger than the read cap

@dataclass(frozen=True)
class PromptUnit:
    """One addressable chunk of extracted content."""
    id: str
    body: str
    meta: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "body": self.body}
        if self.meta is not None:
            out["meta"] = dict(self.meta)
        return out

@dataclass(frozen=True)
class ApiTable:
    """Raw result of the API adapter's extraction phase: column names plus stringified rows."""
    columns: List[str]
    rows: List[Dict[str, str]]

@dataclass(frozen=True)
class SheetInfo:
    name: str
    columns: List[str]

@dataclass(frozen=True)
class TabularInspection:
    path: str
    sheets: List[SheetInfo]

    def sheet(self, name: str) -> Optional[SheetInfo]:
        for info in self.sheets:
            if info.name == name:
                return info
        return None

@dataclass(frozen=True)
class UnitCursor:
    """Saved position in a unit sequence: index plus the id that was there."""
    index: Optional[int] = None
    id: Optional[str] = None

@dataclass
class WorkingSession:
    """Live working state owned by the Workbench. All paths are absolute."""
    root_path: str = ""
    instructions: str = ""
    system_instructions: str = ""
    mode: Mode = "folder"
    selected: List[str] = field(default_factory=list)
    include_tree: bool = False
    unit_source: Optional[str] = None
    unit_config: Optional['UnitConfig'] = None
    cursor: Optional[UnitCursor] = None
    token_count: Optional[int] = None
