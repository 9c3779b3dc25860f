# rapidprompt/core/formatter.py
"""
Builds the Markdown document that gets copied or exported.

`format_output` is a pure function: the same instructions, files and options
always give byte-identical text. The token count shown to the user is taken
from this exact string.
"""
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .models import FileNode, FileValue
from .tree import (FILE_TREE_DEPTH_LIMIT, FILE_TREE_ENTRY_LIMIT, FILE_TREE_SHOW_ROOT_PATH,
                   render_ascii_tree)

NO_FILES_PLACEHOLDER = "_(no files selected)_"

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    "ts": "ts", "tsx": "tsx", "js": "javascript", "jsx": "jsx",
    "json": "json", "md": "markdown", "rs": "rust", "py": "python", "sh": "bash",
    "yml": "yaml", "yaml": "yaml", "toml": "toml", "css": "css", "scss": "scss",
    "html": "html", "java": "java", "kt": "kotlin", "go": "go",
    "c": "c", "h": "c", "cc": "cpp", "cpp": "cpp", "hpp": "cpp",
}

_BACKTICK_RUN = re.compile(r"`+")


@dataclass(frozen=True)
class UnitView:
    """The focused unit as it appears in the document."""
    body: str
    title: Optional[str] = None


@dataclass(frozen=True)
class OutputOptions:
    system_prompt: str = ""
    unit: Optional[UnitView] = None
    include_tree: bool = False
    tree_root: Optional[FileNode] = None
    tree_depth_limit: int = FILE_TREE_DEPTH_LIMIT
    tree_entry_limit: int = FILE_TREE_ENTRY_LIMIT
    tree_show_root_path: bool = FILE_TREE_SHOW_ROOT_PATH


def fence_for(content: str) -> str:
    """A backtick fence one longer than the longest backtick run in content, at least three."""
    longest = max((len(m) for m in _BACKTICK_RUN.findall(content)), default=0)
    return "`" * max(3, longest + 1)


def language_for_path(path: str) -> str:
    """Fence language tag for a file path; unknown extensions get ""."""
    ext = os.path.basename(path).lower().rsplit(".", 1)[-1]
    return LANGUAGE_BY_EXTENSION.get(ext, "")


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n")


def format_output(instructions: str, files: Sequence[FileValue], options: Optional[OutputOptions] = None) -> str:
    options = options or OutputOptions()
    parts: List[str] = []

    system = options.system_prompt.strip()
    if system:
        parts += ["# System Prompt", "", system, ""]

    parts += ["# Prompt", "", instructions.rstrip(), ""]

    unit = options.unit
    if unit is not None and unit.body.strip():
        parts += ["## Unit", ""]
        if unit.title:
            parts += [f"**{unit.title}**", ""]
        fence = fence_for(unit.body)
        parts += [fence, _normalize_newlines(unit.body), fence, ""]

    if files:
        parts += ["## File paths", ""]
        parts += [f"- {f.path}" for f in files]
        parts.append("")

    parts += ["## Files", ""]
    if not files:
        parts += [NO_FILES_PLACEHOLDER, ""]
    else:
        for f in files:
            lang = language_for_path(f.path)
            fence = fence_for(f.text)
            parts += [f"### {f.path}", f"{fence}{lang}", _normalize_newlines(f.text), fence, ""]

    if options.include_tree and options.tree_root is not None:
        tree_text = render_ascii_tree(options.tree_root,
                                      depth_limit=options.tree_depth_limit,
                                      entry_limit=options.tree_entry_limit,
                                      show_root_path=options.tree_show_root_path)
        fence = fence_for(tree_text)
        parts += ["## File Tree", "", fence, tree_text, fence, ""]

    return "\n".join(parts).rstrip() + "\n"
