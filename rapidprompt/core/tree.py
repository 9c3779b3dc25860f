# rapidprompt/core/tree.py
"""
Pure helpers over a scanned FileNode tree.

The tree is built once per scan and never mutated; everything here either
reads it or returns new values (selection sets, rendered text).
"""
from typing import Any, Iterable, List, Mapping, Optional, Set, Union

from loguru import logger

from .errors import ValidationFailed
from .models import FileNode

FILE_TREE_DEPTH_LIMIT = 4
FILE_TREE_ENTRY_LIMIT = 1500
FILE_TREE_SHOW_ROOT_PATH = True
MIN_ENTRY_LIMIT = 50


def normalize_scan_result(raw: Union[FileNode, Mapping[str, Any]]) -> FileNode:
    """Turns a raw scan response into a FileNode tree where every directory has a child list."""
    if isinstance(raw, FileNode):
        if raw.is_dir and raw.children is None:
            return FileNode(name=raw.name, path=raw.path, is_dir=True, children=[])
        return raw
    if not isinstance(raw, Mapping):
        raise ValidationFailed(f"Scan result must be a node mapping, got {type(raw).__name__}")

    name = raw.get("name"); path = raw.get("path")
    is_dir = raw.get("isDir", raw.get("is_dir"))
    if not isinstance(name, str) or not isinstance(path, str) or not isinstance(is_dir, bool):
        raise ValidationFailed("Scan result node needs string 'name', string 'path' and boolean 'isDir'")
    if not is_dir:
        return FileNode(name=name, path=path, is_dir=False)

    raw_children = raw.get("children") or []
    if not isinstance(raw_children, (list, tuple)):
        raise ValidationFailed(f"Children of {path} must be a list")
    return FileNode(name=name, path=path, is_dir=True,
                    children=[normalize_scan_result(c) for c in raw_children])


def collect_file_paths(root: FileNode) -> Set[str]:
    """Collects the path of every file leaf under root (root itself included if it is a file)."""
    out: Set[str] = set()
    stack: List[FileNode] = [root]
    while stack:
        node = stack.pop()
        if node.is_dir:
            stack.extend(node.children)
        else:
            out.add(node.path)
    return out


def find_node(root: FileNode, target_path: str) -> Optional[FileNode]:
    if root.path == target_path:
        return root
    if root.is_dir:
        for child in root.children:
            found = find_node(child, target_path)
            if found:
                return found
    return None


def ancestor_dirs(root: FileNode, target_path: str) -> Optional[List[str]]:
    """Paths of the directories leading to target_path (outermost first), or None if absent."""
    def walk(node: FileNode, parents: List[str]) -> Optional[List[str]]:
        if node.path == target_path:
            return parents
        if node.is_dir:
            for child in node.children:
                res = walk(child, parents + [node.path])
                if res is not None:
                    return res
        return None
    return walk(root, [])


def dirs_to_expand(root: FileNode, selected: Iterable[str]) -> Set[str]:
    """Directories that must be open for every selected path to be visible."""
    to_expand: Set[str] = set()
    for path in selected:
        dirs = ancestor_dirs(root, path)
        if dirs:
            to_expand.update(dirs)
    return to_expand


def toggle_selection(root: Optional[FileNode], selected: Iterable[str], path: str, checked: bool) -> Set[str]:
    """
    Returns a new selection set with `path` checked or unchecked.
    A directory toggles every file below it; anything else toggles just that path.
    """
    result = set(selected)
    target = find_node(root, path) if root is not None else None
    paths = collect_file_paths(target) if target is not None and target.is_dir else {path}
    if checked:
        result.update(paths)
    else:
        result.difference_update(paths)
    return result


def render_ascii_tree(root: FileNode,
                      depth_limit: int = FILE_TREE_DEPTH_LIMIT,
                      entry_limit: int = FILE_TREE_ENTRY_LIMIT,
                      show_root_path: bool = FILE_TREE_SHOW_ROOT_PATH) -> str:
    """
    Renders the tree as a compact outline.

    Children keep the scan order. Directories deeper than `depth_limit` collapse to a
    single "…" line. At most `entry_limit` lines are produced (never fewer than 50 allowed).
    When entries are left out, the last of those lines is a single "… (+ more)" marker.
    """
    entry_limit = max(MIN_ENTRY_LIMIT, entry_limit)
    lines: List[str] = []

    root_label = f"{root.name} ({root.path})" if show_root_path else root.name
    lines.append(root_label + ("/" if root.is_dir else ""))
    used = 1
    truncated = False

    def walk(node: FileNode, prefix: str, depth: int) -> None:
        nonlocal used, truncated
        children = node.children
        last_idx = len(children) - 1
        for i, child in enumerate(children):
            if used >= entry_limit:
                truncated = True
                return
            is_last = i == last_idx
            branch = "└── " if is_last else "├── "
            next_prefix = prefix + ("    " if is_last else "│   ")

            if child.is_dir:
                lines.append(prefix + branch + child.name + "/")
                used += 1
                if depth + 1 < depth_limit:
                    walk(child, next_prefix, depth + 1)
                    if truncated: return
                elif child.children:
                    if used >= entry_limit:
                        truncated = True
                        return
                    lines.append(next_prefix + "…")
                    used += 1
            else:
                lines.append(prefix + branch + child.name)
                used += 1

    if root.is_dir:
        walk(root, "", 0)
    if truncated:
        # The marker takes the place of the last rendered entry
        del lines[entry_limit - 1:]
        lines.append("… (+ more)")
    logger.trace(f"Rendered ASCII tree for {root.path}: {len(lines)} lines")
    return "\n".join(lines)
