# rapidprompt/core/fs_scanner.py
import os
import fnmatch
from pathlib import Path
from typing import List, Optional, Callable, Union
import gitignore_parser
from loguru import logger

from .errors import SourceUnavailable
from .models import FileNode

# --- Core Logic (Pure Python) ---

class _FileScannerCore:
    """Pure Python implementation of file system scanning."""

    def __init__(self,
                 root_path: Union[str, Path],
                 ignore_patterns: List[str],
                 skip_hidden: bool = True,
                 progress_callback: Optional[Callable[[str], None]] = None,
                 respect_gitignore: bool = True):
        # Keep the caller's spelling of the root: node paths are prefixed with it verbatim
        self.root_path = Path(root_path)
        self.ignore_patterns = ignore_patterns
        self.skip_hidden = skip_hidden
        self.progress_callback = progress_callback
        self.respect_gitignore = respect_gitignore
        self._gitignore: Optional[Callable[[str], bool]] = None
        logger.debug(f"Scanner core initialized for {self.root_path} with ignores: {self.ignore_patterns}")

    def _emit_progress(self, message: str):
        if self.progress_callback:
            try: self.progress_callback(message)
            except Exception as e: logger.error(f"Error in progress callback: {e}")

    def is_ignored(self, entry_path: Path) -> bool:
        """
        Check if a path should be ignored: hidden names (when enabled), ignore patterns or the root .gitignore.
        Patterns are matched against the name and the path relative to the root.
        """
        name = entry_path.name
        if self.skip_hidden and name.startswith("."):
            logger.trace(f"Ignoring hidden entry: {name}")
            return True

        try:
            relative_path_str = entry_path.relative_to(self.root_path).as_posix()
        except ValueError:
            relative_path_str = None

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                logger.trace(f"Ignoring '{name}' due to basename pattern '{pattern}'")
                return True
            if relative_path_str and fnmatch.fnmatch(relative_path_str, pattern):
                 logger.trace(f"Ignoring '{relative_path_str}' due to relative path pattern '{pattern}'")
                 return True
        if self._gitignore is not None and self._gitignore(str(entry_path)):
            logger.trace(f"Ignoring '{relative_path_str or name}' due to .gitignore")
            return True
        return False

    def _load_gitignore(self) -> None:
        """Loads the root .gitignore only; nested .gitignore files are not read."""
        self._gitignore = None
        gitignore = self.root_path / ".gitignore"
        if not self.respect_gitignore or not gitignore.is_file():
            return
        try:
            self._gitignore = gitignore_parser.parse_gitignore(gitignore)
            logger.debug(f"Using .gitignore rules from {gitignore}")
        except (OSError, UnicodeDecodeError, ValueError) as e:
            # An unreadable .gitignore filters nothing
            logger.warning(f"Could not parse {gitignore}: {e}")

    def scan_directory_sync(self) -> FileNode:
        """
        Scans the configured root synchronously and returns the root node.
        Raises SourceUnavailable if the root is missing or not a directory.
        """
        logger.info(f"[Sync Scan] Starting for: {self.root_path}")
        if not self.root_path.exists():
            raise SourceUnavailable(f"Path does not exist: {self.root_path}")
        if not self.root_path.is_dir():
            raise SourceUnavailable(f"Provided path is not a valid directory: {self.root_path}")
        self._load_gitignore()
        try:
            root_node = self._scan_recursive(self.root_path)
        except OSError as e:
            raise SourceUnavailable(f"Could not scan {self.root_path}: {e}") from e
        logger.info(f"[Sync Scan] Finished successfully for: {self.root_path}")
        return root_node

    def _scan_recursive(self, dir_path: Path) -> FileNode:
        """Recursive helper for scanning."""
        name = dir_path.name or str(dir_path)
        if dir_path != self.root_path: self._emit_progress(f"Scanning: {name}")
        child_nodes: List[FileNode] = []

        try:
            entries = list(os.scandir(dir_path))
        except OSError as scandir_err:
            if dir_path == self.root_path: raise
            logger.warning(f"Could not scan directory contents {dir_path}: {scandir_err}")
            return FileNode(name=name, path=str(dir_path), is_dir=True, children=[]) # Keep unreadable dir, empty

        for entry in entries:
            entry_path = dir_path / entry.name
            try:
                if entry.is_symlink():
                    logger.trace(f"Ignoring symlink entry: {entry.name}")
                    continue
                entry_is_dir = entry.is_dir()
            except OSError as e:
                 logger.warning(f"Could not stat entry {entry.path}: {e}. Skipping.")
                 continue

            if self.is_ignored(entry_path):
                continue

            if entry_is_dir:
                child_nodes.append(self._scan_recursive(entry_path))
            elif entry.is_file():
                child_nodes.append(FileNode(name=entry.name, path=str(entry_path), is_dir=False))

        children = sorted(child_nodes, key=lambda n: (not n.is_dir, n.name.lower()))
        return FileNode(name=name, path=str(dir_path), is_dir=True, children=children)


def scan_directory(path: Union[str, Path], ignore_patterns: List[str], skip_hidden: bool = True,
                   respect_gitignore: bool = True) -> FileNode:
    return _FileScannerCore(root_path=path, ignore_patterns=ignore_patterns, skip_hidden=skip_hidden,
                            respect_gitignore=respect_gitignore).scan_directory_sync()
