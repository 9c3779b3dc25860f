# rapidprompt/core/sources.py
"""
The capabilities the Workbench calls out to. Anything satisfying
`SourceProvider` can back a Workbench; `LocalSources` wires the bundled
scanner, reader and extractors.
"""
from typing import Any, List, Optional, Protocol, Sequence

from loguru import logger

from ..config.schema import AppConfig
from ..extractors.html_blocks import extract_html_units
from ..extractors.regex_blocks import extract_regex_units
from ..extractors.remote_table import fetch_remote_table as _fetch_remote_table
from ..extractors.spreadsheet import extract_spreadsheet_units, inspect_tabular_source as _inspect
from .errors import ValidationFailed
from .file_reader import read_files_as_text as _read_files
from .fs_scanner import _FileScannerCore
from .models import ApiTable, FileNode, FileValue, PromptUnit, TabularInspection
from .unit_config import HtmlConfig, RegexConfig, SpreadsheetConfig


class SourceProvider(Protocol):
    def scan_directory(self, path: str) -> Any: ...
    def read_files_as_text(self, paths: Sequence[str], max_bytes: int) -> List[FileValue]: ...
    def inspect_tabular_source(self, path: str) -> TabularInspection: ...
    def extract_units(self, kind: str, path: str, config: Any) -> Any: ...
    def fetch_remote_table(self, endpoint: str, path: str) -> ApiTable: ...


class LocalSources:
    """Local filesystem and HTTP collaborators configured from AppConfig."""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()

    def scan_directory(self, path: str) -> FileNode:
        core = _FileScannerCore(root_path=path, ignore_patterns=self.config.ignore_patterns,
                                skip_hidden=self.config.skip_hidden,
                                respect_gitignore=self.config.respect_gitignore)
        return core.scan_directory_sync()

    def read_files_as_text(self, paths: Sequence[str], max_bytes: int) -> List[FileValue]:
        return _read_files(paths, max_bytes)

    def inspect_tabular_source(self, path: str) -> TabularInspection:
        return _inspect(path)

    def extract_units(self, kind: str, path: str, config: Any) -> List[PromptUnit]:
        if kind == "spreadsheet" and isinstance(config, SpreadsheetConfig):
            return extract_spreadsheet_units(path, config)
        if kind == "regex" and isinstance(config, RegexConfig):
            return extract_regex_units(path, config)
        if kind == "html" and isinstance(config, HtmlConfig):
            return extract_html_units(path, config)
        logger.error(f"No local extractor for kind '{kind}' with {type(config).__name__}")
        raise ValidationFailed(f"Unsupported extraction kind: {kind}")

    def fetch_remote_table(self, endpoint: str, path: str) -> ApiTable:
        return _fetch_remote_table(endpoint, path,
                                   timeout_seconds=self.config.http_timeout_seconds,
                                   user_agent=self.config.http_user_agent)
