# rapidprompt/core/workbench.py
"""
The Workbench owns the working session and everything derived from it: the
scanned tree, the unit sequence, the raw API table and the last token count.

Every collaborator call is split into a request (which takes a ticket), the
call itself (which touches no Workbench state and may run on a worker thread)
and an apply step. Apply is a no-op when a newer request of the same category
has been issued since, so the latest request always wins. Derived views are
replaced whole, never patched, and only once every step that can fail has
succeeded.
"""
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..config.schema import AppConfig
from .errors import ConfigurationIncomplete, IoDenied, RapidPromptError, ValidationFailed
from .export import save_chunk_file
from .formatter import OutputOptions, UnitView, format_output
from .models import MODES, ApiTable, FileNode, FileValue, Mode, PromptUnit, TabularInspection, WorkingSession
from .session import (SessionFile, from_portable, read_session_file, to_portable,
                      write_session_file)
from .sources import SourceProvider
from .token_counter import count_tokens
from .tree import collect_file_paths, normalize_scan_result, toggle_selection
from .unit_config import (ApiConfig, SpreadsheetConfig, UnitConfig, api_config, build_api_units, html_config,
                          regex_config, require_api_mapping, require_complete)
from .units import UnitSequence, coerce_units, render_labeled_list, split_into_parts_keep_remainder

SCAN = "scan"
INSPECT = "inspect"
EXTRACT = "extract"
RENDER = "render"

RenderJob = Callable[[], str]


@dataclass
class RestorePlan:
    session: WorkingSession
    scan_ticket: int
    extract_ticket: int
    replay: Optional[UnitConfig] = None   # None: nothing to re-extract


@dataclass
class RestoreFetch:
    raw_tree: Any
    inspection: Optional[TabularInspection] = None
    table: Any = None
    raw_units: Any = None


class Workbench:
    def __init__(self,
                 sources: SourceProvider,
                 config: Optional[AppConfig] = None,
                 count: Optional[Callable[[str], int]] = None):
        self.sources = sources
        self.config = config or AppConfig()
        self._count = count or partial(count_tokens, encoding_name=self.config.token_encoding)
        self.state = WorkingSession()
        self.tree: Optional[FileNode] = None
        self.units = UnitSequence()
        self.inspection: Optional[TabularInspection] = None
        self.api_table: Optional[ApiTable] = None
        self._tickets: Dict[str, int] = {}

    # --- Tickets ---

    def begin(self, category: str) -> int:
        """Starts a request; any older ticket of the same category becomes stale."""
        ticket = self._tickets.get(category, 0) + 1
        self._tickets[category] = ticket
        return ticket

    def is_current(self, category: str, ticket: int) -> bool:
        return self._tickets.get(category, 0) == ticket

    def _accept(self, category: str, ticket: int) -> bool:
        if self.is_current(category, ticket):
            return True
        logger.debug(f"Dropping stale {category} result (ticket {ticket}, latest {self._tickets.get(category)})")
        return False

    # --- Plain edits ---

    def set_instructions(self, text: str) -> None:
        self.state.instructions = text

    def set_system_instructions(self, text: str) -> None:
        self.state.system_instructions = text

    def set_include_tree(self, include: bool) -> None:
        self.state.include_tree = bool(include)

    def set_mode(self, mode: Mode) -> None:
        """Switches mode. Moving between the two unit modes discards the current source and units."""
        if mode not in MODES:
            raise ValidationFailed(f"Unknown mode: {mode}")
        previous = self.state.mode
        if mode == previous:
            return
        self.state.mode = mode
        if mode != "folder" and previous != "folder":
            self._clear_units(keep_source=False)
        logger.info(f"Mode changed: {previous} -> {mode}")

    def set_unit_source(self, path: Optional[str]) -> None:
        """Picks a new unit source. Units, inspection and API table from the old source are dropped."""
        self.begin(EXTRACT); self.begin(INSPECT)
        self.state.unit_source = path or None
        self._clear_units(keep_source=True)

    def _clear_units(self, keep_source: bool) -> None:
        if not keep_source:
            self.state.unit_source = None
        self.state.unit_config = None
        self.state.cursor = None
        self.units = UnitSequence()
        self.inspection = None
        self.api_table = None

    # --- Folder tree ---

    def request_tree(self) -> int:
        return self.begin(SCAN)

    def apply_tree(self, ticket: int, root: str, raw: Any, preserve_selected: bool = False) -> bool:
        if not self._accept(SCAN, ticket):
            return False
        tree = normalize_scan_result(raw)
        reachable = collect_file_paths(tree)
        selected = [p for p in self.state.selected if p in reachable] if preserve_selected else []
        self.tree = tree
        self.state.root_path = root
        self.state.selected = selected
        logger.info(f"Tree loaded for {root}: {len(reachable)} files, {len(selected)} kept selected.")
        return True

    def load_tree(self, root: str, preserve_selected: bool = False) -> FileNode:
        ticket = self.request_tree()
        raw = self.sources.scan_directory(root)
        self.apply_tree(ticket, root, raw, preserve_selected)
        return self.tree

    def toggle_selection(self, path: str, checked: bool) -> List[str]:
        """Checks or unchecks a file or a whole directory. Existing order is kept; new files follow in path order."""
        updated = toggle_selection(self.tree, self.state.selected, path, checked)
        kept = [p for p in self.state.selected if p in updated]
        added = sorted(updated.difference(kept))
        self.state.selected = kept + added
        return self.state.selected

    def clear_selection(self) -> None:
        self.state.selected = []

    # --- Spreadsheet inspection ---

    def request_inspection(self) -> Tuple[int, str]:
        source = self.state.unit_source
        if not source:
            raise ConfigurationIncomplete("Pick a source file first.")
        return self.begin(INSPECT), source

    def apply_inspection(self, ticket: int, inspection: TabularInspection) -> bool:
        if not self._accept(INSPECT, ticket):
            return False
        if not isinstance(inspection, TabularInspection):
            raise ValidationFailed(f"Inspection returned {type(inspection).__name__}")
        self.inspection = inspection
        return True

    def inspect_spreadsheet(self) -> TabularInspection:
        ticket, source = self.request_inspection()
        self.apply_inspection(ticket, self.sources.inspect_tabular_source(source))
        return self.inspection

    # --- Extraction ---

    def request_units(self, config: UnitConfig) -> Tuple[int, str]:
        """Validates locally, then takes an extraction ticket. Nothing external has been called yet."""
        require_complete(config, self.state.unit_source)
        if isinstance(config, SpreadsheetConfig) and self.state.mode != "spreadsheet":
            raise ConfigurationIncomplete("Spreadsheet extraction needs spreadsheet mode.")
        if not isinstance(config, SpreadsheetConfig) and self.state.mode != "block":
            raise ConfigurationIncomplete("Block extraction needs block mode.")
        return self.begin(EXTRACT), self.state.unit_source

    def fetch_units(self, config: UnitConfig, source: str) -> Any:
        """The external call for one extraction; uses no Workbench state."""
        if isinstance(config, ApiConfig):
            return self.sources.fetch_remote_table(config.endpoint, source)
        return self.sources.extract_units(config.kind, source, config)

    def apply_units(self, ticket: int, config: UnitConfig, raw: Any) -> bool:
        if not self._accept(EXTRACT, ticket):
            return False
        table: Optional[ApiTable] = None
        if isinstance(config, ApiConfig):
            if not isinstance(raw, ApiTable):
                raise ValidationFailed(f"API extraction returned {type(raw).__name__}, expected a table")
            table = raw
            units = build_api_units(table, config) if config.has_mapping else []
        else:
            units = coerce_units(raw)
        self.api_table = table
        self.units = UnitSequence(units)
        self.state.unit_config = config
        self.state.cursor = self.units.cursor()
        logger.info(f"Applied {len(units)} units from {config.kind} extraction.")
        return True

    def suggested_config(self, kind: str) -> UnitConfig:
        """Prefilled block configuration offered when a source is first picked."""
        c = self.config
        if kind == "regex":
            return regex_config(c.default_regex_delimiter, c.default_regex_id_capture, c.default_regex_flags)
        if kind == "html":
            return html_config(c.default_html_item_selector, id_attr=c.default_html_id_attr)
        raise ValidationFailed(f"No default configuration for '{kind}' sources.")

    def build_units(self, config: UnitConfig) -> UnitSequence:
        ticket, source = self.request_units(config)
        self.apply_units(ticket, config, self.fetch_units(config, source))
        return self.units

    def map_api_units(self, id_column: str, description_columns: Sequence[str]) -> UnitSequence:
        """Second API phase: turns the already fetched table into units with a column mapping."""
        current = self.state.unit_config
        if not isinstance(current, ApiConfig) or self.api_table is None:
            raise ConfigurationIncomplete("Extract the API table first.")
        config = api_config(current.endpoint, id_column, list(description_columns))
        require_api_mapping(config)
        units = build_api_units(self.api_table, config)
        self.begin(EXTRACT)
        self.units = UnitSequence(units)
        self.state.unit_config = config
        self.state.cursor = self.units.cursor()
        return self.units

    # --- Navigation ---

    def _sync_cursor(self) -> int:
        self.state.cursor = self.units.cursor()
        return self.units.index

    def next(self) -> int:
        self.units.next()
        return self._sync_cursor()

    def prev(self) -> int:
        self.units.prev()
        return self._sync_cursor()

    def jump_to_id(self, unit_id: str) -> Optional[int]:
        found = self.units.jump_to_id(unit_id.strip())
        self._sync_cursor()
        return found

    # --- Output ---

    def _unit_view(self, unit: Optional[PromptUnit]) -> Optional[UnitView]:
        if unit is None:
            return None
        body = unit.body
        config = self.state.unit_config
        if self.state.mode == "spreadsheet" and isinstance(config, SpreadsheetConfig) and config.description_columns:
            names = config.description_columns
            body = render_labeled_list(names, split_into_parts_keep_remainder(unit.body, len(names)))
        return UnitView(body=body, title=unit.id)

    def _tree_options(self, include_tree: bool) -> Dict[str, Any]:
        return dict(include_tree=include_tree,
                    tree_root=self.tree if include_tree else None,
                    tree_depth_limit=self.config.tree_depth_limit,
                    tree_entry_limit=self.config.tree_entry_limit,
                    tree_show_root_path=self.config.tree_show_root_path)

    def document_for_unit(self, unit: Optional[PromptUnit]) -> str:
        options = OutputOptions(system_prompt=self.state.system_instructions, unit=self._unit_view(unit))
        return format_output(self.state.instructions, [], options)

    def document_for_files(self, files: Sequence[FileValue]) -> str:
        options = OutputOptions(system_prompt=self.state.system_instructions,
                                **self._tree_options(self.state.include_tree))
        return format_output(self.state.instructions, files, options)

    def prepare_render(self) -> RenderJob:
        """
        Snapshots the current state into a callable that produces the document.
        In folder mode the callable reads the selected files, so it may run on a worker thread.
        """
        if self.state.mode != "folder":
            text = self.document_for_unit(self.units.current)
            return lambda: text

        instructions = self.state.instructions
        paths = tuple(self.state.selected)
        max_bytes = self.config.max_file_bytes
        options = OutputOptions(system_prompt=self.state.system_instructions,
                                **self._tree_options(self.state.include_tree))
        read = self.sources.read_files_as_text

        def job() -> str:
            files = read(list(paths), max_bytes) if paths else []
            truncated = [f.path for f in files if getattr(f, "truncated", False)]
            if truncated:
                logger.warning(f"{len(truncated)} file(s) cut at {max_bytes} bytes: {truncated}")
            return format_output(instructions, files, options)
        return job

    def render_document(self) -> str:
        return self.prepare_render()()

    def count_document(self, text: str) -> int:
        return self._count(text)

    def apply_token_count(self, ticket: int, count: int) -> bool:
        if not self._accept(RENDER, ticket):
            return False
        self.state.token_count = count
        return True

    def recompute_tokens(self) -> Optional[int]:
        """Re-renders and re-counts. Failures are logged and the last good count is kept."""
        ticket = self.begin(RENDER)
        try:
            count = self.count_document(self.render_document())
        except Exception as e:
            logger.warning(f"Token recompute failed, keeping {self.state.token_count}: {e}")
            return self.state.token_count
        self.apply_token_count(ticket, count)
        return self.state.token_count

    def copy_document(self, writer: Callable[[str], None], text: Optional[str] = None) -> str:
        """Hands the document (rendered now unless given) to `writer`, then counts that exact string."""
        if text is None:
            text = self.render_document()
        try:
            writer(text)
        except RapidPromptError:
            raise
        except OSError as e:
            raise IoDenied(f"Could not copy document: {e}") from e
        self.apply_token_count(self.begin(RENDER), self.count_document(text))
        logger.success(f"Copied document ({len(text)} chars, {self.state.token_count} tokens).")
        return text

    def iter_unit_documents(self) -> Iterator[Tuple[PromptUnit, str]]:
        for unit in self.units:
            yield unit, self.document_for_unit(unit)

    def save_current_chunk(self, directory: Union[str, Path], ext: str = "md") -> Path:
        unit = self.units.current if self.state.mode != "folder" else None
        base = unit.id if unit is not None else "prompt"
        return save_chunk_file(directory, base, self.render_document(), ext=ext)

    # --- Sessions ---

    def snapshot(self) -> SessionFile:
        if not self.state.root_path:
            raise ConfigurationIncomplete("Choose a folder before saving a session.")
        if self.state.mode != "folder":
            self.state.cursor = self.units.cursor()
        return to_portable(self.state)

    def export_session(self, path: Union[str, Path]) -> Path:
        return write_session_file(path, self.snapshot())

    def import_session(self, path: Union[str, Path], root: Optional[str] = None) -> WorkingSession:
        return self.restore_session(read_session_file(path), root)

    def restore_session(self, session: SessionFile, root: Optional[str] = None) -> WorkingSession:
        """
        Rebuilds the whole working state from a session: rescans the root, keeps the
        selections that still exist, replays the saved extraction and restores the cursor.
        Nothing is replaced unless every step succeeds.
        """
        plan = self.request_restore(session, root)
        self.apply_restore(plan, self.fetch_restore(plan))
        return self.state

    def request_restore(self, session: SessionFile, root: Optional[str] = None) -> RestorePlan:
        """Decodes the session and checks its extraction config locally, then takes scan and extract tickets."""
        restored = from_portable(session, root)
        config, source, mode = restored.unit_config, restored.unit_source, restored.mode
        replay: Optional[UnitConfig] = None
        if mode != "folder" and config is not None and source:
            if (mode == "spreadsheet") != isinstance(config, SpreadsheetConfig):
                logger.warning(f"Session pairs mode '{mode}' with a '{config.kind}' configuration; skipping extraction.")
            else:
                require_complete(config, source)
                replay = config
        scan_ticket = self.begin(SCAN); extract_ticket = self.begin(EXTRACT); self.begin(INSPECT)
        return RestorePlan(restored, scan_ticket, extract_ticket, replay)

    def fetch_restore(self, plan: RestorePlan) -> RestoreFetch:
        """The external calls of a restore; uses no Workbench state."""
        session, config = plan.session, plan.replay
        raw_tree = self.sources.scan_directory(session.root_path)
        if config is None:
            return RestoreFetch(raw_tree)
        if isinstance(config, SpreadsheetConfig):
            return RestoreFetch(raw_tree,
                                inspection=self.sources.inspect_tabular_source(session.unit_source),
                                raw_units=self.sources.extract_units(config.kind, session.unit_source, config))
        if isinstance(config, ApiConfig):
            return RestoreFetch(raw_tree, table=self.sources.fetch_remote_table(config.endpoint, session.unit_source))
        return RestoreFetch(raw_tree, raw_units=self.sources.extract_units(config.kind, session.unit_source, config))

    def apply_restore(self, plan: RestorePlan, fetched: RestoreFetch) -> bool:
        restored, config = plan.session, plan.replay
        tree = normalize_scan_result(fetched.raw_tree)
        reachable = collect_file_paths(tree)
        dropped = [p for p in restored.selected if p not in reachable]
        if dropped:
            logger.warning(f"{len(dropped)} saved selection(s) no longer exist under {restored.root_path}")
        restored.selected = [p for p in restored.selected if p in reachable]

        table = fetched.table
        units: List[PromptUnit] = []
        if isinstance(config, ApiConfig):
            if not isinstance(table, ApiTable):
                raise ValidationFailed(f"API extraction returned {type(table).__name__}, expected a table")
            if config.has_mapping:
                units = build_api_units(table, config)
        elif config is not None:
            units = coerce_units(fetched.raw_units)
        sequence = UnitSequence(units)
        if restored.mode != "folder":
            sequence.restore(restored.cursor)
            restored.cursor = sequence.cursor()

        if not (self.is_current(SCAN, plan.scan_ticket) and self.is_current(EXTRACT, plan.extract_ticket)):
            logger.debug("Session restore superseded by a newer request; discarding.")
            return False
        restored.system_instructions = self.state.system_instructions
        self.state = restored
        self.tree = tree
        self.inspection = fetched.inspection
        self.api_table = table
        self.units = sequence
        logger.info(f"Session restored: mode={restored.mode}, {len(restored.selected)} files, {len(sequence)} units.")
        return True
