# rapidprompt/ui/controller.py
"""
Qt bridge between a window and the Workbench.

Collaborator calls run on the global thread pool; their results come back
on the main thread and go through the Workbench ticket check, so a result
from a superseded request is dropped without being reported. Token
recomputation and system prompt saves are debounced.
"""
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from PySide6.QtCore import QObject, QRunnable, Signal
from loguru import logger

from ..config.loader import load_system_prompt, save_system_prompt
from ..config.schema import AppConfig
from ..core.errors import IoDenied, RapidPromptError, UserCancelled
from ..core.models import Mode
from ..core.session import read_session_file
from ..core.unit_config import UnitConfig
from ..core.workbench import RENDER, Workbench
from ..services.async_utils import Debouncer, FunctionTask, run_in_background


def qt_clipboard_writer(text: str) -> None:
    from PySide6.QtGui import QGuiApplication
    clipboard = QGuiApplication.clipboard() if QGuiApplication.instance() else None
    if clipboard is None:
        raise IoDenied("Clipboard is not available.")
    clipboard.setText(text)


class WorkbenchController(QObject):
    tree_loaded = Signal(object)        # FileNode
    inspection_ready = Signal(object)   # TabularInspection
    units_changed = Signal(int)         # unit count
    cursor_changed = Signal(int)        # unit index
    token_count_changed = Signal(int)
    document_copied = Signal(str)
    session_loaded = Signal(object)     # WorkingSession
    error_occurred = Signal(str)
    busy_changed = Signal(bool)

    def __init__(self,
                 workbench: Workbench,
                 config: Optional[AppConfig] = None,
                 clipboard: Optional[Callable[[str], None]] = None,
                 runner: Callable[[QRunnable], None] = run_in_background,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.workbench = workbench
        self.config = config or workbench.config
        self._clipboard = clipboard or qt_clipboard_writer
        self._runner = runner
        self._busy = 0
        self._recompute_debouncer = Debouncer(self.config.recompute_debounce_ms, self._start_recompute, self)
        self._prompt_save_debouncer = Debouncer(self.config.system_prompt_save_debounce_ms, self._save_system_prompt, self)
        self.workbench.set_system_instructions(load_system_prompt())

    # --- Helpers ---

    def _report(self, error: BaseException) -> None:
        if isinstance(error, UserCancelled):
            logger.debug(f"Cancelled: {error.message}")
            return
        message = error.message if isinstance(error, RapidPromptError) else str(error)
        logger.error(f"Workbench error: {message}")
        self.error_occurred.emit(message)

    def _set_busy(self, delta: int) -> None:
        was_busy = self._busy > 0
        self._busy = max(0, self._busy + delta)
        if was_busy != (self._busy > 0):
            self.busy_changed.emit(self._busy > 0)

    def _submit(self, fn: Callable[[], Any], on_done: Callable[[Any], None], label: str,
                on_error: Optional[Callable[[Any], None]] = None) -> None:
        task = FunctionTask(fn, label)
        report = on_error or self._report
        self._set_busy(1)

        def finished(result: Any) -> None:
            self._set_busy(-1)
            try: on_done(result)
            except Exception as e: report(e)

        def failed(error: Any) -> None:
            self._set_busy(-1)
            report(error)

        task.signals.finished.connect(finished)
        task.signals.error.connect(failed)
        self._runner(task)

    def schedule_recompute(self) -> None:
        self._recompute_debouncer.trigger()

    # --- Edits ---

    def set_instructions(self, text: str) -> None:
        self.workbench.set_instructions(text); self.schedule_recompute()

    def set_system_instructions(self, text: str) -> None:
        self.workbench.set_system_instructions(text)
        self._prompt_save_debouncer.trigger(); self.schedule_recompute()

    def set_include_tree(self, include: bool) -> None:
        self.workbench.set_include_tree(include); self.schedule_recompute()

    def set_mode(self, mode: Mode) -> None:
        try: self.workbench.set_mode(mode)
        except RapidPromptError as e: self._report(e); return
        self.units_changed.emit(len(self.workbench.units)); self.schedule_recompute()

    def set_unit_source(self, path: Optional[str]) -> None:
        self.workbench.set_unit_source(path)
        self.units_changed.emit(0); self.schedule_recompute()

    def toggle_selection(self, path: str, checked: bool) -> None:
        self.workbench.toggle_selection(path, checked); self.schedule_recompute()

    # --- Navigation ---

    def next_unit(self) -> None:
        self.cursor_changed.emit(self.workbench.next()); self.schedule_recompute()

    def prev_unit(self) -> None:
        self.cursor_changed.emit(self.workbench.prev()); self.schedule_recompute()

    def jump_to_id(self, unit_id: str) -> Optional[int]:
        found = self.workbench.jump_to_id(unit_id)
        if found is not None:
            self.cursor_changed.emit(found); self.schedule_recompute()
        return found

    # --- Background requests ---

    def open_folder(self, root: str, preserve_selected: bool = False) -> None:
        ticket = self.workbench.request_tree()
        sources = self.workbench.sources

        def done(raw: Any) -> None:
            if self.workbench.apply_tree(ticket, root, raw, preserve_selected):
                self.tree_loaded.emit(self.workbench.tree); self.schedule_recompute()
        self._submit(partial(sources.scan_directory, root), done, "scan")

    def inspect_source(self) -> None:
        try: ticket, source = self.workbench.request_inspection()
        except RapidPromptError as e: self._report(e); return

        def done(inspection: Any) -> None:
            if self.workbench.apply_inspection(ticket, inspection):
                self.inspection_ready.emit(inspection)
        self._submit(partial(self.workbench.sources.inspect_tabular_source, source), done, "inspect")

    def extract(self, config: UnitConfig) -> None:
        """Starts an extraction; incomplete configurations are reported before any call is made."""
        try: ticket, source = self.workbench.request_units(config)
        except RapidPromptError as e: self._report(e); return

        def done(raw: Any) -> None:
            if self.workbench.apply_units(ticket, config, raw):
                self.units_changed.emit(len(self.workbench.units))
                self.cursor_changed.emit(self.workbench.units.index)
                self.schedule_recompute()
        self._submit(partial(self.workbench.fetch_units, config, source), done, f"extract:{config.kind}")

    def map_api_units(self, id_column: str, description_columns: Sequence[str]) -> None:
        try: self.workbench.map_api_units(id_column, description_columns)
        except RapidPromptError as e: self._report(e); return
        self.units_changed.emit(len(self.workbench.units)); self.cursor_changed.emit(self.workbench.units.index)
        self.schedule_recompute()

    def _start_recompute(self) -> None:
        """Debounced: snapshots the state as it is now and counts it off the main thread."""
        ticket = self.workbench.begin(RENDER)
        job = self.workbench.prepare_render()
        count = self.workbench.count_document

        def done(value: Any) -> None:
            if self.workbench.apply_token_count(ticket, value):
                self.token_count_changed.emit(value)

        def failed(error: Any) -> None:
            logger.warning(f"Token recompute failed, keeping last count: {error}")

        self._submit(lambda: count(job()), done, "recompute", on_error=failed)

    def copy_to_clipboard(self) -> None:
        job = self.workbench.prepare_render()

        def done(text: str) -> None:
            self.workbench.copy_document(self._clipboard, text)
            self.document_copied.emit(text)
            if self.workbench.state.token_count is not None:
                self.token_count_changed.emit(self.workbench.state.token_count)
        self._submit(job, done, "render")

    # --- Persistence ---

    def _save_system_prompt(self) -> None:
        save_system_prompt(self.workbench.state.system_instructions)

    def save_session(self, path: Union[str, Path]) -> Optional[Path]:
        try:
            return self.workbench.export_session(path)
        except RapidPromptError as e:
            self._report(e)
            return None

    def load_session(self, path: Union[str, Path], root: Optional[str] = None) -> bool:
        """
        Reads and checks the session file here, then rescans and re-extracts in the background.
        Returns False when the file could not be used; the restored state arrives with session_loaded.
        """
        try:
            plan = self.workbench.request_restore(read_session_file(path), root)
        except RapidPromptError as e:
            self._report(e)
            return False

        def done(fetched: Any) -> None:
            if not self.workbench.apply_restore(plan, fetched):
                return
            state = self.workbench.state
            self.tree_loaded.emit(self.workbench.tree)
            self.units_changed.emit(len(self.workbench.units))
            self.cursor_changed.emit(self.workbench.units.index)
            if state.token_count is not None:
                self.token_count_changed.emit(state.token_count)
            self.session_loaded.emit(state)
            self.schedule_recompute()
        self._submit(partial(self.workbench.fetch_restore, plan), done, "restore")
        return True

    def shutdown(self) -> None:
        """Writes out a pending system prompt save and stops timers."""
        self._prompt_save_debouncer.flush()
        self._recompute_debouncer.cancel()
