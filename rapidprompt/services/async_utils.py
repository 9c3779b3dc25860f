# rapidprompt/services/async_utils.py
from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer, Signal, Slot
from typing import Any, Callable, Optional
from loguru import logger

_thread_pool: QThreadPool | None = None

def get_global_thread_pool() -> QThreadPool:
    """Gets the global QThreadPool instance, creating if necessary."""
    global _thread_pool
    if _thread_pool is None:
        _thread_pool = QThreadPool.globalInstance()
        logger.info(f"Initialized global QThreadPool. Max threads: {_thread_pool.maxThreadCount()}")
    return _thread_pool

def run_in_background(runnable: QRunnable):
    """Submits a QRunnable task to the global thread pool."""
    pool = get_global_thread_pool()
    logger.debug(f"Submitting task {type(runnable).__name__} to thread pool. Active threads: {pool.activeThreadCount()}")
    # QThreadPool takes ownership and deletes the runnable when done by default
    pool.start(runnable)


class FunctionTaskSignals(QObject): finished = Signal(object); error = Signal(object)

class FunctionTask(QRunnable):
    """Runs `fn()` on a pool thread; emits `finished(result)` or `error(exception)`."""
    def __init__(self, fn: Callable[[], Any], label: str = ""):
        super().__init__(); self.fn = fn; self.label = label or getattr(fn, "__name__", "task")
        self.signals = FunctionTaskSignals(); self.setAutoDelete(True)
    @Slot()
    def run(self) -> None:
        try:
            result = self.fn()
        except Exception as e:
            logger.debug(f"Background task '{self.label}' failed: {e}")
            self.signals.error.emit(e)
        else:
            self.signals.finished.emit(result)


class Debouncer(QObject):
    """
    Coalesces rapid calls into one. `trigger()` (re)starts a single-shot timer;
    when it fires the callback runs with no arguments, so it reads whatever
    state is current at that moment. Must live on the Qt main thread.
    """
    def __init__(self, interval_ms: int, callback: Callable[[], None], parent: Optional[QObject] = None):
        super().__init__(parent)
        self._callback = callback
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._fire)

    def trigger(self) -> None:
        self._timer.start()

    def is_pending(self) -> bool:
        return self._timer.isActive()

    def flush(self) -> None:
        """Runs a pending callback now instead of waiting for the timer."""
        if self._timer.isActive():
            self._timer.stop()
            self._fire()

    def cancel(self) -> None:
        self._timer.stop()

    @Slot()
    def _fire(self) -> None:
        try:
            self._callback()
        except Exception as e:
            logger.exception(f"Debounced callback failed: {e}")
