"""
Qt worker runnable: follows modern Qt pattern: QRunnable + QThreadPool.
Runs one scan + processing cycle and forwards the engine's event channel as Qt signals.
"""
from PySide6.QtCore import QMutex, QMutexLocker, QObject, QRunnable, Signal

from duplidex.commands import DeduplicationCommand
from duplidex.core.cancellation import CancellationToken
from duplidex.core.models import ScanParams


class WorkerSignals(QObject):
    """Separate QObject to hold signals (QRunnable cannot emit signals directly)."""
    event = Signal(str, dict)     # event_name, payload
    finished = Signal(object)     # RunResult
    error = Signal(str)


class ScanWorker(QRunnable):
    """
    Worker runnable that performs a scan in the thread pool.
    Automatically deleted after execution (setAutoDelete=True).
    """
    def __init__(self, command: DeduplicationCommand, params: ScanParams):
        super().__init__()
        self.command = command
        self.params = params
        self.token = CancellationToken()
        self.signals = WorkerSignals()
        self._mutex = QMutex()
        self.setAutoDelete(True)

    def stop(self):
        """Cancels the run; completed work stays in the index."""
        self.token.cancel()

    def is_stopped(self) -> bool:
        return self.token.cancelled

    def safe_event_emit(self, name: str, payload: dict):
        """Emits an engine event with mutex protection; dropped once the receiver is gone."""
        with QMutexLocker(self._mutex):
            try:
                self.signals.event.emit(name, dict(payload))
            except RuntimeError:
                pass

    def run(self):
        """Main execution method. Runs in thread pool thread."""
        try:
            result = self.command.execute(
                self.params,
                token=self.token,
                event_callback=self.safe_event_emit
            )
            self.signals.finished.emit(result)
        except Exception as e:
            self.signals.error.emit(f"{type(e).__name__}: {str(e)}")
