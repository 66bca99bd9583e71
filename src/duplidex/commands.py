"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

commands.py
Unified command orchestrator for a scan + processing run.
This is the SINGLE source of truth for the run lifecycle: used by both GUI and CLI.
No Qt/PySide6 dependencies: pure Python.
"""
import logging
import threading
from typing import Optional

from duplidex.core.cancellation import CancellationToken
from duplidex.core.deduplicator import DeduplicatorImpl
from duplidex.core.errors import ConfigurationError
from duplidex.core.events import EventCallback
from duplidex.core.hasher import HasherImpl
from duplidex.core.interfaces import FileCrawler, Hasher
from duplidex.core.models import EngineConfig, RunOutcome, RunResult, RunState, ScanParams
from duplidex.core.scanner import FileCrawlerImpl

logger = logging.getLogger(__name__)


class DeduplicationCommand:
    """
    Runs the two phases strictly in sequence:

        IDLE -> SCANNING -> PROCESSING -> DONE
                    |            |
                    +------------+----> CANCELLED

    A cancelled scan skips processing entirely. Only one run may be active per
    command; a second `execute` while one is running raises RuntimeError.

    Usage:
        # For GUI (events forwarded as Qt signals):
        command = DeduplicationCommand(index, config)
        result = command.execute(params, token=worker_token, event_callback=signals_adapter)

        # For CLI (console progress, Ctrl+C cancels the token):
        result = command.execute(params, token=token, event_callback=cli_progress_printer)
    """

    def __init__(
        self,
        index,
        config: Optional[EngineConfig] = None,
        crawler: Optional[FileCrawler] = None,
        hasher: Optional[Hasher] = None,
    ):
        self.index = index
        self.config = config or EngineConfig()
        self.crawler = crawler or FileCrawlerImpl(
            index,
            concurrency=self.config.scan_concurrency,
            batch_size=self.config.batch_size,
            progress_interval=self.config.progress_interval,
            include_empty=self.config.include_empty,
        )
        self.deduplicator = DeduplicatorImpl(
            index,
            hasher=hasher or HasherImpl(),
            concurrency=self.config.hash_concurrency,
            flush_size=self.config.hash_flush_size,
            progress_interval=self.config.progress_interval,
        )
        self._state = RunState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    def _set_state(self, state: RunState) -> None:
        with self._lock:
            logger.debug(f"Run state: {self._state.value} -> {state.value}")
            self._state = state

    def execute(
        self,
        params: ScanParams,
        token: Optional[CancellationToken] = None,
        event_callback: Optional[EventCallback] = None
    ) -> RunResult:
        """
        Scan the roots of `params`, then hash the new candidates.

        Args:
            params: What to scan
            token: Cancellation token shared with the caller
            event_callback: (event_name: str, payload: dict) -> None

        Returns:
            RunResult with the outcome, the scan report and processing statistics.
            Invalid parameters yield RunOutcome.INVALID without touching the index.

        Raises:
            RuntimeError: If a run is already in progress on this command
        """
        with self._lock:
            if self._state in (RunState.SCANNING, RunState.PROCESSING):
                raise RuntimeError("A scan is already running")
            self._state = RunState.SCANNING

        token = token or CancellationToken()
        try:
            if not isinstance(params, ScanParams):
                raise ConfigurationError("Scan parameters are required")

            scan = self.crawler.crawl(params, token=token, event_callback=event_callback)
            if scan.cancelled or token.cancelled:
                self._set_state(RunState.CANCELLED)
                return RunResult(RunOutcome.CANCELLED, scan=scan, message="Scan cancelled")

            self._set_state(RunState.PROCESSING)
            processing = self.deduplicator.find_duplicates(token=token, event_callback=event_callback)
            if token.cancelled:
                self._set_state(RunState.CANCELLED)
                return RunResult(RunOutcome.CANCELLED, scan=scan, processing=processing,
                                 message="Processing cancelled")

            self._set_state(RunState.DONE)
            return RunResult(RunOutcome.COMPLETED, scan=scan, processing=processing)

        except ConfigurationError as e:
            logger.error(f"Invalid scan configuration: {e}")
            self._set_state(RunState.IDLE)
            return RunResult(RunOutcome.INVALID, message=str(e))
        except BaseException:
            self._set_state(RunState.IDLE)
            raise
