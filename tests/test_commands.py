"""
Integration tests for DeduplicationCommand: the orchestration layer between UI and core.
Verifies the scan -> processing sequence, cancellation and the run state machine.
"""
import threading

import pytest

from duplidex import DeduplicationCommand
from duplidex.core.cancellation import CancellationToken
from duplidex.core.events import (
    PROCESSING_COMPLETE, PROCESSING_PROGRESS, SCAN_CANCELLED, SCAN_COMPLETE,
)
from duplidex.core.models import EngineConfig, RunOutcome, RunState, ScanParams, ScanReport


@pytest.fixture
def config(temp_dir):
    return EngineConfig(
        db_path=str(temp_dir / "_db" / "index.db"),
        quarantine_root=str(temp_dir / "quarantine"),
        scan_concurrency=4,
        progress_interval=0,
    )


class TestDeduplicationCommand:
    """Test command orchestration logic (crawler + grouping engine)."""

    def test_execute_completes_and_finds_groups(self, index, config, scan_root, example_tree, events):
        command = DeduplicationCommand(index, config)

        result = command.execute(ScanParams(roots=[str(scan_root)]), event_callback=events)

        assert result.outcome is RunOutcome.COMPLETED
        assert result.completed
        assert result.scan.scanned == 3
        assert result.processing.total_hashed > 0
        assert command.state is RunState.DONE
        assert len(index.duplicate_groups()) == 1

        names = events.names()
        assert names.index(SCAN_COMPLETE) < names.index(PROCESSING_PROGRESS)
        assert names[-1] == PROCESSING_COMPLETE

    def test_invalid_params_do_not_scan(self, index, config):
        command = DeduplicationCommand(index, config)

        result = command.execute(None)

        assert result.outcome is RunOutcome.INVALID
        assert "required" in result.message
        assert command.state is RunState.IDLE
        assert index.count() == 0

    def test_cancelled_scan_skips_processing(self, index, config, scan_root, example_tree, events):
        token = CancellationToken()
        token.cancel()
        command = DeduplicationCommand(index, config)

        result = command.execute(ScanParams(roots=[str(scan_root)]), token=token, event_callback=events)

        assert result.outcome is RunOutcome.CANCELLED
        assert result.processing is None
        assert command.state is RunState.CANCELLED
        assert SCAN_CANCELLED in events.names()
        assert PROCESSING_PROGRESS not in events.names()
        assert PROCESSING_COMPLETE not in events.names()

    def test_cancel_during_processing(self, index, config, scan_root, example_tree, events):
        token = CancellationToken()

        def cancel_when_processing_starts(name, payload):
            events(name, payload)
            if name == PROCESSING_PROGRESS:
                token.cancel()

        command = DeduplicationCommand(index, config)
        result = command.execute(ScanParams(roots=[str(scan_root)]), token=token,
                                 event_callback=cancel_when_processing_starts)

        assert result.outcome is RunOutcome.CANCELLED
        assert result.scan.cancelled is False
        assert PROCESSING_COMPLETE not in events.names()
        assert command.state is RunState.CANCELLED

    def test_can_run_again_after_completion(self, index, config, scan_root, example_tree):
        command = DeduplicationCommand(index, config)
        params = ScanParams(roots=[str(scan_root)])

        command.execute(params)
        second = command.execute(params)

        assert second.completed
        assert second.scan.upserted == 0
        assert second.processing.total_hashed == 0

    def test_concurrent_execute_is_rejected(self, index, config, scan_root):
        """A second run while one is in progress raises instead of interleaving."""
        started = threading.Event()
        release = threading.Event()

        class BlockingCrawler:
            def crawl(self, params, token=None, event_callback=None):
                started.set()
                release.wait(5)
                return ScanReport()

        command = DeduplicationCommand(index, config, crawler=BlockingCrawler())
        params = ScanParams(roots=[str(scan_root)])
        worker = threading.Thread(target=command.execute, args=(params,))
        worker.start()
        try:
            assert started.wait(5)
            assert command.state is RunState.SCANNING
            with pytest.raises(RuntimeError, match="already running"):
                command.execute(params)
        finally:
            release.set()
            worker.join(5)

        assert command.state is RunState.DONE

    def test_unexpected_errors_reset_state(self, index, config, scan_root):
        class BrokenCrawler:
            def crawl(self, params, token=None, event_callback=None):
                raise RuntimeError("disk on fire")

        command = DeduplicationCommand(index, config, crawler=BrokenCrawler())

        with pytest.raises(RuntimeError, match="disk on fire"):
            command.execute(ScanParams(roots=[str(scan_root)]))
        assert command.state is RunState.IDLE


class TestScanParamsValidation:

    def test_empty_roots_rejected(self):
        from duplidex.core.errors import ConfigurationError

        with pytest.raises(ConfigurationError, match="No roots selected"):
            ScanParams(roots=[])

    def test_unknown_category_rejected(self, scan_root):
        from duplidex.core.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            ScanParams(roots=[str(scan_root)], categories=["spreadsheets"])

    def test_category_strings_are_converted(self, scan_root):
        params = ScanParams(roots=[str(scan_root)], categories=["Photos", "music"])

        assert ".jpg" in params.allowed_extensions()
        assert ".mp3" in params.allowed_extensions()
        assert ".pdf" not in params.allowed_extensions()
