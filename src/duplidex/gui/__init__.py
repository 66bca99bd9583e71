"""
GUI adapters built on PySide6 (optional dependency).
"""

from .worker import ScanWorker, WorkerSignals

__all__ = ["ScanWorker", "WorkerSignals"]
