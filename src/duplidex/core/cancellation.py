"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/cancellation.py
Cooperative cancellation token passed into every long-running call.
"""
import threading


class CancellationToken:
    """
    Thread-safe, one-way cancellation flag.
    Once cancelled, a token stays cancelled; create a new one per run.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self):
        return f"<CancellationToken cancelled={self.cancelled}>"
