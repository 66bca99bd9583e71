"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/errors.py
Exception taxonomy shared by the crawler, hasher and quarantine layers.

Cancellation is not an error: a cancelled run is reported through
RunOutcome.CANCELLED, never raised.
"""


class DuplidexError(Exception):
    """Base class for all errors raised by duplidex."""


class TransientIOError(DuplidexError, OSError):
    """
    A single file or directory could not be read (permission denied,
    vanished mid-scan, short read). Always recovered locally by skipping
    the item.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigurationError(DuplidexError, ValueError):
    """Invalid scan parameters, e.g. no roots selected."""


class MoveError(DuplidexError):
    """A quarantine, restore or discard failed for one item."""

    def __init__(self, source: str, destination: str, reason: str):
        super().__init__(f"Cannot move {source} -> {destination}: {reason}")
        self.source = source
        self.destination = destination
        self.reason = reason
