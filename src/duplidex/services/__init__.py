"""Quarantine operations and duplicate group management services."""

from .duplicate_service import DuplicateService
from .quarantine_service import MoveResult, QuarantineService

__all__ = ["DuplicateService", "MoveResult", "QuarantineService"]
