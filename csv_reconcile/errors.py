"""
Reconciliation Errors
---------------------
Exception types raised by the reconciliation engine and its collaborators.

Only configuration errors abort a run. Missing files and per-record problems
are recorded on the pair's result, and anything else escaping a pair is turned
into a failed result by the dispatcher.
"""

from typing import List, Optional


class ReconcileError(Exception):
    """Base class for all reconciliation errors."""


class ConfigurationError(ReconcileError, ValueError):
    """
    Invalid or missing configuration, raised before any processing starts.

    Attributes:
        errors: One message per violated configuration rule
    """

    def __init__(self, errors: Optional[List[str]] = None, message: Optional[str] = None):
        self.errors = list(errors or [])
        if message is None:
            message = "; ".join(self.errors) if self.errors else "Invalid configuration"
        super().__init__(message)


class MissingFileError(ReconcileError, FileNotFoundError):
    """One side of a file pair does not exist."""

    def __init__(self, path: str, side: Optional[str] = None):
        self.path = path
        self.side = side
        where = f" in {side}" if side else ""
        super().__init__(f"File not found{where}: {path}")


class RecordProcessingError(ReconcileError):
    """A single record could not be keyed or written."""

    def __init__(self, message: str, source_file: str = "", line_number: int = 0):
        self.source_file = source_file
        self.line_number = line_number
        super().__init__(message)


class PairFatalError(ReconcileError):
    """Unexpected failure while reconciling one file pair."""

    def __init__(self, label: str, cause: BaseException):
        self.label = label
        self.cause = cause
        super().__init__(f"{label}: {cause}")


class ReconciliationCancelled(ReconcileError):
    """Cancellation was requested while a pair was being processed."""
