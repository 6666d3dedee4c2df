"""Domain error taxonomy.

InvalidInput maps to a client error, StorageFailure to a server error, and
SchemaMismatchUnrecoverable is fatal at startup.
"""

from __future__ import annotations


class LeakwatchError(Exception):
    """Base class for all leakwatch domain errors."""


class InvalidInput(LeakwatchError):
    """Raised when an uplink payload cannot be turned into an observation."""


class StorageFailure(LeakwatchError):
    """Raised when the underlying store is unavailable or a query fails."""


class SchemaMismatchUnrecoverable(LeakwatchError):
    """Raised when the store's shape is not covered by the migration policy."""

    def __init__(self, reason: str, columns: set[str] | None = None) -> None:
        self.reason = reason
        self.columns = sorted(columns or ())
        super().__init__(f"Unrecoverable schema mismatch: {reason}")
