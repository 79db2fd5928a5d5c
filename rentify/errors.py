"""Error taxonomy shared by the data service clients and the dashboard."""
from __future__ import annotations


class RentifyError(RuntimeError):
    """Base class for recoverable application errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthError(RentifyError):
    """Raised for expected authentication failures (bad credentials, duplicates, validation)."""


class QueryError(RentifyError):
    """Raised when a count or list query against the data service fails."""

    def __init__(self, message: str, *, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class UpdateError(RentifyError):
    """Raised when a single-record mutation is rejected."""

    def __init__(self, message: str, *, table: str | None = None, record_id: str | None = None) -> None:
        super().__init__(message)
        self.table = table
        self.record_id = record_id


__all__ = ["AuthError", "QueryError", "RentifyError", "UpdateError"]
