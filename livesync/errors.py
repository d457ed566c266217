"""Exception taxonomy for the sync pipeline."""

from __future__ import annotations

from typing import Sequence


class LiveSyncError(RuntimeError):
    """Base class for fatal pipeline errors."""


class ConfigError(LiveSyncError):
    """Raised when required connection or feed settings are absent."""


class FeedError(LiveSyncError):
    """Raised when the channel feed cannot be turned into descriptors."""


class FeedFetchError(FeedError):
    """Raised on a transport failure or a non-success feed response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FeedParseError(FeedError):
    """Raised when the feed body is not the expected JSON shape."""


class EmptyFeedError(FeedError):
    """Raised when no usable channel remains after normalization."""


class PersistenceError(LiveSyncError):
    """Raised when a schema migration or a write fails and was rolled back."""

    def __init__(
        self,
        message: str,
        *,
        table: str | None = None,
        columns: Sequence[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.table = table
        self.columns = list(columns or [])

    def __str__(self) -> str:
        base = super().__str__()
        details = []
        if self.table:
            details.append(f"table={self.table}")
        if self.columns:
            details.append(f"columns={','.join(self.columns)}")
        if details:
            return f"{base} ({' '.join(details)})"
        return base


__all__ = [
    "ConfigError",
    "EmptyFeedError",
    "FeedError",
    "FeedFetchError",
    "FeedParseError",
    "LiveSyncError",
    "PersistenceError",
]
