"""
Exception hierarchy for sync runs.

Per-run errors (authorization, fetch failure, timeout) abort a run and are
surfaced to the caller. Storage errors are recovered per sub-batch by the
upserter and never escape a run.
"""

from datetime import datetime, timezone


class SyncError(Exception):
    """Base class for every error raised by the sync pipeline."""

    code = "SYNC_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.timestamp = datetime.now(timezone.utc)


class ConfigurationError(SyncError):
    """Required settings or credentials are missing or invalid."""

    code = "CONFIGURATION_ERROR"


class AuthorizationError(SyncError):
    """Tenant context is missing or invalid; raised before any fetch."""

    code = "UNAUTHORIZED"


class UpstreamError(SyncError):
    """
    An upstream system returned an error or could not be reached.

    Attributes:
        status_code: HTTP status, None for network failures
        body_snippet: First characters of the response body for diagnostics
    """

    code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body_snippet: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body_snippet = body_snippet


class FetchAbortedError(SyncError):
    """A page fetch failed and the run was stopped."""

    code = "FETCH_FAILED"


class SyncTimeoutError(SyncError):
    """The run exceeded its wall-clock budget."""

    code = "TIMEOUT"


class StorageError(SyncError):
    """Non-transient storage failure; the sub-batch is not retried."""

    code = "STORAGE_ERROR"


class TransientStorageError(StorageError):
    """Storage is temporarily unavailable; the sub-batch may be retried."""

    code = "STORAGE_UNAVAILABLE"
