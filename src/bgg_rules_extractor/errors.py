"""
Exception taxonomy for the BGG Rules Extractor.

Page-level errors (NetworkError, FetchError, NotFoundError) are fatal while
locating the forum or listing threads, and recoverable while extracting a
single thread. StoreError, including a store the run cannot reach, is
always fatal to a run.

Structurally unexpected markup is not an exception here: it is handled by
the selector fallback chains in ``resolver.py``.
"""

from typing import Optional


class ExtractorError(Exception):
    """Base class for all errors raised by this package."""


class NetworkError(ExtractorError):
    """Transport-level failure: DNS, timeout, connection reset."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Network error for {url}: {reason}")


class FetchError(ExtractorError):
    """The server answered with a non-success status."""

    def __init__(self, status: int, url: str):
        self.status = status
        self.url = url
        super().__init__(f"HTTP {status} for {url}")


class NotFoundError(ExtractorError):
    """A required page element or section is absent."""


class StoreError(ExtractorError):
    """The remote storage API rejected a request."""

    def __init__(self, status: int, body: str, operation: Optional[str] = None):
        self.status = status
        self.body = body
        self.operation = operation
        prefix = f"{operation} failed" if operation else "Storage request failed"
        super().__init__(f"{prefix}: HTTP {status}: {body[:300]}")


class StoreAuthError(StoreError):
    """The access token was rejected (401/403)."""


class StoreUnavailableError(StoreError):
    """The remote storage API could not be reached."""

    def __init__(self, url: str, reason: str, operation: Optional[str] = None):
        self.status = None
        self.body = ""
        self.operation = operation
        self.url = url
        self.reason = reason
        prefix = f"{operation} failed" if operation else "Storage request failed"
        ExtractorError.__init__(self, f"{prefix}: storage unreachable at {url}: {reason}")


class RunInProgressError(ExtractorError):
    """A second run was started while another one is still active."""
