"""Exceptions raised inside the scrape engine.

These never reach callers of ScraperService: the rendered-task boundary, the
retry loop and the service entry points convert them into typed results.
"""

from typing import Optional

from linkscrape.models import ErrorKind


class ScrapeError(Exception):
    """Base class for engine failures."""

    kind: ErrorKind = ErrorKind.NETWORK_ERROR

    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)


class QueueTimeoutError(ScrapeError):
    """Raised when a queued task did not complete within its deadline."""

    kind = ErrorKind.QUEUE_TIMEOUT


class ExtractionError(ScrapeError):
    """Raised when a page loaded but yielded no usable content."""

    kind = ErrorKind.EXTRACTION_FAILURE


class NavigationError(ScrapeError):
    """Raised on navigation or transport failure."""

    kind = ErrorKind.NETWORK_ERROR
