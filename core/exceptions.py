# core/exceptions.py
"""
Error taxonomy of the scrape pipeline.

Every failure the pipeline reports is one of the ``ScraperException``
subclasses below. The Response Assembler turns them into the public JSON
envelope; ``kind`` and ``status_code`` decide how.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION_ERROR = "navigation_error"
    EXTRACTION_FAILED = "extraction_failed"


class ScraperException(Exception):
    """Base class for failures that map onto an HTTP error response."""

    kind: ErrorKind = ErrorKind.EXTRACTION_FAILED
    status_code: int = 500

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.url = url


class InvalidInputError(ScraperException):
    """Missing or malformed URL."""

    kind = ErrorKind.INVALID_INPUT
    status_code = 400

    def __init__(self, message: str = "Invalid URL format"):
        super().__init__(message)


class ResourceUnavailableError(ScraperException):
    """The browser engine could not be launched or a context could not be opened."""

    kind = ErrorKind.RESOURCE_UNAVAILABLE


class NavigationTimeoutError(ScraperException):
    kind = ErrorKind.NAVIGATION_TIMEOUT


class NavigationError(ScraperException):
    """DNS, connection or protocol failure while loading the target page."""

    kind = ErrorKind.NAVIGATION_ERROR


class ExtractionFailedError(ScraperException):
    """The page loaded but became unusable (closed, crashed) before extraction."""

    kind = ErrorKind.EXTRACTION_FAILED
