"""
Exception hierarchy for the scraping pipeline.
"""
from typing import Optional


class PipelineError(Exception):
    """Base exception for scraper and pipeline failures."""


class FetchError(PipelineError):
    """Raised when an HTTP request could not produce a usable response."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class RetryableFetchError(FetchError):
    """Attempt failed in a way that is worth repeating."""


class TransientNetworkError(RetryableFetchError):
    """Connection failure or timeout."""


class RetryableStatusError(RetryableFetchError):
    """Non-2xx status configured as retryable."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: int = 0):
        super().__init__(message, url=url)
        self.status_code = status_code


class RateLimitedError(RetryableStatusError):
    """HTTP 429 Too Many Requests."""


class TerminalHTTPError(FetchError):
    """Non-2xx status that must not be retried."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: int = 0):
        super().__init__(message, url=url)
        self.status_code = status_code


class RetriesExhaustedError(FetchError):
    """All attempts of a logical request failed."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException]):
        super().__init__(
            f"all {attempts} attempts failed for {url}, last error: {last_error}",
            url=url,
        )
        self.attempts = attempts
        self.last_error = last_error


class ParseError(PipelineError):
    """Document was fetched but did not contain the expected content."""


class ScanError(PipelineError):
    """A listing page could not be fetched; the scan was aborted."""

    def __init__(self, page: int, cause: BaseException):
        super().__init__(f"error scanning page {page}: {cause}")
        self.page = page
        self.cause = cause


class PersistenceError(PipelineError):
    """Batch save to the database failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{message}: {cause}" if cause else message)
        self.cause = cause


class OperationCancelled(PipelineError):
    """The run's cancellation token fired."""
