from typing import Optional

RATE_LIMIT_STATUSES = (403, 429)


class ConcatenatorError(Exception):
    """Base class for errors raised while building a document."""


class GitHubAPIError(ConcatenatorError):
    """A failed call to the GitHub REST API."""

    def __init__(self, message: str, status_code: Optional[int] = None, retry_after: Optional[float] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after # Seconds, from the Retry-After header

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code in RATE_LIMIT_STATUSES


class TooManyFilesError(ConcatenatorError):
    def __init__(self, count: int, limit: int):
        super().__init__("Too many files to process. Please use a more specific whitelist or blacklist.")
        self.count = count
        self.limit = limit


class RunFailedError(ConcatenatorError):
    def __init__(self, attempts: int, last_message: str):
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_message}")
        self.attempts = attempts
        self.last_message = last_message


class RunCancelledError(ConcatenatorError):
    def __init__(self):
        super().__init__("Run cancelled.")


class RetriesExhausted(ConcatenatorError):
    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def describe(exc: BaseException) -> str:
    """Message shown to the user for an underlying failure."""
    return getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
