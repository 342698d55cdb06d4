"""Typed failures raised by profile-search backends.

A well-formed empty search result is not an error; these exceptions are only
raised when the backend could not answer.
"""


class SearchBackendError(Exception):
    """Base exception for profile-search backend failures."""

    def __init__(self, message: str, *, status: int | None = None, url: str = ""):
        self.status = status
        self.url = url
        super().__init__(message)


class NetworkError(SearchBackendError):
    """Raised on transport failures, timeouts, and exhausted server-error retries."""


class NotFoundError(SearchBackendError):
    """Raised when the requested user or resource does not exist."""


class RateLimitedError(SearchBackendError):
    """Raised when the backend rejects a request because of rate limiting."""

    def __init__(self, message: str, *, reset_at: int | None = None, url: str = ""):
        self.reset_at = reset_at
        super().__init__(message, status=429, url=url)
