"""
Exceptions raised by the Discord API client.
"""
from typing import Optional


class ApiError(Exception):
    """Structured error from a Discord API request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        code: str = "unknown",
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        self.code = code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class RateLimitError(ApiError):
    """HTTP 429 with the server's requested wait in seconds."""

    def __init__(self, message: str = "Rate limited", retry_after: Optional[float] = None):
        super().__init__(message, status_code=429, retry_after=retry_after, code="rate_limited")
