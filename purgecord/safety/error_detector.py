"""
Classification of remote failures into retryable, permanent, and success.
"""
from enum import Enum
from typing import Any, Optional

from purgecord.api.errors import ApiError
from purgecord.utils.logging import get_logger

logger = get_logger(__name__)


class Outcome(Enum):
    """How the engine treats the result of a remote call."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    FAILED = "failed"


ERROR_CODE_OUTCOMES = {
    "rate_limited": Outcome.RATE_LIMITED,
    "not_found": Outcome.NOT_FOUND,
    "forbidden": Outcome.FORBIDDEN,
}


class ErrorDetector:
    """Maps status codes, raised errors and delete results to outcomes."""

    def classify_status(self, status_code: Optional[int]) -> Outcome:
        """
        Classify an HTTP-equivalent status code.

        Args:
            status_code: Response status, or None if unknown

        Returns:
            Outcome for the status
        """
        if status_code == 429:
            return Outcome.RATE_LIMITED
        if status_code == 404:
            return Outcome.NOT_FOUND
        if status_code == 403:
            return Outcome.FORBIDDEN
        if status_code is not None and 200 <= status_code < 300 and status_code != 202:
            return Outcome.SUCCESS
        return Outcome.FAILED

    def classify_exception(self, error: BaseException) -> Outcome:
        """Classify a raised error by its status_code attribute."""
        return self.classify_status(getattr(error, "status_code", None))

    def classify_result(self, result: Any) -> Outcome:
        """
        Classify a delete result object.

        Accepts anything exposing ``success`` and optionally ``status_code`` or
        an ``error`` code string.
        """
        if getattr(result, "success", False):
            return Outcome.SUCCESS

        status_code = getattr(result, "status_code", None)
        if status_code is not None:
            return self.classify_status(status_code)

        error_code = getattr(result, "error", None)
        return ERROR_CODE_OUTCOMES.get(error_code or "", Outcome.FAILED)

    def retry_after_seconds(self, source: Any, default: float) -> float:
        """Read a retry hint in seconds from an error or result."""
        retry_after = getattr(source, "retry_after", None)
        if retry_after is None or retry_after < 0:
            return default
        return float(retry_after)

    def to_exception(self, result: Any) -> ApiError:
        """Wrap an unsuccessful delete result so it can be reported to observers."""
        message = getattr(result, "error", None) or "Delete failed"
        return ApiError(
            message,
            status_code=getattr(result, "status_code", None),
            retry_after=getattr(result, "retry_after", None),
        )
