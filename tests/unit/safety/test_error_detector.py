"""
Tests for ErrorDetector class.
"""
import pytest

from purgecord.api.errors import ApiError, RateLimitError
from purgecord.deletion.models import DeleteResult
from purgecord.safety.error_detector import ErrorDetector, Outcome


@pytest.fixture
def detector():
    return ErrorDetector()


@pytest.mark.unit
class TestClassifyStatus:
    """Test ErrorDetector.classify_status() method."""

    @pytest.mark.parametrize(
        "status_code, outcome",
        [
            (204, Outcome.SUCCESS),
            (200, Outcome.SUCCESS),
            (202, Outcome.FAILED),
            (429, Outcome.RATE_LIMITED),
            (404, Outcome.NOT_FOUND),
            (403, Outcome.FORBIDDEN),
            (401, Outcome.FAILED),
            (500, Outcome.FAILED),
            (None, Outcome.FAILED),
        ],
    )
    def test_status_codes(self, detector, status_code, outcome):
        """Test status codes map to outcomes."""
        assert detector.classify_status(status_code) is outcome


@pytest.mark.unit
class TestClassifyException:
    """Test ErrorDetector.classify_exception() method."""

    def test_rate_limit_error(self, detector):
        """Test RateLimitError is rate limited."""
        assert detector.classify_exception(RateLimitError(retry_after=1)) is Outcome.RATE_LIMITED

    def test_api_error_status(self, detector):
        """Test ApiError is classified by status code."""
        assert detector.classify_exception(ApiError("gone", status_code=404)) is Outcome.NOT_FOUND

    def test_plain_exception(self, detector):
        """Test plain exceptions are failures."""
        assert detector.classify_exception(ConnectionError("reset")) is Outcome.FAILED


@pytest.mark.unit
class TestClassifyResult:
    """Test ErrorDetector.classify_result() method."""

    def test_success(self, detector):
        """Test successful result is success."""
        assert detector.classify_result(DeleteResult(success=True)) is Outcome.SUCCESS

    def test_status_code_wins(self, detector):
        """Test status code wins over the error code."""
        result = DeleteResult(success=False, error="rate_limited", status_code=403)

        assert detector.classify_result(result) is Outcome.FORBIDDEN

    def test_error_code_without_status(self, detector):
        """Test error code is used without a status."""
        assert detector.classify_result(DeleteResult(success=False, error="not_found")) is Outcome.NOT_FOUND

    def test_unknown_error(self, detector):
        """Test unknown error is a failure."""
        assert detector.classify_result(DeleteResult(success=False, error="boom")) is Outcome.FAILED


@pytest.mark.unit
class TestRetryAfter:
    """Test ErrorDetector.retry_after_seconds() method."""

    def test_reads_hint(self, detector):
        """Test retry_after hint is read."""
        assert detector.retry_after_seconds(RateLimitError(retry_after=2.5), 5) == 2.5

    def test_default_when_missing(self, detector):
        """Test default is used when hint is missing."""
        assert detector.retry_after_seconds(RateLimitError(), 5) == 5

    def test_default_when_negative(self, detector):
        """Test default is used when hint is negative."""
        assert detector.retry_after_seconds(DeleteResult(success=False, retry_after=-1), 1) == 1

    def test_to_exception(self, detector):
        """Test failed result converts to ApiError."""
        error = detector.to_exception(DeleteResult(success=False, error="nope", status_code=500))

        assert isinstance(error, ApiError)
        assert error.status_code == 500
        assert str(error) == "nope (HTTP 500)"
