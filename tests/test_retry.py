"""
Tests for retry logic used during LMS session setup.
"""

import pytest

from gradeviewer import retry as retry_module
from gradeviewer.retry import (
    exponential_backoff,
    should_retry_http_status,
    RetryError,
)


@pytest.fixture
def no_sleep(monkeypatch):
    """Record sleeps instead of waiting."""
    slept = []
    monkeypatch.setattr(retry_module.time, "sleep", slept.append)
    return slept


class TestExponentialBackoff:
    """Test exponential backoff decorator."""

    def test_success_on_first_try(self, no_sleep):
        """Function that succeeds immediately should not retry."""
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.1)
        def succeeds():
            call_count[0] += 1
            return "success"

        assert succeeds() == "success"
        assert call_count[0] == 1
        assert no_sleep == []

    def test_retry_then_succeed(self, no_sleep):
        """Function that fails then succeeds should retry."""
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01)
        def fails_twice():
            call_count[0] += 1
            if call_count[0] < 3:
                raise ConnectionError("Temporary failure")
            return "success"

        assert fails_twice() == "success"
        assert call_count[0] == 3

    def test_all_retries_exhausted(self, no_sleep):
        """Should raise RetryError after all attempts fail."""
        call_count = [0]

        @exponential_backoff(max_retries=2, base_delay=0.01)
        def always_fails():
            call_count[0] += 1
            raise ValueError("Always fails")

        with pytest.raises(RetryError) as exc:
            always_fails()

        assert call_count[0] == 3  # Initial + 2 retries
        assert isinstance(exc.value.__cause__, ValueError)

    def test_only_catches_specified_exceptions(self, no_sleep):
        """Should only retry on specified exception types."""
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01, exceptions=(ConnectionError,))
        def raises_value_error():
            call_count[0] += 1
            raise ValueError("Not retryable")

        with pytest.raises(ValueError):
            raises_value_error()

        assert call_count[0] == 1

    def test_exponential_delay(self, no_sleep):
        """Delay should increase exponentially."""
        delays = []

        @exponential_backoff(
            max_retries=3,
            base_delay=0.01,
            exponential_base=2.0,
            on_retry=lambda attempt, exception, delay: delays.append((attempt, delay)),
        )
        def always_fails():
            raise ConnectionError("Test")

        with pytest.raises(RetryError):
            always_fails()

        assert delays == [(1, 0.01), (2, 0.02), (3, 0.04)]
        assert no_sleep == [0.01, 0.02, 0.04]

    def test_max_delay_cap(self, no_sleep):
        """Delay should not exceed max_delay."""
        @exponential_backoff(max_retries=5, base_delay=1.0, max_delay=2.0, exponential_base=3.0)
        def always_fails():
            raise ConnectionError("Test")

        with pytest.raises(RetryError):
            always_fails()

        assert no_sleep == [1.0, 2.0, 2.0, 2.0, 2.0]

    def test_no_retries(self, no_sleep):
        @exponential_backoff(max_retries=0)
        def always_fails():
            raise ConnectionError("Test")

        with pytest.raises(RetryError):
            always_fails()
        assert no_sleep == []


class TestHttpStatus:
    """Test retryable HTTP status detection."""

    def test_http_status_retry_logic(self):
        """Should correctly identify retryable HTTP status codes."""
        # Retryable
        assert should_retry_http_status(408)  # Timeout
        assert should_retry_http_status(429)  # Rate limit
        assert should_retry_http_status(500)  # Server error
        assert should_retry_http_status(502)  # Bad gateway
        assert should_retry_http_status(503)  # Service unavailable

        # Not retryable
        assert not should_retry_http_status(200)  # Success
        assert not should_retry_http_status(404)  # Not found
        assert not should_retry_http_status(403)  # Forbidden
        assert not should_retry_http_status(401)  # Unauthorized
