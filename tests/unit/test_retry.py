"""Tests for retry utilities."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)

from retention_audit.core.retry import RetryPolicy, is_retryable_error, retry_with_backoff


def _http_error(status_code: int) -> HttpResponseError:
    error = HttpResponseError(message=f"HTTP {status_code}")
    error.status_code = status_code
    return error


class TestIsRetryableError:
    """Tests for classifying transient errors."""

    @pytest.mark.parametrize("status_code", [429, 502, 503, 504])
    def test_transient_http_errors(self, status_code):
        """Test throttling and gateway errors are retried."""
        assert is_retryable_error(_http_error(status_code))

    @pytest.mark.parametrize("status_code", [400, 403, 409])
    def test_permanent_http_errors(self, status_code):
        """Test client errors are not retried."""
        assert not is_retryable_error(_http_error(status_code))

    def test_auth_and_not_found_not_retried(self):
        """Test authentication and missing resources are permanent."""
        assert not is_retryable_error(ClientAuthenticationError(message="denied"))
        assert not is_retryable_error(ResourceNotFoundError(message="gone"))
        assert not is_retryable_error(ValueError("bad input"))

    def test_connection_errors_retried(self):
        """Test connection failures are retried."""
        assert is_retryable_error(ConnectionError("reset"))
        assert is_retryable_error(TimeoutError())


class TestRetryWithBackoff:
    """Tests for the retry decorator."""

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        """Test transient errors are retried until success."""
        func = AsyncMock(side_effect=[_http_error(429), _http_error(503), "ok"])
        func.__name__ = "list_diagnostic_settings"
        wrapped = retry_with_backoff(RetryPolicy(max_retries=3))(func)

        with patch("retention_audit.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await wrapped() == "ok"

        assert func.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        """Test the last error is raised once retries are exhausted."""
        func = AsyncMock(side_effect=_http_error(503))
        func.__name__ = "create_or_update"
        wrapped = retry_with_backoff(RetryPolicy(max_retries=2))(func)

        with patch("retention_audit.core.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(HttpResponseError):
                await wrapped()

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        """Test non-retryable errors are raised immediately."""
        func = AsyncMock(side_effect=ResourceNotFoundError(message="gone"))
        func.__name__ = "list"
        wrapped = retry_with_backoff(RetryPolicy(max_retries=3))(func)
        sleep = MagicMock()

        with patch("retention_audit.core.retry.asyncio.sleep", new=sleep):
            with pytest.raises(ResourceNotFoundError):
                await wrapped()

        assert func.await_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_wait_capped_by_max_wait(self):
        """Test backoff never sleeps longer than max_wait."""
        func = AsyncMock(side_effect=[_http_error(429), "ok"])
        func.__name__ = "list"
        wrapped = retry_with_backoff(RetryPolicy(max_retries=1, backoff_factor=100, max_wait=2.5))(func)

        with patch("retention_audit.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await wrapped()

        assert sleep.await_args.args[0] == 2.5

    @pytest.mark.asyncio
    async def test_honours_retry_after(self):
        """Test a throttled response's Retry-After header sets the wait."""
        throttled = _http_error(429)
        throttled.response = MagicMock()
        throttled.response.headers = {"Retry-After": "7"}
        func = AsyncMock(side_effect=[throttled, "ok"])
        func.__name__ = "list"
        wrapped = retry_with_backoff(RetryPolicy(max_retries=1, max_wait=30.0))(func)

        with patch("retention_audit.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await wrapped() == "ok"

        assert sleep.await_args.args[0] == 7.0
