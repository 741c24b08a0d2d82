"""Retry utilities for Azure Resource Manager and Azure Monitor calls.

ARM throttles per subscription and answers 429 with a Retry-After header;
when present it takes precedence over the exponential backoff schedule.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import TypeVar

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Throttling and gateway failures
RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

# Errors that will not go away by asking again
NON_RETRYABLE_EXCEPTIONS = (
    ClientAuthenticationError,
    ResourceNotFoundError,
    ValueError,
    TypeError,
    KeyError,
)

TRANSIENT_ERROR_NAMES = {"TimeoutError", "ConnectionError", "ConnectionResetError"}


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""

    max_retries: int = 3
    backoff_factor: float = 1.0
    max_wait: float = 60.0


def is_retryable_error(error: Exception) -> bool:
    """Determine if an error is worth retrying."""
    if isinstance(error, NON_RETRYABLE_EXCEPTIONS):
        return False

    if isinstance(error, HttpResponseError):
        return getattr(error, "status_code", None) in RETRYABLE_STATUS_CODES

    if type(error).__name__ in TRANSIENT_ERROR_NAMES:
        return True

    # Unknown SDK and transport errors are assumed transient
    return True


def retry_after_seconds(error: Exception) -> float | None:
    """Read the server-requested delay from a throttled response, if any."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None

    value = headers.get("Retry-After")
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return None


def backoff_delay(policy: RetryPolicy, attempt: int, error: Exception) -> float:
    """Seconds to wait before the next attempt, capped at max_wait."""
    requested = retry_after_seconds(error)
    if requested is not None:
        return min(requested, policy.max_wait)
    return min(
        policy.backoff_factor * (2 ** attempt) + random.uniform(0, 1),
        policy.max_wait,
    )


def retry_with_backoff(policy: RetryPolicy | None = None):
    """Decorator that retries async functions with exponential backoff."""
    if policy is None:
        policy = RetryPolicy()
    attempts = policy.max_retries + 1

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable_error(e):
                        logger.warning(f"{func.__name__} failed permanently: {e}")
                        raise

                    if attempt + 1 >= attempts:
                        logger.error(f"{func.__name__} failed after {attempts} attempts: {e}")
                        raise

                    wait_time = backoff_delay(policy, attempt, e)
                    logger.warning(
                        f"{func.__name__} attempt {attempt + 1}/{attempts} failed: {e}. "
                        f"Retrying in {wait_time:.1f}s..."
                    )
                    await asyncio.sleep(wait_time)

            raise RuntimeError(f"{func.__name__}: retry loop exited without a result")

        return wrapper

    return decorator


# Listing a subscription is a single expensive call; snapshots and writes are per resource
RESOURCE_LIST_POLICY = RetryPolicy(max_retries=5, backoff_factor=1.5)
DIAGNOSTIC_SNAPSHOT_POLICY = RetryPolicy(max_retries=3, backoff_factor=1.0, max_wait=30.0)
DIAGNOSTIC_WRITE_POLICY = RetryPolicy(max_retries=2, backoff_factor=2.0)
