"""Core module initialization."""

from retention_audit.core.config import Settings, get_settings
from retention_audit.core.retry import (
    DIAGNOSTIC_SNAPSHOT_POLICY,
    DIAGNOSTIC_WRITE_POLICY,
    RESOURCE_LIST_POLICY,
    RetryPolicy,
    backoff_delay,
    is_retryable_error,
    retry_after_seconds,
    retry_with_backoff,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Retry
    "RetryPolicy",
    "retry_with_backoff",
    "is_retryable_error",
    "retry_after_seconds",
    "backoff_delay",
    "RESOURCE_LIST_POLICY",
    "DIAGNOSTIC_SNAPSHOT_POLICY",
    "DIAGNOSTIC_WRITE_POLICY",
]
