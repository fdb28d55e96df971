"""Utility modules"""

from .retry import (
    RetryError,
    compute_delay,
    retry_async_operation,
    BACKOFF_FIXED,
    BACKOFF_LINEAR,
    BACKOFF_EXPONENTIAL,
)

__all__ = [
    "RetryError",
    "compute_delay",
    "retry_async_operation",
    "BACKOFF_FIXED",
    "BACKOFF_LINEAR",
    "BACKOFF_EXPONENTIAL",
]
