"""
Resilience patterns module.

Components:
    - RetryConfig: Exponential backoff configuration with equal jitter
    - @with_retry_async decorator: Async retry driven by error classification
"""

from .retry import (
    DEFAULT_RETRY,
    TRANSPORT_RETRY,
    RetryConfig,
    with_retry_async,
)

__all__ = [
    "RetryConfig",
    "with_retry_async",
    "DEFAULT_RETRY",
    "TRANSPORT_RETRY",
]
