"""
Retry utilities with exception-aware handling.

Uses the exception hierarchy to make retry decisions:
- Transient errors: retry with exponential backoff
- Processor errors: retry only when flagged retryable
- Permanent errors: fail immediately (no retry)
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import wraps

from core.errors.exceptions import (
    PipelineError,
    classify_exception,
    wrap_exception,
)

# Import ErrorCategory from core.types to avoid circular dependency
from core.types import ErrorCategory

logger = logging.getLogger(__name__)


def _extract_error_category(wrapped: Exception) -> str:
    """Return a string error category from a wrapped exception."""
    if isinstance(wrapped, PipelineError):
        cat = wrapped.category
    else:
        cat = classify_exception(wrapped)
    return cat.value if hasattr(cat, "value") else str(cat)


def _log_retry_failure(
    func_name: str,
    wrapped: Exception,
    e: Exception,
    error_category: str,
    config: "RetryConfig",
) -> None:
    error_type = type(wrapped).__name__
    if isinstance(wrapped, PipelineError) and not wrapped.is_retryable:
        logger.warning(
            "Permanent error for %s, not retrying: %s",
            func_name,
            str(e)[:200],
            extra={
                "operation": func_name,
                "error_type": error_type,
                "error_category": error_category,
                "error_message": str(e)[:200],
            },
        )
        return

    logger.error(
        "Max retries exhausted for %s: %s",
        func_name,
        str(e)[:200],
        extra={
            "operation": func_name,
            "error_type": error_type,
            "error_category": error_category,
            "max_attempts": config.max_attempts,
            "error_message": str(e)[:200],
        },
    )


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    ``max_attempts`` counts the first try, so ``max_attempts=4`` allows
    three retries.
    """

    max_attempts: int = 5
    base_delay: float = 0.5
    max_delay: float = 30.0
    exponential_base: float = 2.0

    # If True, don't retry permanent errors even if max_attempts > 0
    respect_permanent: bool = True

    # Optional set of exception types to always retry (overrides classification)
    always_retry: set[type[Exception]] = field(default_factory=set)

    # Optional set of exception types to never retry (overrides classification)
    never_retry: set[type[Exception]] = field(default_factory=set)

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        # bool('false') would be True
        self.respect_permanent = (
            self.respect_permanent
            if isinstance(self.respect_permanent, bool)
            else str(self.respect_permanent).lower() in ("true", "1", "yes")
        )
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")

    @property
    def max_retries(self) -> int:
        return self.max_attempts - 1

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay with equal jitter to prevent thundering herd.

        Args:
            attempt: 0-indexed attempt number

        Returns:
            Delay in seconds
        """
        base_delay = self.base_delay * (self.exponential_base**attempt)

        # Equal jitter: half fixed, half random
        jitter = random.uniform(0, base_delay / 2)
        delay = (base_delay / 2) + jitter

        return min(delay, self.max_delay)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Determine if error should be retried.

        Args:
            error: The exception that occurred
            attempt: 0-indexed current attempt

        Returns:
            True if should retry
        """
        if attempt >= self.max_attempts - 1:
            return False

        if self.never_retry and isinstance(error, tuple(self.never_retry)):
            return False

        if self.always_retry and isinstance(error, tuple(self.always_retry)):
            return True

        if isinstance(error, PipelineError):
            if self.respect_permanent and not error.is_retryable:
                return False
            return error.is_retryable

        category = classify_exception(error)
        if self.respect_permanent and category == ErrorCategory.PERMANENT:
            return False

        return category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.UNKNOWN,
        )


DEFAULT_RETRY = RetryConfig()
TRANSPORT_RETRY = RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0)


def with_retry_async(
    config: RetryConfig | None = None,
    on_retry: Callable[[Exception, int, float], None] | None = None,
    wrap_errors: bool = True,
):
    """
    Decorator for retrying async functions with backoff.

    Args:
        config: Retry configuration (defaults to DEFAULT_RETRY)
        on_retry: Callback before each retry (error, attempt, delay)
        wrap_errors: If True, wrap unknown exceptions in PipelineError

    Usage:
        @with_retry_async(config=TRANSPORT_RETRY)
        async def commit():
            ...
    """
    if config is None:
        config = DEFAULT_RETRY

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_error: Exception | None = None

            for attempt in range(config.max_attempts):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            "Retry succeeded for %s after %d attempts",
                            func.__name__,
                            attempt + 1,
                            extra={
                                "operation": func.__name__,
                                "attempt": attempt + 1,
                                "total_attempts": config.max_attempts,
                            },
                        )

                    return result

                except Exception as e:
                    last_error = e
                    wrapped = (
                        wrap_exception(e)
                        if wrap_errors and not isinstance(e, PipelineError)
                        else e
                    )
                    error_category = _extract_error_category(wrapped)

                    if not config.should_retry(wrapped, attempt):
                        _log_retry_failure(
                            func.__name__, wrapped, e, error_category, config
                        )
                        if wrap_errors and wrapped is not e:
                            raise wrapped from e
                        raise

                    delay = config.get_delay(attempt)
                    logger.warning(
                        "Retryable error for %s, will retry",
                        func.__name__,
                        extra={
                            "operation": func.__name__,
                            "attempt": attempt + 1,
                            "max_attempts": config.max_attempts,
                            "error_category": error_category,
                            "delay_seconds": round(delay, 2),
                            "error_message": str(e)[:200],
                        },
                    )

                    if on_retry:
                        on_retry(wrapped, attempt, delay)

                    await asyncio.sleep(delay)

            if last_error:
                raise last_error

        return wrapper

    return decorator


__all__ = [
    "RetryConfig",
    "with_retry_async",
    "DEFAULT_RETRY",
    "TRANSPORT_RETRY",
]
