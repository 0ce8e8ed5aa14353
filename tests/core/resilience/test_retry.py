"""
Tests for retry logic with exponential backoff and jitter.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from core.errors import (
    MalformedDocumentError,
    PermanentError,
    PipelineError,
    ProcessorError,
    TransientError,
    TransportError,
)
from core.resilience.retry import DEFAULT_RETRY, TRANSPORT_RETRY, RetryConfig, with_retry_async


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_default_values(self):
        config = RetryConfig()
        assert config.max_attempts == 5
        assert config.base_delay == 0.5
        assert config.max_delay == 30.0
        assert config.exponential_base == 2.0
        assert config.respect_permanent is True
        assert config.max_retries == 4

    def test_type_conversion_from_strings(self):
        """Config handles string inputs (e.g., from YAML env expansion)."""
        config = RetryConfig(
            max_attempts="4",
            base_delay="0.25",
            max_delay="10",
            exponential_base="3",
            respect_permanent="false",
        )
        assert config.max_attempts == 4
        assert config.base_delay == 0.25
        assert config.max_delay == 10.0
        assert config.exponential_base == 3.0
        assert config.respect_permanent is False

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError, match="max_attempts"):
            RetryConfig(max_attempts=0)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            RetryConfig(base_delay=-1)

    def test_exponential_backoff_with_equal_jitter(self):
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, max_delay=30.0)

        assert 0.5 <= config.get_delay(0) <= 1.0
        assert 1.0 <= config.get_delay(1) <= 2.0
        assert 2.0 <= config.get_delay(2) <= 4.0

    def test_jitter_spreads_delays(self):
        config = RetryConfig(base_delay=1.0, exponential_base=2.0)
        delays = [config.get_delay(1) for _ in range(100)]

        assert all(1.0 <= d <= 2.0 for d in delays)
        assert len(set(delays)) > 10

    def test_max_delay_cap(self):
        config = RetryConfig(base_delay=10.0, max_delay=5.0)
        assert config.get_delay(10) <= 5.0

    def test_should_retry_respects_max_attempts(self):
        config = RetryConfig(max_attempts=3)

        assert config.should_retry(TransientError("t"), attempt=0) is True
        assert config.should_retry(TransientError("t"), attempt=1) is True
        assert config.should_retry(TransientError("t"), attempt=2) is False

    def test_permanent_errors_not_retried(self):
        config = RetryConfig(max_attempts=5)
        assert config.should_retry(MalformedDocumentError("bad"), attempt=0) is False
        assert config.should_retry(ProcessorError("bad", retryable=False), attempt=0) is False

    def test_retryable_processor_error_retried(self):
        config = RetryConfig(max_attempts=5)
        assert config.should_retry(ProcessorError("busy"), attempt=0) is True

    def test_unclassified_exceptions(self):
        config = RetryConfig(max_attempts=5)
        assert config.should_retry(RuntimeError("odd"), attempt=0) is True
        assert config.should_retry(ValueError("bad"), attempt=0) is False

    def test_never_retry_overrides_classification(self):
        config = RetryConfig(max_attempts=5, never_retry={TransportError})
        assert config.should_retry(TransportError("down"), attempt=0) is False

    def test_always_retry_overrides_classification(self):
        config = RetryConfig(max_attempts=5, always_retry={ValueError})
        assert config.should_retry(ValueError("flaky parser"), attempt=0) is True

    def test_presets(self):
        assert DEFAULT_RETRY.max_attempts == 5
        assert TRANSPORT_RETRY.max_attempts == 3
        assert TRANSPORT_RETRY.max_delay == 5.0


@pytest.fixture
def no_sleep():
    with patch("core.resilience.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


class TestWithRetryAsync:
    async def test_returns_on_first_success(self, no_sleep):
        calls = Mock(return_value="ok")

        @with_retry_async(config=RetryConfig(max_attempts=3))
        async def operation():
            return calls()

        assert await operation() == "ok"
        assert calls.call_count == 1
        no_sleep.assert_not_called()

    async def test_retries_transient_then_succeeds(self, no_sleep):
        outcomes = [TransportError("down"), TransportError("down"), "ok"]

        @with_retry_async(config=RetryConfig(max_attempts=3))
        async def operation():
            result = outcomes.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        assert await operation() == "ok"
        assert no_sleep.call_count == 2

    async def test_permanent_error_raised_immediately(self, no_sleep):
        calls = []

        @with_retry_async(config=RetryConfig(max_attempts=5))
        async def operation():
            calls.append(1)
            raise PermanentError("nope")

        with pytest.raises(PermanentError):
            await operation()
        assert len(calls) == 1

    async def test_exhaustion_raises_last_error(self, no_sleep):
        @with_retry_async(config=RetryConfig(max_attempts=2))
        async def operation():
            raise TransportError("still down")

        with pytest.raises(TransportError, match="still down"):
            await operation()
        assert no_sleep.call_count == 1

    async def test_unknown_errors_wrapped(self, no_sleep):
        @with_retry_async(config=RetryConfig(max_attempts=1))
        async def operation():
            raise RuntimeError("odd")

        with pytest.raises(PipelineError) as exc_info:
            await operation()
        assert isinstance(exc_info.value.cause, RuntimeError)

    async def test_unwrapped_errors_kept_when_disabled(self, no_sleep):
        @with_retry_async(config=RetryConfig(max_attempts=1), wrap_errors=False)
        async def operation():
            raise RuntimeError("odd")

        with pytest.raises(RuntimeError):
            await operation()

    async def test_on_retry_callback(self, no_sleep):
        on_retry = Mock()
        outcomes = [TransportError("down"), "ok"]

        @with_retry_async(config=RetryConfig(max_attempts=3), on_retry=on_retry)
        async def operation():
            result = outcomes.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        await operation()
        on_retry.assert_called_once()
        error, attempt, delay = on_retry.call_args.args
        assert isinstance(error, TransportError)
        assert attempt == 0
        assert delay >= 0
