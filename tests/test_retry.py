"""Tests for retry logic."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from tracelens.core.exceptions import ProviderError
from tracelens.retry import backoff_delay, is_retryable, retry_with_backoff


def busy() -> ProviderError:
    return ProviderError("rate limited", transient=True)


class TestRetryDecorator:
    """Test suite for retry decorator."""

    @pytest.mark.asyncio
    async def test_retry_succeeds_on_first_attempt(self):
        mock_func = AsyncMock(return_value=[0.1, 0.2])

        @retry_with_backoff(max_retries=3)
        async def embed():
            return await mock_func()

        assert await embed() == [0.1, 0.2]
        assert mock_func.call_count == 1

    @pytest.mark.asyncio
    async def test_transient_provider_errors_are_retried_by_default(self):
        mock_func = AsyncMock(side_effect=[busy(), busy(), "ok"])

        @retry_with_backoff(max_retries=3, base_delay=0)
        async def embed():
            return await mock_func()

        assert await embed() == "ok"
        assert mock_func.call_count == 3

    @pytest.mark.asyncio
    async def test_permanent_provider_error_fails_immediately(self):
        mock_func = AsyncMock(side_effect=ProviderError("invalid api key"))

        @retry_with_backoff(max_retries=3, base_delay=0)
        async def embed():
            return await mock_func()

        with pytest.raises(ProviderError, match="invalid api key"):
            await embed()
        assert mock_func.call_count == 1

    @pytest.mark.asyncio
    async def test_raises_after_max_retries(self):
        mock_func = AsyncMock(side_effect=ProviderError("quota exceeded", transient=True))

        @retry_with_backoff(max_retries=2, base_delay=0)
        async def embed():
            return await mock_func()

        with pytest.raises(ProviderError, match="quota exceeded"):
            await embed()
        assert mock_func.call_count == 3

    @pytest.mark.asyncio
    async def test_unlisted_error_propagates_immediately(self):
        mock_func = AsyncMock(side_effect=ValueError("bad input"))

        @retry_with_backoff(max_retries=3, base_delay=0)
        async def embed():
            return await mock_func()

        with pytest.raises(ValueError):
            await embed()
        assert mock_func.call_count == 1

    @pytest.mark.asyncio
    async def test_custom_predicate(self):
        mock_func = AsyncMock(side_effect=[TimeoutError(), "ok"])

        @retry_with_backoff(
            max_retries=1,
            base_delay=0,
            retryable_exceptions=(TimeoutError,),
            should_retry=lambda error: True,
        )
        async def embed():
            return await mock_func()

        assert await embed() == "ok"

    @pytest.mark.asyncio
    async def test_delay_grows_exponentially_and_is_capped(self):
        mock_func = AsyncMock(side_effect=[busy()] * 4 + ["ok"])

        @retry_with_backoff(max_retries=4, base_delay=1.0, max_delay=3.0, jitter=False)
        async def embed():
            return await mock_func()

        with patch("tracelens.retry.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            assert await embed() == "ok"

        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert delays == [1.0, 2.0, 3.0, 3.0]


class TestRetryHelpers:
    """Tests for the retry classification and delay helpers."""

    def test_is_retryable(self):
        assert is_retryable(busy()) is True
        assert is_retryable(ProviderError("unauthorized")) is False
        assert is_retryable(TimeoutError()) is True

    @pytest.mark.parametrize("attempt", range(6))
    def test_jittered_delay_stays_within_bounds(self, attempt):
        expected = min(2.0**attempt, 10.0)

        delay = backoff_delay(attempt, base_delay=1.0, max_delay=10.0, jitter=True)

        assert 0.5 * expected <= delay < 1.5 * expected
