import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from order_service.shared.retry import ExponentialBackoffRetry, FixedDelayRetry


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(asyncio, "sleep", sleep)
    return sleep


@pytest.mark.asyncio
async def test_retries_until_success(no_sleep):
    func = AsyncMock(side_effect=[ConnectionError(), ConnectionError(), "ok"])
    policy = FixedDelayRetry(max_retries=3, delay=0.2, logger=MagicMock())

    assert await policy.execute(func, "a", key="b") == "ok"
    assert func.await_count == 3
    func.assert_awaited_with("a", key="b")
    assert [c.args[0] for c in no_sleep.await_args_list] == [0.2, 0.2]


@pytest.mark.asyncio
async def test_raises_last_error_when_exhausted():
    func = AsyncMock(side_effect=[ConnectionError("1"), ConnectionError("2")])
    policy = FixedDelayRetry(max_retries=2, delay=0, logger=MagicMock())

    with pytest.raises(ConnectionError, match="2"):
        await policy.execute(func)


@pytest.mark.asyncio
async def test_non_retryable_errors_raise_immediately():
    func = AsyncMock(side_effect=ValueError("bad"))
    policy = FixedDelayRetry(max_retries=5, retry_on=(ConnectionError,), logger=MagicMock())

    with pytest.raises(ValueError):
        await policy.execute(func)
    assert func.await_count == 1


@pytest.mark.asyncio
async def test_cancellation_is_not_retried():
    func = AsyncMock(side_effect=asyncio.CancelledError())
    policy = FixedDelayRetry(max_retries=5, logger=MagicMock())

    with pytest.raises(asyncio.CancelledError):
        await policy.execute(func)
    assert func.await_count == 1


def test_exponential_backoff_doubles_and_caps():
    policy = ExponentialBackoffRetry(max_retries=10, base_delay=0.5, max_delay=3.0, logger=MagicMock())
    assert [policy.delay_for(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 3.0, 3.0]


def test_max_retries_must_be_positive():
    with pytest.raises(ValueError):
        FixedDelayRetry(max_retries=0, logger=MagicMock())
