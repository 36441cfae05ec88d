"""
Tests for the caller-side retry policy.
"""

import pytest

from quelea.client.retry import RetryPolicy
from quelea.core.errors import TransportError


def flaky(failures, error):
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) <= failures:
            raise error
        return "ok"

    return operation, calls


@pytest.mark.asyncio
async def test_retries_retryable_errors():
    operation, calls = flaky(2, TransportError("throttled", retryable=True))
    assert await RetryPolicy(max_attempts=3, base_delay=0).run(operation) == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    operation, calls = flaky(5, TransportError("throttled", retryable=True))
    with pytest.raises(TransportError):
        await RetryPolicy(max_attempts=3, base_delay=0).run(operation)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_non_retryable_raises_immediately():
    operation, calls = flaky(1, TransportError("denied", retryable=False))
    with pytest.raises(TransportError):
        await RetryPolicy(base_delay=0).run(operation)
    assert len(calls) == 1


def test_delay_grows_and_caps():
    policy = RetryPolicy(base_delay=1.0, max_delay=3.0, jitter=0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]
