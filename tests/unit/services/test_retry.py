from unittest.mock import AsyncMock

import pytest

from support_relay.errors import RunConflictError, TransientDownstreamError
from support_relay.services import backoff_delay, retry_async


def test_backoff_doubles_and_caps():
    assert [backoff_delay(n, 1.0, 8.0) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 8.0]


@pytest.mark.asyncio
async def test_retries_transient_until_success():
    sleep = AsyncMock()
    operation = AsyncMock(side_effect=[TransientDownstreamError("429"), RunConflictError("busy"), "ok"])

    result = await retry_async(operation, max_attempts=3, base_delay=0.5, sleep=sleep)

    assert result == "ok"
    assert operation.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]


@pytest.mark.asyncio
async def test_reraises_after_last_attempt():
    sleep = AsyncMock()
    operation = AsyncMock(side_effect=TransientDownstreamError("timeout"))

    with pytest.raises(TransientDownstreamError):
        await retry_async(operation, max_attempts=2, sleep=sleep)

    assert operation.await_count == 2
    assert sleep.await_count == 1


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    sleep = AsyncMock()
    operation = AsyncMock(side_effect=KeyError("bad"))

    with pytest.raises(KeyError):
        await retry_async(operation, sleep=sleep)

    assert operation.await_count == 1
    sleep.assert_not_awaited()
