from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramForbiddenError, TelegramRetryAfter

from acornquest.telegram.api_utils import safe_api_call, safe_message_answer


class DummyForbidden(TelegramForbiddenError):
    def __init__(self) -> None:
        Exception.__init__(self, "forbidden")


class DummyRetryAfter(TelegramRetryAfter):
    def __init__(self, retry_after: float) -> None:
        Exception.__init__(self, f"retry after {retry_after}")
        self.retry_after = retry_after


@pytest.mark.asyncio()
async def test_safe_api_call_returns_result():
    async def ok() -> int:
        return 42

    assert await safe_api_call("test", ok) == 42


@pytest.mark.asyncio()
async def test_safe_api_call_handles_forbidden():
    async def forbidden() -> None:
        raise DummyForbidden()

    assert await safe_api_call("forbidden", forbidden) is None


@pytest.mark.asyncio()
async def test_safe_api_call_retries_on_retry_after(monkeypatch):
    mock_call = AsyncMock(side_effect=[DummyRetryAfter(0.0), 7])
    delays = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("acornquest.telegram.api_utils.asyncio.sleep", fake_sleep)

    result = await safe_api_call("retry", mock_call, retries=2)
    assert result == 7
    assert mock_call.await_count == 2
    assert delays == [1.0]


@pytest.mark.asyncio()
async def test_safe_message_answer_without_message():
    assert await safe_message_answer(None, "hello") is False


@pytest.mark.asyncio()
async def test_long_rate_limit_drops_the_reply(monkeypatch):
    mock_call = AsyncMock(side_effect=[DummyRetryAfter(120.0), 7])
    sleep = AsyncMock()
    monkeypatch.setattr("acornquest.telegram.api_utils.asyncio.sleep", sleep)

    assert await safe_api_call("slow", mock_call, max_delay=30.0) is None
    assert mock_call.await_count == 1
    sleep.assert_not_awaited()
