"""Shared helpers to interact with the Telegram Bot API safely."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramRetryAfter,
)
from aiogram.types import CallbackQuery, Message

P = ParamSpec("P")
T = TypeVar("T")

logger = logging.getLogger(__name__)

MAX_RETRY_DELAY = 30.0


def _rate_limit_delay(exc: TelegramRetryAfter) -> float:
    return float(getattr(exc, "retry_after", 0) or 1.0)


def _log_delivery_failure(label: str, exc: TelegramAPIError) -> None:
    if isinstance(exc, TelegramForbiddenError):
        logger.info("Bot API call '%s' forbidden; the player blocked the bot.", label)
    elif isinstance(exc, TelegramBadRequest) and "message is not modified" in str(exc).lower():
        logger.debug("Bot API call '%s' skipped: nothing changed.", label)
    elif isinstance(exc, TelegramBadRequest):
        logger.warning("Bot API call '%s' rejected: %s", label, exc)
    else:
        logger.error("Bot API call '%s' failed: %s", label, exc, exc_info=True)


async def safe_api_call(
    label: str,
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    retries: int = 3,
    max_delay: float = MAX_RETRY_DELAY,
    **kwargs: P.kwargs,
) -> T | None:
    """Run a Bot API call and return ``None`` when it can not be delivered.

    Rate limits are retried up to ``retries`` attempts, but a reply is dropped
    rather than held back longer than ``max_delay`` seconds.
    """
    for attempt in range(1, retries + 1):
        try:
            return await func(*args, **kwargs)
        except TelegramRetryAfter as exc:
            delay = _rate_limit_delay(exc)
            if attempt >= retries or delay > max_delay:
                logger.warning(
                    "Bot API call '%s' dropped: rate limited for %.1f s after %s attempts.", label, delay, attempt
                )
                return None
            logger.info("Bot API call '%s' rate limited; retrying in %.1f s.", label, delay)
            await asyncio.sleep(delay)
        except TelegramAPIError as exc:
            _log_delivery_failure(label, exc)
            return None
    return None


async def safe_message_answer(message: Message | None, text: str, **kwargs) -> bool:
    if not message:
        return False
    return (await safe_api_call("message.answer", message.answer, text, **kwargs)) is not None


async def safe_callback_answer(callback: CallbackQuery | None, text: str | None = None, **kwargs) -> bool:
    if not callback:
        return False
    if text is not None:
        kwargs["text"] = text
    return (await safe_api_call("callback.answer", callback.answer, **kwargs)) is not None
