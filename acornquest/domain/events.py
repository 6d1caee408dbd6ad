"""Post-commit notifications published by the settlement service."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict, Iterable, Mapping

BATTLE_RESOLVED = "battle.resolved"
REWARD_CLAIMED = "reward.claimed"
REWARD_REVERSED = "reward.reversed"
LEVEL_UP = "player.level_up"

EventPayload = Mapping[str, Any]
EventListener = Callable[[EventPayload], Awaitable[None]]

logger = logging.getLogger(__name__)


class EventBus:
    """Async pub-sub; listeners run after the state change has been committed."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, list[EventListener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: EventListener) -> None:
        self._listeners[event_name].append(listener)

    async def publish(self, event_name: str, payload: EventPayload) -> None:
        # The state is already committed; a broken listener must not look like a failed settlement.
        for listener in list(self._listeners.get(event_name, ())):
            try:
                await listener(payload)
            except Exception:
                logger.exception("Listener for '%s' failed.", event_name)

    def clear(self) -> None:
        self._listeners.clear()

    def listeners(self, event_name: str) -> Iterable[EventListener]:
        return tuple(self._listeners.get(event_name, ()))
