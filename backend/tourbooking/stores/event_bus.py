from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, AsyncIterator, DefaultDict, List

logger = logging.getLogger(__name__)

CLOSED_EVENT = "draft.closed"


class EventBus:
    """
    Fan-out of draft events to live listeners.

    Events published while nobody is subscribed are dropped. Each listener
    gets a bounded queue; when a slow listener falls behind, its oldest
    events are discarded.
    """

    def __init__(self, max_pending: int = 100) -> None:
        self.max_pending = max_pending
        self._subscribers: DefaultDict[str, List[asyncio.Queue[dict[str, Any]]]] = defaultdict(list)

    def listener_count(self, draft_id: str) -> int:
        return len(self._subscribers.get(draft_id, ()))

    def subscribe(self, draft_id: str) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self.max_pending)
        self._subscribers[draft_id].append(queue)
        return queue

    def unsubscribe(self, draft_id: str, queue: asyncio.Queue[dict[str, Any]]) -> None:
        queues = self._subscribers.get(draft_id)
        if not queues:
            return
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(draft_id, None)

    @staticmethod
    def _offer(queue: asyncio.Queue[dict[str, Any]], event: dict[str, Any]) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(event)

    async def publish(self, draft_id: str, event: dict[str, Any]) -> None:
        queues = self._subscribers.get(draft_id)
        if not queues:
            return
        for queue in list(queues):
            self._offer(queue, event)
        logger.debug(
            "draft_event",
            extra={
                "draft_id": draft_id,
                "listeners": len(queues),
                "event_json": json.dumps(event),
            },
        )

    async def stream(self, draft_id: str) -> AsyncIterator[dict[str, Any]]:
        queue = self.subscribe(draft_id)
        try:
            while True:
                event = await queue.get()
                yield event
                if event.get("type") == CLOSED_EVENT:
                    return
        finally:
            self.unsubscribe(draft_id, queue)

    async def close(self, draft_id: str) -> None:
        """End every open stream for the draft."""
        for queue in self._subscribers.pop(draft_id, []):
            self._offer(queue, {"type": CLOSED_EVENT, "draft_id": draft_id})


event_bus = EventBus()
