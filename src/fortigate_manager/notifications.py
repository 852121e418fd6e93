"""Push notifications to connected WebSocket clients.

Events:
- connection_status: {connected, message}
- object_updated: {name, type, value, user}
- object_deleted: {name, user}
- group_updated: {name, members, user}

Delivery is broadcast and fire-and-forget: a client that fails to receive is
dropped, and no sender ever sees an error.
"""
import asyncio
import logging
from typing import Any, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Notifier:
    """Broadcast events to every subscribed WebSocket."""

    def __init__(self):
        self._subscribers: list[WebSocket] = []
        self._pending: set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, websocket: WebSocket) -> None:
        if websocket not in self._subscribers:
            self._subscribers.append(websocket)

    def unsubscribe(self, websocket: WebSocket) -> None:
        if websocket in self._subscribers:
            self._subscribers.remove(websocket)

    @staticmethod
    def message(event: str, data: dict[str, Any]) -> dict[str, Any]:
        return {"event": event, "data": data}

    async def send(self, websocket: WebSocket, event: str, data: dict[str, Any]) -> bool:
        """Send one event to one client. Returns False if the client is gone."""
        try:
            await websocket.send_json(self.message(event, data))
        except Exception as e:
            logger.debug(f"Dropping WebSocket subscriber: {e!r}")
            self.unsubscribe(websocket)
            return False
        return True

    async def broadcast(self, event: str, data: dict[str, Any]) -> int:
        """Send an event to all clients. Returns how many received it."""
        delivered = 0
        for websocket in list(self._subscribers):
            if await self.send(websocket, event, data):
                delivered += 1
        logger.debug(f"Broadcast {event} to {delivered} clients")
        return delivered

    def publish(self, event: str, data: dict[str, Any]) -> Optional[asyncio.Task]:
        """Schedule a broadcast without waiting for it.

        Usable from synchronous callbacks running inside the event loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, {event} not published")
            return None
        task = loop.create_task(self.broadcast(event, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task
