"""
WebSocket transport for real-time notifications.

``WebSocketHub`` owns the live sockets and implements the small transport
contract the dispatcher relies on: connect / disconnect hooks, job group
subscribe / unsubscribe, and ``send_to_group``. Channel membership itself
is kept by :class:`~jobtracker.presence.PresenceRegistry`.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Iterable

from fastapi import BackgroundTasks, Request, WebSocket

from .events import DomainEvent
from .notifications import NotificationDispatcher
from .presence import PresenceRegistry

logger = logging.getLogger(__name__)


class WebSocketHub:
    def __init__(self, registry: PresenceRegistry, send_timeout: float = 5.0) -> None:
        self.registry = registry
        self.send_timeout = send_timeout
        self._sockets: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, user_id: int | None) -> tuple[str, frozenset[str]]:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._sockets[connection_id] = websocket
        channels = self.registry.connect(connection_id, user_id)
        return connection_id, channels

    def disconnect(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)
        self.registry.disconnect(connection_id)

    def join_job(self, connection_id: str, job_id: int) -> str:
        return self.registry.join_job(connection_id, job_id)

    def leave_job(self, connection_id: str, job_id: int) -> str:
        return self.registry.leave_job(connection_id, job_id)

    async def send_to_group(self, channel: str, message_type: str, payload: dict[str, Any]) -> int:
        envelope = {"type": message_type, "payload": payload}
        targets = [
            (connection_id, self._sockets[connection_id])
            for connection_id in self.registry.members(channel)
            if connection_id in self._sockets
        ]
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self._send(connection_id, websocket, envelope) for connection_id, websocket in targets)
        )
        return sum(results)

    async def send_to_connection(self, connection_id: str, message_type: str, payload: dict[str, Any]) -> int:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return 0
        return await self._send(connection_id, websocket, {"type": message_type, "payload": payload})

    async def close_all(self) -> None:
        sockets, self._sockets = self._sockets, {}
        for connection_id, websocket in sockets.items():
            try:
                await websocket.close(code=1001)
            except Exception as exc:
                logger.debug("Closing %s failed: %s", connection_id, exc)
        self.registry.clear()

    async def _send(self, connection_id: str, websocket: WebSocket, envelope: dict[str, Any]) -> int:
        try:
            await asyncio.wait_for(websocket.send_json(envelope), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning("Send of %s to %s timed out", envelope["type"], connection_id)
            return 0
        except Exception as exc:
            logger.warning("Send of %s to %s failed: %s", envelope["type"], connection_id, exc)
            return 0
        return 1


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def schedule_notifications(
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    events: Iterable[DomainEvent],
) -> None:
    """Queue dispatch to run after the response has been sent."""
    events = list(events)
    if events:
        background_tasks.add_task(dispatcher.dispatch_all, events)
