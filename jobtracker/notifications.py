"""
Notification dispatcher: turns committed domain events into channel messages.

Which channels hear about which event is declared once, in ``ROUTES``.
The dispatcher only needs a transport with ``send_to_group``; it is
handed one at construction (see ``main.lifespan``) instead of reaching for
a global hub.

Delivery is best effort and at most once. The triggering change is already
committed when dispatch runs; a failed send is logged and dropped, never
retried and never reported back to the actor.
"""
from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Protocol

from .errors import DispatchFailed
from .events import DomainEvent, EventKind
from .models import utcnow
from .presence import BROADCAST, job_channel, user_channel

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send_to_group(self, channel: str, message_type: str, payload: dict[str, Any]) -> int:
        """Send ``payload`` to every member of ``channel``; return how many got it."""
        ...


class Audience(str, enum.Enum):
    BROADCAST = "broadcast"
    JOB = "job"
    OWNER = "owner"


ROUTES: dict[EventKind, tuple[Audience, ...]] = {
    EventKind.JOB_CREATED: (Audience.BROADCAST,),
    EventKind.JOB_UPDATED: (Audience.BROADCAST, Audience.JOB),
    EventKind.JOB_DELETED: (Audience.BROADCAST, Audience.JOB),
    EventKind.APPLICATION_CREATED: (Audience.JOB,),
    EventKind.APPLICATION_STATUS_CHANGED: (Audience.OWNER, Audience.JOB),
}


def resolve_channels(event: DomainEvent) -> list[str]:
    """Channel names an event is delivered to, in routing-table order."""
    channels = []
    for audience in ROUTES.get(event.kind, ()):
        if audience is Audience.BROADCAST:
            channels.append(BROADCAST)
        elif audience is Audience.JOB:
            channels.append(job_channel(event.job_id))
        elif audience is Audience.OWNER and event.user_id is not None:
            channels.append(user_channel(event.user_id))
    return channels


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


SUMMARIES: dict[EventKind, Callable[[DomainEvent], str]] = {
    EventKind.JOB_CREATED: lambda e: f"New job posted: {e.data.get('title')} at {e.data.get('company')}",
    EventKind.JOB_UPDATED: lambda e: f"Job updated: {e.data.get('title')} at {e.data.get('company')}",
    EventKind.JOB_DELETED: lambda e: f"Job with ID {e.job_id} has been deleted",
    EventKind.APPLICATION_CREATED: lambda e: (
        f"New application received for {e.data.get('job_title')} from {e.data.get('applicant_name')}"
    ),
    EventKind.APPLICATION_STATUS_CHANGED: lambda e: (
        f"Application status changed to {e.new_status} for {e.data.get('job_title')}"
    ),
}


def build_message(event: DomainEvent) -> dict[str, Any]:
    """Tagged payload for an event: type, ids, status, summary and timestamp."""
    message: dict[str, Any] = {"type": event.kind.value, "job_id": event.job_id}
    if event.kind in (EventKind.APPLICATION_CREATED, EventKind.APPLICATION_STATUS_CHANGED):
        message["application_id"] = event.entity_id
        message["user_id"] = event.user_id
    message["status"] = event.new_status
    message["previous_status"] = event.old_status
    message.update({key: _iso(value) for key, value in event.data.items()})
    message["message"] = SUMMARIES[event.kind](event)
    message["timestamp"] = event.occurred_at.isoformat()
    return message


class NotificationDispatcher:
    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    async def dispatch(self, event: DomainEvent) -> int:
        """Fan an event out to its channels. Never raises; returns deliveries made."""
        try:
            message = build_message(event)
            channels = resolve_channels(event)
        except Exception:
            logger.exception("Could not build %s notification for %s", event.kind.value, event.entity_id)
            return 0

        delivered = 0
        for channel in channels:
            delivered += await self._deliver(channel, event.kind.value, message)
        logger.info(
            "%s notification for %s sent to %s (%d deliveries)",
            event.kind.value, event.entity_id, ", ".join(channels), delivered,
        )
        return delivered

    async def dispatch_all(self, events: Iterable[DomainEvent]) -> int:
        delivered = 0
        for event in events:
            delivered += await self.dispatch(event)
        return delivered

    async def notify_user(self, user_id: int, message: str, level: str = "info") -> int:
        payload = {
            "type": "UserNotification",
            "message": message,
            "notification_type": level,
            "timestamp": utcnow().isoformat(),
        }
        return await self._deliver(user_channel(user_id), "UserNotification", payload)

    async def notify_all(self, message: str, level: str = "info") -> int:
        payload = {
            "type": "GlobalNotification",
            "message": message,
            "notification_type": level,
            "timestamp": utcnow().isoformat(),
        }
        return await self._deliver(BROADCAST, "GlobalNotification", payload)

    async def _deliver(self, channel: str, message_type: str, payload: dict[str, Any]) -> int:
        try:
            return await self._send(channel, message_type, payload)
        except DispatchFailed as exc:
            logger.error("%s", exc.message, exc_info=exc)
            return 0

    async def _send(self, channel: str, message_type: str, payload: dict[str, Any]) -> int:
        try:
            return await self.transport.send_to_group(channel, message_type, payload)
        except Exception as exc:
            raise DispatchFailed(f"{message_type} to {channel} failed: {exc}") from exc
