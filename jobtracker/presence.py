"""
Presence / group registry: which live connection listens on which channel.

Channels are plain strings: ``broadcast``, ``user:<id>`` and ``job:<id>``.
Membership is connection-scoped and lives only in memory; a client that
reconnects starts again from the default channels.

All mutations go through one lock, and readers get frozen snapshots, so
fan-out can iterate members while other connections join or leave.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict

from .errors import NotFound

logger = logging.getLogger(__name__)

BROADCAST = "broadcast"


def user_channel(user_id: int | str) -> str:
    return f"user:{user_id}"


def job_channel(job_id: int | str) -> str:
    return f"job:{job_id}"


class PresenceRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels_by_connection: dict[str, set[str]] = {}
        self._members: defaultdict[str, set[str]] = defaultdict(set)
        self._users: dict[str, int | None] = {}

    # ---- lifecycle ----

    def connect(self, connection_id: str, user_id: int | None = None) -> frozenset[str]:
        """Register a connection and subscribe it to its default channels."""
        defaults = {BROADCAST}
        if user_id is not None:
            defaults.add(user_channel(user_id))
        with self._lock:
            if connection_id in self._channels_by_connection:
                raise ValueError(f"connection {connection_id} is already registered")
            self._channels_by_connection[connection_id] = set()
            self._users[connection_id] = user_id
            for channel in defaults:
                self._add(connection_id, channel)
            channels = frozenset(self._channels_by_connection[connection_id])
        logger.info("User %s connected (%s)", user_id, connection_id)
        return channels

    def disconnect(self, connection_id: str) -> frozenset[str]:
        """Drop a connection from every channel. Unknown ids are ignored."""
        with self._lock:
            channels = self._channels_by_connection.pop(connection_id, set())
            user_id = self._users.pop(connection_id, None)
            for channel in channels:
                self._discard(connection_id, channel)
        if channels:
            logger.info("User %s disconnected (%s)", user_id, connection_id)
        return frozenset(channels)

    # ---- explicit subscriptions ----

    def join_job(self, connection_id: str, job_id: int) -> str:
        channel = job_channel(job_id)
        with self._lock:
            self._require(connection_id)
            self._add(connection_id, channel)
        logger.info("Connection %s joined %s", connection_id, channel)
        return channel

    def leave_job(self, connection_id: str, job_id: int) -> str:
        channel = job_channel(job_id)
        with self._lock:
            self._require(connection_id)
            self._discard(connection_id, channel)
        logger.info("Connection %s left %s", connection_id, channel)
        return channel

    # ---- reads ----

    def members(self, channel: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._members.get(channel, ()))

    def channels_of(self, connection_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._channels_by_connection.get(connection_id, ()))

    def user_of(self, connection_id: str) -> int | None:
        with self._lock:
            return self._users.get(connection_id)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._channels_by_connection)

    def __contains__(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._channels_by_connection

    def clear(self) -> None:
        with self._lock:
            self._channels_by_connection.clear()
            self._members.clear()
            self._users.clear()

    # ---- internals (caller holds the lock) ----

    def _require(self, connection_id: str) -> None:
        if connection_id not in self._channels_by_connection:
            raise NotFound(f"Connection {connection_id} is not registered.")

    def _add(self, connection_id: str, channel: str) -> None:
        self._channels_by_connection[connection_id].add(channel)
        self._members[channel].add(connection_id)

    def _discard(self, connection_id: str, channel: str) -> None:
        self._channels_by_connection.get(connection_id, set()).discard(channel)
        members = self._members.get(channel)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._members[channel]
