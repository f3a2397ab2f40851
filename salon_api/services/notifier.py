"""
Real-time fan-out over WebSockets.

Rooms:
- ``admin_dashboard`` / ``super_admin_dashboard`` / ``employee_dashboard``:
  joined automatically from the connecting user's role
- ``attendance_updates``: every connection
- ``attendance_<employee_id>``: opt-in via ``subscribe_attendance``

``publish`` never blocks the caller; delivery runs as a background task
and a connection in several target rooms still receives one copy.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from fastapi import WebSocket
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ATTENDANCE_ROOM = "attendance_updates"
ADMIN_ROOMS = ("admin_dashboard", "super_admin_dashboard")


def dashboard_room(role: str) -> str:
    return f"{role}_dashboard"


def employee_room(employee_id: int | str) -> str:
    return f"attendance_{employee_id}"


class EventPublisher(Protocol):
    def publish(self, event: str, payload: Any, rooms: Iterable[str]) -> None: ...


@dataclass
class Connection:
    """One open socket and the rooms it has joined."""

    websocket: WebSocket
    user_id: int
    role: str
    rooms: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConnectionManager:
    """Connection registry with room membership; implements ``EventPublisher``."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._pending: set[asyncio.Task] = set()

    # ── Membership ──────────────────────────────────────────────────
    async def connect(self, websocket: WebSocket, user_id: int, role: str) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = Connection(websocket=websocket, user_id=user_id, role=role)
        self.join(connection_id, dashboard_room(role))
        self.join(connection_id, ATTENDANCE_ROOM)
        logger.info("WebSocket connected: user=%s role=%s id=%s", user_id, role, connection_id)
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return
        for room in connection.rooms:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._rooms[room]
        logger.info("WebSocket disconnected: id=%s", connection_id)

    def join(self, connection_id: str, room: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        connection.rooms.add(room)
        self._rooms.setdefault(room, set()).add(connection_id)

    def leave(self, connection_id: str, room: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.rooms.discard(room)
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[room]

    def rooms_of(self, connection_id: str) -> set[str]:
        connection = self._connections.get(connection_id)
        return set(connection.rooms) if connection else set()

    def members(self, rooms: Iterable[str]) -> set[str]:
        """Union of room members: each connection appears once."""
        targets: set[str] = set()
        for room in rooms:
            targets |= self._rooms.get(room, set())
        return targets

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ── Delivery ────────────────────────────────────────────────────
    @staticmethod
    def message(event: str, payload: Any) -> dict[str, Any]:
        return {
            "event": event,
            "data": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def send_to_connection(self, connection_id: str, event: str, payload: Any) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.websocket.send_json(self.message(event, payload))
        except Exception as exc:
            logger.warning("Dropping connection %s after failed send: %s", connection_id, exc)
            self.disconnect(connection_id)
            return False
        return True

    async def broadcast(self, event: str, payload: Any, rooms: Iterable[str]) -> int:
        targets = self.members(rooms)
        delivered = 0
        for connection_id in targets:
            if await self.send_to_connection(connection_id, event, payload):
                delivered += 1
        logger.debug("Event %s delivered to %d/%d connections", event, delivered, len(targets))
        return delivered

    def publish(self, event: str, payload: Any, rooms: Iterable[str]) -> None:
        rooms = tuple(rooms)
        if not self.members(rooms):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running loop; event %s dropped", event)
            return
        task = loop.create_task(self.broadcast(event, payload, rooms))
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Event delivery failed: %s", task.exception())

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


class Notifier:
    """Domain events on top of any ``EventPublisher``."""

    def __init__(self, publisher: EventPublisher) -> None:
        self.publisher = publisher

    def attendance_update(self, record: Any) -> None:
        data = _dump(record)
        rooms = [ATTENDANCE_ROOM, *ADMIN_ROOMS]
        employee_id = data.get("employee_id") if isinstance(data, dict) else None
        if employee_id is not None:
            rooms.append(employee_room(employee_id))
        self.publisher.publish("attendance_update", {"type": "punch_update", "data": data}, rooms)

    def attendance_stats_update(self, stats: Any) -> None:
        self.publisher.publish(
            "attendance_stats_update",
            {"type": "stats_update", "data": _dump(stats)},
            [ATTENDANCE_ROOM, *ADMIN_ROOMS],
        )

    def employee_update(self, action: str, employee_id: int, data: Any = None) -> None:
        self.publisher.publish(
            "employee_update",
            {"type": action, "employee_id": employee_id, "data": _dump(data)},
            ADMIN_ROOMS,
        )

    def task_update(self, action: str, task_id: int, data: Any = None) -> None:
        self.publisher.publish(
            "task_update",
            {"type": action, "task_id": task_id, "data": _dump(data)},
            ADMIN_ROOMS,
        )
