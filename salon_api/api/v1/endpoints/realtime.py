"""
WebSocket channel for live dashboards.

Connect to ``/api/v1/ws/attendance?token=<access token>``.  Messages in
both directions are JSON objects ``{"event": ..., "data": ...}``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.deps import get_db
from salon_api.core.security import decode_access_token
from salon_api.models.employee import Employee
from salon_api.models.enums import Role
from salon_api.services.notifier import ConnectionManager, employee_room

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)

_ROLES = {r.value for r in Role}


def _employee_id(data: Any) -> int | None:
    if isinstance(data, dict):
        data = data.get("employee_id")
    try:
        return int(data)
    except (TypeError, ValueError):
        return None


@router.websocket("/ws/attendance")
async def attendance_socket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> None:
    payload = decode_access_token(token) if token else None
    role = payload.get("role") if payload else None
    if payload is None or role not in _ROLES or payload.get("sub") is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager: ConnectionManager = websocket.app.state.connections
    connection_id = await manager.connect(websocket, int(payload["sub"]), role)
    await manager.send_to_connection(
        connection_id, "connected", {"rooms": sorted(manager.rooms_of(connection_id))}
    )

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except (ValueError, KeyError):
                await manager.send_to_connection(connection_id, "error", {"message": "Malformed message"})
                continue
            if not isinstance(message, dict) or not isinstance(message.get("event"), str):
                await manager.send_to_connection(connection_id, "error", {"message": "Malformed message"})
                continue
            await _handle(manager, connection_id, message["event"], message.get("data"), db)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(connection_id)


async def _handle(
    manager: ConnectionManager,
    connection_id: str,
    event: str,
    data: Any,
    db: AsyncSession,
) -> None:
    if event == "ping":
        await manager.send_to_connection(connection_id, "pong", data)
        return

    if event not in ("subscribe_attendance", "unsubscribe_attendance", "get_employee_status"):
        await manager.send_to_connection(connection_id, "error", {"message": f"Unknown event: {event}"})
        return

    employee_id = _employee_id(data)
    if employee_id is None:
        await manager.send_to_connection(connection_id, "error", {"message": "employee_id is required"})
        return

    if event == "subscribe_attendance":
        manager.join(connection_id, employee_room(employee_id))
        await manager.send_to_connection(connection_id, "subscribed", {"employee_id": employee_id})
    elif event == "unsubscribe_attendance":
        manager.leave(connection_id, employee_room(employee_id))
        await manager.send_to_connection(connection_id, "unsubscribed", {"employee_id": employee_id})
    else:
        result = await db.execute(select(Employee.current_status).where(Employee.id == employee_id))
        current = result.scalar_one_or_none()
        # Don't hold a transaction open for the life of the socket
        await db.rollback()
        if current is None:
            await manager.send_to_connection(connection_id, "error", {"message": "Employee not found"})
            return
        await manager.send_to_connection(
            connection_id,
            "employee_status_response",
            {"employee_id": employee_id, "status": current},
        )
