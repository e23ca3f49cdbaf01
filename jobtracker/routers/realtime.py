from __future__ import annotations
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, sessionmaker

from .. import crud, models
from ..auth import get_token_from_connection, require_admin, resolve_user
from ..database import get_db, get_session_factory
from ..errors import NotFound
from ..notifications import NotificationDispatcher
from ..realtime import WebSocketHub, get_dispatcher
from ..schemas import NotificationCreate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _load_user(session_factory: sessionmaker, token: str) -> models.User | None:
    with session_factory() as db:
        return resolve_user(db, token)


def _load_statistics(session_factory: sessionmaker) -> dict:
    with session_factory() as db:
        return crud.job_statistics(db)


def _job_id(message: dict) -> int | None:
    try:
        return int(message["job_id"])
    except (KeyError, TypeError, ValueError):
        return None


async def _handle(
    hub: WebSocketHub, connection_id: str, message: dict, session_factory: sessionmaker
) -> None:
    action = message.get("action")
    if action in ("join_job", "leave_job"):
        job_id = _job_id(message)
        if job_id is None:
            await hub.send_to_connection(connection_id, "Error", {"message": "job_id must be an integer"})
            return
        if action == "join_job":
            channel = hub.join_job(connection_id, job_id)
            await hub.send_to_connection(connection_id, "Subscribed", {"channel": channel})
        else:
            channel = hub.leave_job(connection_id, job_id)
            await hub.send_to_connection(connection_id, "Unsubscribed", {"channel": channel})
    elif action == "request_statistics":
        stats = await run_in_threadpool(_load_statistics, session_factory)
        await hub.send_to_connection(connection_id, "JobStatistics", stats)
    elif action == "ping":
        await hub.send_to_connection(connection_id, "Pong", {})
    else:
        await hub.send_to_connection(connection_id, "Error", {"message": f"Unknown action: {action}"})


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket, session_factory: sessionmaker = Depends(get_session_factory)
):
    hub: WebSocketHub = websocket.app.state.hub

    user = None
    token = get_token_from_connection(websocket)
    if token:
        user = await run_in_threadpool(_load_user, session_factory, token)
        if user is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    user_id = user.id if user is not None else None
    connection_id, channels = await hub.connect(websocket, user_id)
    try:
        await hub.send_to_connection(
            connection_id,
            "Connected",
            {"connection_id": connection_id, "user_id": user_id, "channels": sorted(channels)},
        )
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                message = None
            if not isinstance(message, dict):
                await hub.send_to_connection(connection_id, "Error", {"message": "Expected a JSON object"})
                continue
            try:
                await _handle(hub, connection_id, message, session_factory)
            except NotFound as exc:
                await hub.send_to_connection(connection_id, "Error", {"message": exc.message})
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(connection_id)


@router.post("/api/notifications/broadcast", status_code=status.HTTP_202_ACCEPTED)
def broadcast_notification(
    payload: NotificationCreate,
    background_tasks: BackgroundTasks,
    _: models.User = Depends(require_admin),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    background_tasks.add_task(dispatcher.notify_all, payload.message, payload.level)
    return {"status": "queued"}


@router.post("/api/notifications/users/{user_id}", status_code=status.HTTP_202_ACCEPTED)
def user_notification(
    user_id: int,
    payload: NotificationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    if crud.get_user(db, user_id) is None:
        raise NotFound(f"User {user_id} not found.")
    background_tasks.add_task(dispatcher.notify_user, user_id, payload.message, payload.level)
    return {"status": "queued"}
