import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool

from backoffice.core.guards import Roles
from backoffice.core.realtime import REALTIME_TABLES, change_feed
from backoffice.services.auth_service import get_current_user
from backoffice.utils import database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


def _resolve_viewer(token: Optional[str]):
    db = database.SessionLocal()
    try:
        identity = get_current_user(db, token)
        if identity is None:
            return None
        return {"user_id": identity.user_id, "role": identity.role, "branch_id": identity.branch_id}
    finally:
        db.close()


def _visible(viewer: dict, record: dict) -> bool:
    if viewer["role"] == Roles.ADMIN:
        return True
    if viewer["role"] == Roles.SUB_ADMIN:
        return record.get("branch_id") == viewer["branch_id"]
    return record.get("agent_id") == viewer["user_id"]


@router.websocket("/realtime/{table}")
async def subscribe_changes(websocket: WebSocket, table: str, token: Optional[str] = None, event: str = "*"):
    """
    Streams committed changes of one table:
        {"table": ..., "eventType": "INSERT" | "UPDATE" | "DELETE", "new": {...}}
    Staff only see rows of their own scope.
    """
    viewer = await run_in_threadpool(_resolve_viewer, token)
    if viewer is None or table not in REALTIME_TABLES:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_change(payload: dict):
        if _visible(viewer, payload["new"]):
            # commits happen on threadpool workers
            loop.call_soon_threadsafe(queue.put_nowait, payload)

    try:
        sub = change_feed.subscribe(table, on_change, event)
    except ValueError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info("User %s subscribed to %s (%s)", viewer["user_id"], table, event)

    async def pump():
        while True:
            payload = await queue.get()
            await websocket.send_json(jsonable_encoder(payload))

    sender = asyncio.create_task(pump())
    try:
        # client messages are ignored; the loop ends on disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("User %s left %s", viewer["user_id"], table)
    finally:
        sub.unsubscribe()
        sender.cancel()
