"""
WebSocket endpoint for live group updates.

Client frames:
    {"type": "join", "group_id": "..."}   watch one group (replaces any previous one)
    {"type": "leave"}                     stop watching the current group
    {"type": "ping"}

Server frames: {"type": "event", kind, op, group_id, user_id, payload} for
changes, plus joined/left/pong/error replies. Personal notifications arrive
on every connection of the user regardless of the joined group. A
{"type": "resync"} frame means frames were dropped for a slow client and
state should be re-fetched over HTTP.
"""
import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from app.core.dependencies import check_group_member
from app.core.exceptions import AppError
from app.modules.realtime.channel import RealtimeChannel, Subscription
from app.modules.realtime.events import ChangeEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

POLICY_VIOLATION = 1008
MAX_PENDING_FRAMES = 256


class RealtimeConnection:
    """One socket: a private outbound queue fed by channel handlers and drained by a sender task.

    The queue is bounded. When a slow client lets it fill up, further frames
    are dropped and, once the backlog is flushed, a single resync frame tells
    the client to re-fetch over HTTP.
    """

    def __init__(
        self,
        websocket: WebSocket,
        channel: RealtimeChannel,
        user: Dict[str, Any],
        max_pending: int = MAX_PENDING_FRAMES,
    ):
        self.websocket = websocket
        self.channel = channel
        self.user = user
        self.id = str(uuid.uuid4())
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.group_id: Optional[str] = None
        self.dropped = 0
        self._group_sub: Optional[Subscription] = None

    def _put(self, frame: Dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            if not self.dropped:
                logger.warning(f"Realtime connection {self.id} is lagging; dropping frames until it catches up")
            self.dropped += 1

    def enqueue(self, event: ChangeEvent) -> None:
        self._put(event.to_frame())

    def reply(self, frame: Dict[str, Any]) -> None:
        self._put(frame)

    async def pump(self) -> None:
        while True:
            frame = await self.queue.get()
            await self.websocket.send_json(frame)
            if self.dropped and self.queue.empty():
                logger.info(f"Realtime connection {self.id} dropped {self.dropped} frame(s); asking for resync")
                self.dropped = 0
                await self.websocket.send_json({"type": "resync", "group_id": self.group_id})

    def join(self, group_id: str) -> None:
        self.leave()
        self._group_sub = self.channel.subscribe(group_id, self.enqueue, connection_id=self.id)
        self.group_id = group_id

    def leave(self) -> Optional[str]:
        left = self.group_id
        if self._group_sub is not None:
            self._group_sub.unsubscribe()
        self._group_sub = None
        self.group_id = None
        return left


async def _authenticate(websocket: WebSocket, token: str) -> Optional[Dict[str, Any]]:
    auth_service = getattr(websocket.app.state, "auth_service", None)
    if auth_service is None or not token:
        return None
    try:
        return await auth_service.get_current_user(token)
    except HTTPException:
        return None


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str = Query("")):
    user = await _authenticate(websocket, token)
    if user is None:
        await websocket.close(code=POLICY_VIOLATION)
        return
    await websocket.accept()

    state = websocket.app.state
    connection = RealtimeConnection(websocket, state.channel, user)
    state.channel.subscribe_user(user["id"], connection.enqueue, connection_id=connection.id)
    sender = asyncio.create_task(connection.pump())
    logger.info(f"Realtime connection {connection.id} opened for user {user['id']}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                connection.reply({"type": "error", "detail": "Frames must be JSON objects"})
                continue
            if not isinstance(frame, dict):
                connection.reply({"type": "error", "detail": "Frames must be JSON objects"})
                continue
            await _handle_frame(connection, frame, state.gateway)
    except WebSocketDisconnect:
        logger.info(f"Realtime connection {connection.id} closed")
    finally:
        state.channel.disconnect(connection.id)
        await _stop_sender(connection, sender)


async def _stop_sender(connection: RealtimeConnection, sender: asyncio.Task) -> None:
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.warning(f"Realtime connection {connection.id} sender failed: {e}")


async def _handle_frame(connection: RealtimeConnection, frame: Dict[str, Any], gateway) -> None:
    frame_type = frame.get("type")
    if frame_type == "join":
        group_id = frame.get("group_id")
        if not group_id:
            connection.reply({"type": "error", "detail": "group_id is required"})
            return
        try:
            await check_group_member(group_id, connection.user, gateway)
        except HTTPException as e:
            connection.reply({"type": "error", "detail": e.detail, "group_id": group_id})
            return
        except AppError as e:
            connection.reply({"type": "error", "detail": e.message, "group_id": group_id})
            return
        connection.join(group_id)
        connection.reply({"type": "joined", "group_id": group_id})
    elif frame_type == "leave":
        connection.reply({"type": "left", "group_id": connection.leave()})
    elif frame_type == "ping":
        connection.reply({"type": "pong"})
    else:
        connection.reply({"type": "error", "detail": f"Unknown frame type: {frame_type}"})
