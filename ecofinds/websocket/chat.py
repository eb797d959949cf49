import json
import logging
from typing import Dict, Set

from fastapi import WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from ecofinds.dependencies import resolve_user
from ecofinds.exceptions import AppError
from ecofinds.schemas.chat import MessageResponse
from ecofinds.schemas.validation import validate_payload
from ecofinds.services.audit_log_service import AuditLogService
from ecofinds.services.chat_service import ChatService, message_out

logger = logging.getLogger(__name__)


# in-memory manager
class ConnectionManager:
    def __init__(self):
        # room_id -> set[WebSocket]
        self.by_room: Dict[int, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket):
        await websocket.accept()

    def subscribe(self, room_id: int, websocket: WebSocket):
        self.by_room.setdefault(room_id, set()).add(websocket)

    def unsubscribe(self, room_id: int, websocket: WebSocket):
        sockets = self.by_room.get(room_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.by_room[room_id]

    def disconnect(self, websocket: WebSocket):
        for room_id in list(self.by_room):
            self.unsubscribe(room_id, websocket)

    async def _send(self, sockets: Set[WebSocket], event: dict):
        payload = json.dumps(event, default=str)
        dead = []
        for ws in list(sockets):
            try:
                await ws.send_text(payload)
            except (RuntimeError, WebSocketDisconnect) as exc:
                logger.warning("Dropping dead websocket: %s", exc)
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)

    async def send_to_room(self, room_id: int, event: dict):
        if room_id in self.by_room:
            await self._send(self.by_room[room_id], event)


manager = ConnectionManager()


def new_message_event(room_id: int, message: MessageResponse) -> dict:
    return {
        "type": "new_message",
        "room_id": room_id,
        "message": message.model_dump(mode="json"),
    }


async def broadcast_message(room_id: int, message: MessageResponse):
    await manager.send_to_room(room_id, new_message_event(room_id, message))


async def _send_error(websocket: WebSocket, message: str, errors=None):
    frame = {"type": "error", "message": message}
    if errors:
        frame["errors"] = errors
    await websocket.send_json(frame)


async def _handle_frame(websocket: WebSocket, db: Session, user, frame: dict):
    chat = ChatService(db)
    frame_type = frame.get("type")
    room_id = frame.get("room_id")

    if frame_type not in ("subscribe", "unsubscribe", "message", "read"):
        await _send_error(websocket, f"Unknown frame type: {frame_type}")
        return
    if not isinstance(room_id, int):
        await _send_error(websocket, "room_id is required")
        return

    if frame_type == "unsubscribe":
        manager.unsubscribe(room_id, websocket)
        await websocket.send_json({"type": "unsubscribed", "room_id": room_id})
        return

    try:
        if frame_type == "subscribe":
            chat.get_room_for(user.id, room_id)
            manager.subscribe(room_id, websocket)
            await websocket.send_json({"type": "subscribed", "room_id": room_id})

        elif frame_type == "message":
            data, errors = validate_payload(
                "message",
                {
                    "message": frame.get("message", ""),
                    "message_type": frame.get("message_type", "text"),
                    "attachment_url": frame.get("attachment_url"),
                },
            )
            if errors:
                await _send_error(websocket, "Validation failed", errors)
                return
            message = chat.send_message(user, room_id, data)
            await broadcast_message(room_id, message_out(message))

        elif frame_type == "read":
            data, errors = validate_payload(
                "mark_read", {"message_ids": frame.get("message_ids")}
            )
            if errors:
                await _send_error(websocket, "Validation failed", errors)
                return
            message_ids = data.message_ids or None
            updated = chat.mark_read(user, room_id, message_ids)
            await manager.send_to_room(
                room_id,
                {
                    "type": "read_receipt",
                    "room_id": room_id,
                    "message_ids": message_ids,
                    "updated": updated,
                    "by": user.id,
                },
            )
    except AppError as exc:
        db.rollback()
        await _send_error(websocket, exc.message)


async def chat_websocket_multi(websocket: WebSocket, db: Session):
    """One connection, many rooms.

    Frames (JSON):
    - {"type": "subscribe", "room_id": 1}
    - {"type": "unsubscribe", "room_id": 1}
    - {"type": "message", "room_id": 1, "message": "Hello"}
    - {"type": "read", "room_id": 1, "message_ids": [1, 2]}
    """
    user = resolve_user(db, websocket.query_params.get("token"))
    if user is None:
        await websocket.close(code=4401)
        return

    user_id = user.id
    await manager.connect(websocket)
    AuditLogService().create_log(
        db=db,
        action="chat.ws_connect",
        resource_type="chat",
        user_id=user_id,
        status_code=101,
    )

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                await _send_error(websocket, "Frames must be JSON objects")
                continue
            if not isinstance(frame, dict):
                await _send_error(websocket, "Frames must be JSON objects")
                continue
            await _handle_frame(websocket, db, user, frame)
    except WebSocketDisconnect:
        logger.info("Websocket closed for user %s", user_id)
    finally:
        manager.disconnect(websocket)
