import logging
from typing import Optional

from fastapi import APIRouter, Query, status

from ecofinds.dependencies import CurrentUser, db_dependency
from ecofinds.schemas.chat import MarkMessagesRead, MessageCreate, MessageReport, RoomCreate
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.report import ReportResponse
from ecofinds.services.chat_service import ChatService, message_out
from ecofinds.websocket.chat import broadcast_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/rooms", status_code=status.HTTP_200_OK)
def list_rooms(db: db_dependency, user: CurrentUser):
    return envelope({"rooms": ChatService(db).list_rooms(user)})


@router.post("/room", status_code=status.HTTP_200_OK)
def get_or_create_room(body: RoomCreate, db: db_dependency, user: CurrentUser):
    chat = ChatService(db)
    room = chat.get_or_create_room(user, body.product_id, body.seller_id)
    return envelope({"room": chat.room_summary(room, user.id)})


@router.get("/room/{room_id}/messages", status_code=status.HTTP_200_OK)
def room_messages(
    room_id: int,
    db: db_dependency,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
):
    messages = ChatService(db).read_messages(user, room_id, page, limit)
    return envelope(
        {"messages": messages, "pagination": pagination(messages, page, limit)}
    )


@router.post("/room/{room_id}/message", status_code=status.HTTP_201_CREATED)
async def send_message(
    room_id: int, body: MessageCreate, db: db_dependency, user: CurrentUser
):
    message = message_out(ChatService(db).send_message(user, room_id, body))
    # the row is committed; a failed push never fails the request
    try:
        await broadcast_message(room_id, message)
    except Exception as exc:
        logger.warning("Broadcast to room %s failed: %s", room_id, exc)
    return envelope({"message": message}, message="Message sent")


@router.get("/unread-count", status_code=status.HTTP_200_OK)
def unread_count(db: db_dependency, user: CurrentUser):
    return envelope({"count": ChatService(db).unread_count(user)})


@router.put("/room/{room_id}/read", status_code=status.HTTP_200_OK)
def mark_room_read(
    room_id: int,
    db: db_dependency,
    user: CurrentUser,
    body: Optional[MarkMessagesRead] = None,
):
    message_ids = body.message_ids if body else None
    updated = ChatService(db).mark_read(user, room_id, message_ids)
    return envelope({"updated": updated}, message="Messages marked as read")


@router.delete("/message/{message_id}", status_code=status.HTTP_200_OK)
def delete_message(message_id: int, db: db_dependency, user: CurrentUser):
    ChatService(db).delete_message(user, message_id)
    return envelope(message="Message deleted successfully")


@router.post("/message/{message_id}/report", status_code=status.HTTP_201_CREATED)
def report_message(
    message_id: int, body: MessageReport, db: db_dependency, user: CurrentUser
):
    report = ChatService(db).report_message(user, message_id, body.reason, body.description)
    return envelope(
        {"report": ReportResponse.model_validate(report)},
        message="Message reported successfully",
    )
