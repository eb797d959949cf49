import logging
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ecofinds.exceptions import DomainConflict, Forbidden, NotFound
from ecofinds.models.chat import ChatRoom, Message, utc_now
from ecofinds.models.product import Product, ProductStatus
from ecofinds.models.report import Report, ReportReason, ReportType
from ecofinds.models.user import User
from ecofinds.schemas.chat import MessageCreate, MessageResponse, RoomProduct, RoomResponse
from ecofinds.schemas.user import UserSummary

logger = logging.getLogger(__name__)


def message_out(message: Message) -> MessageResponse:
    return MessageResponse.model_validate(message)


def room_product(product: Optional[Product]) -> Optional[RoomProduct]:
    if product is None:
        return None
    return RoomProduct(
        id=product.id,
        title=product.title,
        price=float(product.price),
        status=product.status.value,
        primary_image=product.primary_image,
    )


class ChatService:
    def __init__(self, db: Session):
        self.db = db

    # ---------- rooms ----------

    def get_room_for(self, user_id: int, room_id: int) -> ChatRoom:
        """Load a room the user participates in: 404 if missing, 403 otherwise."""
        room = self.db.get(ChatRoom, room_id)
        if room is None:
            raise NotFound("Chat room not found")
        if not room.has_participant(user_id):
            raise Forbidden("Access denied to this chat room")
        return room

    def get_or_create_room(self, buyer: User, product_id: int, seller_id: int) -> ChatRoom:
        if seller_id == buyer.id:
            raise DomainConflict("You cannot chat with yourself")

        product = self.db.execute(
            select(Product).where(
                Product.id == product_id,
                Product.seller_id == seller_id,
                Product.status == ProductStatus.APPROVED,
            )
        ).scalar_one_or_none()
        if product is None:
            raise NotFound("Product not found or not available")

        existing = self._find_room(buyer.id, seller_id, product_id)
        if existing is not None:
            return existing

        room = ChatRoom(buyer_id=buyer.id, seller_id=seller_id, product_id=product_id)
        self.db.add(room)
        try:
            self.db.commit()
        except IntegrityError:
            # lost the race to a concurrent create of the same room
            self.db.rollback()
            return self._find_room(buyer.id, seller_id, product_id)
        self.db.refresh(room)
        return room

    def _find_room(self, buyer_id: int, seller_id: int, product_id: int) -> Optional[ChatRoom]:
        return self.db.execute(
            select(ChatRoom).where(
                ChatRoom.buyer_id == buyer_id,
                ChatRoom.seller_id == seller_id,
                ChatRoom.product_id == product_id,
            )
        ).scalar_one_or_none()

    def room_summary(
        self,
        room: ChatRoom,
        user_id: int,
        last_message: Optional[Message] = None,
        unread_count: int = 0,
    ) -> RoomResponse:
        other = room.seller if user_id == room.buyer_id else room.buyer
        return RoomResponse(
            id=room.id,
            buyer_id=room.buyer_id,
            seller_id=room.seller_id,
            product_id=room.product_id,
            last_message_at=room.last_message_at,
            created_at=room.created_at,
            product=room_product(room.product),
            other_user=UserSummary.model_validate(other) if other else None,
            last_message=message_out(last_message) if last_message else None,
            unread_count=unread_count,
        )

    def list_rooms(self, user: User) -> List[RoomResponse]:
        rooms = (
            self.db.execute(
                select(ChatRoom)
                .where(or_(ChatRoom.buyer_id == user.id, ChatRoom.seller_id == user.id))
                .options(
                    selectinload(ChatRoom.product).selectinload(Product.images),
                    selectinload(ChatRoom.buyer),
                    selectinload(ChatRoom.seller),
                )
                .order_by(ChatRoom.last_message_at.desc(), ChatRoom.id.desc())
            )
            .scalars()
            .all()
        )
        if not rooms:
            return []
        room_ids = [room.id for room in rooms]

        unread = dict(
            self.db.execute(
                select(Message.room_id, func.count(Message.id))
                .where(
                    Message.room_id.in_(room_ids),
                    Message.sender_id != user.id,
                    Message.is_read.is_(False),
                )
                .group_by(Message.room_id)
            ).all()
        )

        latest_ids = (
            select(func.max(Message.id))
            .where(Message.room_id.in_(room_ids))
            .group_by(Message.room_id)
        )
        last_messages = {
            message.room_id: message
            for message in self.db.execute(
                select(Message)
                .where(Message.id.in_(latest_ids))
                .options(selectinload(Message.sender))
            ).scalars()
        }

        return [
            self.room_summary(
                room,
                user.id,
                last_message=last_messages.get(room.id),
                unread_count=unread.get(room.id, 0),
            )
            for room in rooms
        ]

    # ---------- messages ----------

    def _mark_room_read(self, room_id: int, reader_id: int) -> int:
        result = self.db.execute(
            update(Message)
            .where(
                Message.room_id == room_id,
                Message.sender_id != reader_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def read_messages(
        self, user: User, room_id: int, page: int = 1, limit: int = 50
    ) -> List[MessageResponse]:
        """Return one page (oldest first) and mark the other party's messages read."""
        self.get_room_for(user.id, room_id)
        newest_first = (
            self.db.execute(
                select(Message)
                .where(Message.room_id == room_id)
                .options(selectinload(Message.sender))
                .order_by(Message.created_at.desc(), Message.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        messages = [message_out(m) for m in reversed(newest_first)]
        self._mark_room_read(room_id, user.id)
        self.db.commit()
        return messages

    def send_message(self, user: User, room_id: int, data: MessageCreate) -> Message:
        room = self.get_room_for(user.id, room_id)
        message = Message(
            room_id=room.id,
            sender_id=user.id,
            message=data.message,
            message_type=data.message_type,
            attachment_url=data.attachment_url,
        )
        self.db.add(message)
        room.last_message_at = utc_now()
        self.db.commit()
        self.db.refresh(message)
        return message

    def mark_read(self, user: User, room_id: int, message_ids: Optional[List[int]] = None) -> int:
        self.get_room_for(user.id, room_id)
        if message_ids:
            result = self.db.execute(
                update(Message)
                .where(
                    Message.room_id == room_id,
                    Message.sender_id != user.id,
                    Message.id.in_(message_ids),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount
        else:
            updated = self._mark_room_read(room_id, user.id)
        self.db.commit()
        return updated

    def unread_count(self, user: User) -> int:
        return self.db.execute(
            select(func.count(Message.id))
            .join(ChatRoom, Message.room_id == ChatRoom.id)
            .where(
                or_(ChatRoom.buyer_id == user.id, ChatRoom.seller_id == user.id),
                Message.sender_id != user.id,
                Message.is_read.is_(False),
            )
        ).scalar_one()

    def delete_message(self, user: User, message_id: int) -> int:
        message = self.db.get(Message, message_id)
        if message is None or message.sender_id != user.id:
            raise NotFound("Message not found or you cannot delete this message")
        room_id = message.room_id
        self.db.delete(message)
        self.db.commit()
        return room_id

    def report_message(
        self,
        user: User,
        message_id: int,
        reason: ReportReason,
        description: Optional[str] = None,
    ) -> Report:
        message = self.db.get(Message, message_id)
        if message is None or not message.room.has_participant(user.id):
            raise NotFound("Message not found or access denied")

        room = message.room
        # a report on your own message targets the other participant
        if message.sender_id == user.id:
            reported_user_id = room.other_participant_id(user.id)
        else:
            reported_user_id = message.sender_id

        report = Report(
            reporter_id=user.id,
            reported_user_id=reported_user_id,
            report_type=ReportType.MESSAGE,
            reason=reason,
            description=description,
        )
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report
