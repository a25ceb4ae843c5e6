import logging
import re
from typing import Optional, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, or_, case, func
from sqlalchemy.orm import joinedload

from alumnilink.errors import ValidationError, NotFoundError, ForbiddenError
from alumnilink.models.message import Message, MessageType
from alumnilink.models.user import User

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1000
MAX_CONVERSATION_PAGE_SIZE = 100
MAX_SEARCH_PAGE_SIZE = 50
MIN_SEARCH_QUERY_LENGTH = 2

ATTACHMENT_URL_RE = re.compile(r"^(https?://.+|/uploads/.+)$")


def _check_pagination(page: int, page_size: int, max_page_size: int) -> int:
    if page < 1 or page_size < 1 or page_size > max_page_size:
        raise ValidationError("Invalid pagination parameters")
    return (page - 1) * page_size


def _message_query():
    return (
        select(Message)
        .options(joinedload(Message.sender), joinedload(Message.recipient))
        .execution_options(populate_existing=True)
    )


def _pair_filter(user_a: int, user_b: int):
    return or_(
        and_(Message.sender_id == user_a, Message.recipient_id == user_b),
        and_(Message.sender_id == user_b, Message.recipient_id == user_a),
    )


class MessageRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def send(
        self,
        sender_id: int,
        recipient_id: int,
        content: Optional[str] = "",
        message_type: MessageType = MessageType.TEXT,
        attachment_url: Optional[str] = "",
    ) -> Message:
        """Persist a new message after enforcing the message invariants.

        Recipient existence is checked by the caller through the identity
        store; this method only validates the message itself.
        """
        content = (content or "").strip()
        attachment_url = (attachment_url or "").strip()

        if sender_id == recipient_id:
            raise ValidationError("Cannot send message to yourself")
        if not content and not attachment_url:
            raise ValidationError("Message content cannot be empty if no attachment")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValidationError(f"Message cannot exceed {MAX_CONTENT_LENGTH} characters")
        if attachment_url and not ATTACHMENT_URL_RE.match(attachment_url):
            raise ValidationError("Attachment must be a valid URL")
        try:
            message_type = MessageType(message_type)
        except ValueError:
            raise ValidationError("Message type must be one of: text, image, file")

        message = Message(
            sender_id=sender_id,
            recipient_id=recipient_id,
            content=content,
            message_type=message_type,
            attachment_url=attachment_url,
            is_read=False,
            is_active=True,
        )
        self.db.add(message)
        await self.db.commit()
        logger.info("Message %s sent from user %s to user %s", message.id, sender_id, recipient_id)
        return await self.get_by_id(message.id)

    async def get_by_id(self, message_id: int) -> Optional[Message]:
        result = await self.db.execute(
            _message_query().where(Message.id == message_id)
        )
        return result.scalar_one_or_none()

    async def get_active(self, message_id: int) -> Message:
        message = await self.get_by_id(message_id)
        if message is None or not message.is_active:
            raise NotFoundError("Message not found")
        return message

    async def get_conversation(
        self,
        user_a: int,
        user_b: int,
        page: int = 1,
        page_size: int = 50,
    ) -> List[Message]:
        """Active messages between two users, oldest first."""
        offset = _check_pagination(page, page_size, MAX_CONVERSATION_PAGE_SIZE)

        result = await self.db.execute(
            _message_query().where(
                _pair_filter(user_a, user_b),
                Message.is_active.is_(True),
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
            .offset(offset)
            .limit(page_size)
        )
        return list(result.scalars().all())

    async def list_conversations(self, user_id: int) -> List[Tuple[User, Message, int]]:
        """One ``(counterpart, last_message, unread_count)`` per conversation.

        Active messages touching ``user_id`` are partitioned by the other
        participant; each partition is reduced to its newest message and the
        number of unread messages addressed to ``user_id``. Conversations
        are returned newest first.
        """
        counterpart = case(
            (Message.sender_id == user_id, Message.recipient_id),
            else_=Message.sender_id,
        )
        unread = case(
            (and_(Message.recipient_id == user_id, Message.is_read.is_(False)), 1),
            else_=0,
        )

        ranked = (
            select(
                Message.id.label("message_id"),
                counterpart.label("counterpart_id"),
                func.row_number().over(
                    partition_by=counterpart,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                ).label("position"),
                func.sum(unread).over(partition_by=counterpart).label("unread_count"),
            )
            .where(
                or_(Message.sender_id == user_id, Message.recipient_id == user_id),
                Message.is_active.is_(True),
            )
            .subquery()
        )

        result = await self.db.execute(
            select(Message, User, ranked.c.unread_count)
            .join(ranked, Message.id == ranked.c.message_id)
            .join(User, User.id == ranked.c.counterpart_id)
            .options(joinedload(Message.sender), joinedload(Message.recipient))
            .where(ranked.c.position == 1)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .execution_options(populate_existing=True)
        )
        return [(user, message, int(unread_count or 0)) for message, user, unread_count in result.all()]

    async def mark_read(self, message_id: int, requestor_id: int) -> Message:
        message = await self.get_active(message_id)

        if message.recipient_id != requestor_id:
            raise ForbiddenError("Not authorized to mark this message as read")

        if not message.is_read:
            message.is_read = True
            await self.db.commit()
            message = await self.get_by_id(message_id)

        return message

    async def mark_conversation_read(self, other_user_id: int, self_id: int) -> int:
        """Mark every unread message from ``other_user_id`` to ``self_id`` as read."""
        result = await self.db.execute(
            update(Message)
            .where(
                Message.sender_id == other_user_id,
                Message.recipient_id == self_id,
                Message.is_read.is_(False),
                Message.is_active.is_(True),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def soft_delete(self, message_id: int, requestor_id: int) -> None:
        message = await self.get_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found")

        if message.sender_id != requestor_id:
            raise ForbiddenError("Not authorized to delete this message")

        if message.is_active:
            message.is_active = False
            await self.db.commit()
            logger.info("Message %s deleted by user %s", message_id, requestor_id)

    async def search(
        self,
        user_id: int,
        query: str,
        counterpart_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> List[Message]:
        query = (query or "").strip()
        if len(query) < MIN_SEARCH_QUERY_LENGTH:
            raise ValidationError(
                f"Search query must be at least {MIN_SEARCH_QUERY_LENGTH} characters long"
            )
        offset = _check_pagination(page, page_size, MAX_SEARCH_PAGE_SIZE)

        if counterpart_id is not None:
            participants = _pair_filter(user_id, counterpart_id)
        else:
            participants = or_(Message.sender_id == user_id, Message.recipient_id == user_id)

        result = await self.db.execute(
            _message_query().where(
                participants,
                Message.is_active.is_(True),
                Message.content.icontains(query, autoescape=True),
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset(offset)
            .limit(page_size)
        )
        return list(result.scalars().all())

    async def unread_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Message.id)).where(
                Message.recipient_id == user_id,
                Message.is_read.is_(False),
                Message.is_active.is_(True),
            )
        )
        return result.scalar() or 0
