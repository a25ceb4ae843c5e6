from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from alumnilink.auth import get_current_active_user
from alumnilink.database import get_db
from alumnilink.errors import ValidationError
from alumnilink.models.user import User
from alumnilink.repositories.message_repository import MessageRepository
from alumnilink.repositories.user_repository import UserRepository
from alumnilink.schemas.message import MessageCreate, serialize_message
from alumnilink.schemas.user import user_summary
from alumnilink.services.file_storage import FileStorage
from alumnilink.websocket_manager import DeliveryRelay, get_relay

router = APIRouter()


def get_file_storage(request: Request) -> FileStorage:
    return request.app.state.file_storage


@router.post("/upload")
async def upload_file(
    file: UploadFile = File(...),
    storage: FileStorage = Depends(get_file_storage),
    current_user: User = Depends(get_current_active_user)
):
    url = await storage.save(file)
    return {"url": url, "message": "File uploaded successfully"}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    relay: DeliveryRelay = Depends(get_relay),
    current_user: User = Depends(get_current_active_user)
):
    """Persist a message; the push to a connected recipient runs after the response."""
    if message_data.recipient == current_user.id:
        raise ValidationError("Cannot send message to yourself")

    await UserRepository(db).get_active_by_id(message_data.recipient)

    message = await MessageRepository(db).send(
        sender_id=current_user.id,
        recipient_id=message_data.recipient,
        content=message_data.content,
        message_type=message_data.message_type,
        attachment_url=message_data.attachment_url,
    )

    payload = serialize_message(message)
    background_tasks.add_task(relay.deliver, message.recipient_id, payload)

    return {"message": "Message sent successfully", "data": payload}


@router.get("/conversations")
async def get_conversations(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    conversations = await MessageRepository(db).list_conversations(current_user.id)
    return [
        {
            "counterpart": user_summary(counterpart),
            "lastMessage": serialize_message(last_message, current_user.id),
            "unreadCount": unread_count,
        }
        for counterpart, last_message, unread_count in conversations
    ]


@router.get("/unread-count")
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return {"unreadCount": await MessageRepository(db).unread_count(current_user.id)}


@router.get("/search")
async def search_messages(
    query: str = Query(""),
    user_id: Optional[int] = Query(None, alias="userId"),
    page: int = Query(1),
    limit: int = Query(20),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    messages = await MessageRepository(db).search(
        current_user.id, query, counterpart_id=user_id, page=page, page_size=limit
    )
    return [serialize_message(message, current_user.id) for message in messages]


@router.get("/conversation/{user_id}")
async def get_conversation(
    user_id: int,
    page: int = Query(1),
    limit: int = Query(50),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Conversation with ``user_id``; opening it marks their messages as read."""
    if user_id == current_user.id:
        raise ValidationError("Cannot get conversation with yourself")

    await UserRepository(db).get_active_by_id(user_id)

    message_repo = MessageRepository(db)
    messages = await message_repo.get_conversation(current_user.id, user_id, page, limit)
    await message_repo.mark_conversation_read(user_id, current_user.id)

    return [serialize_message(message, current_user.id) for message in messages]


@router.put("/conversation/{user_id}/read")
async def mark_conversation_read(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if user_id == current_user.id:
        raise ValidationError("Cannot mark conversation with yourself as read")

    modified = await MessageRepository(db).mark_conversation_read(user_id, current_user.id)
    return {"message": "Conversation marked as read", "modifiedCount": modified}


@router.put("/{message_id}/read")
async def mark_message_read(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    message = await MessageRepository(db).mark_read(message_id, current_user.id)
    return {"message": "Message marked as read", "data": serialize_message(message, current_user.id)}


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await MessageRepository(db).soft_delete(message_id, current_user.id)
    return {"message": "Message deleted successfully"}
