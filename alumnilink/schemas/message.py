from typing import Optional

from pydantic import BaseModel, Field

from alumnilink.models.message import Message, MessageType
from alumnilink.schemas.user import user_summary, utc_isoformat


class MessageCreate(BaseModel):
    recipient: int
    content: Optional[str] = ""
    message_type: MessageType = Field(MessageType.TEXT, alias="messageType")
    attachment_url: Optional[str] = Field("", alias="attachmentUrl")

    class Config:
        populate_by_name = True


class WebSocketAction(BaseModel):
    action: str
    data: dict = {}


def serialize_message(message: Message, viewer_id: Optional[int] = None) -> dict:
    data = {
        "id": message.id,
        "sender": user_summary(message.sender),
        "recipient": user_summary(message.recipient),
        "content": message.content,
        "messageType": message.message_type.value,
        "attachmentUrl": message.attachment_url,
        "read": message.is_read,
        "isActive": message.is_active,
        "conversationId": message.conversation_id,
        "createdAt": utc_isoformat(message.created_at),
        "updatedAt": utc_isoformat(message.updated_at),
    }
    if viewer_id is not None:
        data["isMine"] = message.sender_id == viewer_id
    return data
