from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, ForeignKey, Text, Boolean, String, Enum, Index
from sqlalchemy.orm import relationship
from .base import BaseModel


class MessageType(str, PyEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


def conversation_id(user_a: int, user_b: int) -> str:
    """Order-independent identifier for the conversation between two users."""
    return "_".join(sorted([str(user_a), str(user_b)]))


class Message(BaseModel):
    __tablename__ = "messages"

    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, default="", nullable=False)
    message_type = Column(
        Enum(MessageType, values_callable=lambda e: [m.value for m in e]),
        default=MessageType.TEXT,
        nullable=False,
    )
    attachment_url = Column(String(500), default="", nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    # Soft delete flag; rows are never removed
    is_active = Column(Boolean, default=True, nullable=False)

    sender = relationship("User", foreign_keys=[sender_id], back_populates="sent_messages")
    recipient = relationship("User", foreign_keys=[recipient_id], back_populates="received_messages")

    __table_args__ = (
        Index("ix_messages_pair_created", "sender_id", "recipient_id", "created_at"),
        Index("ix_messages_recipient_read", "recipient_id", "is_read"),
    )

    @property
    def conversation_id(self) -> str:
        return conversation_id(self.sender_id, self.recipient_id)
