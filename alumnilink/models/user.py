from enum import Enum as PyEnum

from sqlalchemy import Column, String, Boolean, Integer, DateTime, Text, JSON, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class UserRole(str, PyEnum):
    STUDENT = "Student"
    ALUMNI = "Alumni"


class User(BaseModel):
    __tablename__ = "users"

    name = Column(String(100), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]), nullable=False, index=True)
    profile_picture = Column(String(500), default="", nullable=False)
    bio = Column(Text, default="", nullable=False)
    skills = Column(JSON, default=list, nullable=False)
    graduation_year = Column(Integer, nullable=True)
    current_position = Column(String(100), default="", nullable=False)
    company = Column(String(100), default="", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    sent_messages = relationship("Message", foreign_keys="Message.sender_id", back_populates="sender")
    received_messages = relationship("Message", foreign_keys="Message.recipient_id", back_populates="recipient")
    posts = relationship("Post", back_populates="author")
    interviews = relationship("Interview", back_populates="user")


class Follow(BaseModel):
    __tablename__ = "follows"

    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    followed_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    follower = relationship("User", foreign_keys=[follower_id])
    followed = relationship("User", foreign_keys=[followed_id])

    __table_args__ = (
        UniqueConstraint("follower_id", "followed_id", name="unique_follow_edge"),
    )
