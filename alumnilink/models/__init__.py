from .base import Base
from .user import User, UserRole, Follow
from .message import Message, MessageType
from .post import Post, PostLike, Comment
from .interview import Interview, Difficulty, InterviewStatus

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Follow",
    "Message",
    "MessageType",
    "Post",
    "PostLike",
    "Comment",
    "Interview",
    "Difficulty",
    "InterviewStatus",
]
