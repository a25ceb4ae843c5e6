from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, EmailStr, Field

from alumnilink.models.user import User, UserRole


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class ChangePassword(BaseModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword", min_length=6)

    class Config:
        populate_by_name = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    skills: Optional[List[str]] = None
    graduation_year: Optional[int] = Field(None, alias="graduationYear")
    current_position: Optional[str] = Field(None, alias="currentPosition", max_length=100)
    company: Optional[str] = Field(None, max_length=100)
    profile_picture: Optional[str] = Field(None, alias="profilePicture")

    class Config:
        populate_by_name = True


def utc_isoformat(value: Optional[datetime]) -> Optional[str]:
    """Timestamps are stored as naive UTC; mark them as such on the wire."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat() + "Z"
    return value.isoformat()


def user_summary(user: User) -> dict:
    """The short form used inside messages, posts and conversation listings."""
    return {
        "id": user.id,
        "name": user.name,
        "avatar": user.profile_picture,
        "role": user.role.value,
    }


def user_profile(user: User, follower_count: int = 0, following_count: int = 0) -> dict:
    return {
        **user_summary(user),
        "email": user.email,
        "profilePicture": user.profile_picture,
        "bio": user.bio,
        "skills": user.skills or [],
        "graduationYear": user.graduation_year,
        "currentPosition": user.current_position,
        "company": user.company,
        "isActive": user.is_active,
        "lastLogin": utc_isoformat(user.last_login),
        "createdAt": utc_isoformat(user.created_at),
        "followerCount": follower_count,
        "followingCount": following_count,
    }


def current_year() -> int:
    return datetime.utcnow().year
