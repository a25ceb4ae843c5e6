from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from alumnilink.auth import get_current_active_user
from alumnilink.database import get_db
from alumnilink.errors import ValidationError
from alumnilink.models.user import User
from alumnilink.repositories.user_repository import UserRepository
from alumnilink.schemas.user import ProfileUpdate, current_year, user_profile, user_summary

router = APIRouter()

MAX_SKILLS = 20


@router.get("/search")
async def search_users(
    query: str = Query(""),
    role: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = query.strip()
    if not query:
        raise ValidationError("Search query must be at least 1 character long")

    users = await UserRepository(db).search(query, role=role, exclude_id=current_user.id)
    return [user_summary(user) for user in users]


@router.get("/suggestions")
async def get_suggestions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    users = await UserRepository(db).suggestions(current_user)
    return [{**user_summary(user), "bio": user.bio, "skills": user.skills or []} for user in users]


@router.put("/profile")
async def update_profile(
    profile: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    fields = profile.model_dump(exclude_unset=True)

    if "name" in fields:
        if not (fields["name"] or "").strip():
            raise ValidationError("Name cannot be empty")
        fields["name"] = fields["name"].strip()
    if fields.get("graduation_year") is not None:
        if not 1950 <= fields["graduation_year"] <= current_year() + 10:
            raise ValidationError("Invalid graduation year")
    if "skills" in fields:
        skills = [skill.strip() for skill in fields["skills"] or [] if skill.strip()]
        if any(len(skill) > 50 for skill in skills):
            raise ValidationError("Each skill cannot exceed 50 characters")
        fields["skills"] = skills[:MAX_SKILLS]
    for key in ("bio", "current_position", "company", "profile_picture"):
        if key in fields:
            fields[key] = (fields[key] or "").strip()

    user_repo = UserRepository(db)
    user = await user_repo.update(current_user, fields)
    return {
        "message": "Profile updated successfully",
        "user": user_profile(
            user,
            follower_count=await user_repo.follower_count(user.id),
            following_count=await user_repo.following_count(user.id),
        ),
    }


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    user_repo = UserRepository(db)
    user = await user_repo.get_active_by_id(user_id)
    return {
        **user_profile(
            user,
            follower_count=await user_repo.follower_count(user.id),
            following_count=await user_repo.following_count(user.id),
        ),
        "isFollowing": await user_repo.is_following(current_user.id, user.id),
    }


@router.post("/{user_id}/follow")
async def toggle_follow(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    user_repo = UserRepository(db)
    following = await user_repo.toggle_follow(current_user.id, user_id)
    return {
        "message": "User followed successfully" if following else "User unfollowed successfully",
        "isFollowing": following,
        "followerCount": await user_repo.follower_count(user_id),
        "followingCount": await user_repo.following_count(current_user.id),
    }


@router.get("/{user_id}/followers")
async def get_followers(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    user_repo = UserRepository(db)
    await user_repo.get_active_by_id(user_id)
    return [user_summary(user) for user in await user_repo.get_followers(user_id)]


@router.get("/{user_id}/following")
async def get_following(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    user_repo = UserRepository(db)
    await user_repo.get_active_by_id(user_id)
    return [user_summary(user) for user in await user_repo.get_following(user_id)]
