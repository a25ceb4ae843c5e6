from datetime import datetime
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete

from alumnilink.errors import ValidationError, NotFoundError
from alumnilink.models.user import User, UserRole, Follow

SEARCH_LIMIT = 20
SUGGESTION_LIMIT = 10


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, name: str, email: str, hashed_password: str, role: UserRole) -> User:
        db_user = User(
            name=name.strip(),
            email=email.lower(),
            hashed_password=hashed_password,
            role=role,
            skills=[],
            last_login=datetime.utcnow(),
        )
        self.db.add(db_user)
        await self.db.commit()
        await self.db.refresh(db_user)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_active_by_id(self, user_id: int) -> User:
        user = await self.get_by_id(user_id)
        if not user or not user.is_active:
            raise NotFoundError("User not found")
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def exists_by_email(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def update(self, user: User, fields: dict) -> User:
        for field, value in fields.items():
            setattr(user, field, value)

        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def touch_last_login(self, user: User) -> User:
        return await self.update(user, {"last_login": datetime.utcnow()})

    async def search(self, query: str, role: Optional[str] = None, exclude_id: Optional[int] = None) -> List[User]:
        statement = select(User).where(
            User.is_active.is_(True),
            User.name.icontains(query, autoescape=True),
        )
        if role and role != "all":
            try:
                statement = statement.where(User.role == UserRole(role))
            except ValueError:
                raise ValidationError("Role must be either Student or Alumni")
        if exclude_id is not None:
            statement = statement.where(User.id != exclude_id)

        result = await self.db.execute(
            statement.order_by(User.created_at.desc()).limit(SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def suggestions(self, user: User) -> List[User]:
        """Active users the given user does not follow yet, newest first."""
        following = select(Follow.followed_id).where(Follow.follower_id == user.id)
        result = await self.db.execute(
            select(User).where(
                User.is_active.is_(True),
                User.id != user.id,
                User.id.not_in(following),
            )
            .order_by(User.created_at.desc())
            .limit(SUGGESTION_LIMIT)
        )
        return list(result.scalars().all())

    # Follow graph

    async def is_following(self, follower_id: int, followed_id: int) -> bool:
        result = await self.db.execute(
            select(Follow.id).where(
                Follow.follower_id == follower_id,
                Follow.followed_id == followed_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def toggle_follow(self, follower_id: int, followed_id: int) -> bool:
        """Follow or unfollow; returns the new following state."""
        if follower_id == followed_id:
            raise ValidationError("You cannot follow yourself")

        await self.get_active_by_id(followed_id)

        if await self.is_following(follower_id, followed_id):
            await self.db.execute(
                delete(Follow).where(
                    Follow.follower_id == follower_id,
                    Follow.followed_id == followed_id,
                )
            )
            await self.db.commit()
            return False

        self.db.add(Follow(follower_id=follower_id, followed_id=followed_id))
        await self.db.commit()
        return True

    async def follower_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Follow.id)).where(Follow.followed_id == user_id)
        )
        return result.scalar() or 0

    async def following_count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Follow.id)).where(Follow.follower_id == user_id)
        )
        return result.scalar() or 0

    async def get_followers(self, user_id: int) -> List[User]:
        result = await self.db.execute(
            select(User).join(Follow, Follow.follower_id == User.id)
            .where(Follow.followed_id == user_id, User.is_active.is_(True))
            .order_by(Follow.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_following(self, user_id: int) -> List[User]:
        result = await self.db.execute(
            select(User).join(Follow, Follow.followed_id == User.id)
            .where(Follow.follower_id == user_id, User.is_active.is_(True))
            .order_by(Follow.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_following_ids(self, user_id: int) -> List[int]:
        result = await self.db.execute(
            select(Follow.followed_id).where(Follow.follower_id == user_id)
        )
        return list(result.scalars().all())
