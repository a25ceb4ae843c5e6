import re
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload, joinedload

from alumnilink.errors import ValidationError, NotFoundError, ForbiddenError
from alumnilink.models.post import Post, PostLike, Comment

MAX_DESCRIPTION_LENGTH = 1000
MAX_COMMENT_LENGTH = 300
MAX_FEED_PAGE_SIZE = 50

HASHTAG_RE = re.compile(r"#(\w+)")


def extract_tags(description: str) -> List[str]:
    return [tag.lower() for tag in HASHTAG_RE.findall(description)]


def _post_query():
    return (
        select(Post)
        .options(
            joinedload(Post.author),
            selectinload(Post.likes).joinedload(PostLike.user),
            selectinload(Post.comments).joinedload(Comment.author),
        )
        .execution_options(populate_existing=True)
    )


class PostRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, author_id: int, description: str, image: Optional[str] = "") -> Post:
        description = (description or "").strip()
        if not description:
            raise ValidationError("Post description is required")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Post description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")

        post = Post(
            author_id=author_id,
            description=description,
            image=(image or "").strip(),
            tags=extract_tags(description),
        )
        self.db.add(post)
        await self.db.commit()
        return await self.get_by_id(post.id)

    async def get_by_id(self, post_id: int) -> Optional[Post]:
        result = await self.db.execute(_post_query().where(Post.id == post_id))
        return result.scalar_one_or_none()

    async def get_active(self, post_id: int) -> Post:
        post = await self.get_by_id(post_id)
        if post is None or not post.is_active:
            raise NotFoundError("Post not found")
        return post

    async def list_posts(
        self,
        page: int = 1,
        limit: int = 10,
        author_ids: Optional[List[int]] = None,
    ) -> List[Post]:
        if page < 1 or limit < 1 or limit > MAX_FEED_PAGE_SIZE:
            raise ValidationError("Invalid pagination parameters")

        statement = _post_query().where(Post.is_active.is_(True))
        if author_ids is not None:
            statement = statement.where(Post.author_id.in_(author_ids))

        result = await self.db.execute(
            statement.order_by(Post.created_at.desc(), Post.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def toggle_like(self, post_id: int, user_id: int) -> Post:
        post = await self.get_active(post_id)

        if any(like.user_id == user_id for like in post.likes):
            await self.db.execute(
                delete(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
            )
        else:
            self.db.add(PostLike(post_id=post_id, user_id=user_id))

        await self.db.commit()
        return await self.get_by_id(post_id)

    async def add_comment(self, post_id: int, author_id: int, text: str) -> Post:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment text is required")
        if len(text) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")

        await self.get_active(post_id)
        self.db.add(Comment(post_id=post_id, author_id=author_id, text=text))
        await self.db.commit()
        return await self.get_by_id(post_id)

    async def remove_comment(self, post_id: int, comment_id: int, requestor_id: int) -> Post:
        post = await self.get_active(post_id)

        comment = next((c for c in post.comments if c.id == comment_id), None)
        if comment is None:
            raise NotFoundError("Comment not found")
        if requestor_id not in (comment.author_id, post.author_id):
            raise ForbiddenError("Not authorized to delete this comment")

        await self.db.execute(delete(Comment).where(Comment.id == comment_id))
        await self.db.commit()
        return await self.get_by_id(post_id)

    async def soft_delete(self, post_id: int, requestor_id: int) -> None:
        post = await self.get_active(post_id)
        if post.author_id != requestor_id:
            raise ForbiddenError("Not authorized to delete this post")

        post.is_active = False
        await self.db.commit()
