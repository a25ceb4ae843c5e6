from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from alumnilink.auth import get_current_active_user
from alumnilink.database import get_db
from alumnilink.models.user import User
from alumnilink.repositories.post_repository import PostRepository
from alumnilink.repositories.user_repository import UserRepository
from alumnilink.schemas.post import CommentCreate, PostCreate, serialize_post

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_post(
    post_data: PostCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    post = await PostRepository(db).create(current_user.id, post_data.description, post_data.image)
    return {"message": "Post created successfully", "post": serialize_post(post, current_user.id)}


@router.get("/")
async def get_posts(
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    posts = await PostRepository(db).list_posts(page, limit)
    return [serialize_post(post, current_user.id) for post in posts]


@router.get("/feed")
async def get_feed(
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Posts by the caller and by the users they follow."""
    author_ids = await UserRepository(db).get_following_ids(current_user.id)
    posts = await PostRepository(db).list_posts(page, limit, author_ids=[current_user.id, *author_ids])
    return [serialize_post(post, current_user.id) for post in posts]


@router.get("/user/{user_id}")
async def get_user_posts(
    user_id: int,
    page: int = Query(1),
    limit: int = Query(10),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await UserRepository(db).get_active_by_id(user_id)
    posts = await PostRepository(db).list_posts(page, limit, author_ids=[user_id])
    return [serialize_post(post, current_user.id) for post in posts]


@router.post("/{post_id}/like")
async def toggle_like(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    post = await PostRepository(db).toggle_like(post_id, current_user.id)
    data = serialize_post(post, current_user.id)
    return {
        "message": "Post liked" if data["isLiked"] else "Post unliked",
        "isLiked": data["isLiked"],
        "likeCount": data["likeCount"],
    }


@router.post("/{post_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: int,
    comment: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    post = await PostRepository(db).add_comment(post_id, current_user.id, comment.text)
    return {"message": "Comment added successfully", "post": serialize_post(post, current_user.id)}


@router.delete("/{post_id}/comments/{comment_id}")
async def delete_comment(
    post_id: int,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    post = await PostRepository(db).remove_comment(post_id, comment_id, current_user.id)
    return {"message": "Comment deleted successfully", "post": serialize_post(post, current_user.id)}


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    await PostRepository(db).soft_delete(post_id, current_user.id)
    return {"message": "Post deleted successfully"}
