from typing import Optional

from pydantic import BaseModel

from alumnilink.models.post import Post
from alumnilink.schemas.user import user_summary, utc_isoformat


class PostCreate(BaseModel):
    description: str
    image: Optional[str] = ""


class CommentCreate(BaseModel):
    text: str


def serialize_post(post: Post, viewer_id: Optional[int] = None) -> dict:
    return {
        "id": post.id,
        "author": user_summary(post.author),
        "description": post.description,
        "image": post.image,
        "tags": post.tags or [],
        "likes": [user_summary(like.user) for like in post.likes],
        "likeCount": len(post.likes),
        "isLiked": viewer_id is not None and any(like.user_id == viewer_id for like in post.likes),
        "comments": [
            {
                "id": comment.id,
                "author": user_summary(comment.author),
                "text": comment.text,
                "createdAt": utc_isoformat(comment.created_at),
            }
            for comment in post.comments
        ],
        "commentCount": len(post.comments),
        "createdAt": utc_isoformat(post.created_at),
        "updatedAt": utc_isoformat(post.updated_at),
    }
