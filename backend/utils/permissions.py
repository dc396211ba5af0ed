from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.models.community import CommunityPost, PostComment
from backend.models.profile import Profile

async def get_post(db: AsyncSession, post_id: int) -> CommunityPost:
    result = await db.execute(
        select(CommunityPost).filter(CommunityPost.id == post_id)
    )
    post = result.scalar_one_or_none()

    if not post:
        raise HTTPException(status_code=404, detail="Post not found")

    return post


async def check_post_ownership(
        db: AsyncSession,
        post_id: int,
        user: Profile
) -> CommunityPost:
    """Load a post the caller is allowed to edit or delete."""
    post = await get_post(db, post_id)

    if post.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can modify this post")

    return post


async def check_comment_ownership(
        db: AsyncSession,
        comment_id: int,
        user: Profile
) -> PostComment:
    """Load a comment the caller is allowed to edit or delete."""
    result = await db.execute(
        select(PostComment).filter(PostComment.id == comment_id)
    )
    comment = result.scalar_one_or_none()

    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")

    if comment.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can modify this comment")

    return comment
