from typing import Dict, Iterable, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.database import get_db, utcnow
from backend.core.security import get_current_user
from backend.models.community import CATEGORIES, CommunityPost, PostComment, PostLike
from backend.models.profile import Profile
from backend.schemas.community_schema import (
    CommentCreate,
    CommentListResponse,
    CommentResponse,
    CommentUpdate,
    LikeToggleResponse,
    PostCreate,
    PostListResponse,
    PostResponse,
    PostUpdate,
)
from backend.schemas.profile_schema import AuthorSummary
from backend.utils.permissions import check_comment_ownership, check_post_ownership, get_post
from backend.utils.logger import get_logger

logger = get_logger("backend.api.community")

router = APIRouter(prefix="/community", tags=["community"])


# ------ Helpers -----
def _author(item) -> Optional[AuthorSummary]:
    if item.is_anonymous or item.author is None:
        return None
    return AuthorSummary.model_validate(item.author)

async def _counts(db: AsyncSession, model, post_ids: Iterable[int]) -> Dict[int, int]:
    post_ids = list(post_ids)
    if not post_ids:
        return {}
    result = await db.execute(
        select(model.post_id, func.count(model.id))
        .filter(model.post_id.in_(post_ids))
        .group_by(model.post_id)
    )
    return {post_id: count for post_id, count in result.all()}

def _post_response(post: CommunityPost, likes: int, comments: int) -> PostResponse:
    return PostResponse(
        id=post.id,
        title=post.title,
        content=post.content,
        category=post.category,
        is_anonymous=post.is_anonymous,
        created_at=post.created_at,
        updated_at=post.updated_at,
        author=_author(post),
        likes_count=likes,
        comments_count=comments,
    )

def _comment_response(comment: PostComment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        content=comment.content,
        is_anonymous=comment.is_anonymous,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        author=_author(comment),
    )

async def _single_post_response(db: AsyncSession, post: CommunityPost) -> PostResponse:
    likes = await _counts(db, PostLike, [post.id])
    comments = await _counts(db, PostComment, [post.id])
    return _post_response(post, likes.get(post.id, 0), comments.get(post.id, 0))


# ------ Posts -----
@router.get("/posts", response_model=PostListResponse)
async def list_posts(
    category: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest first; category "all" or omitted means no filter."""
    query = select(CommunityPost).order_by(CommunityPost.created_at.desc(), CommunityPost.id.desc())
    if category and category != "all":
        if category not in CATEGORIES:
            raise HTTPException(status_code=400, detail="Unknown category")
        query = query.filter(CommunityPost.category == category)

    result = await db.execute(query)
    posts = list(result.scalars().all())

    post_ids = [p.id for p in posts]
    likes = await _counts(db, PostLike, post_ids)
    comments = await _counts(db, PostComment, post_ids)

    logger.info("Posts listed", extra={"category": category or "all", "count": len(posts)})
    return PostListResponse(posts=[
        _post_response(p, likes.get(p.id, 0), comments.get(p.id, 0)) for p in posts
    ])

@router.post("/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = CommunityPost(
        user_id=current_user.id,
        title=body.title,
        content=body.content,
        category=body.category,
        is_anonymous=body.is_anonymous,
        author=current_user,
    )
    db.add(post)
    await db.commit()
    logger.info("Post created", extra={"post_id": post.id, "user_id": current_user.id})
    return _post_response(post, 0, 0)

@router.get("/posts/{post_id}", response_model=PostResponse)
async def read_post(
    post_id: int,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await get_post(db, post_id)
    return await _single_post_response(db, post)

@router.put("/posts/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    body: PostUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await check_post_ownership(db, post_id, current_user)
    for field in ("title", "content", "category", "is_anonymous"):
        value = getattr(body, field)
        if value is not None:
            setattr(post, field, value)
    post.updated_at = utcnow()
    await db.commit()
    logger.info("Post updated", extra={"post_id": post_id, "user_id": current_user.id})
    return await _single_post_response(db, post)

@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: int,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await check_post_ownership(db, post_id, current_user)
    await db.execute(delete(PostLike).where(PostLike.post_id == post_id))
    await db.execute(delete(PostComment).where(PostComment.post_id == post_id))
    await db.execute(delete(CommunityPost).where(CommunityPost.id == post_id))
    await db.commit()
    logger.info("Post deleted", extra={"post_id": post_id, "user_id": current_user.id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ------ Comments -----
@router.get("/posts/{post_id}/comments", response_model=CommentListResponse)
async def list_comments(
    post_id: int,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_post(db, post_id)
    result = await db.execute(
        select(PostComment)
        .filter(PostComment.post_id == post_id)
        .order_by(PostComment.created_at.asc(), PostComment.id.asc())
    )
    return CommentListResponse(comments=[_comment_response(c) for c in result.scalars().all()])

@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: int,
    body: CommentCreate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_post(db, post_id)
    comment = PostComment(
        post_id=post_id,
        user_id=current_user.id,
        content=body.content,
        is_anonymous=body.is_anonymous,
        author=current_user,
    )
    db.add(comment)
    await db.commit()
    logger.info("Comment created", extra={"post_id": post_id, "comment_id": comment.id})
    return _comment_response(comment)

@router.put("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    body: CommentUpdate,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await check_comment_ownership(db, comment_id, current_user)
    comment.content = body.content
    comment.updated_at = utcnow()
    await db.commit()
    return _comment_response(comment)

@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await check_comment_ownership(db, comment_id, current_user)
    await db.execute(delete(PostComment).where(PostComment.id == comment_id))
    await db.commit()
    logger.info("Comment deleted", extra={"comment_id": comment_id, "user_id": current_user.id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ------ Likes -----
@router.post("/posts/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    post_id: int,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Like the post, or remove the caller's like if it is already there."""
    await get_post(db, post_id)
    result = await db.execute(
        select(PostLike).filter(
            PostLike.post_id == post_id,
            PostLike.user_id == current_user.id,
        )
    )
    existing = result.scalar_one_or_none()

    if existing:
        await db.execute(delete(PostLike).where(PostLike.id == existing.id))
        liked = False
    else:
        db.add(PostLike(post_id=post_id, user_id=current_user.id))
        liked = True
    await db.commit()

    likes = await _counts(db, PostLike, [post_id])
    return LikeToggleResponse(liked=liked, likes_count=likes.get(post_id, 0))
