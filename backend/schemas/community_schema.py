from pydantic import BaseModel, field_validator
from typing import List, Optional
from datetime import datetime

from backend.models.community import CATEGORIES
from backend.schemas.profile_schema import AuthorSummary


def _check_category(v):
    if v is not None and v not in CATEGORIES:
        raise ValueError(f"Category must be one of: {', '.join(CATEGORIES)}")
    return v


def _check_not_blank(v):
    if v is not None and not v.strip():
        raise ValueError("Field cannot be empty")
    return v.strip() if v is not None else v


class PostCreate(BaseModel):
    title: str
    content: str
    category: str = "support"
    is_anonymous: bool = False

    @field_validator("category")
    def validate_category(cls, v):
        return _check_category(v)

    @field_validator("title", "content")
    def validate_not_blank(cls, v):
        return _check_not_blank(v)


class PostUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    is_anonymous: Optional[bool] = None

    @field_validator("category")
    def validate_category(cls, v):
        return _check_category(v)

    @field_validator("title", "content")
    def validate_not_blank(cls, v):
        return _check_not_blank(v)


class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    category: str
    is_anonymous: bool
    created_at: datetime
    updated_at: datetime
    author: Optional[AuthorSummary] = None  # hidden for anonymous posts
    likes_count: int = 0
    comments_count: int = 0


class PostListResponse(BaseModel):
    posts: List[PostResponse]


class CommentCreate(BaseModel):
    content: str
    is_anonymous: bool = False

    @field_validator("content")
    def validate_not_blank(cls, v):
        return _check_not_blank(v)


class CommentUpdate(BaseModel):
    content: str

    @field_validator("content")
    def validate_not_blank(cls, v):
        return _check_not_blank(v)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    content: str
    is_anonymous: bool
    created_at: datetime
    updated_at: datetime
    author: Optional[AuthorSummary] = None


class CommentListResponse(BaseModel):
    comments: List[CommentResponse]


class LikeToggleResponse(BaseModel):
    liked: bool
    likes_count: int
