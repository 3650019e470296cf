"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

The *View models are the denormalized projections built by the aggregation
layer; they are rebuilt fresh on every request.
"""
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


# ──────────────────────────── Users ───────────────────────────────────────

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., min_length=3, max_length=255)
    full_name: Optional[str] = None
    bio: Optional[str] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class UserView(BaseModel):
    id: str
    username: str
    email: str
    full_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_verified: bool = False
    follower_count: int
    following_count: int
    created_at: datetime


class UserCreated(BaseModel):
    """Returned once on signup: the profile plus a bearer token for it."""
    user: UserView
    access_token: str
    token_type: str = "bearer"


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    tags: Optional[list[str]] = None


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    # None leaves tags untouched; [] clears them
    tags: Optional[list[str]] = None


class PostView(BaseModel):
    id: str
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    author: UserView
    tags: list[str]
    like_count: int
    comment_count: int
    is_liked: bool
    is_published: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LikeStatus(BaseModel):
    post_id: str
    like_count: int
    is_liked: bool


# ──────────────────────────── Comments ────────────────────────────────────

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentView(BaseModel):
    id: str
    content: str
    author: UserView
    parent_id: Optional[str] = None
    replies: list["CommentView"] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# ──────────────────────────── Tags ────────────────────────────────────────

class TagView(BaseModel):
    id: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


# ──────────────────────────── Follows ─────────────────────────────────────

class FollowStatus(BaseModel):
    follower_id: Optional[str]   # None for an anonymous viewer
    following_id: str
    is_following: bool


# ──────────────────────────── Pagination ──────────────────────────────────

class PagedResult(BaseModel, Generic[T]):
    data: list[T]
    total: int
    page: int
    limit: int
    total_pages: int
