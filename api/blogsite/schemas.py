from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PASSWORD_MAX_LENGTH = 100


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Envelope(BaseModel):
    """Common response envelope."""

    success: bool = True
    message: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserPublic(BaseModel):
    """Author summary embedded in blogs and comments."""

    id: int
    name: str
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserFull(UserPublic):
    """Full user profile (never includes the password hash)."""

    email: str
    role: Literal["User", "Admin"] = "User"
    blog_count: int = 0
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    """Login request - email and password."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)


class AuthResponse(Envelope):
    """Returned by signup, login, current-user and profile edits."""

    user: UserFull


# ============================================================================
# BLOG SCHEMAS
# ============================================================================


class Blog(BaseModel):
    """Blog article with its author populated."""

    id: int
    title: str
    slug: str
    content: str
    category: str
    cover_image_url: str | None = None
    author_id: int
    author: UserPublic | None = None
    views_count: int = 0
    likes_count: int = 0
    comments_count: int = 0
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BlogResponse(Envelope):
    blog: Blog


class BlogListResponse(Envelope):
    blogs: list[Blog]


class BlogTotals(BaseModel):
    """Aggregated counters across one author's blogs."""

    blogs: int = 0
    comments: int = 0
    likes: int = 0
    views: int = 0


class UserBlogsResponse(Envelope):
    totals: BlogTotals
    blogs: list[Blog]


class LikeResponse(Envelope):
    """Result of a like toggle."""

    likes_count: int = Field(..., alias="likesCount")
    liked_by_user: bool = Field(..., alias="likedByUser")

    model_config = ConfigDict(populate_by_name=True)


class ViewResponse(Envelope):
    """Result of recording a view."""

    views_count: int = Field(..., alias="viewsCount")
    counted: bool

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class CommentNode(BaseModel):
    """Comment with its replies nested recursively."""

    id: int
    blog_id: int
    parent_id: int | None = None
    text: str
    author: UserPublic | None = None
    likes_count: int = 0
    dislikes_count: int = 0
    created_at: datetime
    updated_at: datetime | None = None
    replies: list[CommentNode] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CommentCreate(BaseModel):
    """Body of a new comment or reply."""

    text: str | None = None


class CommentUpdate(BaseModel):
    text: str | None = None


class CommentTreeResponse(Envelope):
    count: int
    data: list[CommentNode]


class CommentResponse(Envelope):
    data: CommentNode


class CommentReactionResponse(Envelope):
    data: CommentNode
    liked_by_user: bool = Field(..., alias="likedByUser")
    disliked_by_user: bool = Field(..., alias="dislikedByUser")

    model_config = ConfigDict(populate_by_name=True)


CommentNode.model_rebuild()
