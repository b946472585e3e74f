from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


ROLE_USER = "User"
ROLE_ADMIN = "Admin"


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """User account with credentials and profile information."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored lowercase
    password_hash = Column(String(255), nullable=False)
    avatar_url = Column(String(500), nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_USER)  # "User" or "Admin"

    # Denormalized count of authored blogs
    blog_count = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    blogs = relationship("Blog", back_populates="author", foreign_keys="Blog.author_id")
    comments = relationship(
        "Comment", back_populates="author", foreign_keys="Comment.author_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class Blog(Base):
    """Blog article with HTML content and cached engagement counters."""

    __tablename__ = "blogs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Content
    title = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    content = Column(Text, nullable=False)  # HTML
    category = Column(String(100), nullable=False, index=True)
    cover_image_url = Column(String(500), nullable=True)

    # Counters; the membership tables below are authoritative
    views_count = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)
    comments_count = Column(Integer, nullable=False, default=0)

    # Timestamps
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    author = relationship("User", back_populates="blogs", foreign_keys=[author_id])
    likes = relationship(
        "BlogLike", back_populates="blog", cascade="all, delete-orphan", passive_deletes=True
    )
    views = relationship(
        "BlogView", back_populates="blog", cascade="all, delete-orphan", passive_deletes=True
    )
    comments = relationship(
        "Comment", back_populates="blog", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_blogs_author_created", author_id, created_at.desc()),
    )


class BlogLike(Base):
    """Membership row: user has liked a blog."""

    __tablename__ = "blog_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    blog_id = Column(
        Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    blog = relationship("Blog", back_populates="likes")

    __table_args__ = (
        UniqueConstraint("blog_id", "user_id", name="uq_blog_likes_blog_user"),
    )


class BlogView(Base):
    """Membership row: user has viewed a blog."""

    __tablename__ = "blog_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    blog_id = Column(
        Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    blog = relationship("Blog", back_populates="views")

    __table_args__ = (
        UniqueConstraint("blog_id", "user_id", name="uq_blog_views_blog_user"),
    )


class Comment(Base):
    """Comment on a blog; replies point at their parent comment."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    blog_id = Column(
        Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    parent_id = Column(
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    text = Column(Text, nullable=False)

    likes_count = Column(Integer, nullable=False, default=0)
    dislikes_count = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Relationships
    blog = relationship("Blog", back_populates="comments")
    author = relationship("User", back_populates="comments", foreign_keys=[author_id])
    reactions = relationship(
        "CommentReaction",
        back_populates="comment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_comments_blog_created", blog_id, created_at.desc()),
    )


class CommentReaction(Base):
    """A user's like or dislike on a comment (at most one per user)."""

    __tablename__ = "comment_reactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    kind = Column(String(10), nullable=False)  # "like" or "dislike"
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    comment = relationship("Comment", back_populates="reactions")

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_reactions_comment_user"),
    )
