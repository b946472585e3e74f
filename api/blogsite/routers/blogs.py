"""Blog endpoints: listing, CRUD, views and likes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..auth import get_current_user, require_ownership
from ..db import get_db
from ..media_vault import COVER_KIND, InvalidImageError, delete_image_by_url, resolve_mime_type, save_image
from ..services.blog_counters import (
    adjust_counter,
    author_totals,
    get_counter,
    record_blog_view,
    toggle_blog_like,
)
from ..utils.slugs import unique_slug

router = APIRouter(tags=["Blogs"])
logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
CONTENT_MIN_LENGTH = 200


def _blog_query(db: Session):
    return db.query(models.Blog).options(joinedload(models.Blog.author))


def _get_blog_or_404(db: Session, blog_id: int) -> models.Blog:
    blog = _blog_query(db).filter(models.Blog.id == blog_id).first()
    if not blog:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Blog not found")
    return blog


def _get_blog_by_slug_or_404(db: Session, slug: str) -> models.Blog:
    blog = _blog_query(db).filter(models.Blog.slug == slug).first()
    if not blog:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Blog not found")
    return blog


def _check_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Title cannot be empty"
        )
    if len(title) > TITLE_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Title must be at most {TITLE_MAX_LENGTH} characters",
        )
    return title


def _check_content(content: str) -> str:
    if len(content.strip()) < CONTENT_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Content must be at least {CONTENT_MIN_LENGTH} characters",
        )
    return content


def _check_category(category: str) -> str:
    category = category.strip()
    if not category:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Category cannot be empty"
        )
    return category


async def _store_cover(cover_image: UploadFile) -> str:
    file_content = await cover_image.read()
    try:
        mime_type = resolve_mime_type(cover_image.content_type, cover_image.filename)
        return save_image(COVER_KIND, file_content, mime_type)
    except InvalidImageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _commit_or_conflict(db: Session, new_cover_url: str | None) -> None:
    """Commit; on a slug collision roll back and drop the freshly stored cover."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if new_cover_url:
            delete_image_by_url(new_cover_url)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A blog with a similar title was saved at the same time, please retry",
        )


@router.get("/blogs", response_model=schemas.BlogListResponse)
def list_blogs(db: Session = Depends(get_db)) -> schemas.BlogListResponse:
    """
    All blogs, newest first, with author name and avatar.
    """
    blogs = _blog_query(db).order_by(models.Blog.created_at.desc(), models.Blog.id.desc()).all()
    return schemas.BlogListResponse(
        blogs=[schemas.Blog.model_validate(b) for b in blogs],
    )


@router.get("/single-user/blogs", response_model=schemas.UserBlogsResponse)
def list_my_blogs(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserBlogsResponse:
    """
    The logged-in user's blogs, newest first, with engagement totals.
    """
    blogs = (
        _blog_query(db)
        .filter(models.Blog.author_id == current_user.id)
        .order_by(models.Blog.created_at.desc(), models.Blog.id.desc())
        .all()
    )
    if not blogs:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No blogs found")

    return schemas.UserBlogsResponse(
        totals=schemas.BlogTotals(**author_totals(blogs)),
        blogs=[schemas.Blog.model_validate(b) for b in blogs],
    )


@router.get("/single-blog/{slug}", response_model=schemas.BlogResponse)
def get_blog(slug: str, db: Session = Depends(get_db)) -> schemas.BlogResponse:
    blog = _get_blog_by_slug_or_404(db, slug)
    return schemas.BlogResponse(blog=schemas.Blog.model_validate(blog))


@router.post(
    "/blog/create",
    response_model=schemas.BlogResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_blog(
    title: str | None = Form(None),
    content: str | None = Form(None),
    category: str | None = Form(None),
    cover_image: UploadFile | None = File(None, alias="coverImage"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.BlogResponse:
    """
    Create a blog.

    - title, content, category and coverImage are all required
    - The slug is derived from the title and made unique
    - The author's blog_count is incremented in the same transaction
    """
    if not title or not content or not category:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="All fields required"
        )
    if cover_image is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Cover image is required"
        )

    title = _check_title(title)
    content = _check_content(content)
    category = _check_category(category)

    cover_url = await _store_cover(cover_image)

    blog = models.Blog(
        title=title,
        slug=unique_slug(db, title),
        content=content,
        category=category,
        cover_image_url=cover_url,
        author_id=current_user.id,
        views_count=0,
        likes_count=0,
        comments_count=0,
        published_at=datetime.now(timezone.utc),
    )
    adjust_counter(db, models.User, current_user.id, "blog_count", 1)
    db.add(blog)
    _commit_or_conflict(db, cover_url)

    logger.info(f"User {current_user.id} created blog {blog.id} ({blog.slug})")
    blog = _get_blog_or_404(db, blog.id)
    return schemas.BlogResponse(
        message="Blog created successfully",
        blog=schemas.Blog.model_validate(blog),
    )


@router.put("/blog/edit/{blog_id}", response_model=schemas.BlogResponse)
async def update_blog(
    blog_id: int,
    title: str | None = Form(None),
    content: str | None = Form(None),
    category: str | None = Form(None),
    cover_image: UploadFile | None = File(None, alias="coverImage"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.BlogResponse:
    """
    Update a blog (owner or admin).

    Only the fields sent are changed. A new cover replaces the old one, whose
    file is removed from the vault once the update is committed.
    """
    blog = _get_blog_or_404(db, blog_id)
    require_ownership(blog.author_id, current_user)

    if title is not None:
        title = _check_title(title)
        if title != blog.title:
            blog.title = title
            blog.slug = unique_slug(db, title, exclude_blog_id=blog.id)
    if content is not None:
        blog.content = _check_content(content)
    if category is not None:
        blog.category = _check_category(category)

    new_cover_url = None
    old_cover_url = None
    if cover_image is not None:
        new_cover_url = await _store_cover(cover_image)
        old_cover_url = blog.cover_image_url
        blog.cover_image_url = new_cover_url

    _commit_or_conflict(db, new_cover_url)

    if old_cover_url:
        delete_image_by_url(old_cover_url)

    blog = _get_blog_or_404(db, blog_id)
    return schemas.BlogResponse(
        message="Blog updated successfully",
        blog=schemas.Blog.model_validate(blog),
    )


@router.delete("/blog/delete/{blog_id}", response_model=schemas.Envelope)
def delete_blog(
    blog_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Envelope:
    """
    Delete a blog (owner or admin) together with its cover, likes, views and comments.
    """
    blog = _get_blog_or_404(db, blog_id)
    require_ownership(blog.author_id, current_user)

    if blog.cover_image_url:
        delete_image_by_url(blog.cover_image_url)

    author_id = blog.author_id
    db.delete(blog)
    adjust_counter(db, models.User, author_id, "blog_count", -1)
    db.commit()

    logger.info(f"User {current_user.id} deleted blog {blog_id}")
    return schemas.Envelope(message="Blog deleted successfully")


@router.patch("/{slug}/view", response_model=schemas.ViewResponse)
def record_view(
    slug: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.ViewResponse:
    """
    Count the logged-in user's view of a blog. Repeat views are not counted.
    """
    blog = _get_blog_by_slug_or_404(db, slug)
    blog_id = blog.id
    counted = record_blog_view(db, blog_id, current_user.id)

    return schemas.ViewResponse(
        message="View recorded" if counted else "Already viewed",
        views_count=get_counter(db, models.Blog, blog_id, "views_count"),
        counted=counted,
    )


@router.post("/blog/like/{blog_id}", response_model=schemas.LikeResponse)
def like_blog(
    blog_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeResponse:
    """
    Toggle the logged-in user's like on a blog.
    """
    blog = _get_blog_or_404(db, blog_id)
    blog_id = blog.id
    liked = toggle_blog_like(db, blog_id, current_user.id)

    return schemas.LikeResponse(
        message="Blog liked" if liked else "Blog unliked",
        likes_count=get_counter(db, models.Blog, blog_id, "likes_count"),
        liked_by_user=liked,
    )
