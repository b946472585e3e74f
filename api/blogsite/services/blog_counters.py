"""
Blog engagement counters.

Membership rows (blog_likes, blog_views, comments) are the source of truth; the
*_count columns on blogs and users are a cache. Every change to a membership
table is paired with an atomic ``UPDATE ... SET n = n + delta`` in the same
transaction, so concurrent requests cannot lose updates.
"""

from __future__ import annotations

import logging

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models

logger = logging.getLogger(__name__)


def adjust_counter(db: Session, model, row_id: int, column: str, delta: int) -> None:
    """
    Atomically add ``delta`` to ``model.column`` for one row, flooring at zero.

    Does not commit.
    """
    if delta == 0:
        return

    col = getattr(model, column)
    if delta > 0:
        new_value = col + delta
    else:
        new_value = case((col + delta > 0, col + delta), else_=0)

    db.query(model).filter(model.id == row_id).update(
        {col: new_value}, synchronize_session=False
    )


def get_counter(db: Session, model, row_id: int, column: str) -> int:
    value = db.query(getattr(model, column)).filter(model.id == row_id).scalar()
    return value or 0


def toggle_blog_like(db: Session, blog_id: int, user_id: int) -> bool:
    """
    Like the blog if the user has not liked it yet, otherwise remove the like.

    Returns:
        True if the blog is now liked by the user, False if the like was removed
    """
    like_query = db.query(models.BlogLike).filter(
        models.BlogLike.blog_id == blog_id, models.BlogLike.user_id == user_id
    )
    if like_query.with_entities(models.BlogLike.id).first():
        removed = like_query.delete(synchronize_session=False)
        # Zero rows when a concurrent request removed the like first
        if removed:
            adjust_counter(db, models.Blog, blog_id, "likes_count", -removed)
        db.commit()
        return False

    db.add(models.BlogLike(blog_id=blog_id, user_id=user_id))
    try:
        db.flush()
    except IntegrityError:
        # A concurrent request inserted the same like first; its counter update stands
        db.rollback()
        logger.info(f"Concurrent like for blog {blog_id} by user {user_id}")
        return True

    adjust_counter(db, models.Blog, blog_id, "likes_count", 1)
    db.commit()
    return True


def record_blog_view(db: Session, blog_id: int, user_id: int) -> bool:
    """
    Count a view once per user.

    Returns:
        True if this was the user's first view and the counter was incremented
    """
    already_viewed = (
        db.query(models.BlogView.id)
        .filter(models.BlogView.blog_id == blog_id, models.BlogView.user_id == user_id)
        .first()
    )
    if already_viewed:
        return False

    db.add(models.BlogView(blog_id=blog_id, user_id=user_id))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return False

    adjust_counter(db, models.Blog, blog_id, "views_count", 1)
    db.commit()
    return True


def author_totals(blogs: list[models.Blog]) -> dict[str, int]:
    """Sum the cached counters across a list of blogs."""
    return {
        "blogs": len(blogs),
        "comments": sum(b.comments_count for b in blogs),
        "likes": sum(b.likes_count for b in blogs),
        "views": sum(b.views_count for b in blogs),
    }
