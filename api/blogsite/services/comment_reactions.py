"""Like/dislike toggles on comments."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from .blog_counters import adjust_counter

logger = logging.getLogger(__name__)

LIKE = "like"
DISLIKE = "dislike"

_COUNTER_COLUMN = {LIKE: "likes_count", DISLIKE: "dislikes_count"}


def _current_kind(db: Session, comment_id: int, user_id: int) -> str | None:
    return (
        db.query(models.CommentReaction.kind)
        .filter(
            models.CommentReaction.comment_id == comment_id,
            models.CommentReaction.user_id == user_id,
        )
        .scalar()
    )


def _reaction_query(db: Session, comment_id: int, user_id: int, kind: str):
    return db.query(models.CommentReaction).filter(
        models.CommentReaction.comment_id == comment_id,
        models.CommentReaction.user_id == user_id,
        models.CommentReaction.kind == kind,
    )


def toggle_comment_reaction(db: Session, comment_id: int, user_id: int, kind: str) -> str | None:
    """
    Toggle a like or dislike.

    Same reaction again removes it; the opposite reaction replaces it. The
    delete/update only matches the reaction read beforehand, and counters
    move by the number of rows it touched.

    Returns:
        The user's reaction after the toggle ("like", "dislike") or None
    """
    if kind not in _COUNTER_COLUMN:
        raise ValueError(f"Unknown reaction kind: {kind}")

    previous = _current_kind(db, comment_id, user_id)

    if previous == kind:
        removed = _reaction_query(db, comment_id, user_id, kind).delete(
            synchronize_session=False
        )
        if not removed:
            db.rollback()
            logger.info(f"Concurrent reaction change on comment {comment_id} by user {user_id}")
            return _current_kind(db, comment_id, user_id)
        adjust_counter(db, models.Comment, comment_id, _COUNTER_COLUMN[kind], -removed)
        db.commit()
        return None

    if previous is not None:
        switched = _reaction_query(db, comment_id, user_id, previous).update(
            {models.CommentReaction.kind: kind}, synchronize_session=False
        )
        if not switched:
            db.rollback()
            logger.info(f"Concurrent reaction change on comment {comment_id} by user {user_id}")
            return _current_kind(db, comment_id, user_id)
        adjust_counter(db, models.Comment, comment_id, _COUNTER_COLUMN[previous], -switched)
        adjust_counter(db, models.Comment, comment_id, _COUNTER_COLUMN[kind], switched)
        db.commit()
        return kind

    db.add(models.CommentReaction(comment_id=comment_id, user_id=user_id, kind=kind))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info(f"Concurrent reaction on comment {comment_id} by user {user_id}")
        return _current_kind(db, comment_id, user_id)

    adjust_counter(db, models.Comment, comment_id, _COUNTER_COLUMN[kind], 1)
    db.commit()
    return kind
