"""Comment endpoints: nested threads, edits, deletes and reactions."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_ownership
from ..db import get_db
from ..services.blog_counters import adjust_counter
from ..services.comment_reactions import DISLIKE, LIKE, toggle_comment_reaction
from ..services.comment_tree import collect_subtree_ids, get_comment_tree, load_comment_node

router = APIRouter(tags=["Comments"])
logger = logging.getLogger(__name__)


def _require_text(text: str | None) -> str:
    text = (text or "").strip()
    if not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Comment text is required",
        )
    return text


def _get_comment_or_404(db: Session, comment_id: int) -> models.Comment:
    comment = db.query(models.Comment).filter(models.Comment.id == comment_id).first()
    if not comment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


def _get_blog_id_by_slug_or_404(db: Session, slug: str) -> int:
    blog_id = db.query(models.Blog.id).filter(models.Blog.slug == slug).scalar()
    if blog_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Blog not found")
    return blog_id


def _add_comment(
    db: Session, blog_id: int, author_id: int, text: str, parent_id: int | None = None
) -> int:
    comment = models.Comment(
        blog_id=blog_id,
        author_id=author_id,
        parent_id=parent_id,
        text=text,
        likes_count=0,
        dislikes_count=0,
    )
    # comments_count tracks root comments only
    if parent_id is None:
        adjust_counter(db, models.Blog, blog_id, "comments_count", 1)
    db.add(comment)
    db.commit()
    return comment.id


@router.get("/comments/{slug}", response_model=schemas.CommentTreeResponse)
def list_comments(slug: str, db: Session = Depends(get_db)) -> schemas.CommentTreeResponse:
    """
    Comment thread of a blog.

    Root comments come newest first; replies are nested under their parent,
    oldest first. ``count`` is the number of root comments.
    """
    blog_id = _get_blog_id_by_slug_or_404(db, slug)
    tree = get_comment_tree(db, blog_id)
    return schemas.CommentTreeResponse(count=len(tree), data=tree)


@router.post(
    "/comment/add/{slug}",
    response_model=schemas.CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    slug: str,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CommentResponse:
    """
    Add a root comment to a blog.
    """
    text = _require_text(payload.text)
    blog_id = _get_blog_id_by_slug_or_404(db, slug)

    comment_id = _add_comment(db, blog_id, current_user.id, text)
    logger.info(f"User {current_user.id} commented on blog {blog_id}")

    return schemas.CommentResponse(
        message="Comment added",
        data=load_comment_node(db, comment_id),
    )


@router.post(
    "/comment-reply/{comment_id}",
    response_model=schemas.CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def reply_to_comment(
    comment_id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CommentResponse:
    """
    Reply to a comment. The reply belongs to the same blog as its parent.
    """
    text = _require_text(payload.text)
    parent = _get_comment_or_404(db, comment_id)

    reply_id = _add_comment(db, parent.blog_id, current_user.id, text, parent_id=parent.id)

    return schemas.CommentResponse(
        message="Reply added",
        data=load_comment_node(db, reply_id),
    )


@router.put("/comment/edit/{comment_id}", response_model=schemas.CommentResponse)
def update_comment(
    comment_id: int,
    payload: schemas.CommentUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CommentResponse:
    """
    Edit a comment's text (author or admin).
    """
    comment = _get_comment_or_404(db, comment_id)
    require_ownership(comment.author_id, current_user)

    comment.text = _require_text(payload.text)
    db.commit()

    return schemas.CommentResponse(
        message="Comment updated",
        data=load_comment_node(db, comment_id),
    )


@router.delete("/comment/delete/{comment_id}", response_model=schemas.Envelope)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Envelope:
    """
    Delete a comment (author or admin) and every reply beneath it.
    """
    comment = _get_comment_or_404(db, comment_id)
    require_ownership(comment.author_id, current_user)

    blog_id = comment.blog_id
    is_root = comment.parent_id is None
    subtree_ids = collect_subtree_ids(db, comment_id)

    db.query(models.Comment).filter(models.Comment.id.in_(subtree_ids)).delete(
        synchronize_session=False
    )
    if is_root:
        adjust_counter(db, models.Blog, blog_id, "comments_count", -1)
    db.commit()

    logger.info(
        f"User {current_user.id} deleted comment {comment_id} with {len(subtree_ids) - 1} replies"
    )
    return schemas.Envelope(message="Comment deleted")


def _react(db: Session, comment_id: int, user_id: int, kind: str) -> schemas.CommentReactionResponse:
    _get_comment_or_404(db, comment_id)
    current = toggle_comment_reaction(db, comment_id, user_id, kind)

    if current is None:
        message = f"{kind.capitalize()} removed"
    else:
        message = f"Comment {kind}d"

    return schemas.CommentReactionResponse(
        message=message,
        data=load_comment_node(db, comment_id),
        liked_by_user=current == LIKE,
        disliked_by_user=current == DISLIKE,
    )


@router.post("/comment-like/{comment_id}", response_model=schemas.CommentReactionResponse)
def like_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CommentReactionResponse:
    """
    Toggle a like on a comment. Liking replaces an existing dislike.
    """
    return _react(db, comment_id, current_user.id, LIKE)


@router.post("/comment-dislike/{comment_id}", response_model=schemas.CommentReactionResponse)
def dislike_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CommentReactionResponse:
    """
    Toggle a dislike on a comment. Disliking replaces an existing like.
    """
    return _react(db, comment_id, current_user.id, DISLIKE)
