"""
Nested comment assembly.

Comments store only a parent pointer. A blog's tree is rebuilt at read time:
every comment of the blog is loaded in one query and nested in memory, roots
newest first and replies oldest first at every level. Traversal starts from
the roots and visits each comment at most once, so a corrupt parent chain
(self-reference or loop) is simply unreachable instead of recursing forever.
"""

from __future__ import annotations

from collections import defaultdict, deque

from sqlalchemy.orm import Session, joinedload

from .. import models, schemas


def load_blog_comments(db: Session, blog_id: int) -> list[models.Comment]:
    return (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.blog_id == blog_id)
        .all()
    )


def _sort_key(comment: models.Comment):
    return (comment.created_at, comment.id)


def build_comment_tree(comments: list[models.Comment]) -> list[schemas.CommentNode]:
    """
    Nest a flat list of comments under their parents.

    Comments whose parent is missing from the list are dropped along with
    their descendants.
    """
    by_id = {c.id: c for c in comments}
    children: dict[int, list[models.Comment]] = defaultdict(list)
    roots: list[models.Comment] = []

    for comment in comments:
        if comment.parent_id is None:
            roots.append(comment)
        elif comment.parent_id in by_id and comment.parent_id != comment.id:
            children[comment.parent_id].append(comment)

    roots.sort(key=_sort_key, reverse=True)
    for replies in children.values():
        replies.sort(key=_sort_key)

    tree = [schemas.CommentNode.model_validate(root) for root in roots]
    visited: set[int] = {root.id for root in roots}
    queue = deque(zip(roots, tree))

    while queue:
        comment, node = queue.popleft()
        for reply in children.get(comment.id, []):
            if reply.id in visited:
                continue
            visited.add(reply.id)
            reply_node = schemas.CommentNode.model_validate(reply)
            node.replies.append(reply_node)
            queue.append((reply, reply_node))

    return tree


def get_comment_tree(db: Session, blog_id: int) -> list[schemas.CommentNode]:
    return build_comment_tree(load_blog_comments(db, blog_id))


def collect_subtree_ids(db: Session, comment_id: int) -> list[int]:
    """IDs of a comment and all of its descendants, breadth first."""
    collected = [comment_id]
    seen = {comment_id}
    frontier = [comment_id]

    while frontier:
        rows = (
            db.query(models.Comment.id)
            .filter(models.Comment.parent_id.in_(frontier))
            .all()
        )
        frontier = [row.id for row in rows if row.id not in seen]
        seen.update(frontier)
        collected.extend(frontier)

    return collected


def load_comment_node(db: Session, comment_id: int) -> schemas.CommentNode:
    """Single comment (without replies) with its author populated."""
    comment = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author))
        .filter(models.Comment.id == comment_id)
        .one()
    )
    return schemas.CommentNode.model_validate(comment)
