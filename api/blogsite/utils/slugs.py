"""Slug derivation for blog titles."""

from __future__ import annotations

import re
import unicodedata

from sqlalchemy.orm import Session

from ..models import Blog

SLUG_MAX_LENGTH = 100
FALLBACK_SLUG = "blog"

_non_alnum = re.compile(r"[^a-z0-9]+")


def slugify(title: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Derive a URL-safe slug from a title.

    Accents are folded to ASCII, everything else that is not a letter or digit
    collapses into single hyphens. The same title always gives the same slug.

    Example:
        slugify("How to Learn React?!") == "how-to-learn-react"
    """
    normalized = unicodedata.normalize("NFKD", title or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = _non_alnum.sub("-", ascii_text).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or FALLBACK_SLUG


def is_slug_taken(db: Session, slug: str, exclude_blog_id: int | None = None) -> bool:
    query = db.query(Blog.id).filter(Blog.slug == slug)
    if exclude_blog_id is not None:
        query = query.filter(Blog.id != exclude_blog_id)
    return query.first() is not None


def unique_slug(db: Session, title: str, exclude_blog_id: int | None = None) -> str:
    """
    Slug for a title that no other blog uses.

    The base slug is kept when free; otherwise "-2", "-3", ... is appended.
    """
    base = slugify(title)
    if not is_slug_taken(db, base, exclude_blog_id):
        return base

    suffix = 2
    while True:
        tail = f"-{suffix}"
        candidate = f"{base[:SLUG_MAX_LENGTH - len(tail)].rstrip('-')}{tail}"
        if not is_slug_taken(db, candidate, exclude_blog_id):
            return candidate
        suffix += 1
