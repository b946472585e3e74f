"""Password hashing helpers."""

from __future__ import annotations

import logging

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..models import User

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def find_user_by_credentials(db: Session, email: str, password: str) -> User | None:
    """
    Look up a user by email and check the password.

    Returns:
        The User if the email exists and the password matches, None otherwise
    """
    user = db.query(User).filter(User.email == email.lower().strip()).first()
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        logger.info(f"Password mismatch for user {user.id}")
        return None

    return user
