"""Authentication endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import clear_session_cookie, create_session_token, get_current_user, set_session_cookie
from ..db import get_db
from ..media_vault import AVATAR_KIND, InvalidImageError, delete_image_by_url, resolve_mime_type, save_image
from ..services.passwords import find_user_by_credentials, hash_password

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


async def _store_avatar(avatar: UploadFile) -> str:
    """Validate and save an uploaded avatar, returning its public URL."""
    file_content = await avatar.read()
    try:
        mime_type = resolve_mime_type(avatar.content_type, avatar.filename)
        return save_image(AVATAR_KIND, file_content, mime_type)
    except InvalidImageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/signup",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    response: Response,
    name: str | None = Form(None),
    email: str | None = Form(None),
    password: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    db: Session = Depends(get_db),
) -> schemas.AuthResponse:
    """
    Register a new user and log them in.

    - name, email, password and an avatar image are all required
    - The password is limited to the same length that login accepts
    - The email must not be registered already
    - The password is stored as a bcrypt hash
    - The session token is returned in an HTTP-only cookie
    """
    name = (name or "").strip()
    email = (email or "").lower().strip()
    if not name or not email or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="All fields required",
        )

    if len(password) > schemas.PASSWORD_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at most {schemas.PASSWORD_MAX_LENGTH} characters",
        )

    if avatar is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Avatar image is required",
        )

    existing_user = db.query(models.User).filter(models.User.email == email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    avatar_url = await _store_avatar(avatar)

    user = models.User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        avatar_url=avatar_url,
        role=models.ROLE_USER,
    )
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        delete_image_by_url(avatar_url)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    logger.info(f"Registered user {user.id}")
    set_session_cookie(response, create_session_token(user.id))

    return schemas.AuthResponse(
        message="User registered successfully",
        user=schemas.UserFull.model_validate(user),
    )


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    payload: schemas.LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> schemas.AuthResponse:
    """
    Login with email and password.
    """
    user = find_user_by_credentials(db, payload.email, payload.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid credentials",
        )

    set_session_cookie(response, create_session_token(user.id))

    return schemas.AuthResponse(
        message="Login successful",
        user=schemas.UserFull.model_validate(user),
    )


@router.post("/logout", response_model=schemas.Envelope)
def logout(response: Response) -> schemas.Envelope:
    """
    Clear the session cookie. Works whether or not the caller is logged in.
    """
    clear_session_cookie(response)
    return schemas.Envelope(message="Logged out successfully")


@router.get("/auth/current-user", response_model=schemas.AuthResponse)
def get_current_user_profile(
    current_user: models.User = Depends(get_current_user),
) -> schemas.AuthResponse:
    """
    Get the logged-in user (without the password hash).
    """
    return schemas.AuthResponse(user=schemas.UserFull.model_validate(current_user))


@router.patch("/auth/profile", response_model=schemas.AuthResponse)
async def update_profile(
    name: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.AuthResponse:
    """
    Edit the logged-in user's name and/or avatar.

    A replaced avatar is removed from the vault after the new one is saved.
    """
    if name is not None:
        name = name.strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Name cannot be empty",
            )
        current_user.name = name

    old_avatar_url = None
    if avatar is not None:
        old_avatar_url = current_user.avatar_url
        current_user.avatar_url = await _store_avatar(avatar)

    db.commit()
    db.refresh(current_user)

    if old_avatar_url:
        delete_image_by_url(old_avatar_url)

    return schemas.AuthResponse(
        message="Profile updated",
        user=schemas.UserFull.model_validate(current_user),
    )
