from __future__ import annotations

import io
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

# The app reads its configuration at import time
_TMP_DIR = tempfile.mkdtemp(prefix="blogsite-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["VAULT_LOCATION"] = os.path.join(_TMP_DIR, "vault")
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-at-least-32-characters"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from blogsite import models  # noqa: E402
from blogsite.auth import create_session_token  # noqa: E402
from blogsite.db import Base, SessionLocal, engine  # noqa: E402
from blogsite.main import app  # noqa: E402
from blogsite.services.passwords import hash_password  # noqa: E402

DEFAULT_PASSWORD = "correct horse battery staple"
LONG_CONTENT = "<p>" + ("Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 5) + "</p>"


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    engine.dispose()
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def make_png(color: str = "red", size: tuple[int, int] = (8, 8)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., models.User]:
    """Factory inserting users directly, bypassing signup."""
    counter = {"n": 0}

    def _make_user(name: str | None = None, role: str = models.ROLE_USER) -> models.User:
        counter["n"] += 1
        user = models.User(
            name=name or f"User {counter['n']}",
            email=f"user{counter['n']}@example.com",
            password_hash=hash_password(DEFAULT_PASSWORD),
            role=role,
            blog_count=0,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user) -> models.User:
    return make_user("Test User")


def auth_headers(user: models.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(user.id)}"}


def create_blog(
    client: TestClient,
    user: models.User,
    title: str = "My First Blog",
    content: str = LONG_CONTENT,
    category: str = "Tech",
    cover: bytes | None = None,
):
    return client.post(
        "/blog/create",
        data={"title": title, "content": content, "category": category},
        files={"coverImage": ("cover.png", cover or make_png(), "image/png")},
        headers=auth_headers(user),
    )


def vault_file(url: str) -> Path:
    """Filesystem path of a /vault/... URL."""
    return Path(os.environ["VAULT_LOCATION"]) / url.removeprefix("/vault/")
