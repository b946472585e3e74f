"""Test blog CRUD, likes and views."""

from __future__ import annotations

from sqlalchemy.orm import Session

from blogsite import models
from blogsite.db import SessionLocal
from blogsite.models import ROLE_ADMIN
from blogsite.services.blog_counters import get_counter, record_blog_view, toggle_blog_like

from conftest import LONG_CONTENT, auth_headers, create_blog, make_png, vault_file


def _refresh(db: Session, instance):
    db.expire_all()
    return db.get(type(instance), instance.id)


def test_create_blog(client, db: Session, test_user):
    response = create_blog(client, test_user, title="How to Learn React?!")
    assert response.status_code == 201

    blog = response.json()["blog"]
    assert blog["slug"] == "how-to-learn-react"
    assert blog["author"]["id"] == test_user.id
    assert blog["author"]["name"] == test_user.name
    assert blog["views_count"] == 0
    assert blog["likes_count"] == 0
    assert blog["comments_count"] == 0
    assert blog["published_at"] is not None
    assert vault_file(blog["cover_image_url"]).exists()

    assert _refresh(db, test_user).blog_count == 1


def test_create_blog_requires_auth(client):
    response = client.post(
        "/blog/create",
        data={"title": "t", "content": LONG_CONTENT, "category": "c"},
        files={"coverImage": ("cover.png", make_png(), "image/png")},
    )
    assert response.status_code == 401


def test_create_blog_missing_fields(client, test_user):
    response = client.post(
        "/blog/create",
        data={"title": "Only a title"},
        files={"coverImage": ("cover.png", make_png(), "image/png")},
        headers=auth_headers(test_user),
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "All fields required"}


def test_create_blog_requires_cover(client, test_user):
    response = client.post(
        "/blog/create",
        data={"title": "No cover", "content": LONG_CONTENT, "category": "Tech"},
        headers=auth_headers(test_user),
    )
    assert response.status_code == 400


def test_create_blog_content_too_short(client, test_user):
    response = create_blog(client, test_user, content="<p>too short</p>")
    assert response.status_code == 400
    assert "at least 200" in response.json()["message"]


def test_create_blog_title_too_long(client, test_user):
    response = create_blog(client, test_user, title="t" * 101)
    assert response.status_code == 400


def test_create_blog_rejects_corrupt_cover(client, test_user):
    response = create_blog(client, test_user, cover=b"\x89PNG but not really")
    assert response.status_code == 400


def test_duplicate_titles_get_distinct_slugs(client, test_user):
    first = create_blog(client, test_user, title="Same Title").json()["blog"]
    second = create_blog(client, test_user, title="Same Title").json()["blog"]
    assert first["slug"] == "same-title"
    assert second["slug"] == "same-title-2"


def test_list_blogs_newest_first(client, test_user):
    create_blog(client, test_user, title="Older")
    create_blog(client, test_user, title="Newer")

    response = client.get("/blogs")
    assert response.status_code == 200
    titles = [b["title"] for b in response.json()["blogs"]]
    assert titles == ["Newer", "Older"]
    assert all(b["author"]["name"] == test_user.name for b in response.json()["blogs"])


def test_get_single_blog(client, test_user):
    slug = create_blog(client, test_user).json()["blog"]["slug"]

    response = client.get(f"/single-blog/{slug}")
    assert response.status_code == 200
    assert response.json()["blog"]["slug"] == slug

    missing = client.get("/single-blog/no-such-blog")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Blog not found"}


def test_single_user_blogs_with_totals(client, make_user):
    author = make_user()
    reader = make_user()
    first = create_blog(client, author, title="One").json()["blog"]
    create_blog(client, author, title="Two")

    client.post(f"/blog/like/{first['id']}", headers=auth_headers(reader))
    client.patch(f"/{first['slug']}/view", headers=auth_headers(reader))
    client.post(
        f"/comment/add/{first['slug']}", json={"text": "Nice"}, headers=auth_headers(reader)
    )

    response = client.get("/single-user/blogs", headers=auth_headers(author))
    assert response.status_code == 200
    body = response.json()
    assert [b["title"] for b in body["blogs"]] == ["Two", "One"]
    assert body["totals"] == {"blogs": 2, "comments": 1, "likes": 1, "views": 1}


def test_single_user_blogs_none(client, test_user):
    response = client.get("/single-user/blogs", headers=auth_headers(test_user))
    assert response.status_code == 404


def test_edit_blog_regenerates_slug(client, test_user):
    blog = create_blog(client, test_user, title="Draft Title").json()["blog"]

    response = client.put(
        f"/blog/edit/{blog['id']}",
        data={"title": "Final Title"},
        headers=auth_headers(test_user),
    )
    assert response.status_code == 200
    updated = response.json()["blog"]
    assert updated["title"] == "Final Title"
    assert updated["slug"] == "final-title"
    assert updated["content"] == blog["content"]

    assert client.get("/single-blog/draft-title").status_code == 404
    assert client.get("/single-blog/final-title").status_code == 200


def test_edit_blog_same_title_keeps_slug(client, test_user):
    blog = create_blog(client, test_user, title="Stable").json()["blog"]
    response = client.put(
        f"/blog/edit/{blog['id']}",
        data={"title": "Stable", "category": "Life"},
        headers=auth_headers(test_user),
    )
    assert response.status_code == 200
    assert response.json()["blog"]["slug"] == "stable"
    assert response.json()["blog"]["category"] == "Life"


def test_edit_blog_replaces_cover(client, test_user):
    blog = create_blog(client, test_user).json()["blog"]
    old_cover = blog["cover_image_url"]

    response = client.put(
        f"/blog/edit/{blog['id']}",
        files={"coverImage": ("new.png", make_png("green"), "image/png")},
        headers=auth_headers(test_user),
    )
    assert response.status_code == 200
    new_cover = response.json()["blog"]["cover_image_url"]
    assert new_cover != old_cover
    assert vault_file(new_cover).exists()
    assert not vault_file(old_cover).exists()


def test_edit_blog_forbidden_for_other_user(client, make_user):
    owner = make_user()
    stranger = make_user()
    blog = create_blog(client, owner).json()["blog"]

    response = client.put(
        f"/blog/edit/{blog['id']}",
        data={"title": "Hijacked"},
        headers=auth_headers(stranger),
    )
    assert response.status_code == 403


def test_admin_can_edit_any_blog(client, make_user):
    owner = make_user()
    admin = make_user(role=ROLE_ADMIN)
    blog = create_blog(client, owner).json()["blog"]

    response = client.put(
        f"/blog/edit/{blog['id']}",
        data={"category": "Moderated"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["blog"]["author"]["id"] == owner.id


def test_delete_blog_removes_cover_and_is_not_repeatable(client, db: Session, make_user):
    author = make_user()
    reader = make_user()
    blog = create_blog(client, author).json()["blog"]
    cover = vault_file(blog["cover_image_url"])
    client.post(f"/blog/like/{blog['id']}", headers=auth_headers(reader))
    client.post(
        f"/comment/add/{blog['slug']}", json={"text": "First!"}, headers=auth_headers(reader)
    )
    assert cover.exists()

    response = client.delete(f"/blog/delete/{blog['id']}", headers=auth_headers(author))
    assert response.status_code == 200
    assert not cover.exists()
    assert client.get(f"/single-blog/{blog['slug']}").status_code == 404

    db.expire_all()
    assert db.query(models.BlogLike).count() == 0
    assert db.query(models.Comment).count() == 0
    assert db.get(models.User, author.id).blog_count == 0

    retry = client.delete(f"/blog/delete/{blog['id']}", headers=auth_headers(author))
    assert retry.status_code == 404
    assert db.get(models.User, author.id).blog_count == 0


def test_delete_blog_forbidden_for_other_user(client, make_user):
    owner = make_user()
    stranger = make_user()
    blog = create_blog(client, owner).json()["blog"]

    response = client.delete(f"/blog/delete/{blog['id']}", headers=auth_headers(stranger))
    assert response.status_code == 403
    assert vault_file(blog["cover_image_url"]).exists()


def test_like_toggles(client, make_user):
    author = make_user()
    reader = make_user()
    blog_id = create_blog(client, author).json()["blog"]["id"]

    liked = client.post(f"/blog/like/{blog_id}", headers=auth_headers(reader))
    assert liked.status_code == 200
    assert liked.json() == {
        "success": True,
        "message": "Blog liked",
        "likesCount": 1,
        "likedByUser": True,
    }

    unliked = client.post(f"/blog/like/{blog_id}", headers=auth_headers(reader))
    assert unliked.json()["likesCount"] == 0
    assert unliked.json()["likedByUser"] is False


def test_like_counts_each_user_once(client, make_user):
    author = make_user()
    readers = [make_user() for _ in range(3)]
    blog_id = create_blog(client, author).json()["blog"]["id"]

    for reader in readers:
        client.post(f"/blog/like/{blog_id}", headers=auth_headers(reader))

    response = client.get("/blogs")
    assert response.json()["blogs"][0]["likes_count"] == 3


def test_unlike_never_goes_below_zero(client, db: Session, make_user):
    author = make_user()
    reader = make_user()
    blog_id = create_blog(client, author).json()["blog"]["id"]
    client.post(f"/blog/like/{blog_id}", headers=auth_headers(reader))

    # Counter drifted to zero while the like row still exists
    db.query(models.Blog).filter(models.Blog.id == blog_id).update({"likes_count": 0})
    db.commit()

    response = client.post(f"/blog/like/{blog_id}", headers=auth_headers(reader))
    assert response.json()["likedByUser"] is False
    assert response.json()["likesCount"] == 0


def test_like_missing_blog(client, test_user):
    response = client.post("/blog/like/424242", headers=auth_headers(test_user))
    assert response.status_code == 404


def test_view_counted_once_per_user(client, make_user):
    author = make_user()
    reader = make_user()
    slug = create_blog(client, author).json()["blog"]["slug"]

    first = client.patch(f"/{slug}/view", headers=auth_headers(reader))
    assert first.status_code == 200
    assert first.json()["viewsCount"] == 1
    assert first.json()["counted"] is True

    second = client.patch(f"/{slug}/view", headers=auth_headers(reader))
    assert second.json()["viewsCount"] == 1
    assert second.json()["counted"] is False

    other = client.patch(f"/{slug}/view", headers=auth_headers(author))
    assert other.json()["viewsCount"] == 2


def test_view_requires_auth(client, test_user):
    slug = create_blog(client, test_user).json()["blog"]["slug"]
    assert client.patch(f"/{slug}/view").status_code == 401


def test_view_missing_blog(client, test_user):
    response = client.patch("/no-such-blog/view", headers=auth_headers(test_user))
    assert response.status_code == 404


def _insert_concurrently_before_flush(db: Session, monkeypatch, concurrent_request) -> None:
    """Run ``concurrent_request`` in its own session right before ``db``'s next flush."""
    real_flush = db.flush
    pending = [concurrent_request]

    def flush_after_concurrent_request(*args, **kwargs):
        if pending:
            other = SessionLocal()
            try:
                pending.pop()(other)
            finally:
                other.close()
        return real_flush(*args, **kwargs)

    monkeypatch.setattr(db, "flush", flush_after_concurrent_request)


def test_concurrent_like_is_counted_once(db: Session, client, make_user, monkeypatch):
    author = make_user()
    reader = make_user()
    blog_id = create_blog(client, author).json()["blog"]["id"]

    _insert_concurrently_before_flush(
        db, monkeypatch, lambda other: toggle_blog_like(other, blog_id, reader.id)
    )
    assert toggle_blog_like(db, blog_id, reader.id) is True

    assert db.query(models.BlogLike).filter(models.BlogLike.blog_id == blog_id).count() == 1
    assert get_counter(db, models.Blog, blog_id, "likes_count") == 1


def test_concurrent_view_is_counted_once(db: Session, client, make_user, monkeypatch):
    author = make_user()
    reader = make_user()
    blog_id = create_blog(client, author).json()["blog"]["id"]

    _insert_concurrently_before_flush(
        db, monkeypatch, lambda other: record_blog_view(other, blog_id, reader.id)
    )
    assert record_blog_view(db, blog_id, reader.id) is False

    assert db.query(models.BlogView).filter(models.BlogView.blog_id == blog_id).count() == 1
    assert get_counter(db, models.Blog, blog_id, "views_count") == 1
