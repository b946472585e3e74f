"""Test media vault storage utilities."""

import hashlib
from uuid import UUID

import pytest

from blogsite.media_vault import (
    AVATAR_KIND,
    COVER_KIND,
    InvalidImageError,
    compute_storage_shard,
    delete_image_by_url,
    get_image_file_path,
    get_image_url,
    hash_image_id,
    resolve_mime_type,
    save_image,
    validate_image_content,
)


class TestComputeStorageShard:
    """Tests for compute_storage_shard function."""

    def test_returns_correct_format(self):
        """Test that compute_storage_shard returns 'xx/yy/zz' format."""
        image_id = UUID("a1b2c3d4-e5f6-7890-abcd-ef1234567890")
        result = compute_storage_shard(image_id)

        assert len(result) == 8
        chunks = result.split("/")
        assert len(chunks) == 3
        for chunk in chunks:
            int(chunk, 16)

    def test_matches_hash_image_id(self):
        image_id = UUID("12345678-1234-5678-1234-567812345678")
        full_hash = hash_image_id(image_id)

        assert compute_storage_shard(image_id) == f"{full_hash[0:2]}/{full_hash[2:4]}/{full_hash[4:6]}"

    def test_known_value(self):
        """Regression check against a hash computed by hand."""
        image_id = UUID("00000000-0000-0000-0000-000000000000")
        expected_hash = hashlib.sha256(str(image_id).encode()).hexdigest()

        assert compute_storage_shard(image_id) == (
            f"{expected_hash[0:2]}/{expected_hash[2:4]}/{expected_hash[4:6]}"
        )


class TestPathsAndUrls:
    def test_file_path_and_url_share_shard(self):
        image_id = UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
        shard = compute_storage_shard(image_id)

        path = get_image_file_path(COVER_KIND, image_id, ".png")
        url = get_image_url(COVER_KIND, image_id, "png")

        assert path.as_posix().endswith(f"cover/{shard}/{image_id}.png")
        assert url == f"/vault/cover/{shard}/{image_id}.png"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            get_image_file_path("banner", UUID(int=1), ".png")


class TestResolveMimeType:
    def test_content_type_wins(self):
        assert resolve_mime_type("image/png", "photo.jpg") == "image/png"

    def test_jpg_alias_normalized(self):
        assert resolve_mime_type("image/jpg", None) == "image/jpeg"

    def test_falls_back_to_extension(self):
        assert resolve_mime_type("application/octet-stream", "photo.WEBP") == "image/webp"

    def test_rejects_non_images(self):
        with pytest.raises(InvalidImageError, match="Only images"):
            resolve_mime_type("application/pdf", "doc.pdf")


class TestSaveAndDelete:
    def test_save_writes_file_and_delete_removes_it(self, png_bytes):
        url = save_image(AVATAR_KIND, png_bytes, "image/png")
        assert url.startswith("/vault/avatar/")

        image_id = UUID(url.rsplit("/", 1)[-1].split(".")[0])
        file_path = get_image_file_path(AVATAR_KIND, image_id, ".png")
        assert file_path.read_bytes() == png_bytes

        assert delete_image_by_url(url) is True
        assert not file_path.exists()

    def test_delete_missing_file_is_tolerated(self, png_bytes):
        url = save_image(COVER_KIND, png_bytes, "image/png")
        assert delete_image_by_url(url) is True
        assert delete_image_by_url(url) is False

    def test_delete_ignores_foreign_urls(self):
        assert delete_image_by_url("https://example.com/picture.png") is False
        assert delete_image_by_url(None) is False

    def test_rejects_undecodable_bytes(self):
        with pytest.raises(InvalidImageError, match="Could not read image"):
            validate_image_content(b"definitely not an image")

    def test_rejects_empty_upload(self):
        with pytest.raises(InvalidImageError, match="empty"):
            validate_image_content(b"")

    def test_rejects_oversized_upload(self, png_bytes, monkeypatch):
        monkeypatch.setattr("blogsite.media_vault.MAX_IMAGE_UPLOAD_BYTES", 10)
        with pytest.raises(InvalidImageError, match="exceeds maximum"):
            validate_image_content(png_bytes)
