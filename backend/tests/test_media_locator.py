"""
Tests for mapping (size, photo id) to stored paths and the delegated responders.
"""
import uuid
import pytest

from models.photo import Photo
from services.exceptions import BadRequest, NotFound
from services.file_storage import MediaStore
from services.media import (
    MediaLocator, MediaLocation, media_response, normalize_size, build_media_url,
    ORIGINAL_CACHE_CONTROL, DERIVED_CACHE_CONTROL
)

async def stored_photo(db, ext="jpg"):
    photo_id = str(uuid.uuid4())
    photo = Photo(
        id=photo_id,
        title="t",
        slug=f"t-{photo_id[:6]}",
        width=10,
        height=10,
        storage_key=f"{photo_id}.{ext}",
        sizes_json={}
    )
    db.add(photo)
    await db.commit()
    return photo

class TestSizes:
    @pytest.mark.parametrize("size,label", [
        ("original", "original"), ("320", "320"), ("768", "768"), ("1280", "1280"),
        ("small", "320"), ("medium", "768"), ("large", "1280"),
    ])
    def test_known_sizes(self, size, label):
        assert normalize_size(size) == label

    @pytest.mark.parametrize("size", ["640", "thumb", "", "../originals", "ORIGINAL"])
    def test_unknown_sizes(self, size):
        with pytest.raises(BadRequest):
            normalize_size(size)

    async def test_size_is_checked_before_any_lookup(self):
        # No database at all: the size check must fail first
        with pytest.raises(BadRequest):
            await MediaLocator(None).locate("9999", str(uuid.uuid4()))

class TestLocate:
    async def test_original(self, db_session):
        photo = await stored_photo(db_session)

        location = await MediaLocator(db_session).locate("original", photo.id)

        assert location.relative_path == f"originals/{photo.storage_key}"
        assert location.content_type == "image/jpeg"
        assert location.cache_control == ORIGINAL_CACHE_CONTROL

    async def test_derived_png(self, db_session):
        photo = await stored_photo(db_session, ext="png")

        location = await MediaLocator(db_session).locate("medium", photo.id)

        assert location.relative_path == f"size_768/{photo.storage_key}"
        assert location.content_type == "image/png"
        assert location.cache_control == DERIVED_CACHE_CONTROL

    async def test_missing_photo(self, db_session):
        with pytest.raises(NotFound):
            await MediaLocator(db_session).locate("320", str(uuid.uuid4()))

class TestResponders:
    def test_x_accel_hands_path_to_nginx(self, tmp_path):
        store = MediaStore(str(tmp_path), delivery="x-accel")
        location = MediaLocation("320", "size_320/abc.jpg", "image/jpeg", DERIVED_CACHE_CONTROL)

        response = media_response(location, store)

        assert response.status_code == 200
        assert response.body == b""
        assert response.headers["X-Accel-Redirect"] == "/internal/media/size_320/abc.jpg"
        assert response.headers["Cache-Control"] == DERIVED_CACHE_CONTROL
        assert response.headers["Content-Type"].startswith("image/jpeg")

    def test_direct_serves_from_media_root(self, tmp_path):
        store = MediaStore(str(tmp_path), delivery="direct")
        (tmp_path / "originals").mkdir()
        (tmp_path / "originals" / "abc.png").write_bytes(b"png-bytes")
        location = MediaLocation("original", "originals/abc.png", "image/png", ORIGINAL_CACHE_CONTROL)

        response = media_response(location, store)

        assert str(response.path) == str((tmp_path / "originals" / "abc.png").resolve())
        assert response.headers["Cache-Control"] == ORIGINAL_CACHE_CONTROL
        assert "X-Accel-Redirect" not in response.headers

    def test_direct_missing_file(self, tmp_path):
        store = MediaStore(str(tmp_path), delivery="direct")
        location = MediaLocation("320", "size_320/gone.jpg", "image/jpeg", DERIVED_CACHE_CONTROL)

        with pytest.raises(NotFound):
            media_response(location, store)

def test_media_urls_never_expose_storage_keys():
    assert build_media_url("320", "abc") == "/api/media/320/abc"
    assert build_media_url("original", "abc", share_token="tok") == "/api/share/tok/media/original/abc"
