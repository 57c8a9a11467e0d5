"""
Tests for main-image storage and the signed image route.

Run: pytest backend/test_storage.py -v
"""

import io
from urllib.parse import parse_qs, urlparse

import pytest
from PIL import Image

from backend.modules import storage


def _png(width, height, color=(200, 30, 30)):
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, "PNG")
    return out.getvalue()


def _split_signed_url(url):
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    return parsed.path, query["expires"][0], query["signature"][0]


class TestResize:

    def test_wide_image_downscaled_to_max_width(self):
        result = storage.resize_image(_png(1600, 400))
        assert result["ext"] == "png"
        with Image.open(io.BytesIO(result["data"])) as img:
            assert img.size == (800, 200)

    def test_small_image_not_enlarged(self):
        result = storage.resize_image(_png(120, 90))
        with Image.open(io.BytesIO(result["data"])) as img:
            assert img.size == (120, 90)

    def test_corrupt_image_returns_error(self):
        assert storage.resize_image(b"not an image") == {"error": "Unsupported or corrupt image"}

    def test_oversized_image_returns_error(self, monkeypatch):
        # Pillow refuses anything past twice MAX_IMAGE_PIXELS
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        assert storage.resize_image(_png(100, 100)) == {"error": "Unsupported or corrupt image"}

    def test_oversized_upload_is_not_stored(self, temp_db, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        result = storage.save_main_image(1, "item1", "bomb.png", _png(100, 100))
        assert result == {"error": "Unsupported or corrupt image"}


class TestSignedUrls:

    def test_missing_file_is_error(self, temp_db):
        assert "error" in storage.create_signed_url("1/x/missing.png")

    def test_signature_roundtrip_and_tamper(self, temp_db):
        stored = storage.save_main_image(1, "item1", "photo.png", _png(10, 10))
        path = stored["path"]
        _, expires, signature = _split_signed_url(stored["url"])

        assert storage.verify_signature(path, int(expires), signature)
        assert not storage.verify_signature(path, int(expires) + 1, signature)
        assert not storage.verify_signature("1/other/main-image.png", int(expires), signature)
        assert not storage.verify_signature(path, 1, storage._sign(path, 1))

    def test_path_traversal_refused(self, temp_db):
        assert storage.resolve_stored_path("../../etc/passwd") is None

    @pytest.mark.parametrize("content", [b"", b"x" * 10])
    def test_bad_upload_returns_error(self, temp_db, content):
        assert "error" in storage.save_main_image(1, "item1", "photo.png", content)


class TestMainImageRoute:

    def test_upload_sets_signed_main_image(self, client, user):
        _, headers = user
        item_id = client.post("/api/assets", json={"title": "Camera"}, headers=headers).json()["id"]

        files = {"mainImage": ("photo.png", _png(1000, 500), "image/png")}
        resp = client.post(f"/api/assets/{item_id}/main-image", files=files, headers=headers)
        assert resp.status_code == 200, resp.text
        item = resp.json()
        assert item["main_image"].startswith("/api/images/")
        assert item["main_image_expiration"]

        image = client.get(item["main_image"])
        assert image.status_code == 200
        with Image.open(io.BytesIO(image.content)) as img:
            assert img.width == 800

    def test_tampered_url_forbidden(self, client, user):
        _, headers = user
        item_id = client.post("/api/assets", json={"title": "Camera"}, headers=headers).json()["id"]
        files = {"mainImage": ("photo.png", _png(20, 20), "image/png")}
        url = client.post(f"/api/assets/{item_id}/main-image", files=files, headers=headers).json()["main_image"]

        path, expires, _ = _split_signed_url(url)
        resp = client.get(path, params={"expires": expires, "signature": "0" * 64})
        assert resp.status_code == 403

    def test_corrupt_upload_uses_error_payload(self, client, user):
        _, headers = user
        item_id = client.post("/api/assets", json={"title": "Camera"}, headers=headers).json()["id"]
        files = {"mainImage": ("photo.png", b"garbage", "image/png")}

        resp = client.post(f"/api/assets/{item_id}/main-image", files=files, headers=headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": {"message": "Unsupported or corrupt image"}}

    def test_upload_to_foreign_item_rejected(self, client, make_user):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        item_id = client.post("/api/assets", json={"title": "Camera"}, headers=owner_headers).json()["id"]
        files = {"mainImage": ("photo.png", _png(20, 20), "image/png")}

        resp = client.post(f"/api/assets/{item_id}/main-image", files=files, headers=other_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Item not found"
