from io import BytesIO
from pathlib import Path

import pytest
import requests
from werkzeug.datastructures import FileStorage

from filmwise.db import execute, query_one
from filmwise.errors import InputError, NotFoundError, StoreError
from filmwise.images import (
    CloudinaryClient,
    CloudinaryImageStore,
    LocalImageStore,
    build_image_store,
    get_image,
    image_base_url,
    image_url,
    save_upload,
)
from filmwise.janitor import ImageJanitor, purge_unused_images


def _upload(name="poster.png", data=b"\x89PNG fake image"):
    return FileStorage(stream=BytesIO(data), filename=name, content_type="image/png")


def test_image_url_with_configured_base():
    config = {"IMAGE_BASE_URL": "https://cdn.test/images/"}
    assert image_url("a.jpg", config) == "https://cdn.test/images/a.jpg"
    assert image_url("", config) == "https://cdn.test/images/no-thumb.jpg"
    assert image_url(None, config) == "https://cdn.test/images/no-thumb.jpg"


def test_image_base_url_fallbacks():
    assert image_base_url({"CLOUD_NAME": "demo"}) == "https://res.cloudinary.com/demo/image/upload"
    assert image_base_url({}) == "/v1/images"


def test_absolute_image_reference_is_kept():
    assert image_url("https://elsewhere.test/x.png", {}) == "https://elsewhere.test/x.png"


def test_save_upload_stores_file_and_record(ctx):
    image = save_upload(2, _upload())

    assert image["url"] == f"http://img.test/{image['image_name']}"
    assert (Path(ctx.config["IMAGE_UPLOAD_FOLDER"]) / image["image_name"]).read_bytes() == b"\x89PNG fake image"
    stored = get_image(image["id"])
    assert stored["is_used"] is False
    assert stored["user_id"] == 2


def test_save_upload_rejects_extension(ctx):
    with pytest.raises(InputError, match="File type not allowed"):
        save_upload(2, _upload(name="script.exe"))


def test_save_upload_rejects_missing_file(ctx):
    with pytest.raises(InputError):
        save_upload(2, None)
    with pytest.raises(InputError):
        save_upload(2, _upload(name=""))


def test_save_upload_rejects_large_file(ctx):
    ctx.config["MAX_IMAGE_BYTES"] = 4
    with pytest.raises(InputError, match="10MB"):
        save_upload(2, _upload())


def test_save_upload_removes_asset_when_record_fails(ctx, monkeypatch):
    def failing_execute(sql, params=()):
        raise StoreError()

    monkeypatch.setattr("filmwise.images.execute", failing_execute)
    with pytest.raises(StoreError):
        save_upload(2, _upload())
    assert list(Path(ctx.config["IMAGE_UPLOAD_FOLDER"]).iterdir()) == []


def test_get_image_unknown(ctx):
    with pytest.raises(NotFoundError):
        get_image(999)


def test_local_store_path_for_rejects_traversal(tmp_path):
    store = LocalImageStore(tmp_path)
    (tmp_path / "a.png").write_bytes(b"x")
    assert store.path_for("a.png") == tmp_path / "a.png"
    assert store.path_for("../a.png") == tmp_path / "a.png"
    assert store.path_for("missing.png") is None


def test_build_image_store():
    assert isinstance(build_image_store({"IMAGE_STORE": "local", "IMAGE_UPLOAD_FOLDER": "/tmp/x"}), LocalImageStore)
    store = build_image_store(
        {"IMAGE_STORE": "cloudinary", "CLOUD_NAME": "demo", "CLD_API_KEY": "k", "CLD_API_SECRET": "s"}
    )
    assert isinstance(store, CloudinaryImageStore)
    with pytest.raises(RuntimeError):
        build_image_store({"IMAGE_STORE": "cloudinary"})
    with pytest.raises(RuntimeError):
        build_image_store({"IMAGE_STORE": "ftp"})


def test_cloudinary_signature():
    client = CloudinaryClient("demo", "key", "s3cr3t")
    signature = client.sign({"timestamp": 1700000000, "public_id": "abc123", "file": ""})
    assert signature == "0cd760f416d7e8441baa1890e1206b06a518fc61"


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


def test_cloudinary_store_upload(monkeypatch):
    calls = []

    def fake_post(url, data=None, files=None, timeout=None):
        calls.append((url, data))
        return FakeResponse({"public_id": "pid42", "format": "jpg"})

    monkeypatch.setattr("filmwise.images.requests.post", fake_post)
    store = CloudinaryImageStore(CloudinaryClient("demo", "key", "secret"))

    assert store.save(_upload(name="x.jpg")) == ("pid42", "pid42.jpg")
    url, data = calls[0]
    assert url == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert data["api_key"] == "key"
    assert "signature" in data and "timestamp" in data


def test_cloudinary_store_failure_is_a_store_error(monkeypatch):
    monkeypatch.setattr(
        "filmwise.images.requests.post",
        lambda *a, **kw: FakeResponse({}, status=500),
    )
    store = CloudinaryImageStore(CloudinaryClient("demo", "key", "secret"))
    with pytest.raises(StoreError):
        store.save(_upload(name="x.jpg"))
    with pytest.raises(StoreError):
        store.delete("pid42")


def test_purge_removes_only_old_unused_images(ctx):
    execute(
        "INSERT INTO images (user_id, image_path, image_name, is_used, created_at) VALUES (2, 'old', 'old.png', 0, '2000-01-01 00:00:00')"
    )
    fresh = save_upload(2, _upload())

    assert purge_unused_images(24) == 1
    assert query_one("SELECT 1 FROM images WHERE image_name = 'old.png'") is None
    assert get_image(fresh["id"])["image_name"] == fresh["image_name"]
    # images attached to movies are never purged
    assert query_one("SELECT 1 FROM images WHERE image_name = 'dark.jpg'") is not None


def test_janitor_run_job_tracks_status(app):
    with app.app_context():
        execute(
            "INSERT INTO images (user_id, image_path, image_name, is_used, created_at) VALUES (2, 'old', 'old.png', 0, '2000-01-01 00:00:00')"
        )
    janitor = ImageJanitor(app, {"max_age_hours": 1})

    assert janitor.run_job() == 1
    status = janitor.get_status()
    assert status["last_run_status"] == "Success"
    assert status["total_runs"] == 1
    assert status["removed_total"] == 1
    assert status["running"] is False
