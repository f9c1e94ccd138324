from __future__ import annotations

import hashlib
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, Mapping
from uuid import uuid4

import requests
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .db import execute, query, query_one
from .errors import InputError, NotFoundError, StoreError
from .models import image_row_to_dict

logger = logging.getLogger(__name__)

CLOUDINARY_API = "https://api.cloudinary.com/v1_1"
DEFAULT_IMAGE = "no-thumb.jpg"
ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def image_base_url(config: Mapping[str, Any]) -> str:
    """Base URL that stored image names are appended to."""
    base = config.get("IMAGE_BASE_URL")
    if base:
        return base.rstrip("/")
    cloud = config.get("CLOUD_NAME")
    if cloud:
        return f"https://res.cloudinary.com/{cloud}/image/upload"
    return "/v1/images"


def image_url(name: str | None, config: Mapping[str, Any] | None = None) -> str:
    """Full URL for a stored image name, or the placeholder when there is none."""
    base = image_base_url(config if config is not None else current_app.config)
    if not name:
        return f"{base}/{DEFAULT_IMAGE}"
    if name.startswith("http"):
        return name
    return f"{base}/{name.lstrip('/')}"


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


class LocalImageStore:
    """Keeps uploads in a folder on disk under uuid4 file names."""

    def __init__(self, folder: str | Path):
        self.folder = Path(folder)

    def save(self, file: FileStorage) -> tuple[str, str]:
        self.folder.mkdir(parents=True, exist_ok=True)
        ext = file.filename.rsplit(".", 1)[1].lower()
        public_id = uuid4().hex
        image_name = f"{public_id}.{ext}"
        file.save(str(self.folder / image_name))
        return public_id, image_name

    def delete(self, public_id: str, image_name: str | None = None) -> None:
        name = secure_filename(image_name or "")
        candidates = [self.folder / name] if name else list(self.folder.glob(f"{public_id}.*"))
        for path in candidates:
            if path.exists():
                path.unlink()

    def path_for(self, image_name: str) -> Path | None:
        safe_name = secure_filename(Path(image_name).name)
        if not safe_name:
            return None
        path = self.folder / safe_name
        if not path.exists() or not path.is_file():
            return None
        return path


class CloudinaryClient:
    """Minimal signed client for the Cloudinary upload API."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, timeout: float = 20):
        if not (cloud_name and api_key and api_secret):
            raise RuntimeError("CLOUD_NAME, CLD_API_KEY and CLD_API_SECRET are required for the cloudinary image store")
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout

    def sign(self, params: Dict[str, Any]) -> str:
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _post(self, action: str, params: Dict[str, Any], files: Dict[str, Any] | None = None) -> Dict[str, Any]:
        params = {**params, "timestamp": int(time.time())}
        data = {**params, "api_key": self.api_key, "signature": self.sign(params)}
        url = f"{CLOUDINARY_API}/{self.cloud_name}/image/{action}"
        r = requests.post(url, data=data, files=files, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def upload(self, file: FileStorage) -> Dict[str, Any]:
        return self._post("upload", {}, files={"file": (file.filename, file.stream, file.mimetype)})

    def destroy(self, public_id: str) -> Dict[str, Any]:
        return self._post("destroy", {"public_id": public_id})


class CloudinaryImageStore:
    def __init__(self, client: CloudinaryClient):
        self.client = client

    def save(self, file: FileStorage) -> tuple[str, str]:
        try:
            resp = self.client.upload(file)
        except requests.RequestException as exc:
            logger.error("cloudinary upload failed: %s", exc)
            raise StoreError("failed to upload the image") from exc
        return resp["public_id"], f"{resp['public_id']}.{resp['format']}"

    def delete(self, public_id: str, image_name: str | None = None) -> None:
        try:
            self.client.destroy(public_id)
        except requests.RequestException as exc:
            logger.error("cloudinary destroy failed for %s: %s", public_id, exc)
            raise StoreError("failed to remove the image") from exc


def build_image_store(config: Mapping[str, Any]):
    kind = (config.get("IMAGE_STORE") or "local").lower()
    if kind == "cloudinary":
        return CloudinaryImageStore(
            CloudinaryClient(config.get("CLOUD_NAME"), config.get("CLD_API_KEY"), config.get("CLD_API_SECRET"))
        )
    if kind == "local":
        return LocalImageStore(config["IMAGE_UPLOAD_FOLDER"])
    raise RuntimeError(f"Unknown IMAGE_STORE: {kind}")


def get_image_store():
    store = current_app.extensions.get("filmwise_image_store")
    if store is None:
        store = build_image_store(current_app.config)
        current_app.extensions["filmwise_image_store"] = store
    return store


def save_upload(user_id: int, file: FileStorage | None) -> dict:
    """
    Push an uploaded file to the image store and record it in `images`.

    The record starts unused; it becomes used once a movie references it.
    When the record cannot be written the stored asset is removed again.
    """
    if file is None:
        raise InputError("No file provided")
    if not file.filename:
        raise InputError("No file selected")
    if not allowed_file(file.filename):
        raise InputError(f"File type not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    max_bytes = current_app.config.get("MAX_IMAGE_BYTES", 10 << 20)
    file.stream.seek(0, 2)
    size = file.stream.tell()
    file.stream.seek(0)
    if size > max_bytes:
        raise InputError("file size should be less than 10MB")

    store = get_image_store()
    public_id, image_name = store.save(file)
    try:
        cur = execute(
            "INSERT INTO images (user_id, image_path, image_name, is_used) VALUES (?, ?, ?, 0)",
            (user_id, public_id, image_name),
        )
    except (StoreError, sqlite3.IntegrityError) as exc:
        store.delete(public_id, image_name)
        raise StoreError("can't insert image info to the database") from exc

    logger.info("user %s uploaded image %s", user_id, image_name)
    return {"id": int(cur.lastrowid), "image_name": image_name, "url": image_url(image_name)}


def get_image(image_id: int) -> dict:
    row = query_one(
        "SELECT id, user_id, image_path, image_name, is_used FROM images WHERE id = ?",
        (image_id,),
    )
    if not row:
        raise NotFoundError("invalid image id")
    return image_row_to_dict(row)


def get_image_by_name(image_name: str) -> dict | None:
    row = query_one(
        "SELECT id, user_id, image_path, image_name, is_used FROM images WHERE image_name = ?",
        (image_name,),
    )
    return image_row_to_dict(row) if row else None


def release_image(image: dict) -> None:
    """Drop an image from the store and from `images`."""
    try:
        get_image_store().delete(image["image_path"], image["image_name"])
    except StoreError:
        logger.warning("stored asset %s could not be removed", image["image_path"])
    execute("DELETE FROM images WHERE id = ?", (image["id"],))


def unused_images(older_than: str) -> list[dict]:
    rows = query(
        "SELECT id, user_id, image_path, image_name, is_used FROM images WHERE is_used = 0 AND created_at < ?",
        (older_than,),
    )
    return [image_row_to_dict(r) for r in rows]
