# Overview: Client for the hosted image service (Cloudinary) plus best-effort asset cleanup.

"""
Image Store

Product and category images live on Cloudinary. The backend only needs
three operations:

- upload(data, folder) -> StoredImage(url, public_id)
- destroy(public_id)
- upload_many(items, folder): every upload runs concurrently; one failure
  fails the batch (no partial success)

Calls go through the official SDK (`cloudinary.uploader`), which signs each
request with the API secret. Every SDK error surfaces as ImageStoreError.

Deleting remote assets after a row is deleted is best-effort: it runs on a
background thread and failures are written to the error log instead of
reaching the caller.
"""
from __future__ import annotations

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from urllib.parse import urlparse

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from flask import current_app


CLOUDINARY_HOST = "res.cloudinary.com"

# Images are stored at most 800x800 with automatic quality
UPLOAD_TRANSFORMATION = [
    {"width": 800, "height": 800, "crop": "limit"},
    {"quality": "auto"},
]

MAX_UPLOAD_WORKERS = 6

_VERSION_SEGMENT = re.compile(r"^v\d+$")


class ImageStoreError(Exception):
    """Raised when the image host rejects or fails an upload."""


@dataclass(frozen=True)
class StoredImage:
    url: str
    public_id: str

    def to_dict(self) -> dict:
        return {"url": self.url, "public_id": self.public_id}


def is_data_uri(value: str) -> bool:
    return isinstance(value, str) and value.startswith("data:image")


def public_id_from_url(url: str | None) -> str | None:
    """
    Recover the public id from a delivery URL, or None for non-hosted URLs.

    https://res.cloudinary.com/<cloud>/image/upload/v1712/products/abc.jpg -> products/abc
    """
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.hostname != CLOUDINARY_HOST:
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if "upload" not in parts:
        return None
    tail = parts[parts.index("upload") + 1:]
    if tail and _VERSION_SEGMENT.match(tail[0]):
        tail = tail[1:]
    if not tail:
        return None

    tail[-1] = tail[-1].rsplit(".", 1)[0]
    return "/".join(tail)


class CloudinaryImageStore:
    """Thin wrapper over the Cloudinary SDK uploader."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        if self.configured:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key,
                api_secret=api_secret,
                secure=True,
            )

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _require_config(self) -> None:
        if not self.configured:
            raise ImageStoreError("Image storage is not configured")

    def upload(self, data: str, folder: str) -> StoredImage:
        """Upload a data URI (or remote URL) into `folder`."""
        self._require_config()
        try:
            result = cloudinary.uploader.upload(
                data,
                folder=folder,
                resource_type="image",
                transformation=UPLOAD_TRANSFORMATION,
            )
        except cloudinary.exceptions.Error as e:
            raise ImageStoreError(str(e) or "Image upload failed") from e

        try:
            return StoredImage(url=result["secure_url"], public_id=result["public_id"])
        except KeyError:
            raise ImageStoreError("Image service response missing url")

    def destroy(self, public_id: str) -> bool:
        self._require_config()
        try:
            result = cloudinary.uploader.destroy(public_id, invalidate=True)
        except cloudinary.exceptions.Error as e:
            raise ImageStoreError(str(e) or "Image deletion failed") from e
        return result.get("result") == "ok"

    def upload_many(self, items: list[str], folder: str) -> list[StoredImage]:
        """
        Upload every item concurrently and wait for all of them.

        Results keep input order. If any upload fails the whole batch fails.
        """
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=min(MAX_UPLOAD_WORKERS, len(items))) as pool:
            futures = [pool.submit(self.upload, item, folder) for item in items]
        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            raise ImageStoreError(f"Multiple images upload failed: {errors[0]}")
        return [f.result() for f in futures]


def get_image_store():
    return current_app.extensions["image_store"]


def resolve_images(images: list[str], folder: str) -> list[str]:
    """
    Replace inline data URIs with hosted URLs; plain URLs pass through.
    Uploads for one request run as a single concurrent batch.
    """
    pending = [(index, image) for index, image in enumerate(images) if is_data_uri(image)]
    if not pending:
        return list(images)

    stored = get_image_store().upload_many([image for _, image in pending], folder)
    resolved = list(images)
    for (index, _), result in zip(pending, stored):
        resolved[index] = result.url
    return resolved


def resolve_image(image: str, folder: str) -> str:
    if is_data_uri(image):
        return get_image_store().upload(image, folder).url
    return image


def _destroy_all(app, store, public_ids: list[str]) -> None:
    with app.app_context():
        for public_id in public_ids:
            try:
                store.destroy(public_id)
            except Exception:
                # dead-letter: the remote asset stays behind, the row is already gone
                app.logger.exception("Image cleanup failed for public_id=%s", public_id)


def schedule_cleanup(urls: list[str | None]) -> threading.Thread | None:
    """
    Remove hosted assets for deleted rows without blocking or failing the caller.

    Non-hosted URLs are ignored. Runs inline when IMAGE_CLEANUP_ASYNC is off.
    """
    public_ids = [pid for pid in (public_id_from_url(url) for url in urls) if pid]
    if not public_ids:
        return None

    app = current_app._get_current_object()
    store = get_image_store()

    if not app.config.get("IMAGE_CLEANUP_ASYNC", True):
        _destroy_all(app, store, public_ids)
        return None

    worker = threading.Thread(
        target=_destroy_all,
        args=(app, store, public_ids),
        name="image-cleanup",
        daemon=True,
    )
    worker.start()
    return worker
