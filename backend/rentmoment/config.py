# backend/rentmoment/config.py
from __future__ import annotations
import json
import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _json_dumps(value) -> str:
    return json.dumps(value, ensure_ascii=False)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/rentmoment.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///rentmoment.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # JSON columns keep non-ASCII text verbatim so tag search can match it
    SQLALCHEMY_ENGINE_OPTIONS = {"json_serializer": _json_dumps}

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGIN",
            "http://localhost:3000,http://localhost:3001,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    # Image host (Cloudinary). Uploads fail with ImageStoreError when unset.
    CLOUDINARY_CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME", "")
    CLOUDINARY_API_KEY = os.environ.get("CLOUDINARY_API_KEY", "")
    CLOUDINARY_API_SECRET = os.environ.get("CLOUDINARY_API_SECRET", "")
    IMAGE_UPLOAD_FOLDER = os.environ.get("IMAGE_UPLOAD_FOLDER", "clothing-rental")
    IMAGE_CLEANUP_ASYNC = _env_flag("IMAGE_CLEANUP_ASYNC", "true")

    SESSION_LIFETIME_HOURS = int(os.environ.get("SESSION_LIFETIME_HOURS", "168"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
