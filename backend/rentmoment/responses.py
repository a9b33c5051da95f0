# Overview: Uniform JSON response envelope used by every route.

"""
Every response body has the shape

    {"success": bool, "message"?: str, "data"?: {...}, "errors"?: [{field, message}, ...]}
"""
from __future__ import annotations

from flask import jsonify


def success(data: dict | None = None, message: str | None = None, status: int = 200):
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def failure(message: str, status: int = 400, errors: list[dict] | None = None, **extra):
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return jsonify(body), status
