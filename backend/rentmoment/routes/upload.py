# Overview: Flask API route for direct image uploads to the image host.

from flask import Blueprint, request, current_app

from ..services.image_store import ImageStoreError, get_image_store
from ..decorators import require_auth
from ..responses import success, failure


upload_bp = Blueprint("upload", __name__, url_prefix="/api/upload")


@upload_bp.post("/image")
@require_auth
def upload_image_route():
    """Body: {image: data URI or URL, folder?}. Returns {url, public_id}."""
    try:
        data = request.get_json(silent=True) or {}
        image = data.get("image")
        if not image or not isinstance(image, str):
            return failure("Image data is required", 400)

        folder = data.get("folder") or current_app.config["IMAGE_UPLOAD_FOLDER"]
        stored = get_image_store().upload(image, folder)
        return success(stored.to_dict(), "Image uploaded successfully")

    except ImageStoreError as e:
        return failure(str(e), 502)
    except Exception:
        current_app.logger.exception("Failed to upload image")
        return failure("Image upload failed", 500)
