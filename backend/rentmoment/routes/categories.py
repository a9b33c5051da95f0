# Overview: Flask API routes for category operations; parses input and returns JSON responses.

# backend/rentmoment/routes/categories.py
"""Category API routes. Reads are public, writes are admin-only."""

from flask import Blueprint, request, current_app

from ..services import catalog_service
from ..services.image_store import ImageStoreError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin
from ..responses import success, failure


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


def _serialize(category) -> dict:
    return category.to_dict()


@categories_bp.get("")
def list_categories_route():
    """Active categories, sort_order ascending by default."""
    try:
        page = catalog_service.list_categories(request.args)
        return success(page.to_dict(_serialize))

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return failure("Server error while fetching categories", 500)


@categories_bp.get("/slug/<slug>")
def get_category_by_slug_route(slug: str):
    category = catalog_service.get_category_by_slug(slug)
    if not category:
        return failure("Category not found", 404)
    return success({"category": category.to_dict()})


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    category = catalog_service.get_category(category_id)
    if not category:
        return failure("Category not found", 404)
    return success({"category": category.to_dict()})


@categories_bp.post("")
@require_auth
@require_admin
def create_category_route():
    try:
        patch = catalog_service.validate_category_payload(request.get_json(silent=True))
        category = catalog_service.create_category(patch)
        return success({"category": category.to_dict()}, "Category created successfully", 201)

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except ConflictError as e:
        return failure(str(e), 409)
    except ImageStoreError as e:
        return failure(str(e), 502)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return failure("Server error while creating category", 500)


@categories_bp.put("/<int:category_id>")
@require_auth
@require_admin
def update_category_route(category_id: int):
    try:
        patch = catalog_service.validate_category_payload(request.get_json(silent=True), partial=True)

        category = catalog_service.get_category(category_id)
        if not category:
            return failure("Category not found", 404)

        category = catalog_service.update_category(category, patch)
        return success({"category": category.to_dict()}, "Category updated successfully")

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except ConflictError as e:
        return failure(str(e), 409)
    except ImageStoreError as e:
        return failure(str(e), 502)
    except Exception:
        current_app.logger.exception("Failed to update category")
        return failure("Server error while updating category", 500)


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_admin
def delete_category_route(category_id: int):
    """Rejected with 409 while any product still references the category."""
    try:
        category = catalog_service.get_category(category_id)
        if not category:
            return failure("Category not found", 404)

        catalog_service.delete_category(category)
        return success(message="Category deleted successfully")

    except ConflictError as e:
        return failure(str(e), 409)
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return failure("Server error while deleting category", 500)
