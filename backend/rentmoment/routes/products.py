# Overview: Flask API routes for product operations; parses input and returns JSON responses.

# backend/rentmoment/routes/products.py
"""
Product API routes.

Reads are public. A view is counted only when the caller is signed in;
list reads bump every product on the returned page in one UPDATE.
"""

from flask import Blueprint, request, current_app, g

from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..services.image_store import ImageStoreError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin, optional_auth
from ..responses import success, failure


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _serialize(product) -> dict:
    return product.to_dict()


def _page_response(page):
    body = page.to_dict(_serialize, include_nav=True)
    if g.current_user is not None:
        catalog_service.record_views([product.id for product in page.items])
    return success(body)


@products_bp.get("")
@optional_auth
def list_products_route():
    """
    Available products.

    Query: page, limit, sort (created_at|price|name|views|rating), order,
    category, search, min_price, max_price (cents), size, color, featured.
    """
    try:
        return _page_response(catalog_service.list_products(request.args))

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return failure("Server error while fetching products", 500)


@products_bp.get("/slug/<slug>")
@optional_auth
def get_product_by_slug_route(slug: str):
    try:
        product = catalog_service.get_product_by_slug(slug)
        if not product:
            return failure("Product not found", 404)

        if g.current_user is not None:
            catalog_service.record_view(product)
        return success({"product": product.to_dict()})

    except Exception:
        current_app.logger.exception("Failed to fetch product by slug")
        return failure("Server error while fetching product", 500)


@products_bp.get("/category/<int:category_id>")
@optional_auth
def list_products_in_category_route(category_id: int):
    try:
        return _page_response(catalog_service.list_products_in_category(category_id, request.args))

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except Exception:
        current_app.logger.exception("Failed to list products by category")
        return failure("Server error while fetching products", 500)


@products_bp.get("/<int:product_id>")
@optional_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        if not product:
            return failure("Product not found", 404)
        if not product.is_available:
            return failure("Product is not available", 404)

        if g.current_user is not None:
            catalog_service.record_view(product)
        return success({"product": product.to_dict()})

    except Exception:
        current_app.logger.exception("Failed to fetch product")
        return failure("Server error while fetching product", 500)


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    try:
        patch = catalog_service.validate_product_payload(request.get_json(silent=True))
        product = catalog_service.create_product(patch)
        return success({"product": product.to_dict()}, "Product created successfully", 201)

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except CatalogError as e:
        return failure(str(e), 400, details=e.details)
    except ConflictError as e:
        return failure(str(e), 409)
    except ImageStoreError as e:
        return failure(str(e), 502)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return failure("Server error while creating product", 500)


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    try:
        patch = catalog_service.validate_product_payload(request.get_json(silent=True), partial=True)

        product = catalog_service.get_product(product_id)
        if not product:
            return failure("Product not found", 404)

        product = catalog_service.update_product(product, patch)
        return success({"product": product.to_dict()}, "Product updated successfully")

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except CatalogError as e:
        return failure(str(e), 400, details=e.details)
    except ConflictError as e:
        return failure(str(e), 409)
    except ImageStoreError as e:
        return failure(str(e), 502)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return failure("Server error while updating product", 500)


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        if not product:
            return failure("Product not found", 404)

        catalog_service.delete_product(product)
        return success(message="Product deleted successfully")

    except Exception:
        current_app.logger.exception("Failed to delete product")
        return failure("Server error while deleting product", 500)
