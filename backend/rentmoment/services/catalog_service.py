# Overview: Service-layer operations for categories and products; encapsulates business logic and database work.

"""
Catalog Service

Categories and products are admin-managed. Reads are public.

Write path (both entities):
1. validate the payload (all violations collected)
2. check referenced categories exist
3. upload any inline data:image URIs to the image store
4. persist; the before_flush hook derives slugs and mirrors the legacy
   category column; a failed commit discards the images uploaded in step 3

Deletes hand the hosted image URLs to schedule_cleanup after commit, so a
failed remote delete never fails the request.
"""
from __future__ import annotations

from typing import Mapping

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category, Product, OrderItem, SIZES, CONDITIONS, DEFAULT_CONDITION
from ..validation import (
    PayloadValidator,
    ValidationError,
    ConflictError,
    coerce_int,
    MAX_DB_ID,
    MAX_PRICE_CENTS,
    MAX_QUANTITY,
    MAX_RENTAL_DAYS,
    MAX_SORT_ORDER,
)
from .image_store import resolve_image, resolve_images, schedule_cleanup
from .listing import (
    CATEGORY_LISTING,
    PRODUCT_LISTING,
    Page,
    category_match,
    paginate,
    parse_list_params,
    product_filters,
)


CATEGORY_IMAGE_FOLDER = "categories"
PRODUCT_IMAGE_FOLDER = "products"

CATEGORY_NAME_TAKEN = "Category with this name already exists"
PRODUCT_NAME_TAKEN = "A product with this name already exists. Please use a different name."

PRODUCT_SCALAR_FIELDS = (
    "name", "description", "price_cents", "original_price_cents", "color",
    "brand", "material", "condition", "rental_duration", "is_available",
    "is_featured", "care_instructions",
)
PRODUCT_NULLABLE_FIELDS = {"brand", "material", "care_instructions"}


class CatalogError(Exception):
    """Raised for catalog rule violations (unknown category, empty category set)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _commit(duplicate_message: str, uploaded: list[str] | None = None) -> None:
    """Commit, or roll back and drop the images this write just uploaded."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        schedule_cleanup(uploaded or [])
        raise ConflictError(duplicate_message)
    except Exception:
        # includes ValidationError from the before_flush hook
        db.session.rollback()
        schedule_cleanup(uploaded or [])
        raise


def _newly_uploaded(resolved: list[str], submitted: list[str]) -> list[str]:
    return [url for url, original in zip(resolved, submitted) if url != original]


# =============================================================================
# Categories
# =============================================================================

def validate_category_payload(payload: dict, *, partial: bool = False) -> dict:
    v = PayloadValidator(payload, partial=partial)
    v.string("name", required=True, min_length=2, max_length=50,
             message="Name must be between 2 and 50 characters")
    v.string("description", max_length=200, message="Description cannot be more than 200 characters")
    v.string("image", required=True, message="Image is required")
    v.integer("sort_order", min_value=0, max_value=MAX_SORT_ORDER,
              message=f"Sort order must be between 0 and {MAX_SORT_ORDER}")
    v.boolean("is_active", message="is_active must be a boolean")
    return v.result()


def category_name_taken(name: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Category.id).filter(Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def list_categories(args: Mapping[str, str]) -> Page:
    params = parse_list_params(args, CATEGORY_LISTING)
    query = db.session.query(Category).filter(Category.is_active.is_(True))
    return paginate(query, params, CATEGORY_LISTING)


def get_category(category_id: int) -> Category | None:
    return db.session.query(Category).filter_by(id=category_id).first()


def get_category_by_slug(slug: str) -> Category | None:
    return db.session.query(Category).filter_by(slug=slug, is_active=True).first()


def create_category(patch: dict) -> Category:
    if category_name_taken(patch["name"]):
        raise ConflictError(CATEGORY_NAME_TAKEN)

    image = resolve_image(patch["image"], CATEGORY_IMAGE_FOLDER)
    category = Category(
        name=patch["name"],
        description=patch.get("description"),
        image=image,
        sort_order=patch.get("sort_order") or 0,
        is_active=True if patch.get("is_active") is None else patch["is_active"],
    )
    db.session.add(category)
    _commit(CATEGORY_NAME_TAKEN, _newly_uploaded([image], [patch["image"]]))
    return category


def update_category(category: Category, patch: dict) -> Category:
    name = patch.get("name")
    if name and name != category.name:
        if category_name_taken(name, exclude_id=category.id):
            raise ConflictError(CATEGORY_NAME_TAKEN)
        category.name = name

    if "description" in patch:
        category.description = patch["description"]
    uploaded = []
    if patch.get("image"):
        category.image = resolve_image(patch["image"], CATEGORY_IMAGE_FOLDER)
        uploaded = _newly_uploaded([category.image], [patch["image"]])
    if patch.get("sort_order") is not None:
        category.sort_order = patch["sort_order"]
    if patch.get("is_active") is not None:
        category.is_active = patch["is_active"]

    _commit(CATEGORY_NAME_TAKEN, uploaded)
    return category


def category_in_use(category_id: int) -> bool:
    return db.session.query(Product.id).filter(category_match(category_id)).first() is not None


def delete_category(category: Category) -> None:
    """
    Raises:
        ConflictError: a product still references the category (either field)
    """
    if category_in_use(category.id):
        raise ConflictError("Cannot delete category with existing products")

    image = category.image
    db.session.delete(category)
    db.session.commit()
    schedule_cleanup([image])


# =============================================================================
# Products
# =============================================================================

def _validate_category_ids(v: PayloadValidator) -> None:
    raw = v.raw_list("categories", required=True, min_items=1, message="At least one category is required")
    if raw is None:
        return

    ids = []
    bad_entry = False
    for index, item in enumerate(raw):
        # null entries are dropped, not rejected
        if item is None:
            continue
        try:
            category_id = coerce_int(item)
        except ValueError:
            category_id = None
        if category_id is None or not 1 <= category_id <= MAX_DB_ID:
            bad_entry = True
            v.error(f"categories[{index}]", "Valid category ID is required")
            continue
        ids.append(category_id)

    if not ids and not bad_entry:
        v.error("categories", "At least one category is required")
    v.cleaned["categories"] = ids


def _validate_sizes(v: PayloadValidator) -> None:
    raw = v.raw_list("sizes", required=True, min_items=1, message="At least one size is required")
    if raw is None:
        return

    sizes = []
    for index, entry in enumerate(raw):
        sv = v.nested(f"sizes[{index}]", entry, partial=False)
        size = sv.choice("size", SIZES, required=True, message="Valid size is required")
        is_available = sv.boolean("is_available", message="Size availability must be boolean")
        quantity = sv.integer("quantity", min_value=0, max_value=MAX_QUANTITY,
                              message=f"Size quantity must be between 0 and {MAX_QUANTITY}")
        sizes.append({
            "size": size,
            "is_available": True if is_available is None else is_available,
            "quantity": 1 if quantity is None else quantity,
        })
    v.cleaned["sizes"] = sizes


def validate_product_payload(payload: dict, *, partial: bool = False) -> dict:
    """
    Create: name, description, categories, images, price_cents,
    original_price_cents, sizes, color and rental_duration are required.
    Update (partial=True): only supplied keys are checked.
    """
    v = PayloadValidator(payload, partial=partial)
    v.string("name", required=True, min_length=2, max_length=100,
             message="Name must be between 2 and 100 characters")
    v.string("description", required=True, message="Description is required")
    _validate_category_ids(v)
    v.string_list("images", required=True, min_items=1, message="At least one image is required")
    v.integer("price_cents", required=True, min_value=0, max_value=MAX_PRICE_CENTS,
              message="Price must be a positive amount in cents, at most 1,000,000.00")
    v.integer("original_price_cents", required=True, min_value=0, max_value=MAX_PRICE_CENTS,
              message="Original price must be a positive amount in cents, at most 1,000,000.00")
    _validate_sizes(v)
    v.string("color", required=True, message="Color is required")
    v.integer("rental_duration", required=True, min_value=1, max_value=MAX_RENTAL_DAYS,
              message=f"Rental duration must be between 1 and {MAX_RENTAL_DAYS} days")
    v.choice("condition", CONDITIONS)
    v.string("brand", max_length=100)
    v.string("material", max_length=100)
    v.string("care_instructions")
    v.string_list("tags", message="tags must be a list of strings")
    v.string_map("specifications")
    v.boolean("is_available")
    v.boolean("is_featured")
    return v.result()


def require_categories_exist(category_ids: list[int]) -> None:
    if not category_ids:
        raise CatalogError("At least one category is required")
    found = {
        row[0]
        for row in db.session.query(Category.id).filter(Category.id.in_(category_ids)).all()
    }
    for category_id in category_ids:
        if category_id not in found:
            raise CatalogError(
                f"Category with ID {category_id} not found",
                details={"category_id": category_id},
            )


def _apply_product_fields(product: Product, patch: dict) -> None:
    for field in PRODUCT_SCALAR_FIELDS:
        if field not in patch:
            continue
        value = patch[field]
        if value is None and field not in PRODUCT_NULLABLE_FIELDS:
            continue
        setattr(product, field, value)

    if "tags" in patch:
        product.tags = patch["tags"] or []
    if "specifications" in patch:
        product.specifications = patch["specifications"] or {}


def list_products(args: Mapping[str, str]) -> Page:
    params = parse_list_params(args, PRODUCT_LISTING)
    query = db.session.query(Product).filter(*product_filters(args))
    return paginate(query, params, PRODUCT_LISTING)


def list_products_in_category(category_id: int, args: Mapping[str, str]) -> Page:
    params = parse_list_params(args, PRODUCT_LISTING)
    query = db.session.query(Product).filter(
        Product.is_available.is_(True),
        category_match(category_id),
    )
    return paginate(query, params, PRODUCT_LISTING)


def get_product(product_id: int) -> Product | None:
    return db.session.query(Product).filter_by(id=product_id).first()


def get_product_by_slug(slug: str) -> Product | None:
    return db.session.query(Product).filter_by(slug=slug, is_available=True).first()


def create_product(patch: dict) -> Product:
    category_ids = patch["categories"]
    require_categories_exist(category_ids)
    images = resolve_images(patch["images"], PRODUCT_IMAGE_FOLDER)

    product = Product(
        images=images,
        condition=DEFAULT_CONDITION,
        is_available=True,
        is_featured=False,
        tags=[],
        specifications={},
    )
    _apply_product_fields(product, patch)
    product.set_categories(category_ids)
    product.set_sizes(patch["sizes"])

    db.session.add(product)
    _commit(PRODUCT_NAME_TAKEN, _newly_uploaded(images, patch["images"]))
    return product


def update_product(product: Product, patch: dict) -> Product:
    if "categories" in patch:
        require_categories_exist(patch["categories"])
    uploaded = []
    if "images" in patch:
        product.images = resolve_images(patch["images"], PRODUCT_IMAGE_FOLDER)
        uploaded = _newly_uploaded(product.images, patch["images"])

    _apply_product_fields(product, patch)
    if "categories" in patch:
        product.set_categories(patch["categories"])
    if "sizes" in patch:
        product.set_sizes(patch["sizes"])

    _commit(PRODUCT_NAME_TAKEN, uploaded)
    return product


def delete_product(product: Product) -> None:
    """Order lines keep their name/price snapshot; only the product link is cleared."""
    images = list(product.images or [])

    db.session.execute(
        update(OrderItem)
        .where(OrderItem.product_id == product.id)
        .values(product_id=None)
    )
    db.session.delete(product)
    db.session.commit()
    schedule_cleanup(images)


# =============================================================================
# View counters
# =============================================================================

def record_views(product_ids: list[int]) -> int:
    """Increment views by one for every id in a single UPDATE."""
    if not product_ids:
        return 0
    result = db.session.execute(
        update(Product)
        .where(Product.id.in_(product_ids))
        .values(views=Product.views + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount


def record_view(product: Product) -> None:
    record_views([product.id])
