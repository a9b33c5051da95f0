from __future__ import annotations

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ..extensions import db
from ..slugs import unique_slug
from ..validation import ValidationError
from rentmoment.time_utils import to_utc_z


SIZES = ("XS", "S", "M", "L", "XL", "XXL", "Free Size")
CONDITIONS = ("Excellent", "Very Good", "Good", "Fair")
DEFAULT_CONDITION = "Good"


class Category(db.Model):
    """Top-level catalog grouping. Slug follows the name."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False, unique=True)
    description = db.Column(db.String(200), nullable=True)
    image = db.Column(db.String(500), nullable=False)
    slug = db.Column(db.String(80), nullable=False, unique=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} slug={self.slug!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "slug": self.slug}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "slug": self.slug,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class ProductCategory(db.Model):
    """Ordered membership of a product in a category (position 0 is the primary category)."""
    __tablename__ = "product_categories"

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), primary_key=True, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    category = db.relationship("Category", lazy="joined")


class ProductSize(db.Model):
    __tablename__ = "product_sizes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    size = db.Column(db.String(16), nullable=False, index=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {"size": self.size, "is_available": self.is_available, "quantity": self.quantity}


class Product(db.Model):
    """
    Rentable garment.

    Categories are an ordered set (`category_links`). The single `category_id`
    column predates multi-category support; it is kept for older clients and
    always mirrors the first entry of the set (see `_catalog_before_flush`).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_available_created", "is_available", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)

    # Legacy single-category reference
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    images = db.Column(db.JSON, nullable=False, default=list)

    # Prices in cents
    price_cents = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=False)

    color = db.Column(db.String(50), nullable=False)
    brand = db.Column(db.String(100), nullable=True)
    material = db.Column(db.String(100), nullable=True)
    condition = db.Column(db.String(16), nullable=False, default=DEFAULT_CONDITION)
    rental_duration = db.Column(db.Integer, nullable=False, default=1)

    is_available = db.Column(db.Boolean, nullable=False, default=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False, index=True)

    tags = db.Column(db.JSON, nullable=False, default=list)
    specifications = db.Column(db.JSON, nullable=False, default=dict)
    care_instructions = db.Column(db.Text, nullable=True)

    slug = db.Column(db.String(120), nullable=True, unique=True, index=True)
    views = db.Column(db.Integer, nullable=False, default=0)
    rating = db.Column(db.Float, nullable=False, default=0)
    num_reviews = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    category = db.relationship("Category", foreign_keys=[category_id])
    category_links = db.relationship(
        "ProductCategory",
        order_by="ProductCategory.position",
        cascade="all, delete-orphan",
        lazy="selectin",
        backref="product",
    )
    sizes = db.relationship(
        "ProductSize",
        order_by="ProductSize.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def category_ids(self) -> list[int]:
        return [link.category_id for link in self.category_links]

    @property
    def categories(self) -> list[Category]:
        return [link.category for link in self.category_links]

    def set_categories(self, category_ids: list[int]) -> None:
        """Replace the category set, keeping order and dropping duplicates."""
        existing = {link.category_id: link for link in self.category_links}
        links = []
        seen = set()
        for category_id in category_ids:
            if category_id in seen:
                continue
            seen.add(category_id)
            links.append(existing.get(category_id) or ProductCategory(category_id=category_id))
        for position, link in enumerate(links):
            link.position = position
        self.category_links = links
        self.sync_legacy_category()

    def set_sizes(self, sizes: list[dict]) -> None:
        self.sizes = [
            ProductSize(
                size=entry["size"],
                is_available=entry.get("is_available", True),
                quantity=entry.get("quantity", 1),
            )
            for entry in sizes
        ]

    def sync_legacy_category(self) -> None:
        if self.category_links:
            self.category_id = self.category_links[0].category_id

    def __repr__(self) -> str:
        return f"<Product id={self.id} slug={self.slug!r}>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "images": list(self.images or []),
            "price_cents": self.price_cents,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.to_summary() if self.category else None,
            "categories": [c.to_summary() for c in self.categories],
            "images": list(self.images or []),
            "price_cents": self.price_cents,
            "original_price_cents": self.original_price_cents,
            "sizes": [s.to_dict() for s in self.sizes],
            "color": self.color,
            "brand": self.brand,
            "material": self.material,
            "condition": self.condition,
            "rental_duration": self.rental_duration,
            "is_available": self.is_available,
            "is_featured": self.is_featured,
            "tags": list(self.tags or []),
            "specifications": dict(self.specifications or {}),
            "care_instructions": self.care_instructions,
            "slug": self.slug,
            "views": self.views,
            "rating": self.rating,
            "num_reviews": self.num_reviews,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


def _name_changed(obj) -> bool:
    return inspect(obj).attrs.name.history.has_changes()


@event.listens_for(Session, "before_flush")
def _catalog_before_flush(session, flush_context, instances):
    """
    Save hooks for catalog rows:
    - slug is (re)derived only when the name changed on this save
    - Product.category_id := first category, on every save
    - a Product can never be flushed without a category
    """
    reserved: dict[type, set[str]] = {Category: set(), Product: set()}

    with session.no_autoflush:
        for obj in list(session.new) + list(session.dirty):
            if isinstance(obj, Category):
                if _name_changed(obj) or not obj.slug:
                    obj.slug = unique_slug(
                        session, Category, obj.name,
                        exclude_id=obj.id, reserved=reserved[Category], fallback="category",
                    )
            elif isinstance(obj, Product):
                if obj in session.deleted:
                    continue
                if not obj.category_links:
                    raise ValidationError(
                        "At least one category is required",
                        [{"field": "categories", "message": "At least one category is required"}],
                    )
                obj.sync_legacy_category()
                if _name_changed(obj) or not obj.slug:
                    obj.slug = unique_slug(
                        session, Product, obj.name,
                        exclude_id=obj.id, reserved=reserved[Product], fallback="product",
                    )
