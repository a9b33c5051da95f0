# Overview: Service-layer operations for maintenance; one-off catalog repairs and session housekeeping.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Product
from ..slugs import unique_slug


@dataclass(frozen=True)
class SlugFix:
    product_id: int
    name: str
    old_slug: str | None
    new_slug: str


def products_without_categories():
    return db.session.query(Product).filter(~Product.category_links.any())


def migrate_categories() -> tuple[list[Product], int]:
    """
    Seed the category set from the legacy single category.

    Products whose set is empty but whose category_id is set get
    categories = [category_id]. Returns the migrated products and how many
    products still have no category at all.
    """
    migrated = []
    for product in products_without_categories().order_by(Product.id.asc()).all():
        if product.category_id is None:
            continue
        product.set_categories([product.category_id])
        migrated.append(product)

    db.session.commit()
    remaining = products_without_categories().count()
    return migrated, remaining


def fix_duplicate_slugs() -> list[SlugFix]:
    """
    Walk products oldest first. The first holder of a slug keeps it; any later
    product with the same slug (or none at all) gets a fresh unique slug.

    Products without categories are rejected on save, so run
    migrate_categories first on legacy data.
    """
    seen: set[str] = set()
    fixes = []

    products = db.session.query(Product).order_by(Product.created_at.asc(), Product.id.asc()).all()
    for product in products:
        if product.slug and product.slug not in seen:
            seen.add(product.slug)
            continue

        new_slug = unique_slug(
            db.session, Product, product.name,
            exclude_id=product.id, reserved=seen, fallback="product",
        )
        fixes.append(SlugFix(product.id, product.name, product.slug, new_slug))
        product.slug = new_slug

    db.session.commit()
    return fixes
