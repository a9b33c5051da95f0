"""
Catalog model tests.

Verifies:
- Slug derivation and collision probing
- Slugs change only on rename
- Legacy category column mirrors the first category
- A product can never be saved without a category
"""

import pytest

from rentmoment.models import Category, Product
from rentmoment.slugs import slugify
from rentmoment.validation import ValidationError


class TestSlugify:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Red Dress", "red-dress"),
            ("  Gala -- Gown!! ", "gala-gown"),
            ("Men's Tuxedo (Black)", "men-s-tuxedo-black"),
            ("Free Size", "free-size"),
            ("***", ""),
        ],
    )
    def test_slugify(self, name, expected):
        assert slugify(name) == expected


class TestProductSlugs:
    def test_same_name_gets_numbered_slug(self, make_product, dresses):
        first = make_product([dresses], name="Red Dress")
        second = make_product([dresses], name="Red Dress")
        third = make_product([dresses], name="Red  Dress!")

        assert first.slug == "red-dress"
        assert second.slug == "red-dress-1"
        assert third.slug == "red-dress-2"

    def test_slug_kept_when_name_unchanged(self, db_session, make_product, dresses):
        product = make_product([dresses], name="Blue Gown")
        product.price_cents = 9900
        product.color = "Navy"
        db_session.commit()

        assert product.slug == "blue-gown"

    def test_rename_regenerates_slug(self, db_session, make_product, dresses):
        make_product([dresses], name="Green Coat")
        product = make_product([dresses], name="Blue Gown")

        product.name = "Green Coat"
        db_session.commit()

        assert product.slug == "green-coat-1"

    def test_rename_excludes_own_slug(self, db_session, make_product, dresses):
        product = make_product([dresses], name="Blue Gown")
        product.name = "Blue  Gown"
        db_session.commit()

        assert product.slug == "blue-gown"

    def test_unnamed_slug_falls_back(self, make_product, dresses):
        product = make_product([dresses], name="!!")
        assert product.slug == "product"


class TestCategorySlugs:
    def test_slug_derived_from_name(self, dresses):
        assert dresses.slug == "dresses"

    def test_rename_avoids_slug_collisions(self, db_session, dresses):
        other = Category(name="Party Wear", image="https://example.com/p.jpg")
        db_session.add(other)
        db_session.commit()

        other.name = "Dresses!"
        db_session.commit()

        assert other.slug == "dresses-1"


class TestCategoryConsistency:
    def test_legacy_category_is_first_of_set(self, make_product, dresses, jackets):
        product = make_product([jackets, dresses])

        assert product.category_ids == [jackets.id, dresses.id]
        assert product.category_id == jackets.id

    def test_reordering_updates_legacy_category(self, db_session, make_product, dresses, jackets):
        product = make_product([dresses, jackets])
        product.set_categories([jackets.id, dresses.id])
        db_session.commit()

        assert product.category_id == jackets.id
        assert [c.name for c in product.categories] == ["Jackets", "Dresses"]

    def test_duplicate_ids_are_collapsed(self, db_session, make_product, dresses, jackets):
        product = make_product([dresses])
        product.set_categories([jackets.id, jackets.id, dresses.id])
        db_session.commit()

        assert product.category_ids == [jackets.id, dresses.id]

    def test_save_without_categories_is_rejected(self, db_session):
        product = Product(
            name="Orphan",
            description="No category",
            images=["https://example.com/o.jpg"],
            price_cents=1000,
            original_price_cents=2000,
            color="Black",
            tags=[],
            specifications={},
        )
        db_session.add(product)

        with pytest.raises(ValidationError) as exc:
            db_session.commit()
        db_session.rollback()

        assert exc.value.errors[0]["field"] == "categories"
        assert db_session.query(Product).count() == 0

    def test_clearing_categories_is_rejected(self, db_session, make_product, dresses):
        product = make_product([dresses])
        product.set_categories([])

        with pytest.raises(ValidationError):
            db_session.commit()
        db_session.rollback()

        assert db_session.query(Product).first().category_ids == [dresses.id]
