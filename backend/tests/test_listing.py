"""
Listing layer tests: pagination math, parameter parsing and product filters.
"""

import pytest
from sqlalchemy import delete, update

from rentmoment.extensions import db
from rentmoment.models import Product, ProductCategory
from rentmoment.services.listing import (
    CATEGORY_LISTING,
    PRODUCT_LISTING,
    Page,
    paginate,
    parse_list_params,
    product_filters,
    total_pages,
)
from rentmoment.validation import ValidationError


class TestPaginationMath:
    @pytest.mark.parametrize(
        "total,limit,expected",
        [(25, 10, 3), (20, 10, 2), (1, 10, 1), (0, 10, 0), (12, 12, 1)],
    )
    def test_total_pages(self, total, limit, expected):
        assert total_pages(total, limit) == expected

    def test_page_navigation_flags(self):
        page = Page(items=[], total=25, page=2, limit=10)
        body = page.to_dict(lambda x: x, include_nav=True)

        assert body["total_pages"] == 3
        assert body["current_page"] == 2
        assert body["has_next"] is True
        assert body["has_prev"] is True

    def test_last_page_has_no_next(self):
        page = Page(items=[], total=25, page=3, limit=10)
        assert page.has_next is False


class TestParseListParams:
    def test_defaults_come_from_policy(self):
        params = parse_list_params({}, CATEGORY_LISTING)
        assert (params.page, params.limit, params.sort, params.order) == (1, 10, "sort_order", "asc")

        params = parse_list_params({}, PRODUCT_LISTING)
        assert (params.limit, params.sort, params.order) == (12, "created_at", "desc")

    def test_out_of_range_values_are_clamped(self):
        params = parse_list_params({"page": "0", "limit": "1000"}, PRODUCT_LISTING)
        assert params.page == 1
        assert params.limit == PRODUCT_LISTING.max_limit

        params = parse_list_params({"page": str(10**20)}, PRODUCT_LISTING)
        assert params.page == PRODUCT_LISTING.max_page

    def test_every_bad_argument_is_reported(self):
        with pytest.raises(ValidationError) as exc:
            parse_list_params({"page": "abc", "limit": "1.5", "sort": "password", "order": "up"}, PRODUCT_LISTING)

        fields = {error["field"] for error in exc.value.errors}
        assert fields == {"page", "limit", "sort", "order"}


class TestPaginate:
    def test_twenty_five_products_make_three_pages(self, make_product, dresses):
        for i in range(25):
            make_product([dresses], name=f"Dress {i:02d}")

        params = parse_list_params({"limit": "10", "page": "3", "sort": "name", "order": "asc"}, PRODUCT_LISTING)
        page = paginate(db.session.query(Product), params, PRODUCT_LISTING)

        assert page.total == 25
        assert page.total_pages == 3
        assert [p.name for p in page.items] == [f"Dress {i:02d}" for i in range(20, 25)]


class TestProductFilters:
    def _names(self, args):
        query = db.session.query(Product).filter(*product_filters(args)).order_by(Product.id)
        return [p.name for p in query.all()]

    def test_category_matches_legacy_field_or_category_set(self, db_session, make_product, dresses, jackets):
        make_product([dresses], name="Modern")
        legacy = make_product([dresses], name="Legacy")

        # Simulate a row from before multi-category support: only the legacy column points at Jackets
        db_session.execute(update(Product).where(Product.id == legacy.id).values(category_id=jackets.id))
        db_session.execute(delete(ProductCategory).where(ProductCategory.product_id == legacy.id))
        db_session.commit()

        assert self._names({"category": str(jackets.id)}) == ["Legacy"]
        assert self._names({"category": str(dresses.id)}) == ["Modern"]

    def test_secondary_category_matches(self, make_product, dresses, jackets):
        make_product([dresses, jackets], name="Two Piece")
        assert self._names({"category": str(jackets.id)}) == ["Two Piece"]

    def test_unavailable_products_are_never_listed(self, make_product, dresses):
        make_product([dresses], name="Shown")
        make_product([dresses], name="Hidden", is_available=False)
        assert self._names({}) == ["Shown"]

    def test_price_range_in_cents(self, make_product, dresses):
        make_product([dresses], name="Cheap", price_cents=1500)
        make_product([dresses], name="Mid", price_cents=5000)
        make_product([dresses], name="Pricey", price_cents=20000)

        assert self._names({"min_price": "2000", "max_price": "10000"}) == ["Mid"]

    def test_size_color_and_featured(self, make_product, dresses):
        make_product([dresses], name="Small Red", color="Dark Red",
                     sizes=[{"size": "S", "is_available": True, "quantity": 2}])
        make_product([dresses], name="Large Blue", color="Blue", is_featured=True,
                     sizes=[{"size": "L", "is_available": True, "quantity": 1}])

        assert self._names({"size": "S"}) == ["Small Red"]
        assert self._names({"color": "red"}) == ["Small Red"]
        assert self._names({"featured": "true"}) == ["Large Blue"]

    def test_search_matches_name_description_and_tags(self, make_product, dresses):
        make_product([dresses], name="Velvet Blazer", description="Winter wear")
        make_product([dresses], name="Linen Shirt", description="Breezy summer VELVET trim")
        make_product([dresses], name="Gown", description="Long", tags=["wedding", "formal"])

        assert self._names({"search": "velvet"}) == ["Velvet Blazer", "Linen Shirt"]
        assert self._names({"search": "wedding"}) == ["Gown"]

    def test_search_matches_non_ascii_tags(self, make_product, dresses):
        make_product([dresses], name="Bistro Dress", tags=["café", "été"])
        make_product([dresses], name="Plain Dress", tags=["cafe"])

        assert self._names({"search": "café"}) == ["Bistro Dress"]

    def test_wildcard_characters_match_literally(self, make_product, dresses):
        make_product([dresses], name="Sale 50% off", color="Navy_Blue")
        make_product([dresses], name="Sale 500 off", color="NavyXBlue")

        assert self._names({"search": "50%"}) == ["Sale 50% off"]
        assert self._names({"search": "%"}) == ["Sale 50% off"]
        assert self._names({"color": "y_b"}) == ["Sale 50% off"]

    def test_out_of_range_numbers_are_rejected(self):
        with pytest.raises(ValidationError) as exc:
            product_filters({"category": str(10**20), "min_price": "-1", "max_price": str(10**20)})

        fields = {error["field"] for error in exc.value.errors}
        assert fields == {"category", "min_price", "max_price"}

    def test_invalid_filters_are_rejected_together(self):
        with pytest.raises(ValidationError) as exc:
            product_filters({"size": "XXXL", "min_price": "cheap", "category": "dresses"})

        fields = {error["field"] for error in exc.value.errors}
        assert fields == {"size", "min_price", "category"}
