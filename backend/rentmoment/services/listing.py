# Overview: Filter, sort and pagination helpers shared by every listing endpoint.

"""
Listing layer.

Every list endpoint accepts `page`, `limit`, `sort` and `order` query
arguments and returns a page envelope:

    {"items": [...], "total": 25, "total_pages": 3, "current_page": 1, "limit": 10}

Sort fields are allowlisted per resource (ListingPolicy) so clients can
never order by arbitrary columns.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from sqlalchemy import String, cast, or_

from ..models import (
    Category,
    Order,
    Product,
    ProductCategory,
    ProductSize,
    User,
    ROLES,
    SIZES,
    ORDER_STATUSES,
)
from ..validation import ValidationError, coerce_int, MAX_DB_ID


@dataclass(frozen=True)
class ListingPolicy:
    model: Any
    sort_fields: Mapping[str, Any]
    default_sort: str
    default_order: str = "desc"
    default_limit: int = 10
    max_limit: int = 100
    max_page: int = 1_000_000


CATEGORY_LISTING = ListingPolicy(
    model=Category,
    sort_fields={
        "sort_order": Category.sort_order,
        "name": Category.name,
        "created_at": Category.created_at,
    },
    default_sort="sort_order",
    default_order="asc",
)

PRODUCT_LISTING = ListingPolicy(
    model=Product,
    sort_fields={
        "created_at": Product.created_at,
        "price": Product.price_cents,
        "name": Product.name,
        "views": Product.views,
        "rating": Product.rating,
    },
    default_sort="created_at",
    default_limit=12,
)

ORDER_LISTING = ListingPolicy(
    model=Order,
    sort_fields={
        "created_at": Order.created_at,
        "total": Order.total_cents,
        "order_number": Order.order_number,
        "rental_start_date": Order.rental_start_date,
    },
    default_sort="created_at",
)

USER_LISTING = ListingPolicy(
    model=User,
    sort_fields={
        "created_at": User.created_at,
        "name": User.name,
        "email": User.email,
    },
    default_sort="created_at",
)


@dataclass(frozen=True)
class ListParams:
    page: int
    limit: int
    sort: str
    order: str

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def parse_list_params(args: Mapping[str, str], policy: ListingPolicy) -> ListParams:
    """
    Read page/limit/sort/order from query args.

    Out-of-range page and limit values are clamped; non-numeric values and
    unknown sort fields are rejected with every problem listed.
    """
    errors = []

    page = 1
    if args.get("page") not in (None, ""):
        try:
            page = min(max(coerce_int(args.get("page")), 1), policy.max_page)
        except ValueError:
            errors.append({"field": "page", "message": "page must be an integer"})

    limit = policy.default_limit
    if args.get("limit") not in (None, ""):
        try:
            limit = min(max(coerce_int(args.get("limit")), 1), policy.max_limit)
        except ValueError:
            errors.append({"field": "limit", "message": "limit must be an integer"})

    sort = args.get("sort") or policy.default_sort
    if sort not in policy.sort_fields:
        errors.append({
            "field": "sort",
            "message": f"sort must be one of: {', '.join(policy.sort_fields)}",
        })

    order = (args.get("order") or policy.default_order).lower()
    if order not in ("asc", "desc"):
        errors.append({"field": "order", "message": "order must be 'asc' or 'desc'"})

    if errors:
        raise ValidationError("Invalid listing parameters", errors)

    return ListParams(page=page, limit=limit, sort=sort, order=order)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


@dataclass
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self, serialize: Callable[[Any], dict], *, include_nav: bool = False) -> dict:
        body = {
            "items": [serialize(item) for item in self.items],
            "total": self.total,
            "total_pages": self.total_pages,
            "current_page": self.page,
            "limit": self.limit,
        }
        if include_nav:
            body["has_next"] = self.has_next
            body["has_prev"] = self.has_prev
        return body


def paginate(query, params: ListParams, policy: ListingPolicy) -> Page:
    total = query.order_by(None).count()

    column = policy.sort_fields[params.sort]
    ordering = column.asc() if params.order == "asc" else column.desc()
    # id as tie-breaker keeps page boundaries stable
    id_column = policy.model.id
    tie_breaker = id_column.asc() if params.order == "asc" else id_column.desc()

    items = (
        query.order_by(ordering, tie_breaker)
        .offset(params.offset)
        .limit(params.limit)
        .all()
    )
    return Page(items=items, total=total, page=params.page, limit=params.limit)


# =============================================================================
# Filters
# =============================================================================

def _bounded_int(value: str, low: int, high: int) -> int:
    number = coerce_int(value)
    if not low <= number <= high:
        raise ValueError("out of range")
    return number


def parse_bool_arg(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    return None


def category_match(category_id: int):
    """Match through either the legacy single field or the category set."""
    return or_(
        Product.category_id == category_id,
        Product.category_links.any(ProductCategory.category_id == category_id),
    )


def search_match(search: str):
    """
    Any search term found in name, description or tags (case-insensitive).

    Terms are matched literally: % and _ are not wildcards. Tags are matched
    against the stored JSON text, which keeps non-ASCII characters as-is
    (see Config.SQLALCHEMY_ENGINE_OPTIONS).
    """
    clauses = []
    for term in search.split():
        clauses.append(Product.name.icontains(term, autoescape=True))
        clauses.append(Product.description.icontains(term, autoescape=True))
        clauses.append(cast(Product.tags, String).icontains(term, autoescape=True))
    return or_(*clauses)


def product_filters(args: Mapping[str, str]) -> list:
    """
    Build product predicates from query args.

    Supported: category, search, min_price/max_price (cents), size, color,
    featured. Only available products are ever listed.
    """
    errors = []
    clauses = [Product.is_available.is_(True)]

    category = args.get("category")
    if category:
        try:
            clauses.append(category_match(_bounded_int(category, 1, MAX_DB_ID)))
        except ValueError:
            errors.append({"field": "category", "message": "category must be a category id"})

    search = (args.get("search") or "").strip()
    if search:
        clauses.append(search_match(search))

    for key in ("min_price", "max_price"):
        raw = args.get(key)
        if raw in (None, ""):
            continue
        try:
            amount = _bounded_int(raw, 0, MAX_DB_ID)
        except ValueError:
            errors.append({"field": key, "message": f"{key} must be an amount in cents"})
            continue
        if key == "min_price":
            clauses.append(Product.price_cents >= amount)
        else:
            clauses.append(Product.price_cents <= amount)

    size = args.get("size")
    if size:
        if size not in SIZES:
            errors.append({"field": "size", "message": f"size must be one of: {', '.join(SIZES)}"})
        else:
            clauses.append(Product.sizes.any(ProductSize.size == size))

    color = (args.get("color") or "").strip()
    if color:
        clauses.append(Product.color.icontains(color, autoescape=True))

    if parse_bool_arg(args.get("featured")) is True:
        clauses.append(Product.is_featured.is_(True))

    if errors:
        raise ValidationError("Invalid product filters", errors)
    return clauses


def user_filters(args: Mapping[str, str]) -> list:
    clauses = []

    search = (args.get("search") or "").strip()
    if search:
        clauses.append(or_(
            User.name.icontains(search, autoescape=True),
            User.email.icontains(search, autoescape=True),
        ))

    role = args.get("role")
    if role:
        if role not in ROLES:
            raise ValidationError("Invalid user filters", [
                {"field": "role", "message": f"role must be one of: {', '.join(ROLES)}"},
            ])
        clauses.append(User.role == role)

    is_active = parse_bool_arg(args.get("is_active"))
    if is_active is not None:
        clauses.append(User.is_active.is_(is_active))

    return clauses


def order_filters(args: Mapping[str, str], actor: User) -> list:
    """Non-admins are always scoped to their own orders."""
    clauses = []
    if not actor.is_admin:
        clauses.append(Order.user_id == actor.id)

    status = args.get("status")
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid order filters", [
                {"field": "status", "message": f"status must be one of: {', '.join(ORDER_STATUSES)}"},
            ])
        clauses.append(Order.order_status == status)

    return clauses
