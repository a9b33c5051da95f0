# Overview: Service-layer operations for rental orders; validation, pricing, numbering and status changes.

"""
Order Service

Creation runs in three stages and stops at the first stage that fails:
1. structural validation of the whole payload (every violation reported)
2. date rules (start not before today, end after start, need date not before today)
3. catalog checks per item (product exists and is available)

Pricing (integer cents):
    line_total = unit_price * quantity * RENTAL_DAYS_POLICY
    subtotal   = sum(line_total)
    shipping   = 0 if subtotal > FREE_SHIPPING_THRESHOLD_CENTS else FLAT_SHIPPING_CENTS
    tax        = subtotal * 8%, rounded half-up to the cent
    total      = subtotal + shipping + tax

Unit prices and product names are copied onto the order lines, so later
catalog edits never change an existing order.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Mapping

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderItem, Product, User, PAYMENT_METHODS, PAYMENT_STATUSES, ORDER_STATUSES, SHIPPING_FIELDS
from ..validation import (
    PayloadValidator,
    ConflictError,
    MAX_DB_ID,
    MAX_QUANTITY,
    MAX_RENTAL_DAYS,
)
from .access_service import require_order_access
from .listing import ORDER_LISTING, Page, order_filters, paginate, parse_list_params
from rentmoment.time_utils import start_of_today, utcnow


# Every rental is currently billed as one day, whatever the client asks for
RENTAL_DAYS_POLICY = 1

TAX_RATE_BPS = 800
FREE_SHIPPING_THRESHOLD_CENTS = 10000
FLAT_SHIPPING_CENTS = 1000

ORDER_NUMBER_ATTEMPTS = 5

CANCELLABLE_STATUSES = ("Pending", "Confirmed")
DEFAULT_ADMIN_CANCEL_NOTE = "Order cancelled by admin"

_SHIPPING_LABELS = {"zip_code": "zip code"}


class OrderError(Exception):
    """Raised for order business-rule violations."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int


# =============================================================================
# Validation
# =============================================================================

def validate_order_payload(payload: dict) -> dict:
    v = PayloadValidator(payload)

    raw_items = v.raw_list("items", required=True, min_items=1, message="At least one item is required")
    if raw_items is not None:
        items = []
        for index, entry in enumerate(raw_items):
            iv = v.nested(f"items[{index}]", entry, partial=False)
            iv.integer("product_id", required=True, min_value=1, max_value=MAX_DB_ID,
                       message="Valid product ID is required")
            iv.integer("quantity", required=True, min_value=1, max_value=MAX_QUANTITY,
                       message=f"Quantity must be between 1 and {MAX_QUANTITY}")
            iv.integer("rental_duration", required=True, min_value=1, max_value=MAX_RENTAL_DAYS,
                       message=f"Rental duration must be between 1 and {MAX_RENTAL_DAYS} days")
            items.append(iv.cleaned)
        v.cleaned["items"] = items

    sv = v.nested("shipping_address", partial=False)
    for field in SHIPPING_FIELDS:
        label = _SHIPPING_LABELS.get(field, field)
        sv.string(field, required=True, message=f"Shipping {label} is required")
    v.cleaned["shipping_address"] = sv.cleaned

    v.choice("payment_method", PAYMENT_METHODS, required=True, message="Valid payment method is required")
    v.iso_datetime("rental_start_date", required=True, message="Valid rental start date is required")
    v.iso_datetime("rental_end_date", required=True, message="Valid rental end date is required")
    v.iso_datetime("need_date", required=True, message="Valid need date is required")
    v.string("notes", max_length=1000)
    return v.result()


def validate_status_payload(payload: dict) -> dict:
    v = PayloadValidator(payload)
    v.choice("order_status", ORDER_STATUSES, required=True, message="Valid order status is required")
    v.choice("payment_status", PAYMENT_STATUSES, message="Valid payment status is required")
    v.string("admin_notes", max_length=1000)
    return v.result()


def check_rental_dates(rental_start_date, rental_end_date, need_date) -> None:
    """Date-only rules against midnight UTC today."""
    today = start_of_today()

    if rental_start_date < today:
        raise OrderError("Rental start date cannot be in the past", details={"field": "rental_start_date"})

    if rental_end_date <= rental_start_date:
        raise OrderError("Rental end date must be after start date", details={"field": "rental_end_date"})

    if need_date < today:
        raise OrderError("Need date cannot be in the past", details={"field": "need_date"})


# =============================================================================
# Pricing
# =============================================================================

def price_items(items: list[dict]) -> list[dict]:
    """
    Resolve each requested item against the catalog and snapshot its price.

    The client's rental_duration is replaced by RENTAL_DAYS_POLICY.
    """
    priced = []
    for item in items:
        product_id = item["product_id"]
        product = db.session.query(Product).filter_by(id=product_id).first()
        if not product:
            raise OrderError(f"Product with ID {product_id} not found", details={"product_id": product_id})

        if not product.is_available:
            raise OrderError(f"Product {product.name} is not available", details={"product_id": product_id})

        line_total = product.price_cents * item["quantity"] * RENTAL_DAYS_POLICY
        priced.append({
            "product_id": product.id,
            "product_name": product.name,
            "quantity": item["quantity"],
            "rental_duration": RENTAL_DAYS_POLICY,
            "unit_price_cents": product.price_cents,
            "line_total_cents": line_total,
        })
    return priced


def compute_tax_cents(subtotal_cents: int) -> int:
    # half-up rounding on integer cents
    return (subtotal_cents * TAX_RATE_BPS + 5000) // 10000


def compute_totals(subtotal_cents: int) -> OrderTotals:
    shipping = 0 if subtotal_cents > FREE_SHIPPING_THRESHOLD_CENTS else FLAT_SHIPPING_CENTS
    tax = compute_tax_cents(subtotal_cents)
    return OrderTotals(
        subtotal_cents=subtotal_cents,
        shipping_cents=shipping,
        tax_cents=tax,
        total_cents=subtotal_cents + shipping + tax,
    )


# =============================================================================
# Creation
# =============================================================================

def generate_order_number() -> str:
    """ORD + yymmdd + 3 random digits, e.g. ORD241019042."""
    return f"ORD{utcnow():%y%m%d}{secrets.randbelow(1000):03d}"


def _build_order(patch: dict, lines: list[dict], totals: OrderTotals, user_id: int | None) -> Order:
    order = Order(
        order_number=generate_order_number(),
        user_id=user_id,
        is_guest_order=user_id is None,
        payment_method=patch["payment_method"],
        payment_status="Pending",
        order_status="Pending",
        shipping_cents=totals.shipping_cents,
        tax_cents=totals.tax_cents,
        rental_start_date=patch["rental_start_date"],
        rental_end_date=patch["rental_end_date"],
        need_date=patch["need_date"],
        notes=patch.get("notes"),
        is_active=True,
    )
    order.set_shipping_address(patch["shipping_address"])
    order.items = [OrderItem(**line) for line in lines]
    order.recalculate_totals()
    return order


def create_order(patch: dict, user: User | None = None) -> Order:
    """
    Create an order from a validated payload.

    user=None is a guest checkout. The order number is retried with a fresh
    suffix when it collides with an existing one.

    Raises:
        OrderError: date rule or catalog check failed (nothing is written)
        ConflictError: no free order number after ORDER_NUMBER_ATTEMPTS tries
    """
    check_rental_dates(patch["rental_start_date"], patch["rental_end_date"], patch["need_date"])

    lines = price_items(patch["items"])
    totals = compute_totals(sum(line["line_total_cents"] for line in lines))
    user_id = user.id if user is not None else None

    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        order = _build_order(patch, lines, totals, user_id)
        db.session.add(order)
        try:
            db.session.commit()
            return order
        except IntegrityError as e:
            db.session.rollback()
            if "order_number" not in str(e.orig):
                raise
            current_app.logger.warning(
                "Order number collision on %s (attempt %d/%d)",
                order.order_number, attempt, ORDER_NUMBER_ATTEMPTS,
            )

    raise ConflictError("Could not allocate a unique order number, please retry")


# =============================================================================
# Reads
# =============================================================================

def get_order(order_id: int) -> Order | None:
    return db.session.query(Order).filter_by(id=order_id).first()


def get_order_for(actor: User, order_id: int) -> Order | None:
    """
    Fetch an order the actor may see.

    Returns None when missing; raises AccessDeniedError for someone else's order.
    """
    order = get_order(order_id)
    if order is None:
        return None
    require_order_access(actor, order)
    return order


def list_orders(args: Mapping[str, str], actor: User) -> Page:
    params = parse_list_params(args, ORDER_LISTING)
    query = db.session.query(Order).filter(*order_filters(args, actor))
    return paginate(query, params, ORDER_LISTING)


def revenue_cents() -> int:
    """
    Revenue is recognized once an order is delivered or paid, whichever
    comes first. Refunded or cancelled orders never count.
    """
    total = (
        db.session.query(func.coalesce(func.sum(Order.total_cents), 0))
        .filter(
            or_(Order.order_status == "Delivered", Order.payment_status == "Paid"),
            Order.payment_status != "Refunded",
            Order.order_status != "Cancelled",
        )
        .scalar()
    )
    return int(total or 0)


def order_stats(recent_limit: int = 5) -> dict:
    def _count(*criteria) -> int:
        return db.session.query(func.count(Order.id)).filter(*criteria).scalar() or 0

    recent = (
        db.session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(recent_limit)
        .all()
    )
    return {
        "summary": {
            "total_orders": _count(),
            "pending_orders": _count(Order.order_status == "Pending"),
            "completed_orders": _count(Order.order_status == "Delivered"),
            "cancelled_orders": _count(Order.order_status == "Cancelled"),
            "total_revenue_cents": revenue_cents(),
        },
        "recent_orders": recent,
    }


# =============================================================================
# Status changes
# =============================================================================

def update_status(order: Order, patch: dict) -> Order:
    """Admin status change. Any enumerated status may be set directly."""
    order.order_status = patch["order_status"]
    if patch.get("payment_status"):
        order.payment_status = patch["payment_status"]
    if patch.get("admin_notes"):
        order.admin_notes = patch["admin_notes"]
    db.session.commit()
    return order


def cancel_order(order: Order, actor: User, admin_notes: str | None = None) -> Order:
    """
    Owner or admin cancellation, allowed only from Pending or Confirmed.

    Raises:
        AccessDeniedError: actor is neither the owner nor an admin
        OrderError: order is past the cancellable stage
    """
    require_order_access(actor, order)

    if order.order_status not in CANCELLABLE_STATUSES:
        raise OrderError(
            "Order cannot be cancelled in its current status",
            details={"order_status": order.order_status},
        )

    order.order_status = "Cancelled"
    if actor.is_admin:
        order.admin_notes = admin_notes or DEFAULT_ADMIN_CANCEL_NOTE
    db.session.commit()
    return order
