from __future__ import annotations

from ..extensions import db
from rentmoment.time_utils import to_utc_z


PAYMENT_METHODS = ("Credit Card", "Debit Card", "PayPal", "Cash on Delivery")
PAYMENT_STATUSES = ("Pending", "Paid", "Failed", "Refunded")
ORDER_STATUSES = ("Pending", "Confirmed", "Processing", "Shipped", "Delivered", "Returned", "Cancelled")

SHIPPING_FIELDS = ("name", "phone", "street", "city", "state", "zip_code", "country")


class Order(db.Model):
    """
    Rental order document.

    Items and the shipping address are snapshots taken at checkout; later
    product or profile edits never touch an existing order. user_id is null
    for guest checkouts (is_guest_order=True).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "order_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "ORD241019042")
    order_number = db.Column(db.String(16), nullable=False, unique=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_guest_order = db.Column(db.Boolean, nullable=False, default=False)

    shipping_name = db.Column(db.String(100), nullable=False)
    shipping_phone = db.Column(db.String(32), nullable=False)
    shipping_street = db.Column(db.String(255), nullable=False)
    shipping_city = db.Column(db.String(100), nullable=False)
    shipping_state = db.Column(db.String(100), nullable=False)
    shipping_zip_code = db.Column(db.String(20), nullable=False)
    shipping_country = db.Column(db.String(100), nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="Pending", index=True)
    order_status = db.Column(db.String(16), nullable=False, default="Pending", index=True)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    rental_start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    rental_end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    need_date = db.Column(db.DateTime(timezone=True), nullable=False)

    notes = db.Column(db.Text, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def shipping_address(self) -> dict:
        return {field: getattr(self, f"shipping_{field}") for field in SHIPPING_FIELDS}

    def set_shipping_address(self, address: dict) -> None:
        for field in SHIPPING_FIELDS:
            setattr(self, f"shipping_{field}", address[field])

    def recalculate_totals(self) -> int:
        """subtotal = sum of line totals; total = subtotal + shipping + tax."""
        self.subtotal_cents = sum(item.line_total_cents for item in self.items)
        self.total_cents = self.subtotal_cents + (self.shipping_cents or 0) + (self.tax_cents or 0)
        return self.total_cents

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number} status={self.order_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user": self.user.to_summary() if self.user else None,
            "is_guest_order": self.is_guest_order,
            "items": [item.to_dict() for item in self.items],
            "shipping_address": self.shipping_address,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "subtotal_cents": self.subtotal_cents,
            "shipping_cents": self.shipping_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "rental_start_date": to_utc_z(self.rental_start_date),
            "rental_end_date": to_utc_z(self.rental_end_date),
            "need_date": to_utc_z(self.need_date),
            "notes": self.notes,
            "admin_notes": self.admin_notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class OrderItem(db.Model):
    """Line on an order. Price and name are copied from the product at checkout."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    product_name = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    rental_duration = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product": self.product.to_summary() if self.product else None,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "rental_duration": self.rental_duration,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
