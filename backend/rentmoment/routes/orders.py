# Overview: Flask API routes for rental order operations; parses input and returns JSON responses.

# backend/rentmoment/routes/orders.py
"""
Order API routes.

- POST /api/orders        signed-in checkout
- POST /api/orders/guest  guest checkout (no token)
- GET  /api/orders        own orders; admins see all
"""

from flask import Blueprint, request, current_app, g

from ..services import order_service
from ..services.order_service import OrderError
from ..services.access_service import AccessDeniedError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin
from ..responses import success, failure


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _serialize(order) -> dict:
    return order.to_dict()


def _create(user):
    try:
        patch = order_service.validate_order_payload(request.get_json(silent=True))
        order = order_service.create_order(patch, user=user)
        return success({"order": order.to_dict()}, "Order created successfully", 201)

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except OrderError as e:
        return failure(str(e), 400, details=e.details)
    except ConflictError as e:
        return failure(str(e), 409)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return failure("Server error while creating order", 500)


@orders_bp.post("")
@require_auth
def create_order_route():
    return _create(g.current_user)


@orders_bp.post("/guest")
def create_guest_order_route():
    """Guest checkout. The order carries no user and is flagged as a guest order."""
    return _create(None)


@orders_bp.get("")
@require_auth
def list_orders_route():
    """Query: page, limit, sort, order, status."""
    try:
        page = order_service.list_orders(request.args, g.current_user)
        return success(page.to_dict(_serialize))

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return failure("Server error while fetching orders", 500)


@orders_bp.get("/stats/summary")
@require_auth
@require_admin
def order_stats_route():
    try:
        stats = order_service.order_stats()
        return success({
            "summary": stats["summary"],
            "recent_orders": [order.to_dict() for order in stats["recent_orders"]],
        })

    except Exception:
        current_app.logger.exception("Failed to compute order statistics")
        return failure("Server error while fetching order statistics", 500)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order_for(g.current_user, order_id)
        if not order:
            return failure("Order not found", 404)
        return success({"order": order.to_dict()})

    except AccessDeniedError as e:
        return failure(str(e), 403)
    except Exception:
        current_app.logger.exception("Failed to fetch order")
        return failure("Server error while fetching order", 500)


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_admin
def update_order_status_route(order_id: int):
    try:
        patch = order_service.validate_status_payload(request.get_json(silent=True))

        order = order_service.get_order(order_id)
        if not order:
            return failure("Order not found", 404)

        order = order_service.update_status(order, patch)
        return success({"order": order.to_dict()}, "Order status updated successfully")

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return failure("Server error while updating order status", 500)


@orders_bp.put("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    """Owner or admin; only Pending and Confirmed orders can be cancelled."""
    try:
        data = request.get_json(silent=True) or {}

        order = order_service.get_order(order_id)
        if not order:
            return failure("Order not found", 404)

        order = order_service.cancel_order(order, g.current_user, admin_notes=data.get("admin_notes"))
        return success({"order": order.to_dict()}, "Order cancelled successfully")

    except AccessDeniedError as e:
        return failure(str(e), 403)
    except OrderError as e:
        return failure(str(e), 400, details=e.details)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return failure("Server error while cancelling order", 500)
