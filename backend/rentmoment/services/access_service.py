# Overview: Ownership and role checks shared by order and user operations.

from __future__ import annotations

from ..models import User, Order


class AccessDeniedError(Exception):
    """Raised when the requester may not act on the target resource."""


class SelfTargetError(AccessDeniedError):
    """Raised when an admin aims a destructive action at their own account."""


def is_admin(user: User | None) -> bool:
    return bool(user and user.is_admin)


def can_view_order(user: User | None, order: Order) -> bool:
    """Admins see every order; everyone else only orders they placed."""
    if user is None:
        return False
    if user.is_admin:
        return True
    return order.user_id is not None and order.user_id == user.id


def require_order_access(user: User | None, order: Order) -> None:
    if not can_view_order(user, order):
        raise AccessDeniedError("Access denied")


def require_not_self(actor: User, target: User, message: str) -> None:
    if actor.id == target.id:
        raise SelfTargetError(message)
