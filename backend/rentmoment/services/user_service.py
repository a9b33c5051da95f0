# Overview: Service-layer operations for admin user management.

from __future__ import annotations

from typing import Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, ROLES, ROLE_ADMIN, ROLE_USER
from ..validation import PayloadValidator, ConflictError
from .access_service import require_not_self
from .auth_service import EMAIL_TAKEN, email_in_use
from .listing import USER_LISTING, Page, paginate, parse_list_params, user_filters
from .session_service import revoke_all_user_sessions


USER_MUTABLE_FIELDS = {"name", "email", "role", "phone", "is_active", "email_verified"}


def validate_user_update_payload(payload: dict) -> dict:
    v = PayloadValidator(payload, partial=True)
    v.string("name", min_length=2, max_length=50, message="Name must be between 2 and 50 characters")
    v.email("email")
    v.choice("role", ROLES, message="Valid role is required")
    v.string("phone", max_length=32)
    v.boolean("is_active", message="is_active must be a boolean")
    v.boolean("email_verified", message="email_verified must be a boolean")
    if v.provided("address"):
        address = v.nested("address")
        for field in User.ADDRESS_FIELDS:
            address.string(field, max_length=255)
        v.cleaned["address"] = address.cleaned
    return v.result()


def list_users(args: Mapping[str, str]) -> Page:
    params = parse_list_params(args, USER_LISTING)
    query = db.session.query(User).filter(*user_filters(args))
    return paginate(query, params, USER_LISTING)


def get_user(user_id: int) -> User | None:
    return db.session.query(User).filter_by(id=user_id).first()


def update_user(actor: User, user: User, patch: dict) -> User:
    """
    Admin edit of any profile field, including role and active state.

    Raises:
        SelfTargetError: an admin tried to deactivate or demote their own account
        ConflictError: the new email belongs to another account
    """
    if patch.get("is_active") is False:
        require_not_self(actor, user, "Cannot deactivate your own account")
    if patch.get("role") not in (None, ROLE_ADMIN):
        require_not_self(actor, user, "Cannot remove your own admin role")

    email = patch.get("email")
    if email and email != user.email and email_in_use(email, exclude_user_id=user.id):
        raise ConflictError(EMAIL_TAKEN)

    was_active = user.is_active
    for key, value in patch.items():
        if key not in USER_MUTABLE_FIELDS:
            continue
        # required columns ignore explicit nulls
        if value is None and key != "phone":
            continue
        setattr(user, key, value)
    if "address" in patch:
        user.set_address(patch["address"])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(EMAIL_TAKEN)

    if was_active and not user.is_active:
        revoke_all_user_sessions(user.id)
    return user


def delete_user(actor: User, user: User) -> None:
    """
    Raises:
        SelfTargetError: an admin tried to delete their own account
    """
    require_not_self(actor, user, "Cannot delete your own account")
    db.session.delete(user)
    db.session.commit()


def toggle_user_status(actor: User, user: User) -> User:
    """
    Flip is_active. Deactivation also revokes every live session.

    Raises:
        SelfTargetError: an admin tried to deactivate their own account
    """
    require_not_self(actor, user, "Cannot deactivate your own account")
    user.is_active = not user.is_active
    db.session.commit()
    if not user.is_active:
        revoke_all_user_sessions(user.id)
    return user


def user_stats(recent_limit: int = 5) -> dict:
    def _count(*criteria) -> int:
        return db.session.query(func.count(User.id)).filter(*criteria).scalar() or 0

    recent = (
        db.session.query(User)
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(recent_limit)
        .all()
    )
    return {
        "summary": {
            "total_users": _count(),
            "active_users": _count(User.is_active.is_(True)),
            "inactive_users": _count(User.is_active.is_(False)),
            "admin_users": _count(User.role == ROLE_ADMIN),
            "regular_users": _count(User.role == ROLE_USER),
        },
        "recent_users": recent,
    }
