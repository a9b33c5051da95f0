# Overview: Flask API routes for admin user management; parses input and returns JSON responses.

# backend/rentmoment/routes/users.py
"""User administration routes. Every endpoint requires an admin."""

from flask import Blueprint, request, current_app, g

from ..services import user_service
from ..services.access_service import SelfTargetError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin
from ..responses import success, failure


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _serialize(user) -> dict:
    return user.to_dict()


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    """Query: page, limit, sort, order, search (name/email), role, is_active."""
    try:
        page = user_service.list_users(request.args)
        return success(page.to_dict(_serialize))

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except Exception:
        current_app.logger.exception("Failed to list users")
        return failure("Server error while fetching users", 500)


@users_bp.get("/stats/summary")
@require_auth
@require_admin
def user_stats_route():
    try:
        stats = user_service.user_stats()
        return success({
            "summary": stats["summary"],
            "recent_users": [user.to_dict() for user in stats["recent_users"]],
        })

    except Exception:
        current_app.logger.exception("Failed to compute user statistics")
        return failure("Server error while fetching user statistics", 500)


@users_bp.get("/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    user = user_service.get_user(user_id)
    if not user:
        return failure("User not found", 404)
    return success({"user": user.to_dict()})


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    try:
        patch = user_service.validate_user_update_payload(request.get_json(silent=True))

        user = user_service.get_user(user_id)
        if not user:
            return failure("User not found", 404)

        user = user_service.update_user(g.current_user, user, patch)
        return success({"user": user.to_dict()}, "User updated successfully")

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except SelfTargetError as e:
        return failure(str(e), 400)
    except ConflictError as e:
        return failure(str(e), 409)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return failure("Server error while updating user", 500)


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    try:
        user = user_service.get_user(user_id)
        if not user:
            return failure("User not found", 404)

        user_service.delete_user(g.current_user, user)
        return success(message="User deleted successfully")

    except SelfTargetError as e:
        return failure(str(e), 400)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return failure("Server error while deleting user", 500)


@users_bp.put("/<int:user_id>/toggle-status")
@require_auth
@require_admin
def toggle_user_status_route(user_id: int):
    try:
        user = user_service.get_user(user_id)
        if not user:
            return failure("User not found", 404)

        user = user_service.toggle_user_status(g.current_user, user)
        state = "activated" if user.is_active else "deactivated"
        return success({"user": user.to_dict()}, f"User {state} successfully")

    except SelfTargetError as e:
        return failure(str(e), 400)
    except Exception:
        current_app.logger.exception("Failed to toggle user status")
        return failure("Server error while toggling user status", 500)
