# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/rentmoment/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on registration and password change
- Self-registration always yields role 'user'
- Session management with opaque bearer tokens
"""

from flask import Blueprint, request, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth
from ..responses import success, failure


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, token: str, session) -> dict:
    return {
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """Create a customer account and sign it in."""
    try:
        patch = auth_service.validate_registration_payload(request.get_json(silent=True))
        user = auth_service.register_user(patch)

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return success(_session_payload(user, token, session), "User registered successfully", 201)

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except PasswordValidationError as e:
        return failure(str(e), 400, [{"field": "password", "message": str(e)}])
    except ConflictError as e:
        return failure(str(e), 409)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return failure("Server error during registration", 500)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email + password and issue a session token.

    The token goes in the Authorization header (Bearer) on later requests.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return failure("Email and password are required", 400)

        user = auth_service.authenticate(email, password)
        if not user:
            return failure("Invalid credentials", 401)

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return success(_session_payload(user, token, session), "Login successful")

    except Exception:
        current_app.logger.exception("Failed to login user")
        return failure("Server error during login", 500)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.auth_token)
        return success(message="Logout successful")
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return failure("Server error during logout", 500)


@auth_bp.get("/me")
@require_auth
def me_route():
    return success({"user": g.current_user.to_dict()})


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """Self-service edit of name, phone and address."""
    try:
        patch = auth_service.validate_profile_payload(request.get_json(silent=True))
        user = auth_service.update_profile(g.current_user, patch)
        return success({"user": user.to_dict()}, "Profile updated successfully")

    except ValidationError as e:
        return failure(e.message, 400, e.errors)
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return failure("Server error while updating profile", 500)


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    try:
        data = request.get_json(silent=True) or {}
        current_password = data.get("current_password")
        new_password = data.get("new_password")

        if not all([current_password, new_password]):
            return failure("current_password and new_password are required", 400)

        auth_service.change_password(g.current_user, current_password, new_password)
        return success(message="Password updated successfully")

    except PasswordValidationError as e:
        return failure(str(e), 400, [{"field": "new_password", "message": str(e)}])
    except ValueError as e:
        return failure(str(e), 400)
    except Exception:
        current_app.logger.exception("Failed to change password")
        return failure("Server error while changing password", 500)
