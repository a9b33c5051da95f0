# Overview: Request authentication decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import failure
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return failure("Not authorized, no token", 401)

        user = session_service.validate_session(token)
        if not user:
            return failure("Not authorized, token failed", 401)

        g.current_user = user
        g.auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require an authenticated admin. Use together with (after) @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return failure("Not authorized, no token", 401)
        if not user.is_admin:
            return failure("Not authorized as an admin", 403)
        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Resolve the caller when a valid token is sent; otherwise continue as a guest.

    g.current_user is None for guests. A bad token is treated as no token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        g.current_user = session_service.validate_session(token) if token else None
        return f(*args, **kwargs)

    return decorated_function
