# Overview: Service-layer operations for bearer sessions issued at login and registration.

"""
Session Service

The client holds a random 64-hex-char token; the database only ever sees
its SHA-256 digest. A session resolves to its user until it expires
(SESSION_LIFETIME_HOURS after creation), is revoked (logout, deactivation)
or its user is deactivated.
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from rentmoment.time_utils import utcnow


TOKEN_BYTES = 32
DEFAULT_LIFETIME_HOURS = 168


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    # high-entropy input, so an unsalted fast digest is enough
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _lifetime() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_LIFETIME_HOURS") or DEFAULT_LIFETIME_HOURS)


def _find(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (session row, plaintext token). The plaintext is not stored.

    Raises:
        ValueError: unknown or deactivated user
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    token = generate_token()
    issued_at = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=issued_at,
        last_used_at=issued_at,
        expires_at=issued_at + _lifetime(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> User | None:
    """Return the active user behind a live token, else None. Touches last_used_at."""
    if not token:
        return None

    session = _find(token)
    now = utcnow()
    if session is None or session.is_revoked or session.expires_at <= now:
        return None
    if session.user is None or not session.user.is_active:
        return None

    session.last_used_at = now
    db.session.commit()
    return session.user


def revoke_session(token: str) -> bool:
    """Logout. False when the token is unknown or already revoked."""
    session = _find(token)
    if session is None or session.is_revoked:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int) -> int:
    """Used when an account is deactivated. Returns how many sessions were closed."""
    closed = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .update({"is_revoked": True, "revoked_at": utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return closed


def cleanup_expired_sessions() -> int:
    """Housekeeping for `flask system cleanup-sessions`: drop expired and revoked rows."""
    removed = (
        db.session.query(SessionToken)
        .filter(db.or_(SessionToken.expires_at <= utcnow(), SessionToken.is_revoked.is_(True)))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return removed
