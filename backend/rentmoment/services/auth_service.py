# Overview: Service-layer operations for accounts: password policy, registration, login and profile edits.

"""
Authentication Service

- bcrypt at cost 12; only the hash is stored
- password policy: 8+ characters with upper, lower, digit and special character
- emails are stored lowercased, so lookups and the unique index ignore case
- bearer sessions live in session_service
"""

import re

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, ROLE_USER, ROLE_ADMIN
from ..validation import PayloadValidator, ConflictError
from rentmoment.time_utils import utcnow


BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one digit"),
    (re.compile(r"[!@#$%^&*(),.'\":{}|<>?_\-]"), "Password must contain at least one special character"),
)


class PasswordValidationError(Exception):
    """Password rejected by the strength policy."""


def validate_password_strength(password: str) -> None:
    """Raise PasswordValidationError naming the first unmet rule."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    for pattern, message in PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(message)


def hash_password(password: str) -> str:
    validate_password_strength(password)
    digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return digest.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored hash is not a bcrypt hash
        return False


def validate_registration_payload(payload: dict) -> dict:
    v = PayloadValidator(payload)
    v.string("name", required=True, min_length=2, max_length=50,
             message="Name must be between 2 and 50 characters")
    v.email("email", required=True)
    v.string("password", required=True, message="Password is required")
    v.string("phone")
    return v.result()


def validate_profile_payload(payload: dict) -> dict:
    v = PayloadValidator(payload, partial=True)
    v.string("name", min_length=2, max_length=50, message="Name must be between 2 and 50 characters")
    v.string("phone", max_length=32)
    if v.provided("address"):
        address = v.nested("address")
        for field in User.ADDRESS_FIELDS:
            address.string(field, max_length=255)
        v.cleaned["address"] = address.cleaned
    return v.result()


def email_in_use(email: str, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.email == email.strip().lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


EMAIL_TAKEN = "User with this email already exists"


def create_user(
    name: str,
    email: str,
    password: str,
    role: str = ROLE_USER,
    phone: str | None = None,
) -> User:
    """
    Raises:
        PasswordValidationError: weak password (nothing is written)
        ConflictError: email already registered
    """
    email = email.strip().lower()
    if email_in_use(email):
        raise ConflictError(EMAIL_TAKEN)

    user = User(name=name, email=email, password_hash=hash_password(password), role=role, phone=phone)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # lost a race with a concurrent registration
        db.session.rollback()
        raise ConflictError(EMAIL_TAKEN)
    return user


def register_user(patch: dict) -> User:
    """Self-service sign-up; any role in the payload is ignored."""
    return create_user(
        name=patch["name"],
        email=patch["email"],
        password=patch["password"],
        phone=patch.get("phone"),
    )


def create_admin(name: str, email: str, password: str) -> User:
    return create_user(name=name, email=email, password=password, role=ROLE_ADMIN)


def authenticate(email: str, password: str) -> User | None:
    """The active user matching the credentials, stamped with last_login_at; None otherwise."""
    user = (
        db.session.query(User)
        .filter(User.email == (email or "").strip().lower(), User.is_active.is_(True))
        .first()
    )
    if user is None or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_profile(user: User, patch: dict) -> User:
    """Self-service profile edit (name, phone, address)."""
    if "name" in patch and patch["name"]:
        user.name = patch["name"]
    if "phone" in patch:
        user.phone = patch["phone"]
    if "address" in patch:
        user.set_address(patch["address"])
    db.session.commit()
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    """
    Raises:
        ValueError: current password does not match
        PasswordValidationError: new password too weak
    """
    if not verify_password(current_password or "", user.password_hash):
        raise ValueError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()
