# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Uses bcrypt for password hashing and validates password strength.
Email is globally unique; a user may exist before being attached to an
enterprise (e.g. while creating one).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper, lower and a digit
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Enterprise, User
from ..validation import ModelValidationPolicy, validate_payload
from bizdesk.time_utils import utcnow
from .invalidation_service import PAGE_ACCOUNT_SETTINGS, invalidate


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USER_PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "doc_number", "avatar_image_url"},
    ignored_fields={"id", "email", "enterprise_id", "is_active", "created_at", "last_login_at"},
)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12, after a strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise ValidationError("A valid email is required")
    return value


def create_user(
    name: str,
    email: str,
    password: str,
    enterprise_id: int | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError / PasswordValidationError: bad input
        ConflictError: email already registered
        NotFoundError: enterprise doesn't exist
    """
    email = normalize_email(email)
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    if enterprise_id is not None and db.session.get(Enterprise, enterprise_id) is None:
        raise NotFoundError("Enterprise not found")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        enterprise_id=enterprise_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Returns the user when the credentials match an active account, else None.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter_by(email=(email or "").strip().lower()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_user(user_id: int, payload: dict) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    patch = validate_payload(model=User, payload=payload, policy=USER_PROFILE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()

    invalidate(user.enterprise_id, PAGE_ACCOUNT_SETTINGS)
    return user


def deactivate_user(user_id: int) -> User:
    """
    Account deletion is a soft delete: sales and budgets stay attributable.
    All sessions are revoked.
    """
    from .session_service import revoke_all_user_sessions

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    user.is_active = False
    db.session.commit()
    revoke_all_user_sessions(user_id, reason="Account deleted")
    return user
