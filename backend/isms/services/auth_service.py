# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Staff authentication.

WHY: Every sale, payment and return must be attributable to a person.

SECURITY:
- bcrypt hashes; the cost comes from BCRYPT_ROUNDS (12 in production)
- passwords need 8+ characters with upper, lower, digit and symbol
- bearer sessions live in session_service.py
"""

from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..permissions import Role
from ..validation import ConflictError, NotFoundError, ValidationError
from isms.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8

_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a digit"),
    (re.compile(r"[^A-Za-z0-9\s]"), "a special character"),
)


class PasswordValidationError(ValidationError):
    """Password rejected by the strength rules."""


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    for pattern, needs in _PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(f"Password must contain {needs}")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Check strength, then bcrypt-hash. Returns the hash as text."""
    validate_password_strength(password)
    digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return digest.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    *,
    username: str,
    email: str,
    name: str,
    password: str,
    role=Role.CASHIER,
    rounds: int = 12,
) -> User:
    """
    Create a staff account. Does not commit.

    Raises ValidationError on bad input, ConflictError when username or email
    is already taken.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not username or not email or not name:
        raise ValidationError("username, email and name are required")
    try:
        role = Role.parse(role)
    except ValueError as exc:
        raise ValidationError(str(exc))

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        name=name,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def update_user(user_id: int, patch: dict, *, rounds: int = 12) -> User:
    """Apply an admin edit (name, email, role, is_active, password). Does not commit."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    allowed = {"name", "email", "role", "is_active", "password"}
    unknown = set(patch) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "name" in patch:
        name = (patch["name"] or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        user.name = name
    if "email" in patch:
        email = (patch["email"] or "").strip().lower()
        if not email:
            raise ValidationError("email cannot be blank")
        clash = db.session.query(User).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ConflictError("Email already exists")
        user.email = email
    if "role" in patch:
        try:
            user.role = Role.parse(patch["role"])
        except ValueError as exc:
            raise ValidationError(str(exc))
    if "is_active" in patch:
        user.is_active = bool(patch["is_active"])
    if patch.get("password"):
        user.password_hash = hash_password(patch["password"], rounds=rounds)

    db.session.flush()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User if credentials are valid and the account is active,
    None otherwise. Updates last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
