# Overview: Bearer-token sessions for shop staff.

"""
Session tokens

SECURITY:
- Tokens are 32 random bytes, hex encoded, handed to the client once
- Only the SHA-256 digest is stored (tokens are high-entropy, so no bcrypt)
- Absolute lifetime 24h, idle limit 2h
- Logout, idle expiry and account deactivation revoke the row
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from ..validation import NotFoundError, ValidationError
from isms.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _find_live(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .one_or_none()
    )


def _mark_revoked(session: SessionToken, reason: str, when=None) -> None:
    session.is_revoked = True
    session.revoked_at = when or utcnow()
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user and commit it.

    Returns (row, plaintext_token); the plaintext is never persisted.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if not user.is_active:
        raise ValidationError("User account is deactivated")

    token = generate_token()
    opened = utcnow()
    row = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=opened,
        last_used_at=opened,
        expires_at=opened + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(row)
    db.session.commit()
    return row, token


def validate_session(token: str) -> User | None:
    """
    Resolve a bearer token to its user, or None.

    Unknown, revoked and expired tokens yield None. A token idle longer than
    SESSION_IDLE_TIMEOUT, or owned by a deactivated user, is revoked as well.
    A good token has last_used_at bumped.
    """
    if not token:
        return None

    row = _find_live(token)
    if row is None:
        return None

    now = utcnow()
    if row.expires_at < now:
        return None

    reason = None
    if now - row.last_used_at > SESSION_IDLE_TIMEOUT:
        reason = "Idle timeout"
    elif row.user is None or not row.user.is_active:
        reason = "User account deactivated"

    if reason:
        _mark_revoked(row, reason, now)
        db.session.commit()
        return None

    row.last_used_at = now
    db.session.commit()
    return row.user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke and commit one session. False when the token is not live."""
    row = _find_live(token)
    if row is None:
        return False
    _mark_revoked(row, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every live session of a user. The caller commits."""
    now = utcnow()
    rows = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for row in rows:
        _mark_revoked(row, reason, now)
    return len(rows)
