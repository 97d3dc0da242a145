# Overview: Service-layer operations for session; bearer tokens issued at login.

"""
Session Token Management Service

WHY: The client holds an opaque token instead of resending credentials.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 8-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout
"""

import secrets
import hashlib
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow
from .ledger_service import storage_errors


# Configuration constants
SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=8)        # Activity timeout (one shift)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user: User) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        username=user.username,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        is_revoked=False,
    )

    with storage_errors():
        db.session.add(session)
        db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> User | None:
    """
    Validate session token and return its User if valid.

    Returns None if the token is unknown, expired, idle too long or revoked.
    Updates last_used_at on success.
    """
    now = utcnow()

    with storage_errors():
        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False,
        ).first()

        if not session:
            return None

        if session.expires_at < now:
            _revoke(session, "Expired")
            return None

        if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
            _revoke(session, "Idle timeout")
            return None

        session.last_used_at = now
        db.session.commit()
        return session.user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke session token. Returns False if there was no active session."""
    with storage_errors():
        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False,
        ).first()

        if not session:
            return False

        _revoke(session, reason)
    return True
