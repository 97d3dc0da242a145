# Overview: Service-layer operations for auth; credential checks and user administration.

"""
Authentication Service

WHY: Mutations must come from an admin; everything else is read-only for
guests. Passwords are stored as bcrypt hashes, never in plaintext.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 6 characters required
- The bootstrap account 'admin' cannot be deleted
- Session tokens managed separately (see session_service.py)
"""

import logging

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, ROLES
from ..time_utils import utcnow
from ..validation import ValidationError, NotFoundError, DuplicateUserError, UnauthorizedError
from .ledger_service import storage_errors


logger = logging.getLogger(__name__)

PROTECTED_USERNAME = "admin"
MIN_PASSWORD_LENGTH = 6

DEFAULT_USERS = (
    ("admin", "admin123", "admin"),
    ("guest", "guest123", "guest"),
)


def validate_password_strength(password: str) -> None:
    """Raise ValidationError if the password is too short."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _validate_username(username) -> str:
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("username is required")
    username = username.strip()
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    return username


def _validate_role(role) -> str:
    if role is None or (isinstance(role, str) and not role.strip()):
        return "guest"
    role = str(role).strip().lower()
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    return role


def create_user(username, password, role="guest") -> User:
    """
    Create new user with bcrypt password hashing.

    Raises DuplicateUserError if the username is taken and ValidationError
    for a bad username, password or role.
    """
    username = _validate_username(username)
    role = _validate_role(role)
    password_hash = hash_password(password)

    with storage_errors():
        if db.session.get(User, username) is not None:
            raise DuplicateUserError("Username already exists")

        user = User(username=username, password_hash=password_hash, role=role, created_at=utcnow())
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicateUserError("Username already exists")

    logger.info("created user %s (%s)", username, role)
    return user


def delete_user(username: str) -> None:
    """Delete a user and their sessions. 'admin' is protected."""
    if username == PROTECTED_USERNAME:
        raise ValidationError("Cannot delete main admin")

    with storage_errors():
        user = db.session.get(User, username)
        if user is None:
            raise NotFoundError("User not found")
        db.session.delete(user)
        db.session.commit()

    logger.info("deleted user %s", username)


def list_users() -> list[User]:
    with storage_errors():
        return db.session.query(User).order_by(User.username.asc()).all()


def authenticate(username, password) -> User:
    """
    Authenticate user with username and password.

    Returns the User on success and updates last_login_at.
    Raises UnauthorizedError on any mismatch, without saying which part was wrong.
    """
    if not username or not password:
        raise UnauthorizedError("Invalid credentials")

    with storage_errors():
        user = db.session.get(User, str(username))

        if user is None or not verify_password(str(password), user.password_hash):
            logger.warning("login failed for %r", username)
            raise UnauthorizedError("Invalid credentials")

        user.last_login_at = utcnow()
        db.session.commit()

    return user


def seed_default_users() -> list[str]:
    """
    Create admin/admin123 and guest/guest123 if they are absent.

    Returns the usernames that were created. Existing accounts are untouched.
    """
    created = []
    with storage_errors():
        for username, password, role in DEFAULT_USERS:
            if db.session.get(User, username) is not None:
                continue
            db.session.add(User(
                username=username,
                password_hash=hash_password(password),
                role=role,
                created_at=utcnow(),
            ))
            created.append(username)
        db.session.commit()

    for username in created:
        logger.info("seeded default user %s", username)
    return created


def reset_default_users() -> None:
    """Force admin and guest back to their default passwords and roles."""
    with storage_errors():
        for username, password, role in DEFAULT_USERS:
            user = db.session.get(User, username)
            if user is None:
                user = User(username=username, created_at=utcnow())
                db.session.add(user)
            user.password_hash = hash_password(password)
            user.role = role
        db.session.commit()

    logger.warning("default users reset to factory credentials")
