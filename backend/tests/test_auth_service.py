"""
Authentication and session tests.

Verifies:
- Default users are seeded with their factory passwords
- Bad credentials never say which part was wrong
- Session tokens are stored hashed and expire
- The main admin account cannot be deleted
"""

from datetime import timedelta

import pytest

from stocktracker.models import User, SessionToken
from stocktracker.services import auth_service, session_service
from stocktracker.time_utils import utcnow
from stocktracker.validation import (
    ValidationError,
    NotFoundError,
    DuplicateUserError,
    UnauthorizedError,
)


class TestUsers:

    def test_default_users_seeded(self, db_session):
        users = {u.username: u.role for u in auth_service.list_users()}
        assert users == {"admin": "admin", "guest": "guest"}

    def test_seed_is_idempotent(self, db_session):
        assert auth_service.seed_default_users() == []
        assert db_session.query(User).count() == 2

    def test_password_is_hashed(self, db_session):
        user = db_session.get(User, "admin")
        assert user.password_hash != "admin123"
        assert auth_service.verify_password("admin123", user.password_hash)

    def test_create_user(self, db_session):
        user = auth_service.create_user("alice", "secret1", "admin")
        assert user.role == "admin"
        assert auth_service.authenticate("alice", "secret1").username == "alice"

    def test_create_user_defaults_to_guest(self, db_session):
        assert auth_service.create_user("bob", "secret1").role == "guest"

    def test_duplicate_username(self, db_session):
        with pytest.raises(DuplicateUserError):
            auth_service.create_user("guest", "another1")

    @pytest.mark.parametrize("username,password,role", [
        ("", "secret1", "guest"),
        ("carol", "short", "guest"),
        ("carol", "secret1", "owner"),
    ])
    def test_create_user_validation(self, db_session, username, password, role):
        with pytest.raises(ValidationError):
            auth_service.create_user(username, password, role)

    def test_cannot_delete_main_admin(self, db_session):
        with pytest.raises(ValidationError, match="Cannot delete main admin"):
            auth_service.delete_user("admin")
        assert db_session.get(User, "admin") is not None

    def test_delete_user_removes_sessions(self, db_session):
        user = auth_service.create_user("dave", "secret1")
        session_service.create_session(user)

        auth_service.delete_user("dave")

        assert db_session.get(User, "dave") is None
        assert db_session.query(SessionToken).filter_by(username="dave").count() == 0

    def test_delete_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            auth_service.delete_user("nobody")

    def test_reset_default_users(self, db_session):
        guest = db_session.get(User, "guest")
        guest.password_hash = auth_service.hash_password("changed1")
        guest.role = "admin"
        db_session.commit()

        auth_service.reset_default_users()

        guest = db_session.get(User, "guest")
        assert guest.role == "guest"
        assert auth_service.verify_password("guest123", guest.password_hash)


class TestAuthenticate:

    def test_success_sets_last_login(self, db_session):
        user = auth_service.authenticate("admin", "admin123")
        assert user.last_login_at is not None

    @pytest.mark.parametrize("username,password", [
        ("admin", "wrong"),
        ("nobody", "admin123"),
        ("", "admin123"),
        ("admin", ""),
    ])
    def test_failure(self, db_session, username, password):
        with pytest.raises(UnauthorizedError, match="Invalid credentials"):
            auth_service.authenticate(username, password)


class TestSessions:

    def test_token_stored_hashed(self, db_session):
        user = db_session.get(User, "admin")
        session, token = session_service.create_session(user)

        assert len(token) == 64
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_validate_and_revoke(self, db_session):
        user = db_session.get(User, "guest")
        _, token = session_service.create_session(user)

        assert session_service.validate_session(token).username == "guest"
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_unknown_token(self, db_session):
        assert session_service.validate_session("not-a-token") is None

    def test_absolute_expiry(self, db_session):
        user = db_session.get(User, "guest")
        session, token = session_service.create_session(user)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Expired"

    def test_idle_timeout(self, db_session):
        user = db_session.get(User, "guest")
        session, token = session_service.create_session(user)
        session.last_used_at = utcnow() - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"
