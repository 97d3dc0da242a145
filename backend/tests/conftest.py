"""
Pytest fixtures for stock tracker backend tests.

Provides test database setup, seeded default users, and authenticated clients.
"""

import pytest
from stocktracker import create_app
from stocktracker.extensions import db
from stocktracker.services.auth_service import seed_default_users


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SEED_DEFAULT_USERS': False,
        'BCRYPT_ROUNDS': 4,
        'LOW_STOCK_THRESHOLD': 50,
        'REPORT_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test: empty tables plus the default admin/guest users."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        seed_default_users()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, db_session):
    return auth_headers(get_auth_token(client, 'admin', 'admin123'))


@pytest.fixture(scope='function')
def guest_headers(client, db_session):
    return auth_headers(get_auth_token(client, 'guest', 'guest123'))
