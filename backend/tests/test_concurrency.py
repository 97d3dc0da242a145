"""
Per-name write serialization.

Verifies:
- "Widget" and "widget" share one lock; unused locks are not kept
- Two sellers racing for the same stock never oversell
- Storage failures surface once, without being retried
"""

import gc
import threading

import pytest
from sqlalchemy.exc import OperationalError

from stocktracker import create_app
from stocktracker.extensions import db
from stocktracker.services import concurrency, inventory_service, ledger_service
from stocktracker.services.concurrency import name_lock
from stocktracker.validation import StorageError, NotFoundError, InsufficientStockError


class TestNameLocks:

    def test_case_folded(self):
        assert name_lock("Widget") is name_lock("WIDGET")

    def test_distinct_names(self):
        assert name_lock("Widget") is not name_lock("Gadget")

    def test_held_lock_stays_registered(self):
        lock = name_lock("Held Widget")
        assert concurrency._name_locks.get("held widget") is lock

    def test_rejected_names_leave_no_lock_behind(self, db_session):
        def sell_unknown(name):
            try:
                inventory_service.stock_out(name=name, quantity=1, price=1)
            except NotFoundError:
                return True
            return False

        assert all(sell_unknown(f"ghost-{i}") for i in range(50))
        gc.collect()

        assert not [key for key in concurrency._name_locks.keys() if key.startswith("ghost-")]


class TestStorageFailures:

    @pytest.fixture
    def failing_lookup(self, monkeypatch):
        calls = []

        def find_product_by_name(name, *, lock=False):
            calls.append(name)
            with ledger_service.storage_errors():
                raise OperationalError("SELECT products", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ledger_service, "find_product_by_name", find_product_by_name)
        return calls

    def test_not_retried(self, db_session, failing_lookup):
        with pytest.raises(StorageError) as exc:
            inventory_service.stock_in(name="Widget", quantity=1, price=1)

        assert isinstance(exc.value.__cause__, OperationalError)
        assert failing_lookup == ["Widget"]

    def test_route_returns_500(self, client, admin_headers, failing_lookup):
        resp = client.post(
            "/api/inventory/stock-out",
            json={"name": "Widget", "quantity": 1, "price": 1},
            headers=admin_headers,
        )

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}
        assert len(failing_lookup) == 1


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database, so each thread gets its own connection."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'SEED_DEFAULT_USERS': False,
        'BCRYPT_ROUNDS': 4,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def test_racing_sellers_never_oversell(file_app):
    with file_app.app_context():
        inventory_service.stock_in(name="Widget", quantity=5, price=1)

    barrier = threading.Barrier(2)
    outcomes = []

    def sell_everything():
        with file_app.app_context():
            barrier.wait(timeout=10)
            try:
                inventory_service.stock_out(name="widget", quantity=5, price=2)
            except InsufficientStockError:
                outcomes.append("refused")
            else:
                outcomes.append("sold")

    threads = [threading.Thread(target=sell_everything) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["refused", "sold"]

    with file_app.app_context():
        assert ledger_service.find_product_by_name("Widget").quantity == 0
        assert len(ledger_service.list_transactions(types=["OUT"])) == 1
