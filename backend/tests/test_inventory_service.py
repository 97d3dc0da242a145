"""
Stock mutation tests.

Verifies:
- Every mutation writes exactly one ledger entry
- Quantity never goes negative; oversell writes nothing
- Names match case-insensitively and exactly
- Product quantity always equals the net effect of its ledger entries
"""

from datetime import datetime, timedelta

import pytest

from stocktracker.models import Product, InventoryTransaction
from stocktracker.services import inventory_service, ledger_service
from stocktracker.time_utils import utcnow
from stocktracker.validation import ValidationError, NotFoundError, InsufficientStockError, MAX_QUANTITY


def _ledger(name=None):
    return ledger_service.list_transactions(name=name, newest_first=False)


def _net_quantity(name):
    total = 0
    for tx in _ledger(name):
        if tx.type in ("IN", "RETURN"):
            total += tx.quantity
        elif tx.type == "OUT":
            total -= tx.quantity
    return total


class TestStockIn:

    def test_creates_product(self, db_session):
        movement = inventory_service.stock_in(name="Widget", quantity=10, price="2.50")

        assert movement.product["name"] == "Widget"
        assert movement.product["quantity"] == 10
        assert movement.product["price"] == 2.5
        assert movement.transaction.type == "IN"
        assert movement.transaction.quantity == 10
        assert movement.transaction.price_cents == 250

        products = inventory_service.list_products()
        assert len(products) == 1
        assert len(_ledger()) == 1

    def test_existing_product_increments_and_takes_new_price(self, db_session):
        first = inventory_service.stock_in(name="Widget", quantity=10, price=2)
        second = inventory_service.stock_in(name="widget", quantity=5, price=3)

        assert second.product["id"] == first.product["id"]
        assert second.product["quantity"] == 15
        assert second.product["price"] == 3.0
        # Stored name is the first spelling seen
        assert second.product["name"] == "Widget"
        assert len(inventory_service.list_products()) == 1
        assert [tx.type for tx in _ledger()] == ["IN", "IN"]

    def test_name_is_not_trimmed(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=1, price=1)
        inventory_service.stock_in(name="Widget ", quantity=1, price=1)

        assert len(inventory_service.list_products()) == 2

    @pytest.mark.parametrize("quantity", [0, -3, "1.5", "abc"])
    def test_rejects_bad_quantity_without_writing(self, db_session, quantity):
        with pytest.raises(ValidationError):
            inventory_service.stock_in(name="Widget", quantity=quantity, price=1)

        assert inventory_service.list_products() == []
        assert _ledger() == []

    def test_rejects_missing_price(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.stock_in(name="Widget", quantity=1, price=None)

    def test_rejects_future_date(self, db_session):
        future = (utcnow() + timedelta(days=1)).isoformat()
        with pytest.raises(ValidationError, match="future"):
            inventory_service.stock_in(name="Widget", quantity=1, price=1, occurred_at=future)

    def test_rejects_total_above_cap(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=MAX_QUANTITY, price=1)

        with pytest.raises(ValidationError, match="cannot exceed"):
            inventory_service.stock_in(name="widget", quantity=1, price=2)

        product = ledger_service.find_product_by_name("Widget")
        assert product.quantity == MAX_QUANTITY
        assert product.price_cents == 100
        assert len(_ledger()) == 1

    def test_uses_supplied_date(self, db_session):
        movement = inventory_service.stock_in(
            name="Widget", quantity=1, price=1, occurred_at="2025-03-01T09:30:00Z"
        )
        assert movement.transaction.timestamp == datetime(2025, 3, 1, 9, 30)


class TestStockOut:

    def test_decrements_and_records_channel(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=10, price=2)
        movement = inventory_service.stock_out(name="WIDGET", quantity=4, price="5", channel="shopee")

        assert movement.product["quantity"] == 6
        tx = movement.transaction
        assert tx.type == "OUT"
        assert tx.quantity == 4
        assert tx.price_cents == 500
        assert tx.channel == "Shopee"
        assert tx.name == "Widget"

    def test_default_channel(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=10, price=2)
        movement = inventory_service.stock_out(name="Widget", quantity=1, price=5)
        assert movement.transaction.channel == inventory_service.DEFAULT_SALES_CHANNEL

    def test_free_text_channel_kept(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=10, price=2)
        movement = inventory_service.stock_out(name="Widget", quantity=1, price=5, channel="Market stall")
        assert movement.transaction.channel == "Market stall"

    def test_sell_everything_leaves_zero(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=3, price=2)
        movement = inventory_service.stock_out(name="Widget", quantity=3, price=5)

        assert movement.product["quantity"] == 0
        assert len(inventory_service.list_products()) == 1

    def test_oversell_writes_nothing(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=3, price=2)

        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.stock_out(name="Widget", quantity=5, price=5)

        assert exc.value.available == 3
        assert exc.value.requested == 5
        product = ledger_service.find_product_by_name("Widget")
        assert product.quantity == 3
        assert [tx.type for tx in _ledger()] == ["IN"]

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.stock_out(name="Ghost", quantity=1, price=1)
        assert _ledger() == []


class TestReturn:

    def test_increments_with_reason(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=3, price=2)
        inventory_service.stock_out(name="Widget", quantity=2, price=5)
        movement = inventory_service.return_stock(name="widget", quantity=1, reason="  damaged box ")

        assert movement.product["quantity"] == 2
        assert movement.transaction.type == "RETURN"
        assert movement.transaction.reason == "damaged box"
        assert movement.transaction.price_cents is None

    def test_rejects_total_above_cap(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=MAX_QUANTITY - 1, price=1)
        inventory_service.return_stock(name="Widget", quantity=1)

        with pytest.raises(ValidationError, match="cannot exceed"):
            inventory_service.return_stock(name="Widget", quantity=1)

        assert ledger_service.find_product_by_name("Widget").quantity == MAX_QUANTITY
        assert [tx.type for tx in _ledger()] == ["IN", "RETURN"]

    def test_optional_price(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=3, price=2)
        movement = inventory_service.return_stock(name="Widget", quantity=1, price="4.20")
        assert movement.transaction.price_cents == 420

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.return_stock(name="Ghost", quantity=1)


class TestDelete:

    def test_removes_row_and_logs_delete(self, db_session):
        created = inventory_service.stock_in(name="Widget", quantity=4, price="2.50")
        product_id = created.product["id"]

        movement = inventory_service.delete_product(product_id)

        assert movement.product["id"] == product_id
        assert inventory_service.list_products() == []
        tx = movement.transaction
        assert tx.type == "DELETE"
        assert tx.name == "Widget"
        assert tx.quantity == 4
        assert tx.price_cents == 250
        assert tx.reason == inventory_service.DELETE_REASON

    def test_delete_empty_product(self, db_session):
        created = inventory_service.stock_in(name="Widget", quantity=2, price=1)
        inventory_service.stock_out(name="Widget", quantity=2, price=1)

        movement = inventory_service.delete_product(created.product["id"])
        assert movement.transaction.quantity == 0

    def test_unknown_id(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.delete_product(999)
        assert _ledger() == []

    def test_restock_after_delete_gets_new_id(self, db_session):
        first = inventory_service.stock_in(name="Widget", quantity=1, price=1)
        inventory_service.delete_product(first.product["id"])
        second = inventory_service.stock_in(name="Widget", quantity=1, price=1)

        assert second.product["id"] != first.product["id"]
        assert [tx.type for tx in _ledger("Widget")] == ["IN", "DELETE", "IN"]


class TestResets:

    def test_reset_inventory_keeps_ledger(self, db_session):
        inventory_service.stock_in(name="A", quantity=1, price=1)
        inventory_service.stock_in(name="B", quantity=1, price=1)

        assert inventory_service.reset_inventory() == 2
        assert inventory_service.list_products() == []
        assert len(_ledger()) == 2

    def test_reset_ledger_keeps_products(self, db_session):
        inventory_service.stock_in(name="A", quantity=1, price=1)

        assert inventory_service.reset_ledger() == 1
        assert len(inventory_service.list_products()) == 1
        assert _ledger() == []

    def test_reset_all(self, db_session):
        inventory_service.stock_in(name="A", quantity=1, price=1)
        inventory_service.stock_out(name="A", quantity=1, price=1)

        assert inventory_service.reset_all() == {"products": 1, "transactions": 2}
        assert db_session.query(Product).count() == 0
        assert db_session.query(InventoryTransaction).count() == 0


class TestLedgerConsistency:

    def test_quantity_matches_ledger(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=10, price=2)
        inventory_service.stock_out(name="widget", quantity=3, price=5)
        inventory_service.return_stock(name="Widget", quantity=1)
        with pytest.raises(InsufficientStockError):
            inventory_service.stock_out(name="Widget", quantity=50, price=5)
        inventory_service.stock_in(name="WIDGET", quantity=2, price=2)
        inventory_service.stock_out(name="Widget", quantity=10, price=5)

        product = ledger_service.find_product_by_name("Widget")
        assert product.quantity == 0
        assert product.quantity == _net_quantity("Widget")

    def test_ids_increase(self, db_session):
        inventory_service.stock_in(name="A", quantity=1, price=1)
        inventory_service.stock_in(name="B", quantity=1, price=1)
        ids = [tx.id for tx in _ledger()]
        assert ids == sorted(ids)
        assert len(set(ids)) == 2


class TestReads:

    def test_get_product(self, db_session):
        created = inventory_service.stock_in(name="Widget", quantity=1, price=1)
        assert inventory_service.get_product(created.product["id"]).name == "Widget"

        with pytest.raises(NotFoundError):
            inventory_service.get_product(12345)

    def test_list_products_sorted_by_name(self, db_session):
        for name in ("pear", "Apple", "banana"):
            inventory_service.stock_in(name=name, quantity=1, price=1)
        assert [p.name for p in inventory_service.list_products()] == ["Apple", "banana", "pear"]

    def test_last_sale_price(self, db_session):
        inventory_service.stock_in(name="Widget", quantity=10, price=2)
        assert inventory_service.last_sale_price("Widget") is None

        inventory_service.stock_out(name="Widget", quantity=1, price="5.00", occurred_at="2025-01-01T10:00:00Z")
        inventory_service.stock_out(name="Widget", quantity=1, price="6.50", occurred_at="2025-01-02T10:00:00Z")

        assert str(inventory_service.last_sale_price("widget")) == "6.50"

    def test_last_sale_price_reads_one_entry(self, db_session, monkeypatch):
        inventory_service.stock_in(name="Widget", quantity=10, price=2)
        for day in range(1, 6):
            inventory_service.stock_out(
                name="Widget", quantity=1, price=day, occurred_at=f"2025-01-0{day}T10:00:00Z"
            )

        fetched = []
        original = ledger_service.list_transactions

        def spy(**kwargs):
            rows = original(**kwargs)
            fetched.append((kwargs.get("limit"), len(rows)))
            return rows

        monkeypatch.setattr(ledger_service, "list_transactions", spy)

        assert str(inventory_service.last_sale_price("Widget")) == "5.00"
        assert fetched == [(1, 1)]
