from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import cents_to_decimal


TRANSACTION_TYPES = ("IN", "OUT", "RETURN", "DELETE")


class Product(db.Model):
    """
    Current stock state for one product.

    The row is a cache of the ledger: quantity must always equal the net
    effect of the transactions recorded for this name since it was created.
    Only the inventory service writes it.

    NAME KEY:
    name_key = name.lower() is the business key. It is unique, so "Widget"
    and "widget" can never exist as two rows.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_nonnegative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    # sqlite_autoincrement: ids of deleted products are never reused
    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    name_key = db.Column(db.String(255), nullable=False, unique=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents; last price entered on stock-in
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    # Also shown as "last updated"; no separate update timestamp is kept
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def price(self):
        return cents_to_decimal(self.price_cents)

    @property
    def value_cents(self) -> int:
        return self.quantity * self.price_cents

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "price": float(self.price),
            "price_cents": self.price_cents,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only ledger entry.

    name is the product name at event time, not a foreign key, so history
    outlives product deletion. Rows are never updated; they are only removed
    by the bulk ledger reset.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_name_key_type", "name_key", "type"),
        db.CheckConstraint("quantity >= 0", name="ck_transactions_quantity_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    # Monotonic: ordering by id is insertion order
    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(16), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    name_key = db.Column(db.String(255), nullable=False, index=True)

    # Positive for IN/OUT/RETURN; DELETE carries the last on-hand count, which may be 0
    quantity = db.Column(db.Integer, nullable=False)

    # Required for IN/OUT, optional for RETURN, last known price for DELETE
    price_cents = db.Column(db.Integer, nullable=True)

    # OUT only
    channel = db.Column(db.String(255), nullable=True)

    # RETURN / DELETE
    reason = db.Column(db.String(255), nullable=True)

    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    @property
    def price(self):
        return cents_to_decimal(self.price_cents)

    @property
    def amount_cents(self) -> int:
        return self.quantity * (self.price_cents or 0)

    def __repr__(self) -> str:
        return f"<InventoryTransaction id={self.id} type={self.type} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "quantity": self.quantity,
            "price": float(self.price) if self.price_cents is not None else None,
            "channel": self.channel,
            "reason": self.reason,
            "timestamp": to_utc_z(self.timestamp),
        }
