# Overview: Storage for products and the transaction ledger; no business rules.

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, InventoryTransaction
from ..validation import StorageError
from .concurrency import lock_for_update
"""
Ledger Store Invariants (authoritative)

- Pure storage. Every invariant about quantities lives in inventory_service.
- Transactions are append-only: there is no update and no single-row delete.
  The only way rows leave the ledger is truncate_transactions().
- Nothing here commits. The caller owns the unit of work and commits once,
  so a product write and its ledger entry land together or not at all.
- Database failures surface as StorageError (original exception chained).
"""


@contextmanager
def storage_errors():
    """Roll back and re-raise any SQLAlchemy failure as StorageError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError(f"storage failure: {exc.__class__.__name__}") from exc


def get_product(product_id: int, *, lock: bool = False) -> Product | None:
    with storage_errors():
        query = db.session.query(Product).filter(Product.id == product_id)
        if lock:
            query = lock_for_update(query)
        return query.first()


def find_product_by_name(name: str, *, lock: bool = False) -> Product | None:
    """Case-insensitive exact match on the stored name key."""
    with storage_errors():
        query = db.session.query(Product).filter(Product.name_key == name.lower())
        if lock:
            query = lock_for_update(query)
        return query.first()


def list_products() -> list[Product]:
    with storage_errors():
        return (
            db.session.query(Product)
            .order_by(Product.name_key.asc(), Product.id.asc())
            .all()
        )


def put_product(product: Product) -> Product:
    """Insert or update a product row and flush so its id is assigned."""
    with storage_errors():
        product.name_key = product.name.lower()
        db.session.add(product)
        db.session.flush()
        return product


def delete_product_row(product: Product) -> None:
    with storage_errors():
        db.session.delete(product)
        db.session.flush()


def append_transaction(
    *,
    type: str,
    name: str,
    quantity: int,
    timestamp: datetime,
    price_cents: int | None = None,
    channel: str | None = None,
    reason: str | None = None,
) -> InventoryTransaction:
    """
    Append one ledger entry.

    - No domain logic here.
    - No deletes/updates of existing entries.
    """
    with storage_errors():
        tx = InventoryTransaction(
            type=type,
            name=name,
            name_key=name.lower(),
            quantity=quantity,
            price_cents=price_cents,
            channel=channel,
            reason=reason,
            timestamp=timestamp,
        )
        db.session.add(tx)
        db.session.flush()
        return tx


def list_transactions(
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    name: Optional[str] = None,
    types: Optional[Iterable[str]] = None,
    newest_first: bool = True,
    limit: Optional[int] = None,
) -> list[InventoryTransaction]:
    """
    List ledger entries, filtered by inclusive [start, end], case-insensitive
    name and type.
    """
    with storage_errors():
        q = db.session.query(InventoryTransaction)
        if start is not None:
            q = q.filter(InventoryTransaction.timestamp >= start)
        if end is not None:
            q = q.filter(InventoryTransaction.timestamp <= end)
        if name is not None:
            q = q.filter(InventoryTransaction.name_key == name.lower())
        if types is not None:
            q = q.filter(InventoryTransaction.type.in_(list(types)))

        if newest_first:
            q = q.order_by(InventoryTransaction.timestamp.desc(), InventoryTransaction.id.desc())
        else:
            q = q.order_by(InventoryTransaction.timestamp.asc(), InventoryTransaction.id.asc())

        if limit is not None:
            q = q.limit(limit)
        return q.all()


def truncate_products() -> int:
    with storage_errors():
        return db.session.query(Product).delete(synchronize_session=False)


def truncate_transactions() -> int:
    with storage_errors():
        return db.session.query(InventoryTransaction).delete(synchronize_session=False)


def commit() -> None:
    with storage_errors():
        db.session.commit()
