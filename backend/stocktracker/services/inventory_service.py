# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/stocktracker/services/inventory_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ..extensions import db
from ..models import Product, InventoryTransaction
from ..time_utils import utcnow, parse_iso_datetime
from ..validation import (
    ValidationError,
    NotFoundError,
    InsufficientStockError,
    MAX_QUANTITY,
    coerce_name,
    coerce_quantity,
    coerce_price_cents,
    coerce_text,
    cents_to_decimal,
)
from . import ledger_service
from .concurrency import product_lock
"""
Stock Mutation Invariants (authoritative)

Write primitives:
- stock_in, stock_out, return_stock and delete_product are the ONLY ways a
  product row changes. There is no generic "replace product" operation.

Atomicity:
- Each mutation is one unit of work: product write + one ledger append, then
  a single commit. Any failure rolls back both.
- Storage failures are not retried here; they surface as StorageError and the
  caller decides whether to try again.
- Mutations on the same product name are serialized (per-name lock plus a
  row lock where the database honors FOR UPDATE), so the read of the current
  quantity and the write of the new one cannot interleave with another writer.

Business invariants:
- 0 <= quantity <= MAX_QUANTITY for every product at all times.
- stock_out never records an oversold transaction: requesting more than is on
  hand raises InsufficientStockError before anything is written.
- Names match case-insensitively and exactly (no trimming).
- delete_product removes the row. A later stock_in of the same name creates a
  new product with a new id; history stays in the ledger under the name.

Time semantics:
- All internal datetimes are UTC-naive (tzinfo=None).
- occurred_at may be omitted (now), a datetime, or an ISO-8601 string.
"""


logger = logging.getLogger(__name__)

SALES_CHANNELS = (
    "Official Website",
    "TikTok",
    "WhatsApp",
    "Lazada",
    "Shopee",
    "NVS SAMA SAMA",
    "Other",
)
DEFAULT_SALES_CHANNEL = "Official Website"

DELETE_REASON = "Product removed from inventory"

# Clock skew tolerated on client-supplied event times
FUTURE_TOLERANCE = timedelta(minutes=2)


@dataclass
class StockMovement:
    """Result of a mutation: the product state after it and the ledger entry it wrote."""
    product: dict
    transaction: InventoryTransaction

    def to_dict(self) -> dict:
        return {"product": self.product, "transaction": self.transaction.to_dict()}


def _parse_occurred_at(value) -> datetime:
    """
    Normalize occurred_at to canonical UTC-naive datetime.

    Accepts:
    - None -> utcnow() (UTC-naive)
    - datetime:
        - aware -> convert to UTC, strip tzinfo
        - naive -> treat as UTC-naive
    - str -> parse_iso_datetime (accepts Z/offsets; returns UTC-naive)
    """
    if value is None:
        dt = utcnow()
    elif isinstance(value, datetime):
        if value.tzinfo is not None:
            dt = value.astimezone(timezone.utc).replace(tzinfo=None)
        else:
            dt = value
    elif isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError("date must be an ISO-8601 datetime")
        if dt is None:
            dt = utcnow()
    else:
        raise ValidationError("date must be an ISO-8601 datetime")

    if dt > utcnow() + FUTURE_TOLERANCE:
        raise ValidationError("date cannot be in the future")
    return dt


def normalize_channel(channel) -> str:
    """
    Map a channel onto the enumerated list (case-insensitive) or keep it as
    free text. Blank means the default channel.
    """
    text = coerce_text(channel, "channel")
    if text is None:
        return DEFAULT_SALES_CHANNEL
    for known in SALES_CHANNELS:
        if known.lower() == text.lower():
            return known
    return text


def _atomic(op):
    """
    Run op as one unit of work.

    Any failure rolls back whatever op read or staged and propagates. Nothing
    is retried.
    """
    try:
        return op()
    except Exception:
        db.session.rollback()
        raise


def _checked_total(product: Product, qty: int) -> int:
    """On-hand quantity after adding qty; rejected before any write if it exceeds MAX_QUANTITY."""
    total = product.quantity + qty
    if total > MAX_QUANTITY:
        raise ValidationError(
            f"quantity for {product.name!r} cannot exceed {MAX_QUANTITY:,} (on hand {product.quantity})"
        )
    return total


def stock_in(*, name, quantity, price, occurred_at=None) -> StockMovement:
    """
    Receive units of a product.

    Existing product (case-insensitive name): quantity is incremented and its
    price replaced with the price given here. Unknown name: a new product is
    created with this quantity and price. Always appends an IN entry.
    """
    name = coerce_name(name)
    qty = coerce_quantity(quantity)
    price_cents = coerce_price_cents(price)
    occurred_dt = _parse_occurred_at(occurred_at)

    def _op():
        product = ledger_service.find_product_by_name(name, lock=True)
        if product is None:
            product = Product(
                name=name,
                quantity=qty,
                price_cents=price_cents,
                created_at=occurred_dt,
            )
        else:
            product.quantity = _checked_total(product, qty)
            product.price_cents = price_cents

        ledger_service.put_product(product)
        tx = ledger_service.append_transaction(
            type="IN",
            name=product.name,
            quantity=qty,
            price_cents=price_cents,
            timestamp=occurred_dt,
        )
        snapshot = product.to_dict()
        ledger_service.commit()
        return StockMovement(product=snapshot, transaction=tx)

    with product_lock(name):
        movement = _atomic(_op)

    logger.info("stock in: %s +%d (now %d)", name, qty, movement.product["quantity"])
    return movement


def stock_out(*, name, quantity, price, channel=None, occurred_at=None) -> StockMovement:
    """
    Record a sale.

    The product must exist. Asking for more than is on hand raises
    InsufficientStockError and writes nothing. Appends an OUT entry with the
    sale price and channel.
    """
    name = coerce_name(name)
    qty = coerce_quantity(quantity)
    price_cents = coerce_price_cents(price)
    channel = normalize_channel(channel)
    occurred_dt = _parse_occurred_at(occurred_at)

    def _op():
        product = ledger_service.find_product_by_name(name, lock=True)
        if product is None:
            raise NotFoundError(f"Product {name!r} not found")

        available = product.quantity
        if qty > available:
            raise InsufficientStockError(product.name, available, qty)

        product.quantity = max(0, available - qty)
        ledger_service.put_product(product)
        tx = ledger_service.append_transaction(
            type="OUT",
            name=product.name,
            quantity=qty,
            price_cents=price_cents,
            channel=channel,
            timestamp=occurred_dt,
        )
        snapshot = product.to_dict()
        ledger_service.commit()
        return StockMovement(product=snapshot, transaction=tx)

    with product_lock(name):
        movement = _atomic(_op)

    logger.info("stock out: %s -%d via %s (now %d)", name, qty, channel, movement.product["quantity"])
    return movement


def return_stock(*, name, quantity, reason=None, price=None, occurred_at=None) -> StockMovement:
    """Put returned units back on hand. The product must exist; price is optional."""
    name = coerce_name(name)
    qty = coerce_quantity(quantity)
    reason = coerce_text(reason, "reason")
    price_cents = coerce_price_cents(price, required=False)
    occurred_dt = _parse_occurred_at(occurred_at)

    def _op():
        product = ledger_service.find_product_by_name(name, lock=True)
        if product is None:
            raise NotFoundError(f"Product {name!r} not found")

        product.quantity = _checked_total(product, qty)
        ledger_service.put_product(product)
        tx = ledger_service.append_transaction(
            type="RETURN",
            name=product.name,
            quantity=qty,
            price_cents=price_cents,
            reason=reason,
            timestamp=occurred_dt,
        )
        snapshot = product.to_dict()
        ledger_service.commit()
        return StockMovement(product=snapshot, transaction=tx)

    with product_lock(name):
        movement = _atomic(_op)

    logger.info("return: %s +%d (now %d)", name, qty, movement.product["quantity"])
    return movement


def delete_product(product_id: int) -> StockMovement:
    """
    Remove a product row and append a DELETE entry carrying its last name,
    quantity and price.
    """
    product = ledger_service.get_product(product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    name = product.name

    def _op():
        current = ledger_service.get_product(product_id, lock=True)
        if current is None:
            raise NotFoundError(f"Product {product_id} not found")

        snapshot = current.to_dict()
        ledger_service.delete_product_row(current)
        tx = ledger_service.append_transaction(
            type="DELETE",
            name=current.name,
            quantity=current.quantity,
            price_cents=current.price_cents,
            reason=DELETE_REASON,
            timestamp=utcnow(),
        )
        ledger_service.commit()
        return StockMovement(product=snapshot, transaction=tx)

    with product_lock(name):
        movement = _atomic(_op)

    logger.info("deleted product %s (%s)", product_id, name)
    return movement


def reset_inventory() -> int:
    """Administrative wipe of all products. The ledger is kept. No entries are written."""
    removed = _atomic(_truncate(ledger_service.truncate_products))
    logger.warning("inventory reset: %d products removed", removed)
    return removed


def reset_ledger() -> int:
    """Administrative wipe of all transactions. Products are kept."""
    removed = _atomic(_truncate(ledger_service.truncate_transactions))
    logger.warning("ledger reset: %d transactions removed", removed)
    return removed


def reset_all() -> dict:
    """Wipe products and transactions in one unit of work."""
    def _op():
        products = ledger_service.truncate_products()
        transactions = ledger_service.truncate_transactions()
        ledger_service.commit()
        return {"products": products, "transactions": transactions}

    removed = _atomic(_op)
    logger.warning(
        "full reset: %d products, %d transactions removed",
        removed["products"],
        removed["transactions"],
    )
    return removed


def _truncate(truncate):
    def _op():
        removed = truncate()
        ledger_service.commit()
        return removed
    return _op


def list_products() -> list[Product]:
    return ledger_service.list_products()


def get_product(product_id: int) -> Product:
    product = ledger_service.get_product(product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def last_sale_price(name) -> Decimal | None:
    """Unit price of the most recent OUT entry for this name, or None."""
    name = coerce_name(name)
    latest = ledger_service.list_transactions(name=name, types=["OUT"], limit=1)
    if not latest:
        return None
    return cents_to_decimal(latest[0].price_cents)
