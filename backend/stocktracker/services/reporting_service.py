# Overview: Service-layer operations for reporting; read-only derivations over products and the ledger.

from __future__ import annotations

import csv
import io
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, InventoryTransaction, TRANSACTION_TYPES
from ..time_utils import (
    utcnow,
    to_local,
    to_utc_z,
    parse_date_bound,
    local_day_start_utc,
    local_day_end_utc,
)
from ..validation import ValidationError, cents_to_decimal
from . import ledger_service
"""
Reporting semantics

- Every function here is a pure read of the current products and ledger.
  Calling any of them twice with no mutation in between gives the same result.
- Money is summed in Python integer cents and returned as Decimal (two places).
- "This month" and date-only range bounds use the REPORT_TIMEZONE calendar;
  stored timestamps are UTC-naive and are converted before comparison.
- Range bounds are inclusive. A date-only bound covers the whole day.
"""


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""


def _report_tz() -> str:
    tz_name = current_app.config.get("REPORT_TIMEZONE", "UTC")
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ReportError(f"Unknown REPORT_TIMEZONE {tz_name!r}")
    return tz_name


def _low_stock_threshold() -> int:
    return int(current_app.config.get("LOW_STOCK_THRESHOLD", 50))


def _money(cents: int) -> float:
    return float(cents_to_decimal(cents))


def _local_today(now: datetime | None, tz_name: str) -> date:
    return to_local(now or utcnow(), tz_name).date()


def _resolve_bounds(start, end, tz_name: str) -> tuple[datetime | None, datetime | None]:
    try:
        start_b = parse_date_bound(start)
        end_b = parse_date_bound(end)
    except ValueError:
        raise ReportError("start/end must be YYYY-MM-DD or ISO-8601 datetimes")

    start_dt = end_dt = None
    if start_b is not None:
        start_dt = start_b if isinstance(start_b, datetime) else local_day_start_utc(start_b, tz_name)
    if end_b is not None:
        end_dt = end_b if isinstance(end_b, datetime) else local_day_end_utc(end_b, tz_name)
    return start_dt, end_dt


def _normalize_types(types: Iterable[str] | None) -> list[str] | None:
    if types is None:
        return None
    normalized = []
    for t in types:
        upper = str(t).strip().upper()
        if upper not in TRANSACTION_TYPES:
            raise ReportError(f"type must be one of {', '.join(TRANSACTION_TYPES)}")
        normalized.append(upper)
    return normalized


def _out_revenue_cents(start_dt: datetime, end_dt: datetime) -> int:
    with ledger_service.storage_errors():
        rows = db.session.query(
            InventoryTransaction.quantity,
            InventoryTransaction.price_cents,
        ).filter(
            InventoryTransaction.type == "OUT",
            InventoryTransaction.timestamp >= start_dt,
            InventoryTransaction.timestamp <= end_dt,
        ).all()
    return sum(qty * (price_cents or 0) for qty, price_cents in rows)


def total_items() -> int:
    """Sum of on-hand quantity over all products."""
    with ledger_service.storage_errors():
        total = db.session.query(func.coalesce(func.sum(Product.quantity), 0)).scalar()
    return int(total or 0)


def total_value() -> Decimal:
    """
    Sum of quantity * price over all products.

    Summed in Python integers; SQLite arithmetic past the 64-bit range turns
    into floating point and loses cents.
    """
    with ledger_service.storage_errors():
        rows = db.session.query(Product.quantity, Product.price_cents).all()
    return cents_to_decimal(sum(qty * price_cents for qty, price_cents in rows))


def monthly_sales(now: datetime | None = None) -> Decimal:
    """
    Revenue (quantity * price) of OUT entries in the calendar month containing
    now, in the report timezone. 0 when there are none.
    """
    tz_name = _report_tz()
    today = _local_today(now, tz_name)
    first = today.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    start_dt = local_day_start_utc(first, tz_name)
    end_dt = local_day_start_utc(next_first, tz_name) - timedelta(microseconds=1)
    return cents_to_decimal(_out_revenue_cents(start_dt, end_dt))


def low_stock(threshold: int | None = None) -> list[Product]:
    """Products with 0 < quantity <= threshold, fewest units first."""
    if threshold is None:
        threshold = _low_stock_threshold()
    if threshold < 0:
        raise ReportError("threshold must be >= 0")
    with ledger_service.storage_errors():
        return (
            db.session.query(Product)
            .filter(Product.quantity > 0, Product.quantity <= threshold)
            .order_by(Product.quantity.asc(), Product.name_key.asc())
            .all()
        )


def out_of_stock() -> list[Product]:
    with ledger_service.storage_errors():
        return (
            db.session.query(Product)
            .filter(Product.quantity == 0)
            .order_by(Product.name_key.asc())
            .all()
        )


def stock_status() -> dict:
    """Counts for the available / out-of-stock chart."""
    with ledger_service.storage_errors():
        available = db.session.query(func.count(Product.id)).filter(Product.quantity > 0).scalar()
        empty = db.session.query(func.count(Product.id)).filter(Product.quantity == 0).scalar()
    return {"available": int(available or 0), "out_of_stock": int(empty or 0)}


def list_transactions(
    *,
    start=None,
    end=None,
    product: str | None = None,
    types: Iterable[str] | None = None,
) -> list[InventoryTransaction]:
    """
    Ledger entries with timestamp in [start, end] (inclusive), optionally for
    one product name (case-insensitive) and a set of types. Newest first.
    """
    tz_name = _report_tz()
    start_dt, end_dt = _resolve_bounds(start, end, tz_name)
    if product is not None and not str(product).strip():
        product = None
    return ledger_service.list_transactions(
        start=start_dt,
        end=end_dt,
        name=product,
        types=_normalize_types(types),
    )


def daily_sales(days: int = 7, now: datetime | None = None) -> list[dict]:
    """OUT revenue per calendar day for the last `days` days, oldest first."""
    if days < 1 or days > 366:
        raise ReportError("days must be between 1 and 366")

    tz_name = _report_tz()
    today = _local_today(now, tz_name)
    first = today - timedelta(days=days - 1)

    buckets = {first + timedelta(days=i): 0 for i in range(days)}
    entries = ledger_service.list_transactions(
        start=local_day_start_utc(first, tz_name),
        end=local_day_end_utc(today, tz_name),
        types=["OUT"],
        newest_first=False,
    )
    for tx in entries:
        day = to_local(tx.timestamp, tz_name).date()
        if day in buckets:
            buckets[day] += tx.amount_cents

    return [{"date": day.isoformat(), "sales": _money(cents)} for day, cents in buckets.items()]


def dashboard_summary(now: datetime | None = None) -> dict:
    threshold = _low_stock_threshold()
    return {
        "total_items": total_items(),
        "total_value": float(total_value()),
        "monthly_sales": float(monthly_sales(now)),
        "low_stock_threshold": threshold,
        "low_stock": [p.to_dict() for p in low_stock(threshold)],
        "out_of_stock": [p.to_dict() for p in out_of_stock()],
        "stock_status": stock_status(),
        "daily_sales": daily_sales(7, now),
    }


def _default_period(start, end, now: datetime | None, tz_name: str):
    """Missing bounds default to the first and last day of the current month."""
    today = _local_today(now, tz_name)
    if start is None or (isinstance(start, str) and not start.strip()):
        start = today.replace(day=1)
    if end is None or (isinstance(end, str) and not end.strip()):
        end = (today.replace(day=1) + timedelta(days=32)).replace(day=1) - timedelta(days=1)
    return start, end


def stock_report(*, start=None, end=None, product: str | None = None, now: datetime | None = None) -> dict:
    """
    Data behind the exported stock report.

    Sections: stock_in (IN and RETURN), stock_out (OUT), deleted (DELETE).
    Summary: total sales revenue over OUT and total stock-added value over
    IN and RETURN, both quantity * price.
    """
    tz_name = _report_tz()
    start, end = _default_period(start, end, now, tz_name)
    entries = list_transactions(start=start, end=end, product=product)

    stock_in = [tx for tx in entries if tx.type in ("IN", "RETURN")]
    stock_out = [tx for tx in entries if tx.type == "OUT"]
    deleted = [tx for tx in entries if tx.type == "DELETE"]

    products = ledger_service.list_products()

    return {
        "period": {"start": _bound_str(start), "end": _bound_str(end)},
        "product": product or None,
        "generated_at": to_utc_z(utcnow()),
        "summary": {
            "total_sales": _money(sum(tx.amount_cents for tx in stock_out)),
            "total_stock_added_value": _money(sum(tx.amount_cents for tx in stock_in)),
            "transaction_count": len(entries),
        },
        "stock_in": [tx.to_dict() for tx in stock_in],
        "stock_out": [tx.to_dict() for tx in stock_out],
        "deleted": [tx.to_dict() for tx in deleted],
        "inventory": {
            "available": [p.to_dict() for p in products if p.quantity > 0],
            "out_of_stock": [p.to_dict() for p in products if p.quantity == 0],
        },
    }


CSV_HEADER = ["timestamp", "type", "product", "quantity", "price", "total", "channel", "reason"]


def stock_report_csv(*, start=None, end=None, product: str | None = None, now: datetime | None = None) -> str:
    """The ranged ledger entries as CSV text, oldest first."""
    tz_name = _report_tz()
    start, end = _default_period(start, end, now, tz_name)
    entries = list_transactions(start=start, end=end, product=product)

    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(CSV_HEADER)
    for tx in reversed(entries):
        price = tx.price
        writer.writerow([
            to_utc_z(tx.timestamp),
            tx.type,
            tx.name,
            tx.quantity,
            f"{price:.2f}" if price is not None else "",
            f"{cents_to_decimal(tx.amount_cents):.2f}" if price is not None else "",
            tx.channel or "",
            tx.reason or "",
        ])
    return out.getvalue()


def _bound_str(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()
