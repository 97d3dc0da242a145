from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Maximum units on hand for one product, and per movement
# Keeps quantity and quantity * price_cents inside a 64-bit INTEGER column
MAX_QUANTITY = 1_000_000_000

MAX_NAME_LENGTH = 255
MAX_TEXT_LENGTH = 255


class StockTrackerError(Exception):
    """Base class for every error the domain layer raises on purpose."""


class ValidationError(StockTrackerError, ValueError):
    """400-level input problem (missing/non-positive quantity, missing name, bad number)."""


InvalidInputError = ValidationError


class NotFoundError(StockTrackerError, LookupError):
    """404-level: unknown product id/name or unknown user."""


class ConflictError(StockTrackerError, ValueError):
    """409-level business rule conflict."""


class InsufficientStockError(ConflictError):
    """Stock-out asked for more units than are on hand. Raised before any write."""

    def __init__(self, name: str, available: int, requested: int):
        self.name = name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {name!r}: {available} available, {requested} requested"
        )


class DuplicateUserError(ConflictError):
    """Username already registered."""


class UnauthorizedError(StockTrackerError):
    """Bad credentials, or a mutation attempted without the admin role."""


class StorageError(StockTrackerError):
    """Underlying persistence failure. Not retried; the caller decides."""


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to send (security boundary)
    - required: fields that must be present
    """
    writable_fields: frozenset[str]
    required: frozenset[str] = frozenset()


def validate_payload(*, payload: Any, policy: PayloadPolicy) -> dict:
    """
    Reject non-object bodies, unknown fields and missing required fields.

    Returns a shallow copy restricted to writable fields. Values are not
    coerced here; the coerce_* helpers below do that per field.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    missing = sorted(f for f in policy.required if payload.get(f) in (None, ""))
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    return {k: v for k, v in payload.items()}


def coerce_quantity(value: Any, field: str = "quantity") -> int:
    """
    Coerce a quantity to a positive int.

    Strings of plain digits are accepted; floats, decimals, scientific
    notation and booleans are not.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        qty = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        # Reject scientific notation (e.g., "1e3")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            qty = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY:,}")
    return qty


def coerce_price_cents(value: Any, field: str = "price", *, required: bool = True) -> int | None:
    """
    Coerce a unit price (number or numeric string) to integer cents.

    Rounds half-up to the nearest cent. Negative, non-finite and oversized
    prices are rejected.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(value.strip() if isinstance(value, str) else str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")

    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")
    return cents


def coerce_name(value: Any, field: str = "name") -> str:
    """Product names are matched exactly (case aside), so they are not trimmed."""
    if value is None:
        raise ValidationError(f"{field} is required")
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if not value.strip():
        raise ValidationError(f"{field} cannot be blank")
    if len(value) > MAX_NAME_LENGTH:
        raise ValidationError(f"{field} exceeds max length {MAX_NAME_LENGTH}")
    return value


def coerce_text(value: Any, field: str) -> str | None:
    """Optional free text (reason, channel). Blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"{field} exceeds max length {MAX_TEXT_LENGTH}")
    return text


def cents_to_decimal(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))
