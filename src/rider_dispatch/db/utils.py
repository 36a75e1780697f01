"""Shared helpers for persistence: timestamps and money conversion."""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

CENTS_PER_UNIT = Decimal("100")


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_cents(amount: Decimal | int | float | str) -> int:
    """Convert a currency amount to integer minor units, rounding half-up."""
    value = Decimal(str(amount)) * CENTS_PER_UNIT
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return Decimal("0.00")
    return (Decimal(cents) / CENTS_PER_UNIT).quantize(Decimal("0.01"))
