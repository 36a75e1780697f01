"""Earnings ledger models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class EarningType(str, Enum):
    DELIVERY_FEE = "delivery_fee"
    TIP = "tip"
    BONUS = "bonus"
    INCENTIVE = "incentive"
    ADJUSTMENT = "adjustment"


class PostingOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class EarningsEntry(BaseModel):
    id: str
    rider_id: str
    delivery_request_id: str | None = None
    amount: Decimal = Field(ge=0)
    earning_type: EarningType
    description: str | None = None
    earned_date: date
    week_start: date
    month_year: str
    paid: bool = False
    paid_at: datetime | None = None
    payment_batch_id: str | None = None
    created_at: datetime | None = None


class EarningsSummary(BaseModel):
    rider_id: str
    period: str | None = None
    total: Decimal = Decimal("0.00")
    paid: Decimal = Decimal("0.00")
    unpaid: Decimal = Decimal("0.00")
    entry_count: int = 0
    by_type: dict[EarningType, Decimal] = Field(default_factory=dict)


def month_bucket(day: date) -> str:
    """Month-year bucket in YYYY-MM form."""
    return f"{day.year:04d}-{day.month:02d}"


def week_start_for(day: date) -> date:
    """Monday of the ISO week containing day."""
    return date.fromordinal(day.toordinal() - day.weekday())
