"""Earnings entries and ledger postings."""

from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ...earnings import EarningsEntry as EntryDomain
from ...earnings import EarningType, PostingOutcome
from ..schema import EarningsEntry, LedgerPosting
from ..utils import ensure_utc, from_cents, utc_now


class EarningsRepository:
    """Repository for the append-only earnings ledger."""

    def __init__(self, session: Session):
        self.session = session

    def record_posting(
        self,
        delivery_request_id: str,
        rider_id: str,
        outcome: PostingOutcome,
        earnings_entry_id: str | None = None,
    ) -> None:
        """Insert the idempotency row for a delivery.

        Flushes immediately so a second posting for the same delivery raises
        IntegrityError before any other ledger write happens.
        """
        self.session.add(
            LedgerPosting(
                delivery_request_id=delivery_request_id,
                rider_id=rider_id,
                outcome=outcome.value,
                earnings_entry_id=earnings_entry_id,
            )
        )
        self.session.flush()

    def add_entry(
        self,
        entry_id: str,
        rider_id: str,
        amount_cents: int,
        earning_type: EarningType,
        earned_date: date,
        week_start: date,
        month_year: str,
        delivery_request_id: str | None = None,
        description: str | None = None,
    ) -> EntryDomain:
        entry = EarningsEntry(
            id=entry_id,
            rider_id=rider_id,
            delivery_request_id=delivery_request_id,
            amount_cents=amount_cents,
            earning_type=earning_type.value,
            description=description,
            earned_date=earned_date,
            week_start=week_start,
            month_year=month_year,
            paid=False,
        )
        self.session.add(entry)
        self.session.flush()
        return self._to_domain(entry)

    def list_for_rider(self, rider_id: str, month_year: str | None = None) -> list[EntryDomain]:
        stmt = select(EarningsEntry).where(EarningsEntry.rider_id == rider_id)
        if month_year is not None:
            stmt = stmt.where(EarningsEntry.month_year == month_year)
        stmt = stmt.order_by(EarningsEntry.earned_date.desc(), EarningsEntry.created_at.desc())
        return [self._to_domain(e) for e in self.session.execute(stmt).scalars().all()]

    def mark_paid(
        self,
        entry_ids: list[str],
        payment_batch_id: str,
        now: datetime | None = None,
    ) -> int:
        """Flag unpaid entries as paid. Already-paid entries are left untouched."""
        if not entry_ids:
            return 0
        stmt = (
            update(EarningsEntry)
            .where(EarningsEntry.id.in_(entry_ids))
            .where(EarningsEntry.paid.is_(False))
            .values(paid=True, paid_at=now or utc_now(), payment_batch_id=payment_batch_id)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount

    def _to_domain(self, entry: EarningsEntry) -> EntryDomain:
        return EntryDomain(
            id=entry.id,
            rider_id=entry.rider_id,
            delivery_request_id=entry.delivery_request_id,
            amount=from_cents(entry.amount_cents),
            earning_type=EarningType(entry.earning_type),
            description=entry.description,
            earned_date=entry.earned_date,
            week_start=entry.week_start,
            month_year=entry.month_year,
            paid=bool(entry.paid),
            paid_at=ensure_utc(entry.paid_at),
            payment_batch_id=entry.payment_batch_id,
            created_at=ensure_utc(entry.created_at),
        )
