"""Append-only rider earnings ledger and rider statistics."""

import logging
import re
import uuid
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..core.exceptions import LedgerUnavailableError, ValidationError
from ..core.retry import RetryConfig, with_retry_sync
from ..db.repositories import DeliveryRepository, EarningsRepository
from ..db.transaction import transaction, unavailable_on_db_error
from ..db.utils import ensure_utc, from_cents, to_cents, utc_now
from ..delivery import DeliveryStatus
from ..dispatch_logging import log_delivery_context
from ..earnings import (
    EarningsEntry,
    EarningsSummary,
    EarningType,
    PostingOutcome,
    month_bucket,
    week_start_for,
)
from ..events import DeliveryEvent
from ..matching import RiderDirectory

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

CLOSURE_OUTCOMES = {
    DeliveryStatus.CANCELLED: PostingOutcome.CANCELLED,
    DeliveryStatus.FAILED: PostingOutcome.FAILED,
}


def _is_duplicate_posting(error: IntegrityError) -> bool:
    return "ledger_postings" in str(error.orig)


class EarningsLedger:
    """Posts rider earnings and delivery statistics exactly once per delivery.

    Every post is a single transaction that first inserts the delivery's
    LedgerPosting row. A second post for the same delivery fails on that
    primary key before anything else is written, so duplicates from event
    redelivery or concurrent backfill are absorbed.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Any],
        directory: RiderDirectory,
        retry_config: RetryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._directory = directory
        self._retry_config = retry_config or RetryConfig()

    # --- Event intake ---

    def handle_event(self, event: BaseModel) -> None:
        """EventBus subscriber for delivery events."""
        if not isinstance(event, DeliveryEvent) or event.rider_id is None:
            return

        if event.event_type == "delivery.delivered":
            self.post_delivery_completion(
                event.delivery_id,
                event.rider_id,
                event.rider_earnings or Decimal("0.00"),
                completed_at=event.delivered_at or event.timestamp,
                tracking_number=event.tracking_number,
            )
        elif event.event_type == "delivery.cancelled":
            self.post_delivery_closure(event.delivery_id, event.rider_id, PostingOutcome.CANCELLED)
        elif event.event_type == "delivery.failed":
            self.post_delivery_closure(event.delivery_id, event.rider_id, PostingOutcome.FAILED)

    # --- Postings ---

    def post_delivery_completion(
        self,
        delivery_id: str,
        rider_id: str,
        amount: Decimal,
        completed_at: datetime | None = None,
        tracking_number: str | None = None,
    ) -> EarningsEntry | None:
        """Record the rider's earnings for a delivered request.

        Creates one delivery_fee entry and bumps total_deliveries,
        completed_deliveries, earnings_total and earnings_this_month in the
        same transaction.

        Args:
            delivery_id: The delivered request
            rider_id: Rider who completed it
            amount: Rider share of the delivery total
            completed_at: Completion time; defaults to now
            tracking_number: Used in the entry description

        Returns:
            The new entry, or None if this delivery was already posted

        Raises:
            ValidationError: If amount is negative
            RiderNotFoundError: If the rider does not exist
            LedgerUnavailableError: If storage stayed unavailable through all retries
        """
        if amount < 0:
            raise ValidationError(
                "Earnings amount cannot be negative",
                {"delivery_id": delivery_id, "amount": str(amount)},
            )
        completed_at = ensure_utc(completed_at) or utc_now()
        earned_on = completed_at.date()
        amount_cents = to_cents(amount)
        description = f"Delivery completed: {tracking_number or delivery_id}"

        def post() -> EarningsEntry:
            entry_id = str(uuid.uuid4())
            with (
                unavailable_on_db_error(LedgerUnavailableError, "post delivery completion"),
                self._session_factory() as session,
                transaction(session),
            ):
                repo = EarningsRepository(session)
                repo.record_posting(delivery_id, rider_id, PostingOutcome.COMPLETED, entry_id)
                entry = repo.add_entry(
                    entry_id,
                    rider_id,
                    amount_cents,
                    EarningType.DELIVERY_FEE,
                    earned_date=earned_on,
                    week_start=week_start_for(earned_on),
                    month_year=month_bucket(earned_on),
                    delivery_request_id=delivery_id,
                    description=description,
                )
                self._directory.record_completion(
                    session, rider_id, amount_cents, month_bucket(earned_on), completed_at
                )
            return entry

        with log_delivery_context(delivery_id, rider_id=rider_id):
            try:
                entry = with_retry_sync(post, self._retry_config, "post delivery completion")
            except IntegrityError as e:
                if not _is_duplicate_posting(e):
                    raise
                logger.info("Delivery %s already posted to the ledger, skipping", delivery_id)
                return None
            logger.info("Posted %s earnings for delivery %s", from_cents(amount_cents), delivery_id)
        return entry

    def post_delivery_closure(
        self,
        delivery_id: str,
        rider_id: str,
        outcome: PostingOutcome,
        closed_at: datetime | None = None,
    ) -> bool:
        """Count a cancelled or failed delivery against the rider.

        Returns:
            True if posted, False if this delivery was already posted
        """
        if outcome == PostingOutcome.COMPLETED:
            raise ValidationError(
                "Completed deliveries are posted with post_delivery_completion",
                {"delivery_id": delivery_id},
            )
        closed_at = ensure_utc(closed_at) or utc_now()

        def post() -> None:
            with (
                unavailable_on_db_error(LedgerUnavailableError, "post delivery closure"),
                self._session_factory() as session,
                transaction(session),
            ):
                EarningsRepository(session).record_posting(delivery_id, rider_id, outcome)
                self._directory.record_cancellation(session, rider_id, closed_at)

        with log_delivery_context(delivery_id, rider_id=rider_id):
            try:
                with_retry_sync(post, self._retry_config, "post delivery closure")
            except IntegrityError as e:
                if not _is_duplicate_posting(e):
                    raise
                logger.info("Delivery %s already posted to the ledger, skipping", delivery_id)
                return False
            logger.info("Posted %s delivery %s for rider %s", outcome.value, delivery_id, rider_id)
        return True

    def post_adjustment(
        self,
        rider_id: str,
        amount: Decimal,
        earning_type: EarningType,
        description: str | None = None,
        earned_on: date | None = None,
    ) -> EarningsEntry:
        """Add a tip, bonus, incentive or manual adjustment.

        Only the earnings totals move; delivery counters are untouched.
        """
        if earning_type == EarningType.DELIVERY_FEE:
            raise ValidationError(
                "Delivery fees are posted from delivery completions",
                {"rider_id": rider_id},
            )
        if amount <= 0:
            raise ValidationError(
                "Adjustment amount must be positive",
                {"rider_id": rider_id, "amount": str(amount)},
            )
        self._directory.get(rider_id)
        earned_on = earned_on or utc_now().date()
        amount_cents = to_cents(amount)

        def post() -> EarningsEntry:
            with (
                unavailable_on_db_error(LedgerUnavailableError, "post adjustment"),
                self._session_factory() as session,
                transaction(session),
            ):
                entry = EarningsRepository(session).add_entry(
                    str(uuid.uuid4()),
                    rider_id,
                    amount_cents,
                    earning_type,
                    earned_date=earned_on,
                    week_start=week_start_for(earned_on),
                    month_year=month_bucket(earned_on),
                    description=description,
                )
                self._directory.record_earnings(
                    session, rider_id, amount_cents, month_bucket(earned_on)
                )
            return entry

        entry = with_retry_sync(post, self._retry_config, "post adjustment")
        logger.info("Posted %s %s for rider %s", earning_type.value, entry.amount, rider_id)
        return entry

    # --- Queries ---

    def rider_earnings(self, rider_id: str, period: str | None = None) -> list[EarningsEntry]:
        """Entries for a rider, newest first, optionally limited to one YYYY-MM bucket."""
        self._validate_period(period)
        self._directory.get(rider_id)
        with (
            unavailable_on_db_error(LedgerUnavailableError, "list rider earnings"),
            self._session_factory() as session,
        ):
            return EarningsRepository(session).list_for_rider(rider_id, period)

    def summarize(self, rider_id: str, period: str | None = None) -> EarningsSummary:
        entries = self.rider_earnings(rider_id, period)
        by_type: dict[EarningType, Decimal] = defaultdict(lambda: Decimal("0.00"))
        paid = Decimal("0.00")
        unpaid = Decimal("0.00")
        for entry in entries:
            by_type[entry.earning_type] += entry.amount
            if entry.paid:
                paid += entry.amount
            else:
                unpaid += entry.amount
        return EarningsSummary(
            rider_id=rider_id,
            period=period,
            total=paid + unpaid,
            paid=paid,
            unpaid=unpaid,
            entry_count=len(entries),
            by_type=dict(by_type),
        )

    @staticmethod
    def _validate_period(period: str | None) -> None:
        if period is not None and not PERIOD_PATTERN.match(period):
            raise ValidationError(
                f"Invalid period {period!r}, expected YYYY-MM", {"period": period}
            )

    # --- Payouts and recovery ---

    def mark_paid(self, entry_ids: list[str], batch_id: str) -> int:
        """Flag entries as paid under a payout batch.

        Returns:
            Number of entries newly marked; already-paid entries are skipped
        """
        if not batch_id:
            raise ValidationError("A payment batch id is required")

        def mark() -> int:
            with (
                unavailable_on_db_error(LedgerUnavailableError, "mark entries paid"),
                self._session_factory() as session,
                transaction(session),
            ):
                return EarningsRepository(session).mark_paid(entry_ids, batch_id)

        marked = with_retry_sync(mark, self._retry_config, "mark entries paid")
        logger.info("Payout batch %s marked %d of %d entries", batch_id, marked, len(entry_ids))
        return marked

    def backfill_missing(self, limit: int = 500) -> int:
        """Post terminal deliveries whose events never reached the ledger.

        Returns:
            Number of deliveries posted by this pass
        """
        with (
            unavailable_on_db_error(LedgerUnavailableError, "list unposted deliveries"),
            self._session_factory() as session,
        ):
            pending = DeliveryRepository(session).list_unposted_terminal(limit)

        posted = 0
        for delivery in pending:
            assert delivery.rider_id is not None
            if delivery.status == DeliveryStatus.DELIVERED:
                entry = self.post_delivery_completion(
                    delivery.id,
                    delivery.rider_id,
                    delivery.rider_earnings,
                    completed_at=delivery.completed_at,
                    tracking_number=delivery.tracking_number,
                )
                posted += entry is not None
            else:
                posted += self.post_delivery_closure(
                    delivery.id, delivery.rider_id, CLOSURE_OUTCOMES[delivery.status]
                )

        if posted:
            logger.warning("Backfilled %d deliveries missing from the ledger", posted)
        return posted
