from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ...earnings import EarningsEntry, EarningsSummary, EarningType
from ..auth import verify_api_key
from ..dependencies import LedgerDep
from ..models.earnings import PayoutRequest, PayoutResponse
from ..models.riders import AdjustmentRequest

router = APIRouter(dependencies=[Depends(verify_api_key)])

PeriodQuery = Annotated[str | None, Query(description="Month bucket, YYYY-MM")]


@router.get("/riders/{rider_id}/earnings", response_model=list[EarningsEntry])
def list_rider_earnings(
    rider_id: str, ledger: LedgerDep, period: PeriodQuery = None
) -> list[EarningsEntry]:
    """Earnings entries for a rider, newest first."""
    return ledger.rider_earnings(rider_id, period)


@router.get("/riders/{rider_id}/earnings/summary", response_model=EarningsSummary)
def summarize_rider_earnings(
    rider_id: str, ledger: LedgerDep, period: PeriodQuery = None
) -> EarningsSummary:
    return ledger.summarize(rider_id, period)


@router.post(
    "/riders/{rider_id}/earnings",
    response_model=EarningsEntry,
    status_code=status.HTTP_201_CREATED,
)
def post_adjustment(rider_id: str, body: AdjustmentRequest, ledger: LedgerDep) -> EarningsEntry:
    """Record a tip, bonus, incentive or manual adjustment."""
    return ledger.post_adjustment(
        rider_id, body.amount, EarningType(body.earning_type), body.description
    )


@router.post("/earnings/payouts", response_model=PayoutResponse)
def mark_entries_paid(body: PayoutRequest, ledger: LedgerDep) -> PayoutResponse:
    marked = ledger.mark_paid(body.entry_ids, body.batch_id)
    return PayoutResponse(batch_id=body.batch_id, requested=len(body.entry_ids), marked=marked)
