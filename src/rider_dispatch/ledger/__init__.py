from .earnings_ledger import EarningsLedger

__all__ = ["EarningsLedger"]
