"""Tracking number generation."""

import secrets
from collections.abc import Callable
from datetime import datetime

from ..db.utils import utc_now

TIMESTAMP_DIGITS = 6
RANDOM_HEX_CHARS = 6


def random_suffix() -> str:
    return secrets.token_hex(RANDOM_HEX_CHARS // 2).upper()


def generate_tracking_number(
    prefix: str = "TRK",
    now: datetime | None = None,
    suffix_factory: Callable[[], str] = random_suffix,
) -> str:
    """Build a tracking number such as TRK482913A7F03C.

    The middle part is the last six digits of the unix timestamp and the tail
    is six random uppercase hex characters. Uniqueness is enforced by the
    database, not here.
    """
    epoch = int((now or utc_now()).timestamp())
    timestamp_part = str(epoch)[-TIMESTAMP_DIGITS:].rjust(TIMESTAMP_DIGITS, "0")
    return f"{prefix}{timestamp_part}{suffix_factory()}"
