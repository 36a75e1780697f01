"""Transaction utilities for explicit transaction boundaries.

This module provides context managers for managing database transactions
with automatic commit/rollback semantics to prevent partial state updates,
and for translating storage timeouts into retryable errors.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from ..core.exceptions import UnavailableError


@contextmanager
def transaction(session: Session) -> Generator[Session]:
    """Context manager for explicit transaction boundaries.

    Commits on successful completion, rolls back on any exception.
    Use this when you need to ensure multiple operations succeed or fail together.

    Example:
        with transaction(session):
            delivery_repo.claim_for_rider("d1", "r1", eta_minutes=6)
            rider_repo.reserve("r1", "d1")
        # Automatic commit if no exception, rollback otherwise

    Args:
        session: SQLAlchemy session to manage

    Yields:
        The same session for use within the context

    Raises:
        Any exception raised within the context (after rollback)
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


@contextmanager
def unavailable_on_db_error(
    error_cls: type[UnavailableError],
    operation: str,
) -> Generator[None]:
    """Re-raise lock and pool timeouts as a retryable UnavailableError subclass.

    Integrity and programming errors pass through unchanged.
    """
    try:
        yield
    except OperationalError as e:
        raise error_cls(
            f"{operation} failed: storage unavailable",
            {"operation": operation, "cause": str(e.orig)},
        ) from e
    except PoolTimeoutError as e:
        raise error_cls(
            f"{operation} failed: no database connection available",
            {"operation": operation},
        ) from e
