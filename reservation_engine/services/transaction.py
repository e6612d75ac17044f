"""
Transactional coordinator: runs ledger and state-machine steps as one
all-or-nothing unit of work.

Each attempt gets a fresh session and a single transaction. Anything raised
inside the unit of work, including a business-rule rejection, rolls the
whole transaction back, so the ledger and the reservations table can never
disagree.

When the store aborts a transaction because a concurrent one won the race
(PostgreSQL serialization failure or deadlock, SQLite lock timeout), the
whole unit of work is replayed from the start, up to DB_MAX_RETRY_ATTEMPTS
times. The replay re-reads the event row, so the loser of a race for the
last spot sees zero spots and fails with CapacityExhausted.
"""

from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reservation_engine.core.config import get_settings
from reservation_engine.core.errors import ReservationEngineError, StoreUnavailable
from reservation_engine.core.logging import get_logger
from reservation_engine.core.metrics import transaction_retries
from reservation_engine.db.session import get_sessionmaker

logger = get_logger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_retryable(exc: DBAPIError) -> bool:
    """True when the store rejected the transaction only because of contention."""
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if sqlstate in RETRYABLE_SQLSTATES:
            return True
    return "database is locked" in str(orig).lower()


async def run_in_transaction(
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    operation: str = "unit_of_work",
) -> T:
    """
    Run `work(session)` inside one transaction and commit it.

    Typed core errors propagate unchanged after rollback. Store failures
    surface as StoreUnavailable once retries are exhausted.
    """
    factory = session_factory or get_sessionmaker()
    max_attempts = max(1, get_settings().DB_MAX_RETRY_ATTEMPTS)

    for attempt in range(1, max_attempts + 1):
        try:
            async with factory() as session:
                async with session.begin():
                    return await work(session)
        except ReservationEngineError:
            raise
        except DBAPIError as exc:
            if is_retryable(exc) and attempt < max_attempts:
                transaction_retries.inc()
                logger.info(
                    "transaction_retry",
                    operation=operation,
                    attempt=attempt,
                    reason="serialization_failure",
                )
                continue
            logger.error(
                "transaction_failed",
                operation=operation,
                attempt=attempt,
                error=str(exc.orig),
            )
            raise StoreUnavailable() from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.error("transaction_failed", operation=operation, attempt=attempt, error=str(exc))
            raise StoreUnavailable() from exc

    # range() above always returns or raises
    raise StoreUnavailable()
