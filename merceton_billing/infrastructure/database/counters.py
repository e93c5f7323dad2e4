"""
Atomic named counters backed by the order_number_counter table.

The increment is a single INSERT .. ON CONFLICT DO UPDATE .. RETURNING
statement, so two concurrent callers can never read the same value: the
database serializes them on the counter row. Dialects without upsert
support fall back to a SELECT .. FOR UPDATE on the row.

The increment runs in the caller's transaction and becomes visible when
that transaction commits. In-process locks are never used: allocations
can come from different service instances.
"""

import logging
from typing import Protocol
from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from merceton_billing.config import settings
from merceton_billing.domain.exceptions import AllocationContentionError, OrderNumberAllocationFailed
from merceton_billing.infrastructure.database.models import OrderNumberCounter

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# lock_not_available, query_canceled
_PG_TIMEOUT_CODES = frozenset({"55P03", "57014"})


class AtomicCounter(Protocol):
    def increment(self, key: str) -> int:
        """Increment the counter for `key` (creating it at 1) and return the new value"""
        ...


def is_lock_timeout(error: OperationalError) -> bool:
    """True when the driver reports a lock wait or statement timeout"""
    if getattr(error.orig, "pgcode", None) in _PG_TIMEOUT_CODES:
        return True
    return "database is locked" in str(error.orig).lower()


def apply_lock_timeout(session: Session, timeout_ms: int) -> None:
    """
    Bound how long the current transaction waits on row locks.

    PostgreSQL: SET LOCAL lock_timeout / statement_timeout (reset at commit).
    SQLite: waiting is bounded by the connection busy timeout set on the engine.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    timeout_ms = int(timeout_ms)
    session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
    session.execute(text(f"SET LOCAL statement_timeout = '{timeout_ms}ms'"))


class SqlAtomicCounter:
    """Counter rows incremented inside the caller's transaction"""

    def __init__(self, session: Session, timeout_ms: int | None = None):
        self.session = session
        self.timeout_ms = timeout_ms or settings.counter_timeout_ms

    def increment(self, key: str) -> int:
        """
        Raises:
            AllocationContentionError: lock wait exceeded timeout_ms
            OrderNumberAllocationFailed: any other database failure
        """
        try:
            apply_lock_timeout(self.session, self.timeout_ms)
            insert_fn = _UPSERT_DIALECTS.get(self.session.get_bind().dialect.name)
            if insert_fn is None:
                value = self._increment_with_row_lock(key)
            else:
                value = self._increment_with_upsert(insert_fn, key)
        except OperationalError as e:
            if not is_lock_timeout(e):
                logger.error("Counter increment failed", extra={"counter_key": key, "error": str(e)})
                raise OrderNumberAllocationFailed(f"Failed to increment counter '{key}': {e}") from e
            logger.warning(
                "Counter increment timed out",
                extra={"counter_key": key, "timeout_ms": self.timeout_ms},
            )
            raise AllocationContentionError(key, self.timeout_ms) from e
        except SQLAlchemyError as e:
            raise OrderNumberAllocationFailed(f"Failed to increment counter '{key}': {e}") from e

        if value <= 0:
            raise OrderNumberAllocationFailed(f"Counter '{key}' returned non-positive value {value}")

        logger.debug("Counter incremented", extra={"counter_key": key, "value": value})
        return value

    def current_value(self, key: str) -> int | None:
        return self.session.execute(
            select(OrderNumberCounter.value).where(OrderNumberCounter.key == key)
        ).scalar_one_or_none()

    def _increment_with_upsert(self, insert_fn, key: str) -> int:
        table = OrderNumberCounter.__table__
        stmt = (
            insert_fn(table)
            .values(key=key, value=1)
            .on_conflict_do_update(
                index_elements=[table.c.key],
                set_={"value": table.c.value + 1},
            )
            .returning(table.c.value)
        )
        return self.session.execute(stmt).scalar_one()

    def _increment_with_row_lock(self, key: str) -> int:
        counter = self.session.execute(
            select(OrderNumberCounter)
            .where(OrderNumberCounter.key == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            # Another transaction may create the row first; the savepoint keeps
            # the caller's work intact if our insert loses that race.
            savepoint = self.session.begin_nested()
            try:
                self.session.add(OrderNumberCounter(key=key, value=1))
                self.session.flush()
                savepoint.commit()
                return 1
            except IntegrityError:
                savepoint.rollback()
                counter = self.session.execute(
                    select(OrderNumberCounter)
                    .where(OrderNumberCounter.key == key)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one()

        counter.value += 1
        self.session.flush()
        return counter.value
