"""Order number allocation: ORD-YYMM-NNNNNN, one counter per calendar month"""

import logging
import time
from datetime import date, datetime
from typing import Optional, Union

from merceton_billing.domain.exceptions import AllocationContentionError, OrderNumberAllocationFailed
from merceton_billing.domain.numbering import format_order_number, order_bucket_key
from merceton_billing.infrastructure.database.counters import AtomicCounter
from merceton_billing.infrastructure.observability.metrics import (
    allocation_failure_counter,
    allocation_latency_histogram,
)
from merceton_billing.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class OrderNumberAllocator:
    """
    Allocate unique, human-readable order numbers.

    Numbers are unique and increasing within a month bucket. Gaps are
    allowed, so callers must not assume contiguity.
    """

    def __init__(self, counter: AtomicCounter):
        self.counter = counter

    def allocate(self, on: Optional[Union[date, datetime]] = None) -> str:
        """
        Raises:
            AllocationContentionError: counter lock wait timed out
            OrderNumberAllocationFailed: counter could not be incremented
        """
        on = on or utcnow()
        key = order_bucket_key(on)
        start_time = time.time()

        try:
            value = self.counter.increment(key)
        except AllocationContentionError:
            allocation_failure_counter.labels(allocator="order", reason="contention").inc()
            raise
        except OrderNumberAllocationFailed:
            allocation_failure_counter.labels(allocator="order", reason="error").inc()
            raise
        finally:
            allocation_latency_histogram.labels(allocator="order").observe(time.time() - start_time)

        order_number = format_order_number(key, value)
        logger.info("Order number allocated", extra={"order_number": order_number})
        return order_number
