"""
Platform invoice numbering.

The series state lives on the singleton platform billing profile. The
profile row is locked (SELECT .. FOR UPDATE) for the rest of the caller's
transaction, so the invoice that uses a number commits together with the
increment and concurrent allocators queue behind each other.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from merceton_billing.config import settings
from merceton_billing.domain.exceptions import (
    AllocationContentionError,
    InvalidSeriesFormat,
    InvoiceNumberAllocationFailed,
)
from merceton_billing.domain.numbering import DEFAULT_SERIES_FORMAT, render_invoice_number, validate_series_format
from merceton_billing.infrastructure.database.counters import apply_lock_timeout
from merceton_billing.infrastructure.database.models import PlatformBillingProfile
from merceton_billing.infrastructure.observability.metrics import (
    allocation_failure_counter,
    allocation_latency_histogram,
)
from merceton_billing.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

PROFILE_ID = "platform"


class PlatformInvoiceNumberAllocator:
    """Allocate sequential platform invoice numbers like SMK-2025-26-00042"""

    def __init__(
        self,
        session: Session,
        clock: Callable[[], datetime] = utcnow,
        timeout_ms: Optional[int] = None,
    ):
        self.session = session
        self.clock = clock
        self.timeout_ms = timeout_ms or settings.counter_timeout_ms

    def allocate(self) -> str:
        """
        Render the next invoice number and advance the series.

        Raises:
            AllocationContentionError: profile lock wait timed out
            InvoiceNumberAllocationFailed: any other database failure
        """
        start_time = time.time()
        try:
            apply_lock_timeout(self.session, self.timeout_ms)
            profile = self._lock_profile()

            number = profile.invoice_next_number
            invoice_number = render_invoice_number(
                self._series_format(profile),
                profile.invoice_prefix or settings.invoice_prefix,
                number,
                profile.invoice_padding or settings.invoice_padding,
                self.clock(),
            )
            profile.invoice_next_number = number + 1
            self.session.flush()

        except OperationalError as e:
            allocation_failure_counter.labels(allocator="invoice", reason="contention").inc()
            logger.warning(
                "Invoice number allocation timed out",
                extra={"timeout_ms": self.timeout_ms},
            )
            raise AllocationContentionError(PROFILE_ID, self.timeout_ms) from e
        except SQLAlchemyError as e:
            allocation_failure_counter.labels(allocator="invoice", reason="error").inc()
            raise InvoiceNumberAllocationFailed(f"Failed to allocate invoice number: {e}") from e
        finally:
            allocation_latency_histogram.labels(allocator="invoice").observe(time.time() - start_time)

        logger.info("Invoice number allocated", extra={"invoice_number": invoice_number})
        return invoice_number

    def _select_profile(self):
        return (
            select(PlatformBillingProfile)
            .where(PlatformBillingProfile.id == PROFILE_ID)
            .with_for_update()  # Row-level lock
            .execution_options(populate_existing=True)
        )

    def _lock_profile(self) -> PlatformBillingProfile:
        profile = self.session.execute(self._select_profile()).scalar_one_or_none()
        if profile is not None:
            return profile

        # First allocation ever: create the profile with platform defaults.
        savepoint = self.session.begin_nested()
        try:
            profile = PlatformBillingProfile(
                id=PROFILE_ID,
                state_code=settings.supplier_state_code,
                invoice_prefix=settings.invoice_prefix,
                invoice_next_number=1,
                invoice_padding=settings.invoice_padding,
                series_format=settings.invoice_series_format,
                default_gst_rate=settings.default_gst_rate,
                default_sac_code=settings.default_sac_code,
            )
            self.session.add(profile)
            self.session.flush()
            savepoint.commit()
            logger.info("Platform billing profile created", extra={"profile_id": PROFILE_ID})
        except IntegrityError:
            # Another transaction created it first
            savepoint.rollback()
            profile = self.session.execute(self._select_profile()).scalar_one()
        return profile

    def _series_format(self, profile: PlatformBillingProfile) -> str:
        series_format = profile.series_format or DEFAULT_SERIES_FORMAT
        try:
            return validate_series_format(series_format)
        except InvalidSeriesFormat:
            logger.warning(
                "Invalid invoice series format, using default",
                extra={"series_format": series_format, "default_format": DEFAULT_SERIES_FORMAT},
            )
            return DEFAULT_SERIES_FORMAT
