"""Platform fee aggregation and the weekly platform invoice job"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from merceton_billing.config import settings
from merceton_billing.domain.exceptions import DomainException
from merceton_billing.domain.invoicing import FeeEntry, aggregate_fee_entries, period_fees, state_code
from merceton_billing.domain.models import CycleStatus, InvoiceAggregate, LedgerEntryType, PeriodFees
from merceton_billing.infrastructure.database.models import Merchant, PlatformBillingProfile
from merceton_billing.infrastructure.database.repositories import (
    InvoiceRepository,
    LedgerRepository,
    OrderRepository,
)
from merceton_billing.infrastructure.observability.metrics import invoices_issued_counter
from merceton_billing.services.invoice_numbers import PROFILE_ID, PlatformInvoiceNumberAllocator
from merceton_billing.utils.date_utils import utcnow, weekly_cycle_bounds

logger = logging.getLogger(__name__)


def compute_fees_for_period(
    db: Session,
    merchant_id: str,
    period_start: datetime,
    period_end: datetime,
    gst_rate: Optional[Union[int, Decimal]] = None,
) -> PeriodFees:
    """
    Sum platform fees owed by a merchant for orders in [period_start, period_end].

    Only orders whose payment is PAID and which are not CANCELLED count.
    Fees are the amounts frozen on each order at placement, never recomputed
    from the current pricing package.
    """
    if gst_rate is None:
        gst_rate = settings.default_gst_rate
    platform_fee = OrderRepository(db).sum_billable_fees(merchant_id, period_start, period_end)
    return period_fees(platform_fee, gst_rate)


def aggregate_fee_entries_for_invoice(
    db: Session,
    merchant_id: str,
    period_start: datetime,
    period_end: datetime,
) -> InvoiceAggregate:
    """Invoice line items (one per order) from the merchant's PLATFORM_FEE ledger rows"""
    rows = LedgerRepository(db).list_for_merchant(
        merchant_id,
        start=period_start,
        end=period_end,
        entry_type=LedgerEntryType.PLATFORM_FEE,
    )
    entries = [
        FeeEntry(
            order_id=row.order_id,
            order_number=row.order.order_number if row.order is not None else None,
            amount=row.amount_minor,
            created_at=row.created_at,
        )
        for row in rows
    ]

    profile = db.get(PlatformBillingProfile, PROFILE_ID)
    merchant = db.get(Merchant, merchant_id)
    supplier_state = (profile.state_code if profile else None) or settings.supplier_state_code
    gst_rate = profile.default_gst_rate if profile else settings.default_gst_rate
    sac_code = profile.default_sac_code if profile else settings.default_sac_code

    return aggregate_fee_entries(
        entries,
        supplier_state_code=supplier_state,
        recipient_state_code=state_code(merchant.state if merchant else None),
        gst_rate=gst_rate,
        sac_code=sac_code,
    )


@dataclass(frozen=True)
class IssuedInvoice:
    invoice_id: uuid.UUID
    invoice_number: str
    merchant_id: str
    cycle_id: uuid.UUID
    subtotal_minor: int
    gst_amount_minor: int
    total_minor: int

    def event_payload(self) -> Dict[str, Any]:
        return {
            "event": "PLATFORM_INVOICE_ISSUED",
            "invoice_id": str(self.invoice_id),
            "invoice_number": self.invoice_number,
            "merchant_id": self.merchant_id,
            "cycle_id": str(self.cycle_id),
            "subtotal_minor": self.subtotal_minor,
            "gst_amount_minor": self.gst_amount_minor,
            "total_minor": self.total_minor,
            "currency": "INR",
        }


@dataclass
class BillingRunResult:
    cycle_id: uuid.UUID
    period_start: datetime
    period_end: datetime
    cycle_status: CycleStatus
    already_invoiced: bool = False
    issued: List[IssuedInvoice] = field(default_factory=list)
    skipped_merchants: List[str] = field(default_factory=list)
    failed_merchants: List[str] = field(default_factory=list)


def generate_platform_invoices(db: Session, now: Optional[datetime] = None) -> BillingRunResult:
    """
    Issue platform fee invoices for the weekly cycle ending on the most recent Thursday.

    Flow:
    1. Get or create the settlement cycle (Friday 00:00 - Thursday 23:59:59)
    2. Stop if the cycle is already INVOICED or PAID
    3. For each active merchant without an invoice in this cycle:
       sum fees, skip zero totals, allocate a number, create the invoice
    4. Mark the cycle INVOICED once every merchant succeeded

    Each merchant runs in its own savepoint: one failure is logged and
    does not undo the invoices already created. The caller commits.
    """
    now = now or utcnow()
    period_start, period_end = weekly_cycle_bounds(now)
    invoice_repo = InvoiceRepository(db)

    cycle = invoice_repo.get_or_create_cycle(period_start, period_end)
    result = BillingRunResult(
        cycle_id=cycle.id,
        period_start=period_start,
        period_end=period_end,
        cycle_status=cycle.status,
    )

    if cycle.status in (CycleStatus.INVOICED, CycleStatus.PAID):
        logger.info(
            "Cycle already invoiced",
            extra={"cycle_id": str(cycle.id), "cycle_status": cycle.status.value},
        )
        result.already_invoiced = True
        return result

    invoiced = {invoice.merchant_id for invoice in invoice_repo.invoices_for_cycle(cycle.id)}
    allocator = PlatformInvoiceNumberAllocator(db, clock=lambda: now)
    gst_rate = Decimal(settings.default_gst_rate)
    description = f"Platform fees {period_start:%d %b %Y} - {period_end:%d %b %Y}"

    for merchant in invoice_repo.billable_merchants():
        if merchant.id in invoiced:
            continue

        savepoint = db.begin_nested()
        try:
            fees = compute_fees_for_period(db, merchant.id, period_start, period_end, gst_rate)
            if fees.total == 0:
                savepoint.commit()
                result.skipped_merchants.append(merchant.id)
                continue

            invoice_number = allocator.allocate()
            invoice = invoice_repo.create_invoice(
                merchant_id=merchant.id,
                cycle_id=cycle.id,
                invoice_number=invoice_number,
                fees=fees,
                gst_rate=gst_rate,
                sac_code=settings.default_sac_code,
                description=description,
                invoice_date=now,
            )
            savepoint.commit()

        except (DomainException, SQLAlchemyError) as e:
            savepoint.rollback()
            result.failed_merchants.append(merchant.id)
            logger.error(
                "Platform invoice generation failed",
                extra={"merchant_id": merchant.id, "cycle_id": str(cycle.id), "error": str(e)},
            )
            continue

        invoices_issued_counter.inc()
        logger.info(
            "Platform invoice issued",
            extra={
                "merchant_id": merchant.id,
                "invoice_number": invoice_number,
                "total_minor": fees.total,
            },
        )
        result.issued.append(
            IssuedInvoice(
                invoice_id=invoice.id,
                invoice_number=invoice_number,
                merchant_id=merchant.id,
                cycle_id=cycle.id,
                subtotal_minor=fees.platform_fee,
                gst_amount_minor=fees.gst_amount,
                total_minor=fees.total,
            )
        )

    if not result.failed_merchants:
        cycle.status = CycleStatus.INVOICED
        cycle.invoice_generated_at = now
        db.flush()

    result.cycle_status = cycle.status
    return result
