"""Weekly merchant payouts for invoiced settlement cycles"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from merceton_billing.domain.exceptions import DomainException
from merceton_billing.domain.models import CycleStatus
from merceton_billing.domain.payouts import compute_payout
from merceton_billing.infrastructure.database.models import PlatformInvoice, PlatformSettlementCycle
from merceton_billing.infrastructure.database.repositories import (
    InvoiceRepository,
    OrderRepository,
    PayoutRepository,
)
from merceton_billing.infrastructure.observability.metrics import payout_amount_counter, payout_outcome_counter
from merceton_billing.services.pricing import EffectiveFeeConfigResolver
from merceton_billing.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreatedPayout:
    payout_id: uuid.UUID
    merchant_id: str
    cycle_id: uuid.UUID
    invoice_number: str
    net_payable_minor: int
    invoice_total_minor: int
    holdback_minor: int
    amount_minor: int

    def event_payload(self) -> Dict[str, Any]:
        return {
            "event": "PAYOUT_CREATED",
            "payout_id": str(self.payout_id),
            "merchant_id": self.merchant_id,
            "cycle_id": str(self.cycle_id),
            "invoice_number": self.invoice_number,
            "holdback_minor": self.holdback_minor,
            "amount_minor": self.amount_minor,
            "currency": "INR",
        }


@dataclass
class CyclePayoutResult:
    cycle_id: uuid.UUID
    period_start: datetime
    period_end: datetime
    cycle_status: CycleStatus
    created: List[CreatedPayout] = field(default_factory=list)
    skipped_invoices: List[str] = field(default_factory=list)
    held_merchants: List[str] = field(default_factory=list)
    failed_merchants: List[str] = field(default_factory=list)


def _pay_out_invoice(
    db: Session,
    cycle: PlatformSettlementCycle,
    invoice: PlatformInvoice,
    holdback_bps: int,
    now: datetime,
) -> Optional[CreatedPayout]:
    net_payable = OrderRepository(db).sum_billable_net_payable(
        invoice.merchant_id, cycle.period_start, cycle.period_end
    )
    amount = compute_payout(net_payable, invoice.total_minor, holdback_bps)
    if amount.amount <= 0:
        return None

    payout = PayoutRepository(db).create_payout(invoice, amount, created_at=now)
    return CreatedPayout(
        payout_id=payout.id,
        merchant_id=invoice.merchant_id,
        cycle_id=cycle.id,
        invoice_number=invoice.invoice_number,
        net_payable_minor=amount.net_payable,
        invoice_total_minor=amount.invoice_total,
        holdback_minor=amount.holdback,
        amount_minor=amount.amount,
    )


def execute_cycle_payouts(
    db: Session,
    cycle: PlatformSettlementCycle,
    resolver: EffectiveFeeConfigResolver,
    now: datetime,
) -> CyclePayoutResult:
    """
    Create one payout per invoice of an INVOICED cycle.

    Payout = net payable of the merchant's paid, non-cancelled orders in the
    cycle - platform invoice total - holdback. Invoices that are cancelled,
    already paid out, or leave nothing to pay are skipped. Merchants on
    payout hold are left for a later run. The cycle becomes PAID once no
    merchant is held or failed.
    """
    result = CyclePayoutResult(
        cycle_id=cycle.id,
        period_start=cycle.period_start,
        period_end=cycle.period_end,
        cycle_status=cycle.status,
    )
    payout_repo = PayoutRepository(db)

    for invoice in InvoiceRepository(db).invoices_for_cycle(cycle.id):
        if invoice.status != "ISSUED" or payout_repo.get_for_invoice(invoice.id) is not None:
            payout_outcome_counter.labels(outcome="skipped").inc()
            result.skipped_invoices.append(invoice.invoice_number)
            continue

        savepoint = db.begin_nested()
        try:
            effective = resolver.resolve(invoice.merchant_id)
            if effective.is_payout_hold:
                savepoint.commit()
                payout_outcome_counter.labels(outcome="held").inc()
                result.held_merchants.append(invoice.merchant_id)
                logger.info(
                    "Payout held",
                    extra={"merchant_id": invoice.merchant_id, "invoice_number": invoice.invoice_number},
                )
                continue

            created = _pay_out_invoice(db, cycle, invoice, effective.holdback_bps, now)
            savepoint.commit()

        except (DomainException, SQLAlchemyError) as e:
            savepoint.rollback()
            payout_outcome_counter.labels(outcome="failed").inc()
            result.failed_merchants.append(invoice.merchant_id)
            logger.error(
                "Payout creation failed",
                extra={"merchant_id": invoice.merchant_id, "cycle_id": str(cycle.id), "error": str(e)},
            )
            continue

        if created is None:
            payout_outcome_counter.labels(outcome="skipped").inc()
            result.skipped_invoices.append(invoice.invoice_number)
            continue

        payout_outcome_counter.labels(outcome="created").inc()
        payout_amount_counter.inc(created.amount_minor)
        logger.info(
            "Payout created",
            extra={
                "merchant_id": created.merchant_id,
                "invoice_number": created.invoice_number,
                "amount_minor": created.amount_minor,
                "holdback_minor": created.holdback_minor,
            },
        )
        result.created.append(created)

    if not result.held_merchants and not result.failed_merchants:
        cycle.status = CycleStatus.PAID
        cycle.payouts_executed_at = now
        db.flush()

    result.cycle_status = cycle.status
    return result


def execute_weekly_payouts(
    db: Session,
    resolver: Optional[EffectiveFeeConfigResolver] = None,
    now: Optional[datetime] = None,
) -> List[CyclePayoutResult]:
    """
    Pay out every INVOICED cycle, oldest first.

    Cycles left INVOICED by an earlier run (held or failed merchants) are
    retried; invoices already paid out are never paid twice. The caller
    commits.
    """
    now = now or utcnow()
    resolver = resolver or EffectiveFeeConfigResolver(db)
    return [
        execute_cycle_payouts(db, cycle, resolver, now)
        for cycle in InvoiceRepository(db).cycles_awaiting_payout()
    ]
