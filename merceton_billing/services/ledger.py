"""Ledger status transitions driven by payment capture and payout settlement"""

import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from merceton_billing.domain.exceptions import PayoutHoldError
from merceton_billing.domain.ledger import assert_order_transition, assert_transition
from merceton_billing.domain.models import LedgerEntryStatus, OrderStage, PaymentStatus
from merceton_billing.infrastructure.database.models import LedgerEntry, Order
from merceton_billing.infrastructure.database.repositories import LedgerRepository
from merceton_billing.services.orders import get_order
from merceton_billing.services.pricing import EffectiveFeeConfigResolver
from merceton_billing.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def _advance(entries: List[LedgerEntry], current: LedgerEntryStatus, requested: LedgerEntryStatus) -> int:
    moved = 0
    for entry in entries:
        if entry.status != current:
            continue
        assert_transition(entry.status, requested)
        entry.status = requested
        moved += 1
    return moved


def capture_payment(db: Session, order_number: str, paid_at: Optional[datetime] = None) -> Order:
    """
    Record a successful payment for an order.

    Payment -> PAID, order -> PAID, PENDING ledger rows -> PROCESSING.
    Capturing an already paid order is a no-op, so gateway webhooks may
    be delivered more than once.

    Raises:
        OrderNotFoundError: unknown order number
        InvalidStatusTransition: order was cancelled
    """
    order = get_order(db, order_number, for_update=True)
    if order.payment is not None and order.payment.status == PaymentStatus.PAID:
        logger.info("Payment already captured", extra={"order_number": order_number})
        return order

    assert_order_transition(order.stage, OrderStage.PAID)

    order.payment.status = PaymentStatus.PAID
    order.payment.paid_at = paid_at or utcnow()
    order.stage = OrderStage.PAID

    entries = LedgerRepository(db).entries_for_order(order.id)
    moved = _advance(entries, LedgerEntryStatus.PENDING, LedgerEntryStatus.PROCESSING)
    db.flush()

    logger.info(
        "Payment captured",
        extra={"order_number": order_number, "merchant_id": order.merchant_id, "ledger_entries": moved},
    )
    return order


def settle_payout(
    db: Session,
    order_number: str,
    resolver: Optional[EffectiveFeeConfigResolver] = None,
) -> Order:
    """
    Mark the merchant payout for an order as settled.

    PROCESSING ledger rows -> SETTLED, order -> SETTLED.

    Raises:
        OrderNotFoundError: unknown order number
        InvalidStatusTransition: order is not paid yet, or already settled/cancelled
        PayoutHoldError: the merchant's payouts are on hold
    """
    order = get_order(db, order_number, for_update=True)
    assert_order_transition(order.stage, OrderStage.SETTLED)

    resolver = resolver or EffectiveFeeConfigResolver(db)
    if resolver.resolve(order.merchant_id).is_payout_hold:
        logger.warning(
            "Payout settlement refused, merchant on hold",
            extra={"order_number": order_number, "merchant_id": order.merchant_id},
        )
        raise PayoutHoldError(order.merchant_id)

    entries = LedgerRepository(db).entries_for_order(order.id)
    moved = _advance(entries, LedgerEntryStatus.PROCESSING, LedgerEntryStatus.SETTLED)
    order.stage = OrderStage.SETTLED
    db.flush()

    logger.info(
        "Payout settled",
        extra={"order_number": order_number, "merchant_id": order.merchant_id, "ledger_entries": moved},
    )
    return order
