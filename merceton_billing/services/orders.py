"""Order placement, confirmation and cancellation"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from merceton_billing.domain.exceptions import MerchantNotFoundError, OrderNotFoundError
from merceton_billing.domain.fees import DEFAULT_FEE_CONFIG, compute_breakdown, order_gross_amount
from merceton_billing.domain.ledger import assert_order_transition, generate_entries, generate_reversal_entries
from merceton_billing.domain.models import LedgerEntryDraft, OrderStage
from merceton_billing.infrastructure.database.counters import AtomicCounter, SqlAtomicCounter
from merceton_billing.infrastructure.database.models import LedgerEntry, Merchant, Order
from merceton_billing.infrastructure.database.repositories import LedgerRepository, OrderRepository
from merceton_billing.infrastructure.observability.metrics import record_order_fee
from merceton_billing.services.order_numbers import OrderNumberAllocator
from merceton_billing.services.pricing import EffectiveFeeConfigResolver
from merceton_billing.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLine:
    sku: str
    quantity: int
    unit_price_minor: int

    @property
    def total_minor(self) -> int:
        return self.quantity * self.unit_price_minor


def place_order(
    db: Session,
    merchant_id: str,
    lines: Iterable[OrderLine],
    shipping_minor: int = 0,
    tax_minor: int = 0,
    discount_minor: int = 0,
    customer_name: Optional[str] = None,
    payment_method: str = "ONLINE",
    resolver: Optional[EffectiveFeeConfigResolver] = None,
    counter: Optional[AtomicCounter] = None,
    now: Optional[datetime] = None,
) -> Order:
    """
    Create an order with its fee breakdown, order number and ledger rows.

    Flow:
    1. Resolve the merchant's effective fee config
    2. Compute gross, platform fee and net payable
    3. Allocate the order number
    4. Persist order, items, payment and the three PENDING ledger rows

    Everything happens in the caller's transaction, so a failure at any
    step leaves no partial order behind once the caller rolls back.
    """
    if db.get(Merchant, merchant_id) is None:
        raise MerchantNotFoundError(f"Merchant {merchant_id} not found")

    now = now or utcnow()
    lines = list(lines)
    resolver = resolver or EffectiveFeeConfigResolver(db)

    # 1-2. Fee breakdown
    effective = resolver.resolve(merchant_id)
    gross = order_gross_amount(
        [line.total_minor for line in lines],
        shipping=shipping_minor,
        tax=tax_minor,
        discount=discount_minor,
    )
    breakdown = compute_breakdown(gross, effective.to_fee_config())

    # 3. Order number
    allocator = OrderNumberAllocator(counter or SqlAtomicCounter(db))
    order_number = allocator.allocate(now)

    # 4. Persist
    order = OrderRepository(db).create_order(
        merchant_id=merchant_id,
        order_number=order_number,
        breakdown=breakdown,
        items=[
            {"sku": line.sku, "quantity": line.quantity, "unit_price_minor": line.unit_price_minor}
            for line in lines
        ],
        customer_name=customer_name,
        payment_method=payment_method,
        created_at=now,
    )
    LedgerRepository(db).add_entries(
        generate_entries(breakdown, merchant_id, order.id, order_number),
        created_at=now,
    )

    record_order_fee(breakdown.platform_fee, DEFAULT_FEE_CONFIG.max_cap_minor_units or 0)
    return order


def get_order(db: Session, order_number: str, for_update: bool = False) -> Order:
    order = OrderRepository(db).get_by_number(order_number, for_update=for_update)
    if order is None:
        raise OrderNotFoundError(f"Order {order_number} not found")
    return order


def confirm_order(db: Session, order_number: str) -> Order:
    """Merchant accepts a paid order (PAID -> CONFIRMED)"""
    order = get_order(db, order_number, for_update=True)
    assert_order_transition(order.stage, OrderStage.CONFIRMED)
    order.stage = OrderStage.CONFIRMED
    db.flush()
    return order


def _as_draft(row: LedgerEntry) -> LedgerEntryDraft:
    return LedgerEntryDraft(
        merchant_id=row.merchant_id,
        order_id=row.order_id,
        type=row.type,
        amount=row.amount_minor,
        description=row.description or "",
    )


def cancel_order(
    db: Session,
    order_number: str,
    reason: str = "order cancelled",
    now: Optional[datetime] = None,
) -> List[LedgerEntry]:
    """
    Cancel an order by appending offsetting ledger rows.

    Existing ledger rows are never edited. Only CREATED or CONFIRMED
    orders can be cancelled.

    Raises:
        OrderNotFoundError: unknown order number
        InvalidStatusTransition: order is in a stage that cannot be cancelled
    """
    order = get_order(db, order_number, for_update=True)
    assert_order_transition(order.stage, OrderStage.CANCELLED)

    ledger_repo = LedgerRepository(db)
    originals = [_as_draft(row) for row in ledger_repo.entries_for_order(order.id)]
    reversals = ledger_repo.add_entries(generate_reversal_entries(originals, reason), created_at=now)

    order.stage = OrderStage.CANCELLED
    db.flush()

    logger.info(
        "Order cancelled",
        extra={"order_number": order_number, "merchant_id": order.merchant_id, "reversal_entries": len(reversals)},
    )
    return reversals
