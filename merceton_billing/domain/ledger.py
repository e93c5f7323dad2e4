"""Ledger entry generation for placed and cancelled orders"""

import uuid
from typing import Dict, Iterable, List, Sequence
from merceton_billing.domain.exceptions import InvalidStatusTransition, MoneyInvariantViolation
from merceton_billing.domain.models import (
    LedgerEntryDraft,
    LedgerEntryStatus,
    LedgerEntryType,
    OrderMoneyBreakdown,
    OrderStage,
)

# Forward-only. Cancelling after PROCESSING needs offsetting entries, never a rollback.
LEDGER_TRANSITIONS: Dict[LedgerEntryStatus, frozenset] = {
    LedgerEntryStatus.PENDING: frozenset({LedgerEntryStatus.PROCESSING}),
    LedgerEntryStatus.PROCESSING: frozenset({LedgerEntryStatus.SETTLED}),
    LedgerEntryStatus.SETTLED: frozenset(),
}

ORDER_TRANSITIONS: Dict[OrderStage, frozenset] = {
    OrderStage.CREATED: frozenset({OrderStage.PAID, OrderStage.CANCELLED}),
    OrderStage.PAID: frozenset({OrderStage.CONFIRMED, OrderStage.SETTLED}),
    OrderStage.CONFIRMED: frozenset({OrderStage.SETTLED, OrderStage.CANCELLED}),
    OrderStage.SETTLED: frozenset(),
    OrderStage.CANCELLED: frozenset(),
}


def can_transition(current: LedgerEntryStatus, requested: LedgerEntryStatus) -> bool:
    return requested in LEDGER_TRANSITIONS[current]


def assert_transition(current: LedgerEntryStatus, requested: LedgerEntryStatus) -> None:
    if not can_transition(current, requested):
        raise InvalidStatusTransition("LedgerEntry", current.value, requested.value)


def assert_order_transition(current: OrderStage, requested: OrderStage) -> None:
    if requested not in ORDER_TRANSITIONS[current]:
        raise InvalidStatusTransition("Order", current.value, requested.value)


def _amount_of(entries: Iterable[LedgerEntryDraft], entry_type: LedgerEntryType) -> int:
    return sum(e.amount for e in entries if e.type == entry_type)


def check_reconciles(entries: Sequence[LedgerEntryDraft]) -> None:
    """Gross + fee (stored negative) must equal payout"""
    gross = _amount_of(entries, LedgerEntryType.GROSS_ORDER_VALUE)
    fee = _amount_of(entries, LedgerEntryType.PLATFORM_FEE)
    payout = _amount_of(entries, LedgerEntryType.ORDER_PAYOUT)
    if gross + fee != payout:
        raise MoneyInvariantViolation(
            f"Ledger does not reconcile: gross {gross} + fee {fee} != payout {payout}"
        )


def generate_entries(
    breakdown: OrderMoneyBreakdown,
    merchant_id: str,
    order_id: uuid.UUID,
    order_number: str,
) -> List[LedgerEntryDraft]:
    """
    Build the ledger rows written when an order is placed.

    Sign convention:
    - GROSS_ORDER_VALUE: +gross
    - PLATFORM_FEE: -fee
    - ORDER_PAYOUT: +net (owed to the merchant)

    All rows start PENDING; payment and payout handlers move them forward.
    """
    if breakdown.gross_amount - breakdown.platform_fee != breakdown.net_payable:
        raise MoneyInvariantViolation(f"Breakdown does not reconcile: {breakdown}")
    if breakdown.platform_fee < 0:
        raise MoneyInvariantViolation(f"Negative platform fee: {breakdown.platform_fee}")

    entries = [
        LedgerEntryDraft(
            merchant_id=merchant_id,
            order_id=order_id,
            type=LedgerEntryType.GROSS_ORDER_VALUE,
            amount=breakdown.gross_amount,
            description=f"Gross order value for {order_number}",
        ),
        LedgerEntryDraft(
            merchant_id=merchant_id,
            order_id=order_id,
            type=LedgerEntryType.PLATFORM_FEE,
            amount=-breakdown.platform_fee,
            description=f"Platform fee for {order_number}",
        ),
        LedgerEntryDraft(
            merchant_id=merchant_id,
            order_id=order_id,
            type=LedgerEntryType.ORDER_PAYOUT,
            amount=breakdown.net_payable,
            description=f"Net payable for {order_number}",
        ),
    ]
    check_reconciles(entries)
    return entries


def generate_reversal_entries(
    entries: Sequence[LedgerEntryDraft],
    reason: str,
) -> List[LedgerEntryDraft]:
    """Offsetting rows that cancel the given entries type by type"""
    reversals = [
        LedgerEntryDraft(
            merchant_id=entry.merchant_id,
            order_id=entry.order_id,
            type=entry.type,
            amount=-entry.amount,
            description=f"Reversal: {entry.description} ({reason})",
        )
        for entry in entries
    ]
    check_reconciles(reversals)
    return reversals
