"""Integration tests for the weekly merchant payout job"""

from datetime import datetime
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from merceton_billing.domain.models import CycleStatus
from merceton_billing.infrastructure.database.models import PayoutBatch, PlatformInvoice, PlatformSettlementCycle
from merceton_billing.infrastructure.database.repositories import PayoutRepository
from merceton_billing.services.billing import generate_platform_invoices
from merceton_billing.services.payouts import execute_weekly_payouts

INVOICED_AT = datetime(2026, 10, 16, 1, 0)  # closes the Oct 9 - Oct 15 cycle
PAID_OUT_AT = datetime(2026, 10, 16, 6, 0)
IN_CYCLE = datetime(2026, 10, 12, 10, 0)


def _invoice_cycle(db: Session) -> None:
    generate_platform_invoices(db, now=INVOICED_AT)
    db.commit()


def _run(db: Session):
    results = execute_weekly_payouts(db, now=PAID_OUT_AT)
    db.commit()
    return results


def test_pays_net_payable_less_invoice(db: Session, merchant, paid_order):
    paid_order(merchant.id, 10000, IN_CYCLE)
    _invoice_cycle(db)

    results = _run(db)

    assert len(results) == 1
    result = results[0]
    assert result.cycle_status == CycleStatus.PAID
    assert result.held_merchants == []
    assert len(result.created) == 1
    created = result.created[0]
    assert (created.net_payable_minor, created.invoice_total_minor) == (9300, 826)
    assert (created.holdback_minor, created.amount_minor) == (0, 8474)

    payout = db.query(PayoutBatch).one()
    assert payout.merchant_id == merchant.id
    assert payout.total_amount_minor == 8474
    assert payout.status == "PENDING"
    assert payout.created_at == PAID_OUT_AT
    assert db.query(PlatformInvoice).one().status == "PAID"
    cycle = db.query(PlatformSettlementCycle).one()
    assert cycle.status == CycleStatus.PAID
    assert cycle.payouts_executed_at == PAID_OUT_AT


def test_rerun_pays_nothing(db: Session, merchant, paid_order):
    paid_order(merchant.id, 10000, IN_CYCLE)
    _invoice_cycle(db)
    _run(db)

    assert _run(db) == []
    assert db.query(PayoutBatch).count() == 1


def test_uninvoiced_cycle_not_paid(db: Session, merchant, paid_order):
    paid_order(merchant.id, 10000, IN_CYCLE)

    assert _run(db) == []
    assert db.query(PayoutBatch).count() == 0


def test_holdback_withheld(db: Session, merchant, paid_order, assign_package):
    assign_package(merchant.id, holdback_override_bps=1000)
    paid_order(merchant.id, 10000, IN_CYCLE)
    _invoice_cycle(db)

    created = _run(db)[0].created[0]

    assert created.holdback_minor == 847
    assert created.amount_minor == 7627
    payout = db.query(PayoutBatch).one()
    assert (payout.holdback_minor, payout.total_amount_minor) == (847, 7627)


def test_held_merchant_not_paid_until_released(db: Session, merchant, paid_order, assign_package):
    config = assign_package(merchant.id, is_payout_hold_override=True)
    paid_order(merchant.id, 10000, IN_CYCLE)
    _invoice_cycle(db)

    result = _run(db)[0]

    assert result.held_merchants == [merchant.id]
    assert result.created == []
    assert result.cycle_status == CycleStatus.INVOICED
    assert db.query(PayoutBatch).count() == 0
    assert db.query(PlatformInvoice).one().status == "ISSUED"

    config.is_payout_hold_override = False
    db.commit()

    retry = _run(db)[0]

    assert [c.merchant_id for c in retry.created] == [merchant.id]
    assert retry.cycle_status == CycleStatus.PAID


def test_hold_does_not_block_other_merchants(db: Session, merchant, make_merchant, paid_order, assign_package):
    held = make_merchant("merchant_held")
    assign_package(held.id, is_payout_hold_override=True)
    paid_order(merchant.id, 10000, IN_CYCLE)
    paid_order(held.id, 10000, IN_CYCLE)
    _invoice_cycle(db)

    result = _run(db)[0]

    assert [c.merchant_id for c in result.created] == [merchant.id]
    assert result.held_merchants == [held.id]
    assert result.cycle_status == CycleStatus.INVOICED
    assert db.query(PayoutBatch).filter(PayoutBatch.merchant_id == held.id).count() == 0


def test_nothing_due_is_skipped(db: Session, merchant, paid_order):
    """Fee of 300 swallows the whole order, so the 354 invoice leaves nothing to pay"""
    order = paid_order(merchant.id, 300, IN_CYCLE)
    _invoice_cycle(db)

    result = _run(db)[0]

    assert result.created == []
    assert len(result.skipped_invoices) == 1
    assert result.cycle_status == CycleStatus.PAID
    assert db.query(PayoutBatch).count() == 0
    assert db.query(PlatformInvoice).one().status == "ISSUED"
    assert order.net_payable_minor == 0


def test_failure_is_isolated_and_retried(db: Session, merchant, make_merchant, paid_order):
    failing = make_merchant("merchant_failing")
    paid_order(merchant.id, 10000, IN_CYCLE)
    paid_order(failing.id, 10000, IN_CYCLE)
    _invoice_cycle(db)

    create_payout = PayoutRepository.create_payout

    def unreachable_bank(self, invoice, amount, created_at=None):
        if invoice.merchant_id == failing.id:
            raise OperationalError("INSERT", {}, Exception("server closed the connection unexpectedly"))
        return create_payout(self, invoice, amount, created_at)

    with patch.object(PayoutRepository, "create_payout", unreachable_bank):
        result = _run(db)[0]

    assert result.failed_merchants == [failing.id]
    assert [c.merchant_id for c in result.created] == [merchant.id]
    assert result.cycle_status == CycleStatus.INVOICED

    retry = _run(db)[0]

    assert [c.merchant_id for c in retry.created] == [failing.id]
    assert len(retry.skipped_invoices) == 1
    assert retry.cycle_status == CycleStatus.PAID
    assert db.query(PayoutBatch).count() == 2


def test_event_payload(db: Session, merchant, paid_order):
    paid_order(merchant.id, 10000, IN_CYCLE)
    _invoice_cycle(db)

    payload = _run(db)[0].created[0].event_payload()

    assert payload["event"] == "PAYOUT_CREATED"
    assert payload["merchant_id"] == merchant.id
    assert payload["amount_minor"] == 8474
    assert payload["currency"] == "INR"
