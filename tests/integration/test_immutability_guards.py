"""Integration tests for append-only ledger and invoice records"""

from datetime import datetime
import pytest
from sqlalchemy.orm import Session

from merceton_billing.domain.exceptions import ImmutableRecordError, InvalidStatusTransition
from merceton_billing.domain.models import LedgerEntryStatus, LedgerEntryType, PeriodFees
from merceton_billing.infrastructure.database.repositories import InvoiceRepository, LedgerRepository
from merceton_billing.services.orders import OrderLine, place_order


@pytest.fixture
def fee_entry(db: Session, merchant):
    order = place_order(db, merchant.id, [OrderLine("SKU-1", 1, 10000)], now=datetime(2026, 2, 15))
    db.commit()
    entries = LedgerRepository(db).entries_for_order(order.id)
    return next(e for e in entries if e.type == LedgerEntryType.PLATFORM_FEE)


def test_ledger_amount_cannot_change(db: Session, fee_entry):
    fee_entry.amount_minor = 0

    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()


def test_ledger_type_cannot_change(db: Session, fee_entry):
    fee_entry.type = LedgerEntryType.ORDER_PAYOUT

    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()


def test_ledger_status_moves_forward(db: Session, fee_entry):
    fee_entry.status = LedgerEntryStatus.PROCESSING
    db.commit()

    assert fee_entry.status == LedgerEntryStatus.PROCESSING


def test_ledger_status_cannot_move_backwards(db: Session, fee_entry):
    fee_entry.status = LedgerEntryStatus.PROCESSING
    db.commit()

    fee_entry.status = LedgerEntryStatus.PENDING
    with pytest.raises(InvalidStatusTransition):
        db.flush()
    db.rollback()


def test_settled_status_cannot_move_backwards_after_commit(db: Session, fee_entry):
    fee_entry.status = LedgerEntryStatus.PROCESSING
    db.commit()
    fee_entry.status = LedgerEntryStatus.SETTLED
    db.commit()

    # commit expired the row; the stored status must still be checked
    fee_entry.status = LedgerEntryStatus.PENDING
    with pytest.raises(InvalidStatusTransition):
        db.flush()
    db.rollback()

    db.expire_all()
    assert fee_entry.status == LedgerEntryStatus.SETTLED


def test_ledger_entry_cannot_be_deleted(db: Session, fee_entry):
    db.delete(fee_entry)

    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()


@pytest.fixture
def issued_invoice(db: Session, merchant):
    repo = InvoiceRepository(db)
    cycle = repo.get_or_create_cycle(datetime(2026, 2, 6), datetime(2026, 2, 12, 23, 59, 59))
    invoice = repo.create_invoice(
        merchant_id=merchant.id,
        cycle_id=cycle.id,
        invoice_number="SMK-2025-26-00001",
        fees=PeriodFees(platform_fee=10000, gst_amount=1800, total=11800),
        gst_rate=18,
        sac_code="9983",
        description="Platform fees",
    )
    db.commit()
    return invoice


def test_issued_invoice_is_immutable(db: Session, issued_invoice):
    invoice = issued_invoice
    invoice.total_minor = 1
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()

    db.delete(invoice)
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()


def test_issued_invoice_can_be_marked_paid(db: Session, issued_invoice):
    issued_invoice.status = "PAID"
    db.commit()

    db.expire_all()
    assert issued_invoice.status == "PAID"


def test_paid_invoice_cannot_return_to_issued(db: Session, issued_invoice):
    issued_invoice.status = "PAID"
    db.commit()

    issued_invoice.status = "ISSUED"
    with pytest.raises(InvalidStatusTransition):
        db.flush()
    db.rollback()

    db.expire_all()
    assert issued_invoice.status == "PAID"


def test_invoice_cannot_jump_to_unknown_status(db: Session, issued_invoice):
    issued_invoice.status = "VOID"

    with pytest.raises(InvalidStatusTransition):
        db.flush()
    db.rollback()
