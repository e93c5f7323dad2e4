"""Integration tests for the merchant ledger CSV export"""

import csv
import io
from datetime import date, datetime
from sqlalchemy.orm import Session

from merceton_billing.domain.models import LedgerEntryStatus, LedgerEntryType
from merceton_billing.infrastructure.database.models import LedgerEntry
from merceton_billing.services.export import LEDGER_CSV_HEADERS, export_filename, export_ledger_csv
from merceton_billing.services.orders import cancel_order

PLACED_AT = datetime(2026, 2, 10, 9, 0)
CANCELLED_AT = datetime(2026, 2, 11, 9, 0)


def _rows(content: str):
    reader = csv.DictReader(io.StringIO(content))
    assert reader.fieldnames == LEDGER_CSV_HEADERS
    return list(reader)


def test_export_columns_and_signs(db: Session, merchant, paid_order):
    order = paid_order(merchant.id, 10000, PLACED_AT, paid=False)

    rows = _rows(export_ledger_csv(db, merchant.id))

    assert len(rows) == 3
    by_type = {row["Entry Type"]: row for row in rows}
    fee = by_type["PLATFORM_FEE"]
    assert fee["Platform Fee"] == "-7.00"
    assert fee["Gross Amount"] == ""
    assert fee["Date"] == "2026-02-10"
    assert fee["Order ID"] == order.order_number
    assert fee["Reference Type"] == "ORDER"
    assert fee["Reference ID"] == str(order.id)
    assert fee["Currency"] == "INR"
    assert by_type["GROSS_ORDER_VALUE"]["Gross Amount"] == "100.00"
    assert by_type["ORDER_PAYOUT"]["Net Amount"] == "93.00"


def test_cancellation_rows_exported(db: Session, merchant, paid_order):
    order = paid_order(merchant.id, 10000, PLACED_AT, paid=False)
    cancel_order(db, order.order_number, now=CANCELLED_AT)
    db.commit()

    rows = _rows(export_ledger_csv(db, merchant.id))

    assert len(rows) == 6
    fees = [row["Platform Fee"] for row in rows if row["Entry Type"] == "PLATFORM_FEE"]
    assert sorted(fees) == ["-7.00", "7.00"]


def test_date_filter_includes_whole_end_day(db: Session, merchant, paid_order):
    order = paid_order(merchant.id, 10000, datetime(2026, 2, 10, 23, 30), paid=False)
    cancel_order(db, order.order_number, now=CANCELLED_AT)
    db.commit()

    rows = _rows(export_ledger_csv(db, merchant.id, date_from=date(2026, 2, 10), date_to=date(2026, 2, 10)))
    assert len(rows) == 3

    rows = _rows(export_ledger_csv(db, merchant.id, date_from=date(2026, 2, 11)))
    assert len(rows) == 3
    assert all(row["Description"].startswith("Reversal:") for row in rows)


def test_type_filter(db: Session, merchant, paid_order):
    paid_order(merchant.id, 10000, PLACED_AT)
    paid_order(merchant.id, 20000, PLACED_AT)

    rows = _rows(export_ledger_csv(db, merchant.id, entry_type=LedgerEntryType.PLATFORM_FEE))

    assert len(rows) == 2
    assert {row["Entry Type"] for row in rows} == {"PLATFORM_FEE"}


def test_other_merchants_not_exported(db: Session, merchant, make_merchant, paid_order):
    other = make_merchant("merchant_2")
    paid_order(other.id, 10000, PLACED_AT)

    assert _rows(export_ledger_csv(db, merchant.id)) == []


def test_entry_without_order_has_no_reference(db: Session, merchant):
    db.add(
        LedgerEntry(
            merchant_id=merchant.id,
            type=LedgerEntryType.ORDER_PAYOUT,
            amount_minor=-5000,
            status=LedgerEntryStatus.SETTLED,
            description="Manual adjustment",
            created_at=PLACED_AT,
        )
    )
    db.commit()

    rows = _rows(export_ledger_csv(db, merchant.id))

    assert len(rows) == 1
    assert rows[0]["Reference Type"] == ""
    assert rows[0]["Reference ID"] == ""
    assert rows[0]["Order ID"] == ""
    assert rows[0]["Net Amount"] == "-50.00"


def test_filename():
    assert export_filename(date(2026, 10, 18)) == "merceton-ledger-20261018.csv"
