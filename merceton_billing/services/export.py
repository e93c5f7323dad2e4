"""Merchant ledger export as CSV"""

import csv
import io
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from merceton_billing.domain.models import LedgerEntryType
from merceton_billing.domain.money import Money
from merceton_billing.infrastructure.database.models import LedgerEntry
from merceton_billing.infrastructure.database.repositories import LedgerRepository
from merceton_billing.utils.date_utils import end_of_day, start_of_day

LEDGER_CSV_HEADERS = [
    "Date",
    "Entry Type",
    "Reference Type",
    "Reference ID",
    "Order ID",
    "Description",
    "Gross Amount",
    "Platform Fee",
    "Taxes",
    "Net Amount",
    "Currency",
    "Created At",
]

# Entry type -> column the amount goes in; anything else lands in Net Amount
AMOUNT_COLUMNS = {
    LedgerEntryType.GROSS_ORDER_VALUE: "Gross Amount",
    LedgerEntryType.PLATFORM_FEE: "Platform Fee",
    LedgerEntryType.ORDER_PAYOUT: "Net Amount",
}


def ledger_row(entry: LedgerEntry) -> List[str]:
    amounts = {"Gross Amount": "", "Platform Fee": "", "Taxes": "", "Net Amount": ""}
    amounts[AMOUNT_COLUMNS.get(entry.type, "Net Amount")] = Money(entry.amount_minor).format()

    return [
        entry.created_at.date().isoformat(),
        entry.type.value,
        "ORDER" if entry.order_id else "",
        str(entry.order_id) if entry.order_id else "",
        entry.order.order_number if entry.order is not None else "",
        entry.description or "",
        amounts["Gross Amount"],
        amounts["Platform Fee"],
        amounts["Taxes"],
        amounts["Net Amount"],
        "INR",
        entry.created_at.isoformat(),
    ]


def export_ledger_csv(
    db: Session,
    merchant_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    entry_type: Optional[LedgerEntryType] = None,
) -> str:
    """
    Render a merchant's ledger rows, oldest first.

    `date_to` is inclusive through the end of that day. Amounts keep their
    stored sign, so platform fees appear negative.
    """
    entries = LedgerRepository(db).list_for_merchant(
        merchant_id,
        start=start_of_day(date_from) if date_from else None,
        end=end_of_day(date_to) if date_to else None,
        entry_type=entry_type,
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(LEDGER_CSV_HEADERS)
    for entry in entries:
        writer.writerow(ledger_row(entry))
    return buffer.getvalue()


def export_filename(today: date) -> str:
    return f"merceton-ledger-{today:%Y%m%d}.csv"
