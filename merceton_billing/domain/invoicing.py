"""GST computation and invoice line-item aggregation for platform fees"""

import re
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Union
from merceton_billing.domain.models import (
    InvoiceAggregate,
    InvoiceLineItem,
    InvoiceTotals,
    PeriodFees,
    TaxType,
)
from merceton_billing.domain.money import percent_of


@dataclass(frozen=True)
class FeeEntry:
    """A PLATFORM_FEE ledger row as seen by invoice aggregation"""

    order_id: Optional[uuid.UUID]
    order_number: Optional[str]
    amount: int  # stored negative
    created_at: datetime


def period_fees(platform_fee: int, gst_rate: Union[int, Decimal] = 18) -> PeriodFees:
    """GST on the summed platform fee; 10000 at 18% -> gst 1800, total 11800"""
    gst_amount = percent_of(platform_fee, gst_rate)
    return PeriodFees(platform_fee=platform_fee, gst_amount=gst_amount, total=platform_fee + gst_amount)


def state_code(state: Optional[str]) -> Optional[str]:
    """Two-digit GST state code from a code or a string containing one"""
    if not state:
        return None
    match = re.search(r"\d{2}", state)
    return match.group(0) if match else None


def determine_tax_type(supplier_state_code: str, recipient_state_code: Optional[str]) -> TaxType:
    # Unknown merchant state is treated as inter-state
    if not recipient_state_code:
        return TaxType.IGST
    return TaxType.CGST_SGST if supplier_state_code == recipient_state_code else TaxType.IGST


def split_gst(taxable_value: int, tax_type: TaxType, gst_rate: Union[int, Decimal] = 18) -> tuple[int, int, int]:
    """Return (cgst, sgst, igst); intra-state GST is halved with SGST taking the odd paisa"""
    gst = percent_of(taxable_value, gst_rate)
    if tax_type == TaxType.CGST_SGST:
        cgst = gst // 2
        return cgst, gst - cgst, 0
    return 0, 0, gst


def aggregate_fee_entries(
    entries: Iterable[FeeEntry],
    supplier_state_code: str,
    recipient_state_code: Optional[str],
    gst_rate: Union[int, Decimal] = 18,
    sac_code: str = "9983",
) -> InvoiceAggregate:
    """
    Group platform-fee ledger rows into invoice line items.

    Rows are grouped by order, or by calendar day when a row has no order.
    Fees are stored negative, so the taxable value is the negated sum.
    Groups that net to zero (fully reversed orders) produce no line item.
    """
    tax_type = determine_tax_type(supplier_state_code, recipient_state_code)

    grouped: "OrderedDict[str, List[FeeEntry]]" = OrderedDict()
    for entry in sorted(entries, key=lambda e: e.created_at):
        key = entry.order_id or entry.created_at.date().isoformat()
        grouped.setdefault(key, []).append(entry)

    line_items: List[InvoiceLineItem] = []
    for group in grouped.values():
        first = group[0]
        taxable = -sum(e.amount for e in group)
        if taxable == 0:
            continue
        cgst, sgst, igst = split_gst(taxable, tax_type, gst_rate)
        if first.order_number:
            description = f"Platform fee for Order #{first.order_number}"
        else:
            description = f"Platform fee - {first.created_at.date().isoformat()}"

        line_items.append(
            InvoiceLineItem(
                order_id=first.order_id,
                occurred_at=first.created_at,
                description=description,
                sac_code=sac_code,
                taxable_value=taxable,
                cgst=cgst,
                sgst=sgst,
                igst=igst,
                total=taxable + cgst + sgst + igst,
            )
        )

    totals = InvoiceTotals(
        total_taxable=sum(item.taxable_value for item in line_items),
        total_cgst=sum(item.cgst for item in line_items),
        total_sgst=sum(item.sgst for item in line_items),
        total_igst=sum(item.igst for item in line_items),
        grand_total=sum(item.total for item in line_items),
    )
    return InvoiceAggregate(line_items=line_items, totals=totals, tax_type=tax_type)
