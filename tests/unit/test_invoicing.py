"""Unit tests for GST and invoice line-item aggregation"""

import uuid
from datetime import datetime
from decimal import Decimal
from merceton_billing.domain.invoicing import (
    FeeEntry,
    aggregate_fee_entries,
    determine_tax_type,
    period_fees,
    split_gst,
    state_code,
)
from merceton_billing.domain.models import TaxType

ORDER_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
ORDER_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")


def test_gst_on_platform_fee():
    fees = period_fees(10000, 18)
    assert fees.platform_fee == 10000
    assert fees.gst_amount == 1800
    assert fees.total == 11800


def test_gst_rounds_half_up():
    """18% of 25 = 4.5 -> 5"""
    assert period_fees(25, 18).gst_amount == 5


def test_decimal_rate():
    assert period_fees(10000, Decimal("18.00")).gst_amount == 1800


def test_empty_period():
    fees = period_fees(0)
    assert (fees.platform_fee, fees.gst_amount, fees.total) == (0, 0, 0)


def test_state_code_extraction():
    assert state_code("27-Maharashtra") == "27"
    assert state_code("29") == "29"
    assert state_code("Karnataka") is None
    assert state_code(None) is None


def test_same_state_is_intra_state():
    assert determine_tax_type("27", "27") == TaxType.CGST_SGST


def test_other_or_unknown_state_is_inter_state():
    assert determine_tax_type("27", "29") == TaxType.IGST
    assert determine_tax_type("27", None) == TaxType.IGST


def test_split_gst_halves_with_odd_paisa_to_sgst():
    """18% of 705 = 126.9 -> 127 -> 63 + 64"""
    assert split_gst(705, TaxType.CGST_SGST) == (63, 64, 0)
    assert split_gst(705, TaxType.IGST) == (0, 0, 127)


def test_one_line_per_order():
    entries = [
        FeeEntry(ORDER_A, "ORD-2602-000001", -700, datetime(2026, 2, 10, 9, 0)),
        FeeEntry(ORDER_B, "ORD-2602-000002", -2500, datetime(2026, 2, 11, 9, 0)),
    ]

    aggregate = aggregate_fee_entries(entries, "27", "27")

    assert aggregate.tax_type == TaxType.CGST_SGST
    assert [item.description for item in aggregate.line_items] == [
        "Platform fee for Order #ORD-2602-000001",
        "Platform fee for Order #ORD-2602-000002",
    ]
    first = aggregate.line_items[0]
    assert first.taxable_value == 700
    assert (first.cgst, first.sgst, first.igst) == (63, 63, 0)
    assert first.total == 826
    assert first.sac_code == "9983"
    assert aggregate.totals.total_taxable == 3200
    assert aggregate.totals.grand_total == sum(item.total for item in aggregate.line_items)


def test_entries_without_order_grouped_by_day():
    entries = [
        FeeEntry(None, None, -100, datetime(2026, 2, 10, 9, 0)),
        FeeEntry(None, None, -200, datetime(2026, 2, 10, 18, 0)),
        FeeEntry(None, None, -300, datetime(2026, 2, 11, 9, 0)),
    ]

    aggregate = aggregate_fee_entries(entries, "27", "29")

    assert aggregate.tax_type == TaxType.IGST
    assert [item.taxable_value for item in aggregate.line_items] == [300, 300]
    assert aggregate.line_items[0].description == "Platform fee - 2026-02-10"
    assert aggregate.totals.total_igst == 54 + 54


def test_fully_reversed_order_produces_no_line():
    entries = [
        FeeEntry(ORDER_A, "ORD-2602-000001", -700, datetime(2026, 2, 10, 9, 0)),
        FeeEntry(ORDER_A, "ORD-2602-000001", 700, datetime(2026, 2, 10, 12, 0)),
    ]
    aggregate = aggregate_fee_entries(entries, "27", "27")
    assert aggregate.line_items == []
    assert aggregate.totals.grand_total == 0
