"""Human-readable identifiers for orders and platform invoices"""

import re
from datetime import date, datetime
from typing import Tuple, Union
from merceton_billing.domain.exceptions import InvalidSeriesFormat
from merceton_billing.utils.date_utils import financial_year_label, month_bucket

ORDER_PREFIX = "ORD"
ORDER_SEQUENCE_WIDTH = 6
ORDER_NUMBER_PATTERN = re.compile(r"^ORD-(\d{2})(\d{2})-(\d{6,})$")

SEQUENCE_TOKEN = "{NNNNN}"
DEFAULT_SERIES_FORMAT = "{PREFIX}-{FY}-{NNNNN}"


def order_bucket_key(on: Union[date, datetime]) -> str:
    """Counter key for the calendar month of `on`, e.g. "ORD-2602" """
    return f"{ORDER_PREFIX}-{month_bucket(on)}"


def format_order_number(bucket_key: str, value: int) -> str:
    return f"{bucket_key}-{value:0{ORDER_SEQUENCE_WIDTH}d}"


def parse_order_number(order_number: str) -> Tuple[str, int]:
    """Split "ORD-2602-000042" into ("ORD-2602", 42)"""
    match = ORDER_NUMBER_PATTERN.match(order_number)
    if not match:
        raise ValueError(f"Not an order number: {order_number!r}")
    yy, mm, seq = match.groups()
    if not 1 <= int(mm) <= 12:
        raise ValueError(f"Invalid month in order number: {order_number!r}")
    return f"{ORDER_PREFIX}-{yy}{mm}", int(seq)


def validate_series_format(series_format: str) -> str:
    if SEQUENCE_TOKEN not in series_format:
        raise InvalidSeriesFormat(f"Series format {series_format!r} is missing {SEQUENCE_TOKEN}")
    return series_format


def render_invoice_number(
    series_format: str,
    prefix: str,
    number: int,
    padding: int,
    on: Union[date, datetime],
) -> str:
    """
    Substitute series tokens:
    - {PREFIX}: configured prefix
    - {FY}: Indian financial year, e.g. 2025-26
    - {YYYY}: calendar year
    - {NNNNN}: sequence zero-padded to `padding`
    """
    validate_series_format(series_format)
    return (
        series_format.replace("{PREFIX}", prefix)
        .replace("{FY}", financial_year_label(on))
        .replace("{YYYY}", str(on.year))
        .replace(SEQUENCE_TOKEN, str(number).zfill(padding))
    )
