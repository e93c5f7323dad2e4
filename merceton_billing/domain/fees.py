"""Platform fee calculation - percentage + flat fee, capped, in minor units"""

from typing import Optional
from merceton_billing.config import settings
from merceton_billing.domain.exceptions import MoneyInvariantViolation
from merceton_billing.domain.models import FeeConfig, OrderMoneyBreakdown
from merceton_billing.domain.money import round_half_up

BPS_DENOMINATOR = 10_000

# Platform-wide fallback: 2% (200 bps) + ₹5 flat, capped at ₹25
DEFAULT_FEE_CONFIG = FeeConfig(
    percentage_bps=settings.default_fee_percentage_bps,
    flat_minor_units=settings.default_fee_flat_minor,
    max_cap_minor_units=settings.default_fee_cap_minor,
)


def _field(value: Optional[int], default: Optional[int]) -> int:
    if value is not None:
        return value
    return default or 0


def compute_fee(gross_amount: int, config: Optional[FeeConfig] = None) -> int:
    """
    Calculate the platform fee for a gross amount.

    Steps:
    1. percentage fee = gross * bps / 10000, rounded half-up
    2. add flat fee
    3. clamp to cap (when cap > 0)
    4. clamp to gross - a fee never exceeds what it is charged against
    5. clamp to zero, so a negative gross yields 0

    Unset config fields fall back to DEFAULT_FEE_CONFIG one by one.

    Example:
        10000 paise with defaults -> 200 + 500 = 700
        1000000 paise with defaults -> 20000 + 500 = 20500, capped at 2500
    """
    config = config or FeeConfig()
    percentage_bps = _field(config.percentage_bps, DEFAULT_FEE_CONFIG.percentage_bps)
    flat = _field(config.flat_minor_units, DEFAULT_FEE_CONFIG.flat_minor_units)
    cap = _field(config.max_cap_minor_units, DEFAULT_FEE_CONFIG.max_cap_minor_units)

    fee = 0
    if percentage_bps > 0:
        fee += round_half_up(gross_amount * percentage_bps, BPS_DENOMINATOR)
    if flat > 0:
        fee += flat

    if cap > 0 and fee > cap:
        fee = cap

    if fee > gross_amount:
        fee = gross_amount

    return max(0, fee)


def compute_net_payable(gross_amount: int, config: Optional[FeeConfig] = None) -> int:
    """Amount owed to the merchant after the platform fee"""
    return gross_amount - compute_fee(gross_amount, config)


def compute_breakdown(gross_amount: int, config: Optional[FeeConfig] = None) -> OrderMoneyBreakdown:
    """Compute gross/fee/net together and verify they reconcile exactly"""
    if gross_amount < 0:
        raise MoneyInvariantViolation(f"Gross amount cannot be negative: {gross_amount}")

    fee = compute_fee(gross_amount, config)
    net = gross_amount - fee

    if not 0 <= fee <= gross_amount:
        raise MoneyInvariantViolation(f"Fee {fee} outside [0, {gross_amount}]")
    if net + fee != gross_amount:
        raise MoneyInvariantViolation(f"Net {net} + fee {fee} != gross {gross_amount}")

    return OrderMoneyBreakdown(gross_amount=gross_amount, platform_fee=fee, net_payable=net)


def order_gross_amount(
    line_totals: list[int],
    shipping: int = 0,
    tax: int = 0,
    discount: int = 0,
) -> int:
    """Gross = line items + shipping + tax - discount, never below zero"""
    if any(value < 0 for value in [*line_totals, shipping, tax, discount]):
        raise MoneyInvariantViolation("Order components must be non-negative")
    return max(0, sum(line_totals) + shipping + tax - discount)
