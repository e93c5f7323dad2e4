"""Weekly merchant payout amounts"""

from merceton_billing.domain.exceptions import MoneyInvariantViolation
from merceton_billing.domain.fees import BPS_DENOMINATOR
from merceton_billing.domain.models import PayoutAmount
from merceton_billing.domain.money import round_half_up


def compute_payout(net_payable: int, invoice_total: int, holdback_bps: int = 0) -> PayoutAmount:
    """
    Payout owed to a merchant for one invoiced cycle.

    Steps:
    1. due = net payable of the cycle's orders - platform invoice total
    2. holdback = due * holdback_bps / 10000, rounded half-up (only when due > 0)
    3. amount = due - holdback

    A non-positive amount means nothing is paid out for the cycle.

    Example:
        net 9300, invoice 826, no holdback -> 8474
        net 100000, invoice 0, 1000 bps -> holdback 10000, amount 90000
    """
    if holdback_bps < 0 or holdback_bps > BPS_DENOMINATOR:
        raise MoneyInvariantViolation(f"Holdback must be within 0-{BPS_DENOMINATOR} bps, got {holdback_bps}")

    due = net_payable - invoice_total
    holdback = round_half_up(due * holdback_bps, BPS_DENOMINATOR) if due > 0 else 0
    return PayoutAmount(
        net_payable=net_payable,
        invoice_total=invoice_total,
        holdback=holdback,
        amount=due - holdback,
    )
