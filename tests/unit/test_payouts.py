"""Unit tests for weekly payout amounts"""

import pytest
from merceton_billing.domain.exceptions import MoneyInvariantViolation
from merceton_billing.domain.models import PayoutAmount
from merceton_billing.domain.payouts import compute_payout


def test_invoice_total_deducted():
    """Net payable 9300 less the 826 platform invoice"""
    assert compute_payout(9300, 826) == PayoutAmount(net_payable=9300, invoice_total=826, holdback=0, amount=8474)


def test_holdback_taken_from_amount_due():
    payout = compute_payout(100000, 0, holdback_bps=1000)
    assert (payout.holdback, payout.amount) == (10000, 90000)


def test_holdback_rounds_half_up():
    """8474 * 10% = 847.4 -> 847; 15 * 10% = 1.5 -> 2"""
    assert compute_payout(9300, 826, holdback_bps=1000).holdback == 847
    assert compute_payout(15, 0, holdback_bps=1000).holdback == 2


def test_full_holdback_pays_nothing():
    assert compute_payout(5000, 0, holdback_bps=10000).amount == 0


def test_invoice_larger_than_net_payable():
    payout = compute_payout(0, 354, holdback_bps=1000)
    assert payout.holdback == 0
    assert payout.amount == -354


@pytest.mark.parametrize("holdback_bps", [-1, 10001])
def test_holdback_out_of_range_rejected(holdback_bps: int):
    with pytest.raises(MoneyInvariantViolation):
        compute_payout(9300, 826, holdback_bps=holdback_bps)
