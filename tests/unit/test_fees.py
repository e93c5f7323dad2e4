"""Unit tests for platform fee calculation"""

import pytest
from merceton_billing.domain.exceptions import MoneyInvariantViolation
from merceton_billing.domain.fees import (
    compute_breakdown,
    compute_fee,
    compute_net_payable,
    order_gross_amount,
)
from merceton_billing.domain.models import FeeConfig


def test_default_config():
    """2% of 10000 = 200, + 500 flat = 700, under the 2500 cap"""
    assert compute_fee(10000, FeeConfig()) == 700
    assert compute_net_payable(10000, FeeConfig()) == 9300


def test_no_config_uses_defaults():
    assert compute_fee(10000) == 700


def test_cap_enforced():
    """20000 + 500 = 20500 is clamped to the 2500 cap"""
    config = FeeConfig(percentage_bps=200, flat_minor_units=500, max_cap_minor_units=2500)
    assert compute_fee(1_000_000, config) == 2500


def test_zero_cap_means_uncapped():
    config = FeeConfig(percentage_bps=200, flat_minor_units=500, max_cap_minor_units=0)
    assert compute_fee(1_000_000, config) == 20500


def test_fields_default_independently():
    """Only bps set: flat 500 and cap 2500 still come from the defaults"""
    assert compute_fee(10000, FeeConfig(percentage_bps=100)) == 600
    assert compute_fee(1_000_000, FeeConfig(percentage_bps=100)) == 2500


def test_explicit_zero_fields_are_respected():
    config = FeeConfig(percentage_bps=0, flat_minor_units=0, max_cap_minor_units=0)
    assert compute_fee(50000, config) == 0


def test_fee_never_exceeds_gross():
    """Small order: 6 + 500 flat is clamped to the gross of 300"""
    assert compute_fee(300) == 300
    assert compute_net_payable(300) == 0


def test_zero_gross():
    assert compute_fee(0) == 0


def test_percentage_rounds_half_up():
    """25 * 2% = 0.5 -> 1; 12345 * 2.5% = 308.625 -> 309"""
    no_flat = dict(flat_minor_units=0, max_cap_minor_units=0)
    assert compute_fee(25, FeeConfig(percentage_bps=200, **no_flat)) == 1
    assert compute_fee(24, FeeConfig(percentage_bps=200, **no_flat)) == 0
    assert compute_fee(12345, FeeConfig(percentage_bps=250, **no_flat)) == 309


def test_negative_gross_yields_zero_fee():
    assert compute_fee(-1000) == 0
    assert compute_fee(-1, FeeConfig(percentage_bps=200, flat_minor_units=0, max_cap_minor_units=0)) == 0


def test_breakdown_rejects_negative_gross():
    with pytest.raises(MoneyInvariantViolation):
        compute_breakdown(-1000)


def test_deterministic():
    config = FeeConfig(percentage_bps=175, flat_minor_units=300, max_cap_minor_units=5000)
    assert compute_fee(98765, config) == compute_fee(98765, config)


@pytest.mark.parametrize("gross", [0, 1, 99, 500, 501, 10000, 24999, 100000, 10_000_000])
@pytest.mark.parametrize(
    "config",
    [
        FeeConfig(),
        FeeConfig(percentage_bps=350, flat_minor_units=0, max_cap_minor_units=0),
        FeeConfig(percentage_bps=0, flat_minor_units=1000, max_cap_minor_units=800),
    ],
)
def test_fee_bounds_and_net_identity(gross, config):
    fee = compute_fee(gross, config)
    assert 0 <= fee <= gross
    assert compute_net_payable(gross, config) + fee == gross


def test_breakdown_reconciles():
    breakdown = compute_breakdown(10000)
    assert breakdown.gross_amount == 10000
    assert breakdown.platform_fee == 700
    assert breakdown.net_payable == 9300


def test_capped_breakdown():
    breakdown = compute_breakdown(1_000_000)
    assert breakdown.platform_fee == 2500
    assert breakdown.net_payable == 997_500


def test_components():
    assert order_gross_amount([1000, 2000], shipping=100, tax=50, discount=200) == 2950


def test_discount_larger_than_order():
    assert order_gross_amount([1000], discount=5000) == 0


def test_negative_component_rejected():
    with pytest.raises(MoneyInvariantViolation):
        order_gross_amount([1000], shipping=-1)
