"""Unit tests for merging package terms with merchant overrides"""

from merceton_billing.domain.models import FeeOverride, PackageTerms, PayoutFrequency
from merceton_billing.domain.pricing import merge_fee_config, platform_default_config


def _package(**kwargs) -> PackageTerms:
    values = dict(
        package_id="pkg-1",
        name="Growth",
        fixed_fee_minor_units=500,
        variable_fee_bps=150,
        payout_frequency=PayoutFrequency.WEEKLY,
        holdback_bps=1000,
        is_payout_hold=False,
    )
    values.update(kwargs)
    return PackageTerms(**values)


def test_override_wins():
    effective = merge_fee_config(_package(), FeeOverride(fixed_fee_minor_units=300))
    assert effective.fixed_fee_minor_units == 300


def test_no_override_inherits_package():
    effective = merge_fee_config(_package(), None)
    assert effective.fixed_fee_minor_units == 500
    assert effective.variable_fee_bps == 150
    assert effective.source_package_id == "pkg-1"
    assert effective.source_package_name == "Growth"


def test_fields_resolve_independently():
    """Overriding payout frequency keeps the package's fees"""
    effective = merge_fee_config(_package(), FeeOverride(payout_frequency=PayoutFrequency.DAILY))
    assert effective.payout_frequency == PayoutFrequency.DAILY
    assert effective.fixed_fee_minor_units == 500
    assert effective.variable_fee_bps == 150
    assert effective.holdback_bps == 1000


def test_zero_override_is_an_override():
    effective = merge_fee_config(_package(), FeeOverride(fixed_fee_minor_units=0, is_payout_hold=True))
    assert effective.fixed_fee_minor_units == 0
    assert effective.is_payout_hold is True


def test_no_package_no_override_uses_platform_defaults():
    effective = merge_fee_config(None, None)
    defaults = platform_default_config()
    assert effective == defaults
    assert effective.fixed_fee_minor_units == 500
    assert effective.variable_fee_bps == 200
    assert effective.source_package_id is None


def test_override_applies_over_platform_defaults():
    effective = merge_fee_config(None, FeeOverride(variable_fee_bps=50))
    assert effective.variable_fee_bps == 50
    assert effective.fixed_fee_minor_units == 500


def test_fee_config_leaves_cap_to_platform_default():
    fee_config = merge_fee_config(_package(), None).to_fee_config()
    assert fee_config.percentage_bps == 150
    assert fee_config.flat_minor_units == 500
    assert fee_config.max_cap_minor_units is None


def test_included_domain_is_always_active():
    effective = merge_fee_config(_package(domain_included=True), FeeOverride(domain_subscription_active=False))
    assert effective.domain_subscription_active is True


def test_disallowed_domain_is_never_active():
    effective = merge_fee_config(_package(domain_allowed=False), FeeOverride(domain_subscription_active=True))
    assert effective.domain_subscription_active is False


def test_allowed_domain_follows_merchant_flag():
    package = _package(domain_price_minor_units=9900)
    assert merge_fee_config(package, FeeOverride(domain_subscription_active=True)).domain_subscription_active
    assert not merge_fee_config(package, None).domain_subscription_active
    assert merge_fee_config(package, None).domain_price_minor_units == 9900
