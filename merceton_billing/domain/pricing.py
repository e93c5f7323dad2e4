"""Effective fee configuration - package defaults merged with merchant overrides"""

from typing import Optional, TypeVar
from merceton_billing.config import settings
from merceton_billing.domain.models import (
    EffectiveFeeConfig,
    FeeOverride,
    PackageTerms,
    PayoutFrequency,
)

T = TypeVar("T")


def platform_default_config() -> EffectiveFeeConfig:
    """Hardcoded platform fallback used when a merchant has no usable package"""
    return EffectiveFeeConfig(
        fixed_fee_minor_units=settings.default_fee_flat_minor,
        variable_fee_bps=settings.default_fee_percentage_bps,
        payout_frequency=PayoutFrequency(settings.default_payout_frequency),
        holdback_bps=settings.default_holdback_bps,
        is_payout_hold=False,
        source_package_id=None,
        source_package_name=None,
        domain_subscription_active=False,
        domain_price_minor_units=settings.default_domain_price_minor,
        domain_included=False,
    )


def _pick(override: Optional[T], inherited: T) -> T:
    return override if override is not None else inherited


def merge_fee_config(
    package: Optional[PackageTerms],
    override: Optional[FeeOverride],
    defaults: Optional[EffectiveFeeConfig] = None,
) -> EffectiveFeeConfig:
    """
    Resolve each fee-bearing field independently.

    Precedence per field: merchant override (when not None) -> package
    value -> platform default. A merchant may override only the payout
    frequency and still inherit fees from its package.
    """
    defaults = defaults or platform_default_config()
    override = override or FeeOverride()

    if package is None:
        base = defaults
        domain_allowed = True
    else:
        base = EffectiveFeeConfig(
            fixed_fee_minor_units=package.fixed_fee_minor_units,
            variable_fee_bps=package.variable_fee_bps,
            payout_frequency=package.payout_frequency,
            holdback_bps=package.holdback_bps,
            is_payout_hold=package.is_payout_hold,
            source_package_id=package.package_id,
            source_package_name=package.name,
            domain_price_minor_units=package.domain_price_minor_units,
            domain_included=package.domain_included,
        )
        domain_allowed = package.domain_allowed

    if base.domain_included:
        domain_active = True
    elif not domain_allowed:
        domain_active = False
    else:
        domain_active = override.domain_subscription_active

    return EffectiveFeeConfig(
        fixed_fee_minor_units=_pick(override.fixed_fee_minor_units, base.fixed_fee_minor_units),
        variable_fee_bps=_pick(override.variable_fee_bps, base.variable_fee_bps),
        payout_frequency=_pick(override.payout_frequency, base.payout_frequency),
        holdback_bps=_pick(override.holdback_bps, base.holdback_bps),
        is_payout_hold=_pick(override.is_payout_hold, base.is_payout_hold),
        source_package_id=base.source_package_id,
        source_package_name=base.source_package_name,
        domain_subscription_active=domain_active,
        domain_price_minor_units=base.domain_price_minor_units,
        domain_included=base.domain_included,
    )
