"""Effective fee configuration for a merchant, loaded from the database"""

import logging
from typing import Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from merceton_billing.domain.exceptions import ConfigResolutionError
from merceton_billing.domain.models import EffectiveFeeConfig, FeeOverride, PackageTerms
from merceton_billing.domain.pricing import merge_fee_config, platform_default_config
from merceton_billing.infrastructure.database.models import MerchantFeeConfig, PricingPackage
from merceton_billing.infrastructure.database.repositories import PricingRepository

logger = logging.getLogger(__name__)


def package_terms(package: PricingPackage) -> PackageTerms:
    return PackageTerms(
        package_id=str(package.id),
        name=package.name,
        fixed_fee_minor_units=package.fixed_fee_minor,
        variable_fee_bps=package.variable_fee_bps,
        payout_frequency=package.payout_frequency,
        holdback_bps=package.holdback_bps,
        is_payout_hold=package.is_payout_hold,
        domain_price_minor_units=package.domain_price_minor,
        domain_allowed=package.domain_allowed,
        domain_included=package.domain_included,
    )


def fee_override(row: Optional[MerchantFeeConfig]) -> Optional[FeeOverride]:
    if row is None:
        return None
    return FeeOverride(
        fixed_fee_minor_units=row.fixed_fee_override_minor,
        variable_fee_bps=row.variable_fee_override_bps,
        payout_frequency=row.payout_frequency_override,
        holdback_bps=row.holdback_override_bps,
        is_payout_hold=row.is_payout_hold_override,
        domain_subscription_active=bool(row.domain_subscription_active),
    )


class EffectiveFeeConfigResolver:
    """
    Resolve a merchant's effective fee configuration.

    Package selection:
    1. The merchant's assigned package, if PUBLISHED and not deleted
    2. Otherwise the platform default package (PlatformSettings), same rule
    3. Otherwise the hardcoded platform defaults

    Results are cached on the instance only. Create one resolver per
    request so config edits are visible to the next request.
    """

    def __init__(self, db: Session, defaults: Optional[EffectiveFeeConfig] = None):
        self.db = db
        self.pricing_repo = PricingRepository(db)
        self.defaults = defaults or platform_default_config()
        self._cache: Dict[str, EffectiveFeeConfig] = {}

    def resolve(self, merchant_id: str) -> EffectiveFeeConfig:
        """
        Raises:
            ConfigResolutionError: the pricing tables could not be read
        """
        cached = self._cache.get(merchant_id)
        if cached is not None:
            return cached

        try:
            row = self.pricing_repo.get_merchant_fee_config(merchant_id)
            package = None
            if row is not None:
                package = self.pricing_repo.get_published_package(row.pricing_package_id)
            if package is None:
                package = self.pricing_repo.get_published_package(self.pricing_repo.get_default_package_id())
        except SQLAlchemyError as e:
            logger.error(
                "Fee config lookup failed",
                extra={"merchant_id": merchant_id, "error": str(e)},
            )
            raise ConfigResolutionError(f"Could not load fee config for merchant {merchant_id}") from e

        if package is None:
            logger.info(
                "No published pricing package, using platform defaults",
                extra={"merchant_id": merchant_id},
            )

        effective = merge_fee_config(
            package_terms(package) if package is not None else None,
            fee_override(row),
            self.defaults,
        )
        self._cache[merchant_id] = effective
        return effective
