"""Domain models - pure Python dataclasses representing business entities"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class PayoutFrequency(str, enum.Enum):
    WEEKLY = "WEEKLY"
    DAILY = "DAILY"
    MANUAL = "MANUAL"


class PackageStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class OrderStage(str, enum.Enum):
    CREATED = "CREATED"
    PAID = "PAID"
    CONFIRMED = "CONFIRMED"
    SETTLED = "SETTLED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    CREATED = "CREATED"
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class LedgerEntryType(str, enum.Enum):
    GROSS_ORDER_VALUE = "GROSS_ORDER_VALUE"
    PLATFORM_FEE = "PLATFORM_FEE"
    ORDER_PAYOUT = "ORDER_PAYOUT"


class LedgerEntryStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SETTLED = "SETTLED"


class CycleStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    INVOICED = "INVOICED"
    PAID = "PAID"


class TaxType(str, enum.Enum):
    CGST_SGST = "CGST_SGST"
    IGST = "IGST"


@dataclass(frozen=True)
class FeeConfig:
    """Fee parameters; None means "use the platform default" for that field"""

    percentage_bps: Optional[int] = None
    flat_minor_units: Optional[int] = None
    max_cap_minor_units: Optional[int] = None  # 0 disables the cap


@dataclass(frozen=True)
class PackageTerms:
    """Fee-bearing fields of a published pricing package"""

    package_id: str
    name: str
    fixed_fee_minor_units: int
    variable_fee_bps: int
    payout_frequency: PayoutFrequency
    holdback_bps: int
    is_payout_hold: bool
    domain_price_minor_units: int = 0
    domain_allowed: bool = True
    domain_included: bool = False


@dataclass(frozen=True)
class FeeOverride:
    """Per-merchant overrides; None fields inherit from the package"""

    fixed_fee_minor_units: Optional[int] = None
    variable_fee_bps: Optional[int] = None
    payout_frequency: Optional[PayoutFrequency] = None
    holdback_bps: Optional[int] = None
    is_payout_hold: Optional[bool] = None
    domain_subscription_active: bool = False


@dataclass(frozen=True)
class EffectiveFeeConfig:
    """Package defaults merged with merchant overrides"""

    fixed_fee_minor_units: int
    variable_fee_bps: int
    payout_frequency: PayoutFrequency
    holdback_bps: int
    is_payout_hold: bool
    source_package_id: Optional[str]
    source_package_name: Optional[str]
    domain_subscription_active: bool = False
    domain_price_minor_units: int = 0
    domain_included: bool = False

    def to_fee_config(self) -> FeeConfig:
        # Packages carry no cap, so the platform default cap applies.
        return FeeConfig(
            percentage_bps=self.variable_fee_bps,
            flat_minor_units=self.fixed_fee_minor_units,
            max_cap_minor_units=None,
        )


@dataclass(frozen=True)
class OrderMoneyBreakdown:
    """Gross, fee and net for one order, in minor units"""

    gross_amount: int
    platform_fee: int
    net_payable: int


@dataclass(frozen=True)
class LedgerEntryDraft:
    """Ledger row ready to be persisted"""

    merchant_id: str
    order_id: Optional[uuid.UUID]
    type: LedgerEntryType
    amount: int
    description: str
    status: LedgerEntryStatus = LedgerEntryStatus.PENDING


@dataclass(frozen=True)
class PeriodFees:
    """Platform fees billed to a merchant for a period"""

    platform_fee: int
    gst_amount: int
    total: int


@dataclass(frozen=True)
class PayoutAmount:
    """Merchant payout for a cycle, in minor units"""

    net_payable: int
    invoice_total: int
    holdback: int
    amount: int


@dataclass
class InvoiceLineItem:
    """Platform fees for one order (or one day) with GST split"""

    order_id: Optional[uuid.UUID]
    occurred_at: datetime
    description: str
    sac_code: str
    taxable_value: int
    cgst: int
    sgst: int
    igst: int
    total: int


@dataclass
class InvoiceTotals:
    total_taxable: int = 0
    total_cgst: int = 0
    total_sgst: int = 0
    total_igst: int = 0
    grand_total: int = 0


@dataclass
class InvoiceAggregate:
    line_items: List[InvoiceLineItem] = field(default_factory=list)
    totals: InvoiceTotals = field(default_factory=InvoiceTotals)
    tax_type: TaxType = TaxType.IGST
