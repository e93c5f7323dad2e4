"""SQLAlchemy ORM models for merchants, pricing, orders, ledger and platform invoicing"""

import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import column_property, declarative_base, relationship

from merceton_billing.domain.models import (
    CycleStatus,
    LedgerEntryStatus,
    LedgerEntryType,
    OrderStage,
    PackageStatus,
    PaymentStatus,
    PayoutFrequency,
)
from merceton_billing.utils.date_utils import utcnow

Base = declarative_base()


def _enum(enum_cls):
    return Enum(enum_cls, native_enum=False, length=32)


class Merchant(Base):
    """Store owner billed by the platform"""

    __tablename__ = "merchant"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    state = Column(Text, nullable=True)  # GST state, e.g. "27" or "27-Maharashtra"
    is_active = Column(Boolean, nullable=False, default=True)
    account_status = Column(Text, nullable=False, default="ACTIVE")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    fee_config = relationship("MerchantFeeConfig", back_populates="merchant", uselist=False)


class PricingPackage(Base):
    """Fee plan merchants are assigned to"""

    __tablename__ = "pricing_package"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    status = Column(_enum(PackageStatus), nullable=False, default=PackageStatus.DRAFT)
    fixed_fee_minor = Column(BigInteger, nullable=False, default=0)
    variable_fee_bps = Column(Integer, nullable=False, default=0)
    payout_frequency = Column(_enum(PayoutFrequency), nullable=False, default=PayoutFrequency.WEEKLY)
    holdback_bps = Column(Integer, nullable=False, default=0)
    is_payout_hold = Column(Boolean, nullable=False, default=False)
    domain_price_minor = Column(BigInteger, nullable=False, default=0)
    domain_allowed = Column(Boolean, nullable=False, default=True)
    domain_included = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class MerchantFeeConfig(Base):
    """Per-merchant package assignment and overrides (NULL = inherit)"""

    __tablename__ = "merchant_fee_config"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    merchant_id = Column(Text, ForeignKey("merchant.id", ondelete="CASCADE"), nullable=False, unique=True)
    pricing_package_id = Column(UUID(as_uuid=True), ForeignKey("pricing_package.id"), nullable=True)
    fixed_fee_override_minor = Column(BigInteger, nullable=True)
    variable_fee_override_bps = Column(Integer, nullable=True)
    payout_frequency_override = Column(_enum(PayoutFrequency), nullable=True)
    holdback_override_bps = Column(Integer, nullable=True)
    is_payout_hold_override = Column(Boolean, nullable=True)
    domain_subscription_active = Column(Boolean, nullable=False, default=False)

    merchant = relationship("Merchant", back_populates="fee_config")
    pricing_package = relationship("PricingPackage")


class PlatformSettings(Base):
    """Singleton row (id="singleton") holding the default package"""

    __tablename__ = "platform_settings"

    id = Column(String(32), primary_key=True, default="singleton")
    default_pricing_package_id = Column(UUID(as_uuid=True), ForeignKey("pricing_package.id"), nullable=True)


class Order(Base):
    """Customer order with its money breakdown frozen at placement"""

    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    merchant_id = Column(Text, ForeignKey("merchant.id"), nullable=False, index=True)
    order_number = Column(String(32), nullable=False, unique=True)
    stage = Column(_enum(OrderStage), nullable=False, default=OrderStage.CREATED)
    customer_name = Column(Text, nullable=True)
    gross_amount_minor = Column(BigInteger, nullable=False)
    platform_fee_minor = Column(BigInteger, nullable=False)
    net_payable_minor = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payment = relationship("Payment", back_populates="order", uselist=False)
    ledger_entries = relationship("LedgerEntry", back_populates="order", order_by="LedgerEntry.created_at")


class OrderItem(Base):
    __tablename__ = "order_item"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    sku = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_minor = Column(BigInteger, nullable=False)

    order = relationship("Order", back_populates="items")


class Payment(Base):
    __tablename__ = "payment"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, unique=True)
    merchant_id = Column(Text, nullable=False, index=True)
    method = Column(Text, nullable=False, default="ONLINE")
    status = Column(_enum(PaymentStatus), nullable=False, default=PaymentStatus.CREATED)
    amount_minor = Column(BigInteger, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="payment")


class LedgerEntry(Base):
    """Append-only financial record; only `status` may change after insert"""

    __tablename__ = "ledger_entry"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    merchant_id = Column(Text, nullable=False, index=True)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True, index=True)
    type = Column(_enum(LedgerEntryType), nullable=False)
    amount_minor = Column(BigInteger, nullable=False)  # fees stored negative
    # Committed value is loaded on assignment; the status guard needs both sides
    status = column_property(
        Column(_enum(LedgerEntryStatus), nullable=False, default=LedgerEntryStatus.PENDING),
        active_history=True,
    )
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    order = relationship("Order", back_populates="ledger_entries")


class OrderNumberCounter(Base):
    """One row per ORD-YYMM bucket, only ever incremented"""

    __tablename__ = "order_number_counter"

    key = Column(String(32), primary_key=True)
    value = Column(BigInteger, nullable=False, default=0)


class PlatformBillingProfile(Base):
    """Singleton (id="platform") holding the invoice series state"""

    __tablename__ = "platform_billing_profile"

    id = Column(String(32), primary_key=True, default="platform")
    legal_name = Column(Text, nullable=False, default="Merceton")
    state_code = Column(String(2), nullable=True)
    invoice_prefix = Column(Text, nullable=False)
    invoice_next_number = Column(BigInteger, nullable=False, default=1)
    invoice_padding = Column(Integer, nullable=False, default=5)
    series_format = Column(Text, nullable=False)
    default_gst_rate = Column(Numeric(5, 2), nullable=False, default=18)
    default_sac_code = Column(Text, nullable=False, default="9983")


class PlatformSettlementCycle(Base):
    __tablename__ = "platform_settlement_cycle"
    __table_args__ = (UniqueConstraint("period_start", "period_end", name="uq_cycle_period"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    status = Column(_enum(CycleStatus), nullable=False, default=CycleStatus.DRAFT)
    invoice_generated_at = Column(DateTime, nullable=True)
    payouts_executed_at = Column(DateTime, nullable=True)

    invoices = relationship("PlatformInvoice", back_populates="cycle")


class PlatformInvoice(Base):
    """Issued invoice; immutable once it has an invoice number"""

    __tablename__ = "platform_invoice"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    merchant_id = Column(Text, ForeignKey("merchant.id"), nullable=False, index=True)
    cycle_id = Column(UUID(as_uuid=True), ForeignKey("platform_settlement_cycle.id"), nullable=False)
    invoice_number = Column(Text, nullable=False, unique=True)
    invoice_date = Column(DateTime, nullable=False, default=utcnow)
    currency = Column(String(3), nullable=False, default="INR")
    subtotal_minor = Column(BigInteger, nullable=False)
    gst_amount_minor = Column(BigInteger, nullable=False)
    total_minor = Column(BigInteger, nullable=False)
    status = column_property(Column(Text, nullable=False, default="ISSUED"), active_history=True)

    cycle = relationship("PlatformSettlementCycle", back_populates="invoices")
    line_items = relationship("PlatformInvoiceLineItem", back_populates="invoice", cascade="all, delete-orphan")


class PlatformInvoiceLineItem(Base):
    __tablename__ = "platform_invoice_line_item"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("platform_invoice.id", ondelete="CASCADE"), nullable=False)
    type = Column(_enum(LedgerEntryType), nullable=False, default=LedgerEntryType.PLATFORM_FEE)
    description = Column(Text, nullable=False)
    sac_code = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_minor = Column(BigInteger, nullable=False)
    amount_minor = Column(BigInteger, nullable=False)
    gst_rate = Column(Numeric(5, 2), nullable=False)
    gst_amount_minor = Column(BigInteger, nullable=False)
    total_minor = Column(BigInteger, nullable=False)

    invoice = relationship("PlatformInvoice", back_populates="line_items")


class PayoutBatch(Base):
    """Merchant payout for one invoiced cycle: net payable less the platform invoice and holdback"""

    __tablename__ = "payout_batch"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    merchant_id = Column(Text, ForeignKey("merchant.id"), nullable=False, index=True)
    cycle_id = Column(UUID(as_uuid=True), ForeignKey("platform_settlement_cycle.id"), nullable=False)
    platform_invoice_id = Column(UUID(as_uuid=True), ForeignKey("platform_invoice.id"), nullable=False, unique=True)
    net_payable_minor = Column(BigInteger, nullable=False)
    invoice_total_minor = Column(BigInteger, nullable=False)
    holdback_minor = Column(BigInteger, nullable=False, default=0)
    total_amount_minor = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="PENDING")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    invoice = relationship("PlatformInvoice")
