"""Data access layer for pricing, orders, ledger and platform invoicing"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from merceton_billing.domain.models import (
    CycleStatus,
    LedgerEntryDraft,
    LedgerEntryType,
    OrderMoneyBreakdown,
    OrderStage,
    PackageStatus,
    PaymentStatus,
    PayoutAmount,
    PeriodFees,
)
from merceton_billing.infrastructure.database.models import (
    LedgerEntry,
    Merchant,
    MerchantFeeConfig,
    Order,
    OrderItem,
    Payment,
    PayoutBatch,
    PlatformInvoice,
    PlatformInvoiceLineItem,
    PlatformSettings,
    PlatformSettlementCycle,
    PricingPackage,
)
from merceton_billing.utils.date_utils import utcnow


class PricingRepository:
    """Repository for pricing packages and merchant overrides"""

    def __init__(self, db: Session):
        self.db = db

    def get_merchant_fee_config(self, merchant_id: str) -> Optional[MerchantFeeConfig]:
        return (
            self.db.query(MerchantFeeConfig)
            .filter(MerchantFeeConfig.merchant_id == merchant_id)
            .first()
        )

    def get_published_package(self, package_id: Optional[uuid.UUID]) -> Optional[PricingPackage]:
        """Only PUBLISHED, non-deleted packages are usable for fees"""
        if package_id is None:
            return None
        package = self.db.get(PricingPackage, package_id)
        if package is None or package.deleted_at is not None or package.status != PackageStatus.PUBLISHED:
            return None
        return package

    def get_default_package_id(self) -> Optional[uuid.UUID]:
        platform = self.db.get(PlatformSettings, "singleton")
        return platform.default_pricing_package_id if platform else None


class OrderRepository:
    """Repository for orders and their payments"""

    def __init__(self, db: Session):
        self.db = db

    def create_order(
        self,
        merchant_id: str,
        order_number: str,
        breakdown: OrderMoneyBreakdown,
        items: Iterable[dict],
        customer_name: Optional[str] = None,
        payment_method: str = "ONLINE",
        created_at: Optional[datetime] = None,
    ) -> Order:
        """Persist order, line items and payment record"""
        db_order = Order(
            merchant_id=merchant_id,
            order_number=order_number,
            stage=OrderStage.CREATED,
            customer_name=customer_name,
            gross_amount_minor=breakdown.gross_amount,
            platform_fee_minor=breakdown.platform_fee,
            net_payable_minor=breakdown.net_payable,
        )
        if created_at is not None:
            db_order.created_at = created_at
        for item in items:
            db_order.items.append(
                OrderItem(
                    sku=item["sku"],
                    quantity=item["quantity"],
                    unit_price_minor=item["unit_price_minor"],
                )
            )
        db_order.payment = Payment(
            merchant_id=merchant_id,
            method=payment_method,
            status=PaymentStatus.CREATED,
            amount_minor=breakdown.gross_amount,  # Payment amount is gross
        )
        self.db.add(db_order)
        self.db.flush()  # Get ID without committing
        return db_order

    def get_by_number(self, order_number: str, for_update: bool = False) -> Optional[Order]:
        stmt = select(Order).where(Order.order_number == order_number)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def sum_billable_fees(self, merchant_id: str, period_start: datetime, period_end: datetime) -> int:
        """Sum frozen platform fees of paid, non-cancelled orders created in [start, end]"""
        return self._sum_billable(Order.platform_fee_minor, merchant_id, period_start, period_end)

    def sum_billable_net_payable(self, merchant_id: str, period_start: datetime, period_end: datetime) -> int:
        """Sum frozen net payables of the same orders sum_billable_fees counts"""
        return self._sum_billable(Order.net_payable_minor, merchant_id, period_start, period_end)

    def _sum_billable(self, column, merchant_id: str, period_start: datetime, period_end: datetime) -> int:
        total = self.db.execute(
            select(func.coalesce(func.sum(column), 0))
            .select_from(Order)
            .join(Payment, Payment.order_id == Order.id)
            .where(
                Order.merchant_id == merchant_id,
                Order.created_at >= period_start,
                Order.created_at <= period_end,
                Order.stage != OrderStage.CANCELLED,
                Payment.status == PaymentStatus.PAID,
            )
        ).scalar_one()
        return int(total)


class LedgerRepository:
    """Repository for append-only ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def add_entries(self, drafts: Iterable[LedgerEntryDraft], created_at: Optional[datetime] = None) -> List[LedgerEntry]:
        rows = []
        for draft in drafts:
            row = LedgerEntry(
                merchant_id=draft.merchant_id,
                order_id=draft.order_id,
                type=draft.type,
                amount_minor=draft.amount,
                status=draft.status,
                description=draft.description,
            )
            if created_at is not None:
                row.created_at = created_at
            self.db.add(row)
            rows.append(row)
        self.db.flush()
        return rows

    def entries_for_order(self, order_id: uuid.UUID) -> List[LedgerEntry]:
        return list(
            self.db.execute(
                select(LedgerEntry)
                .where(LedgerEntry.order_id == order_id)
                .order_by(LedgerEntry.created_at, LedgerEntry.id)
            ).scalars()
        )

    def list_for_merchant(
        self,
        merchant_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        entry_type: Optional[LedgerEntryType] = None,
    ) -> List[LedgerEntry]:
        stmt = select(LedgerEntry).where(LedgerEntry.merchant_id == merchant_id)
        if start is not None:
            stmt = stmt.where(LedgerEntry.created_at >= start)
        if end is not None:
            stmt = stmt.where(LedgerEntry.created_at <= end)
        if entry_type is not None:
            stmt = stmt.where(LedgerEntry.type == entry_type)
        return list(self.db.execute(stmt.order_by(LedgerEntry.created_at, LedgerEntry.id)).scalars())


class InvoiceRepository:
    """Repository for settlement cycles and platform invoices"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create_cycle(self, period_start: datetime, period_end: datetime) -> PlatformSettlementCycle:
        cycle = (
            self.db.query(PlatformSettlementCycle)
            .filter(
                PlatformSettlementCycle.period_start == period_start,
                PlatformSettlementCycle.period_end == period_end,
            )
            .first()
        )
        if cycle is None:
            cycle = PlatformSettlementCycle(
                period_start=period_start,
                period_end=period_end,
                status=CycleStatus.DRAFT,
            )
            self.db.add(cycle)
            self.db.flush()
        return cycle

    def billable_merchants(self) -> List[Merchant]:
        return (
            self.db.query(Merchant)
            .filter(Merchant.is_active.is_(True), Merchant.account_status == "ACTIVE")
            .order_by(Merchant.id)
            .all()
        )

    def create_invoice(
        self,
        merchant_id: str,
        cycle_id: uuid.UUID,
        invoice_number: str,
        fees: PeriodFees,
        gst_rate: Decimal,
        sac_code: str,
        description: str,
        invoice_date: Optional[datetime] = None,
    ) -> PlatformInvoice:
        """Create an issued invoice with its single platform-fee line item"""
        invoice = PlatformInvoice(
            invoice_date=invoice_date or utcnow(),
            merchant_id=merchant_id,
            cycle_id=cycle_id,
            invoice_number=invoice_number,
            currency="INR",
            subtotal_minor=fees.platform_fee,
            gst_amount_minor=fees.gst_amount,
            total_minor=fees.total,
            status="ISSUED",
            line_items=[
                PlatformInvoiceLineItem(
                    type=LedgerEntryType.PLATFORM_FEE,
                    description=description,
                    sac_code=sac_code,
                    quantity=1,
                    unit_price_minor=fees.platform_fee,
                    amount_minor=fees.platform_fee,
                    gst_rate=gst_rate,
                    gst_amount_minor=fees.gst_amount,
                    total_minor=fees.total,
                )
            ],
        )
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def invoices_for_cycle(self, cycle_id: uuid.UUID) -> List[PlatformInvoice]:
        return (
            self.db.query(PlatformInvoice)
            .filter(PlatformInvoice.cycle_id == cycle_id)
            .order_by(PlatformInvoice.invoice_number)
            .all()
        )

    def cycles_awaiting_payout(self) -> List[PlatformSettlementCycle]:
        """INVOICED cycles, oldest first"""
        return (
            self.db.query(PlatformSettlementCycle)
            .filter(PlatformSettlementCycle.status == CycleStatus.INVOICED)
            .order_by(PlatformSettlementCycle.period_end)
            .all()
        )


class PayoutRepository:
    """Repository for merchant payout batches"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_invoice(self, invoice_id: uuid.UUID) -> Optional[PayoutBatch]:
        return (
            self.db.query(PayoutBatch)
            .filter(PayoutBatch.platform_invoice_id == invoice_id)
            .first()
        )

    def create_payout(
        self,
        invoice: PlatformInvoice,
        amount: PayoutAmount,
        created_at: Optional[datetime] = None,
    ) -> PayoutBatch:
        """Create a PENDING payout for an invoice and mark the invoice PAID"""
        payout = PayoutBatch(
            merchant_id=invoice.merchant_id,
            cycle_id=invoice.cycle_id,
            platform_invoice_id=invoice.id,
            net_payable_minor=amount.net_payable,
            invoice_total_minor=amount.invoice_total,
            holdback_minor=amount.holdback,
            total_amount_minor=amount.amount,
            status="PENDING",
            created_at=created_at or utcnow(),
        )
        self.db.add(payout)
        invoice.status = "PAID"
        self.db.flush()
        return payout
