"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class OrderLineSchema(BaseModel):
    """Single line item of an order"""

    sku: str = Field(..., min_length=1, description="Product SKU")
    quantity: int = Field(..., gt=0, description="Units ordered")
    unit_price_minor: int = Field(..., ge=0, description="Unit price in paise")


class PlaceOrderRequest(BaseModel):
    """Request body for POST /v1/orders"""

    merchant_id: str = Field(..., min_length=1, description="Merchant identifier")
    items: List[OrderLineSchema] = Field(..., min_length=1)
    shipping_minor: int = Field(0, ge=0)
    tax_minor: int = Field(0, ge=0)
    discount_minor: int = Field(0, ge=0)
    customer_name: Optional[str] = None
    payment_method: str = "ONLINE"


class LedgerEntrySchema(BaseModel):
    """Ledger row as returned by the API"""

    entry_id: str
    type: str
    amount_minor: int
    status: str
    description: Optional[str] = None
    created_at: str


class OrderResponse(BaseModel):
    """Order with its frozen money breakdown"""

    order_id: str
    order_number: str
    merchant_id: str
    stage: str
    payment_status: Optional[str] = None
    gross_amount_minor: int
    platform_fee_minor: int
    net_payable_minor: int
    created_at: str
    ledger_entries: List[LedgerEntrySchema] = []


class CancelOrderRequest(BaseModel):
    """Request body for POST /v1/orders/{order_number}/cancel"""

    reason: str = Field("order cancelled", min_length=1, max_length=200)


class CapturePaymentRequest(BaseModel):
    """Request body for POST /v1/payments/{order_number}/capture"""

    paid_at: Optional[datetime] = None


class FeeConfigResponse(BaseModel):
    """Response for GET /v1/merchants/{merchant_id}/fee-config"""

    merchant_id: str
    fixed_fee_minor: int
    variable_fee_bps: int
    fee_cap_minor: int
    payout_frequency: str
    holdback_bps: int
    is_payout_hold: bool
    source_package_id: Optional[str] = None
    source_package_name: Optional[str] = None
    domain_subscription_active: bool
    domain_price_minor: int
    domain_included: bool


class PeriodFeesResponse(BaseModel):
    """Response for GET /v1/merchants/{merchant_id}/fees"""

    merchant_id: str
    period_start: datetime
    period_end: datetime
    platform_fee_minor: int
    gst_amount_minor: int
    total_minor: int


class InvoiceLineSchema(BaseModel):
    """Platform fee line with its GST split"""

    order_id: Optional[str] = None
    occurred_at: datetime
    description: str
    sac_code: str
    taxable_value_minor: int
    cgst_minor: int
    sgst_minor: int
    igst_minor: int
    total_minor: int


class InvoiceLinesResponse(BaseModel):
    """Response for GET /v1/merchants/{merchant_id}/invoice-lines"""

    merchant_id: str
    tax_type: str
    line_items: List[InvoiceLineSchema]
    total_taxable_minor: int
    total_cgst_minor: int
    total_sgst_minor: int
    total_igst_minor: int
    grand_total_minor: int


class IssuedInvoiceSchema(BaseModel):
    invoice_id: str
    invoice_number: str
    merchant_id: str
    subtotal_minor: int
    gst_amount_minor: int
    total_minor: int


class BillingRunResponse(BaseModel):
    """Response for POST /v1/jobs/platform-invoices"""

    cycle_id: str
    period_start: datetime
    period_end: datetime
    cycle_status: str
    already_invoiced: bool
    invoices: List[IssuedInvoiceSchema]
    skipped_merchants: List[str]
    failed_merchants: List[str]


class PayoutSchema(BaseModel):
    payout_id: str
    merchant_id: str
    invoice_number: str
    net_payable_minor: int
    invoice_total_minor: int
    holdback_minor: int
    amount_minor: int


class CyclePayoutSchema(BaseModel):
    cycle_id: str
    period_start: datetime
    period_end: datetime
    cycle_status: str
    payouts: List[PayoutSchema]
    skipped_invoices: List[str]
    held_merchants: List[str]
    failed_merchants: List[str]


class PayoutRunResponse(BaseModel):
    """Response for POST /v1/jobs/weekly-payouts"""

    cycles: List[CyclePayoutSchema]
