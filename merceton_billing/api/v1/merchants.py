"""GET /v1/merchants/{merchant_id}/... - fee config, period fees and ledger export"""

from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from merceton_billing.api.v1.schemas import (
    FeeConfigResponse,
    InvoiceLineSchema,
    InvoiceLinesResponse,
    PeriodFeesResponse,
)
from merceton_billing.api.dependencies import get_fee_resolver, get_request_id
from merceton_billing.api.errors import domain_errors
from merceton_billing.domain.fees import DEFAULT_FEE_CONFIG
from merceton_billing.domain.models import LedgerEntryType
from merceton_billing.infrastructure.database.session import get_db
from merceton_billing.services.billing import aggregate_fee_entries_for_invoice, compute_fees_for_period
from merceton_billing.services.export import export_filename, export_ledger_csv
from merceton_billing.services.pricing import EffectiveFeeConfigResolver
from merceton_billing.utils.date_utils import to_naive_utc, utcnow

router = APIRouter()


def _period(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start, end = to_naive_utc(start), to_naive_utc(end)
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")
    return start, end


@router.get("/merchants/{merchant_id}/fee-config", response_model=FeeConfigResponse)
def get_fee_config(
    merchant_id: str,
    request: Request,
    db: Session = Depends(get_db),
    resolver: EffectiveFeeConfigResolver = Depends(get_fee_resolver),
):
    """Effective fee config: merchant overrides over package over platform defaults"""
    with domain_errors(db, get_request_id(request)):
        effective = resolver.resolve(merchant_id)

    return FeeConfigResponse(
        merchant_id=merchant_id,
        fixed_fee_minor=effective.fixed_fee_minor_units,
        variable_fee_bps=effective.variable_fee_bps,
        fee_cap_minor=DEFAULT_FEE_CONFIG.max_cap_minor_units or 0,
        payout_frequency=effective.payout_frequency.value,
        holdback_bps=effective.holdback_bps,
        is_payout_hold=effective.is_payout_hold,
        source_package_id=effective.source_package_id,
        source_package_name=effective.source_package_name,
        domain_subscription_active=effective.domain_subscription_active,
        domain_price_minor=effective.domain_price_minor_units,
        domain_included=effective.domain_included,
    )


@router.get("/merchants/{merchant_id}/fees", response_model=PeriodFeesResponse)
def get_period_fees(
    merchant_id: str,
    request: Request,
    start: datetime = Query(..., description="Period start (inclusive)"),
    end: datetime = Query(..., description="Period end (inclusive)"),
    db: Session = Depends(get_db),
):
    """Platform fees owed for paid, non-cancelled orders created in [start, end]"""
    start, end = _period(start, end)
    with domain_errors(db, get_request_id(request)):
        fees = compute_fees_for_period(db, merchant_id, start, end)

    return PeriodFeesResponse(
        merchant_id=merchant_id,
        period_start=start,
        period_end=end,
        platform_fee_minor=fees.platform_fee,
        gst_amount_minor=fees.gst_amount,
        total_minor=fees.total,
    )


@router.get("/merchants/{merchant_id}/invoice-lines", response_model=InvoiceLinesResponse)
def get_invoice_lines(
    merchant_id: str,
    request: Request,
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: Session = Depends(get_db),
):
    """Per-order platform fee lines with the CGST/SGST or IGST split"""
    start, end = _period(start, end)
    with domain_errors(db, get_request_id(request)):
        aggregate = aggregate_fee_entries_for_invoice(db, merchant_id, start, end)

    return InvoiceLinesResponse(
        merchant_id=merchant_id,
        tax_type=aggregate.tax_type.value,
        line_items=[
            InvoiceLineSchema(
                order_id=str(item.order_id) if item.order_id else None,
                occurred_at=item.occurred_at,
                description=item.description,
                sac_code=item.sac_code,
                taxable_value_minor=item.taxable_value,
                cgst_minor=item.cgst,
                sgst_minor=item.sgst,
                igst_minor=item.igst,
                total_minor=item.total,
            )
            for item in aggregate.line_items
        ],
        total_taxable_minor=aggregate.totals.total_taxable,
        total_cgst_minor=aggregate.totals.total_cgst,
        total_sgst_minor=aggregate.totals.total_sgst,
        total_igst_minor=aggregate.totals.total_igst,
        grand_total_minor=aggregate.totals.grand_total,
    )


@router.get("/merchants/{merchant_id}/ledger/export.csv")
def export_ledger(
    merchant_id: str,
    request: Request,
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    entry_type: Optional[str] = Query("ALL", alias="type"),
    db: Session = Depends(get_db),
):
    """Download the merchant ledger as CSV"""
    type_filter = None
    if entry_type and entry_type != "ALL":
        try:
            type_filter = LedgerEntryType(entry_type)
        except ValueError:
            raise HTTPException(status_code=422, detail=f"Unknown ledger entry type: {entry_type}")

    with domain_errors(db, get_request_id(request)):
        content = export_ledger_csv(db, merchant_id, date_from, date_to, type_filter)

    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(utcnow().date())}"'},
    )
