"""Cron jobs: weekly platform invoice generation and merchant payouts"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from merceton_billing.api.v1.schemas import (
    BillingRunResponse,
    CyclePayoutSchema,
    IssuedInvoiceSchema,
    PayoutRunResponse,
    PayoutSchema,
)
from merceton_billing.api.dependencies import (
    get_billing_event_client,
    get_fee_resolver,
    get_request_id,
    verify_cron_secret,
)
from merceton_billing.api.errors import domain_errors
from merceton_billing.domain.exceptions import NotificationDeliveryError
from merceton_billing.infrastructure.clients.notifications import BillingEventClient
from merceton_billing.infrastructure.database.session import get_db
from merceton_billing.services.billing import generate_platform_invoices
from merceton_billing.services.payouts import execute_weekly_payouts
from merceton_billing.services.pricing import EffectiveFeeConfigResolver
from merceton_billing.utils.date_utils import to_naive_utc

router = APIRouter()


async def notify_invoice_issued(client: BillingEventClient, payload: Dict[str, Any]) -> None:
    """Deliver one invoice event; delivery failures are logged, the invoice stands"""
    try:
        await client.send_invoice_issued(payload)
    except NotificationDeliveryError as e:
        logging.error(
            f"Invoice event not delivered: {e}",
            extra={"invoice_number": payload.get("invoice_number")},
        )


async def notify_payout_created(client: BillingEventClient, payload: Dict[str, Any]) -> None:
    """Deliver one payout event; delivery failures are logged, the payout stands"""
    try:
        await client.send_payout_created(payload)
    except NotificationDeliveryError as e:
        logging.error(
            f"Payout event not delivered: {e}",
            extra={"payout_id": payload.get("payout_id")},
        )


@router.post(
    "/jobs/platform-invoices",
    response_model=BillingRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def run_platform_invoices(
    request: Request,
    background_tasks: BackgroundTasks,
    run_at: Optional[datetime] = Query(None, description="Override 'now' to invoice an earlier cycle"),
    db: Session = Depends(get_db),
    event_client: BillingEventClient = Depends(get_billing_event_client),
):
    """
    Invoice the cycle ending on the most recent Thursday.

    Safe to re-run: an INVOICED cycle is left alone and merchants already
    invoiced in the cycle are skipped.
    """
    request_id = get_request_id(request)

    with domain_errors(db, request_id):
        result = generate_platform_invoices(db, now=to_naive_utc(run_at) if run_at else None)
        db.commit()

    for invoice in result.issued:
        background_tasks.add_task(notify_invoice_issued, event_client, invoice.event_payload())

    logging.info(
        "Platform invoice run finished",
        extra={
            "request_id": request_id,
            "cycle_id": str(result.cycle_id),
            "issued": len(result.issued),
            "failed": len(result.failed_merchants),
        },
    )

    return BillingRunResponse(
        cycle_id=str(result.cycle_id),
        period_start=result.period_start,
        period_end=result.period_end,
        cycle_status=result.cycle_status.value,
        already_invoiced=result.already_invoiced,
        invoices=[
            IssuedInvoiceSchema(
                invoice_id=str(i.invoice_id),
                invoice_number=i.invoice_number,
                merchant_id=i.merchant_id,
                subtotal_minor=i.subtotal_minor,
                gst_amount_minor=i.gst_amount_minor,
                total_minor=i.total_minor,
            )
            for i in result.issued
        ],
        skipped_merchants=result.skipped_merchants,
        failed_merchants=result.failed_merchants,
    )


@router.post(
    "/jobs/weekly-payouts",
    response_model=PayoutRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def run_weekly_payouts(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    resolver: EffectiveFeeConfigResolver = Depends(get_fee_resolver),
    event_client: BillingEventClient = Depends(get_billing_event_client),
):
    """
    Create merchant payouts for every INVOICED cycle.

    Safe to re-run: invoices already paid out are skipped, and cycles stay
    INVOICED while a merchant is on payout hold.
    """
    request_id = get_request_id(request)

    with domain_errors(db, request_id):
        results = execute_weekly_payouts(db, resolver=resolver)
        db.commit()

    for result in results:
        for payout in result.created:
            background_tasks.add_task(notify_payout_created, event_client, payout.event_payload())

    logging.info(
        "Weekly payout run finished",
        extra={
            "request_id": request_id,
            "cycles": len(results),
            "payouts": sum(len(r.created) for r in results),
        },
    )

    return PayoutRunResponse(
        cycles=[
            CyclePayoutSchema(
                cycle_id=str(r.cycle_id),
                period_start=r.period_start,
                period_end=r.period_end,
                cycle_status=r.cycle_status.value,
                payouts=[
                    PayoutSchema(
                        payout_id=str(p.payout_id),
                        merchant_id=p.merchant_id,
                        invoice_number=p.invoice_number,
                        net_payable_minor=p.net_payable_minor,
                        invoice_total_minor=p.invoice_total_minor,
                        holdback_minor=p.holdback_minor,
                        amount_minor=p.amount_minor,
                    )
                    for p in r.created
                ],
                skipped_invoices=r.skipped_invoices,
                held_merchants=r.held_merchants,
                failed_merchants=r.failed_merchants,
            )
            for r in results
        ]
    )
