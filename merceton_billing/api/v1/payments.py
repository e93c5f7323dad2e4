"""Payment capture and payout settlement hooks"""

from typing import Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from merceton_billing.api.v1.orders import order_response, validate_order_number
from merceton_billing.api.v1.schemas import CapturePaymentRequest, OrderResponse
from merceton_billing.api.dependencies import get_fee_resolver, get_request_id
from merceton_billing.api.errors import domain_errors
from merceton_billing.infrastructure.database.session import get_db
from merceton_billing.services.ledger import capture_payment, settle_payout
from merceton_billing.services.pricing import EffectiveFeeConfigResolver
from merceton_billing.utils.date_utils import to_naive_utc

router = APIRouter()


@router.post("/payments/{order_number}/capture", response_model=OrderResponse)
def capture(
    request: Request,
    request_body: Optional[CapturePaymentRequest] = None,
    order_number: str = Depends(validate_order_number),
    db: Session = Depends(get_db),
):
    """
    Called by the payment gateway integration once a payment succeeds.

    Idempotent: repeated captures of a paid order return it unchanged.
    """
    paid_at = request_body.paid_at if request_body else None
    if paid_at is not None:
        paid_at = to_naive_utc(paid_at)

    with domain_errors(db, get_request_id(request)):
        order = capture_payment(db, order_number, paid_at=paid_at)
        db.commit()
    return order_response(db, order)


@router.post("/payouts/{order_number}/settle", response_model=OrderResponse)
def settle(
    request: Request,
    order_number: str = Depends(validate_order_number),
    db: Session = Depends(get_db),
    resolver: EffectiveFeeConfigResolver = Depends(get_fee_resolver),
):
    """
    Called by the payout integration once the merchant has been paid.

    Refused with 409 while the merchant's payouts are on hold.
    """
    with domain_errors(db, get_request_id(request)):
        order = settle_payout(db, order_number, resolver=resolver)
        db.commit()
    return order_response(db, order)
