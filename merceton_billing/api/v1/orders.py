"""POST /v1/orders - order placement, confirmation and cancellation"""

import time
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from merceton_billing.api.v1.schemas import CancelOrderRequest, LedgerEntrySchema, OrderResponse, PlaceOrderRequest
from merceton_billing.api.dependencies import get_fee_resolver, get_request_id
from merceton_billing.api.errors import domain_errors
from merceton_billing.domain.numbering import parse_order_number
from merceton_billing.infrastructure.database.models import Order
from merceton_billing.infrastructure.database.repositories import LedgerRepository
from merceton_billing.infrastructure.database.session import get_db
from merceton_billing.infrastructure.observability.logging import log_order_placed
from merceton_billing.services.orders import OrderLine, cancel_order, confirm_order, get_order, place_order
from merceton_billing.services.pricing import EffectiveFeeConfigResolver

router = APIRouter()


def validate_order_number(order_number: str) -> str:
    try:
        parse_order_number(order_number)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid order number: {order_number}")
    return order_number


def order_response(db: Session, order: Order) -> OrderResponse:
    entries = LedgerRepository(db).entries_for_order(order.id)
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        merchant_id=order.merchant_id,
        stage=order.stage.value,
        payment_status=order.payment.status.value if order.payment is not None else None,
        gross_amount_minor=order.gross_amount_minor,
        platform_fee_minor=order.platform_fee_minor,
        net_payable_minor=order.net_payable_minor,
        created_at=order.created_at.isoformat(),
        ledger_entries=[
            LedgerEntrySchema(
                entry_id=str(e.id),
                type=e.type.value,
                amount_minor=e.amount_minor,
                status=e.status.value,
                description=e.description,
                created_at=e.created_at.isoformat(),
            )
            for e in entries
        ],
    )


@router.post("/orders", response_model=OrderResponse, status_code=201)
def create_order(
    request_body: PlaceOrderRequest,
    request: Request,
    db: Session = Depends(get_db),
    resolver: EffectiveFeeConfigResolver = Depends(get_fee_resolver),
):
    """
    Place an order for a merchant.

    Flow:
    1. Resolve the merchant's effective fee config
    2. Compute gross, platform fee and net payable
    3. Allocate the ORD-YYMM-NNNNNN order number
    4. Persist order, payment and PENDING ledger rows in one transaction
    """
    start_time = time.time()
    request_id = get_request_id(request)

    with domain_errors(db, request_id):
        order = place_order(
            db,
            merchant_id=request_body.merchant_id,
            lines=[
                OrderLine(sku=item.sku, quantity=item.quantity, unit_price_minor=item.unit_price_minor)
                for item in request_body.items
            ],
            shipping_minor=request_body.shipping_minor,
            tax_minor=request_body.tax_minor,
            discount_minor=request_body.discount_minor,
            customer_name=request_body.customer_name,
            payment_method=request_body.payment_method,
            resolver=resolver,
        )
        db.commit()

    duration_ms = (time.time() - start_time) * 1000
    log_order_placed(
        request_id,
        order.merchant_id,
        order.order_number,
        order.gross_amount_minor,
        order.platform_fee_minor,
        duration_ms,
    )
    return order_response(db, order)


@router.post("/orders/{order_number}/confirm", response_model=OrderResponse)
def confirm(
    request: Request,
    order_number: str = Depends(validate_order_number),
    db: Session = Depends(get_db),
):
    """Merchant accepts a paid order"""
    with domain_errors(db, get_request_id(request)):
        order = confirm_order(db, order_number)
        db.commit()
    return order_response(db, order)


@router.post("/orders/{order_number}/cancel", response_model=OrderResponse)
def cancel(
    request: Request,
    request_body: Optional[CancelOrderRequest] = None,
    order_number: str = Depends(validate_order_number),
    db: Session = Depends(get_db),
):
    """
    Cancel an order.

    Appends offsetting ledger rows; the original rows are left untouched.
    """
    with domain_errors(db, get_request_id(request)):
        reason = request_body.reason if request_body else CancelOrderRequest().reason
        cancel_order(db, order_number, reason=reason)
        db.commit()
        order = get_order(db, order_number)
    return order_response(db, order)
