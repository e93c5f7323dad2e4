"""Dependency injection for FastAPI endpoints"""

import hmac
from typing import Optional
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from merceton_billing.config import settings
from merceton_billing.infrastructure.clients.notifications import BillingEventClient
from merceton_billing.infrastructure.database.session import get_db
from merceton_billing.services.pricing import EffectiveFeeConfigResolver


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_fee_resolver(db: Session = Depends(get_db)) -> EffectiveFeeConfigResolver:
    """Provide a request-scoped fee config resolver (its cache dies with the request)"""
    return EffectiveFeeConfigResolver(db)


def get_billing_event_client() -> BillingEventClient:
    """Provide billing event webhook client instance"""
    return BillingEventClient()


def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """Scheduled jobs must present the shared X-CRON-SECRET header"""
    if not settings.cron_secret or not x_cron_secret:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
