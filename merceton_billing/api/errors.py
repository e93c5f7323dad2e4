"""Translate domain failures into HTTP errors, rolling back the request's transaction"""

import logging
from contextlib import contextmanager
from typing import Iterator
from fastapi import HTTPException
from sqlalchemy.orm import Session

from merceton_billing.domain.exceptions import (
    AllocationContentionError,
    ConfigResolutionError,
    DomainException,
    InvalidStatusTransition,
    MerchantNotFoundError,
    OrderNotFoundError,
    PayoutHoldError,
)

# Checked in order; first match wins
DOMAIN_ERROR_STATUS = [
    (AllocationContentionError, 409),
    (OrderNotFoundError, 404),
    (MerchantNotFoundError, 404),
    (PayoutHoldError, 409),
    (InvalidStatusTransition, 422),
    (ConfigResolutionError, 503),
]


def status_for(exc: DomainException) -> int:
    for exc_type, status_code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 500


@contextmanager
def domain_errors(db: Session, request_id: str) -> Iterator[None]:
    """Roll back and raise HTTPException for anything the wrapped block raises"""
    try:
        yield
    except HTTPException:
        raise
    except DomainException as e:
        db.rollback()
        status_code = status_for(e)
        if status_code >= 500:
            logging.error(f"Domain error: {e}", extra={"request_id": request_id})
            detail = "Service unavailable" if status_code == 503 else "Internal server error"
        else:
            logging.warning(f"Request rejected: {e}", extra={"request_id": request_id})
            detail = str(e)
        raise HTTPException(status_code=status_code, detail=detail)
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
