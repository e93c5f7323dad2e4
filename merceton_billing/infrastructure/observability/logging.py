"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from merceton_billing.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_order_placed(
    request_id: str,
    merchant_id: str,
    order_number: str,
    gross_minor: int,
    fee_minor: int,
    duration_ms: float,
) -> None:
    """Log structured order placement outcome for reconciliation"""
    logging.info(
        "Order placed",
        extra={
            "request_id": request_id,
            "merchant_id": merchant_id,
            "step": "order_placed",
            "order_number": order_number,
            "gross_minor": gross_minor,
            "platform_fee_minor": fee_minor,
            "duration_ms": duration_ms,
        },
    )
