"""Billing event webhook client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from typing import Dict, Any
from merceton_billing.config import settings
from merceton_billing.domain.exceptions import NotificationDeliveryError
from merceton_billing.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

logger = logging.getLogger(__name__)


class BillingEventClient:
    """Client for posting billing events (issued invoices, created payouts) to the notification service"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.invoice_webhook_url
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send_invoice_issued(self, payload: Dict[str, Any]) -> None:
        """Send a PLATFORM_INVOICE_ISSUED event"""
        await self.send_event(payload)

    async def send_payout_created(self, payload: Dict[str, Any]) -> None:
        """Send a PAYOUT_CREATED event"""
        await self.send_event(payload)

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Post one billing event with retry logic.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt-1)
        - Retries on 5xx errors and network failures; 4xx fails at once
        - Tracks latency histogram and failure counter

        Raises:
            NotificationDeliveryError: delivery failed after all retries
        """
        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=self.timeout,
                        )
                        response.raise_for_status()
                        return  # Success

                except httpx.HTTPStatusError as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        logger.error(
                            "Billing event rejected",
                            extra={
                                "event": payload.get("event"),
                                "status_code": e.response.status_code,
                                "attempts": attempt,
                            },
                        )
                        raise NotificationDeliveryError(
                            f"Billing event rejected with status {e.response.status_code}"
                        ) from e

                except httpx.RequestError as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            "Billing event delivery failed",
                            extra={"event": payload.get("event"), "attempts": attempt},
                        )
                        raise NotificationDeliveryError(f"Billing event delivery failed: {e}") from e

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
