"""Outbound analytics webhook (Zapier-style catch hook) for new subscriptions"""

import logging
from typing import Any, Dict, Optional

import httpx

from app.config import ANALYTICS_WEBHOOK_URL, HTTP_TIMEOUT_SECONDS
from app.features.billing.domain import IntegrationName
from app.features.billing.errors import IntegrationError, IntegrationNotConfiguredError

logger = logging.getLogger(__name__)


class AnalyticsWebhookClient:
    def __init__(
        self,
        url: Optional[str] = ANALYTICS_WEBHOOK_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.url = url
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    @staticmethod
    def build_payload(
        email: str,
        name: Optional[str],
        phone: Optional[str],
        amount_total: Optional[int],
        currency: Optional[str],
        customer_id: Optional[str],
        subscription_id: Optional[str],
        is_new_subscriber: bool,
        country: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Amounts arrive in minor units and are sent in major units"""
        return {
            "email": email,
            "name": name,
            "phone": phone,
            "country": country,
            "customer_id": customer_id,
            "subscription_id": subscription_id,
            "amount": amount_total / 100 if amount_total is not None else None,
            "currency": currency.upper() if currency else None,
            "is_new_subscriber": is_new_subscriber,
        }

    async def send(self, payload: Dict[str, Any]) -> int:
        """POST the payload; returns the HTTP status on success"""
        if not self.is_configured:
            raise IntegrationNotConfiguredError(IntegrationName.ANALYTICS_WEBHOOK.value)

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(self.url, json=payload, timeout=self._timeout)

        if response.status_code >= 300:
            raise IntegrationError(
                IntegrationName.ANALYTICS_WEBHOOK.value,
                f"Analytics webhook returned {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(f"AnalyticsWebhookClient: Sent subscription {payload.get('subscription_id')}")
        return response.status_code
