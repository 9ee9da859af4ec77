"""
Meta Conversions API client

Reports a Subscribe event server-side. Personal data is normalized and
SHA-256 hashed before it leaves the process; the event_id is derived from the
subscription so a browser pixel firing the same event deduplicates against it.
"""

import hashlib
import logging
import time
from typing import Any, Dict, Optional

import httpx

from app.config import META_ACCESS_TOKEN, META_PIXEL_ID, APP_URL, HTTP_TIMEOUT_SECONDS, PRODUCT_NAME
from app.features.billing.domain import IntegrationName
from app.features.billing.errors import IntegrationError, IntegrationNotConfiguredError

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com"
GRAPH_API_VERSION = "v18.0"


def hash_identifier(value: Optional[str]) -> Optional[str]:
    """Lowercase, trim and SHA-256 a user identifier"""
    if not value:
        return None
    normalized = value.strip().lower()
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Meta expects digits only, country code included"""
    if not phone:
        return None
    digits = "".join(ch for ch in phone if ch.isdigit())
    return digits or None


def subscribe_event_id(subscription_id: str) -> str:
    return f"subscribe_{subscription_id}"


class MetaConversionsClient:
    def __init__(
        self,
        access_token: Optional[str] = META_ACCESS_TOKEN,
        pixel_id: Optional[str] = META_PIXEL_ID,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        api_version: str = GRAPH_API_VERSION,
        event_source_url: str = APP_URL,
    ):
        self.access_token = access_token
        self.pixel_id = pixel_id
        self.api_version = api_version
        self.event_source_url = event_source_url
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token and self.pixel_id)

    def build_subscribe_event(
        self,
        email: str,
        subscription_id: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        country: Optional[str] = None,
        value: Optional[int] = None,
        currency: Optional[str] = None,
        event_time: Optional[int] = None,
        fbp: Optional[str] = None,
        fbc: Optional[str] = None,
        source_url: Optional[str] = None,
        content_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build a single Subscribe event; value is in minor units.

        fbp/fbc are the browser pixel cookies captured at checkout; Meta takes
        them unhashed.
        """
        user_data: Dict[str, Any] = {"em": [hash_identifier(email)]}

        hashed_phone = hash_identifier(normalize_phone(phone))
        if hashed_phone:
            user_data["ph"] = [hashed_phone]

        if name and name.strip():
            parts = name.strip().split()
            user_data["fn"] = [hash_identifier(parts[0])]
            if len(parts) > 1:
                user_data["ln"] = [hash_identifier(parts[-1])]

        if country:
            user_data["country"] = [hash_identifier(country)]

        if fbp:
            user_data["fbp"] = fbp
        if fbc:
            user_data["fbc"] = fbc

        custom_data: Dict[str, Any] = {"content_name": content_name or PRODUCT_NAME}
        if value is not None:
            custom_data["value"] = value / 100
        if currency:
            custom_data["currency"] = currency.upper()

        return {
            "event_name": "Subscribe",
            "event_time": event_time or int(time.time()),
            "event_id": subscribe_event_id(subscription_id),
            "action_source": "website",
            "event_source_url": source_url or self.event_source_url,
            "user_data": user_data,
            "custom_data": custom_data,
        }

    async def send_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """POST one event to the pixel; returns the Graph API response body"""
        if not self.is_configured:
            raise IntegrationNotConfiguredError(IntegrationName.CONVERSION_TRACKING.value)

        url = f"{GRAPH_API_URL}/{self.api_version}/{self.pixel_id}/events"

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                url,
                params={"access_token": self.access_token},
                json={"data": [event]},
                timeout=self._timeout,
            )

        if response.status_code >= 300:
            raise IntegrationError(
                IntegrationName.CONVERSION_TRACKING.value,
                f"Meta Conversions API error: {response.text}",
                status_code=response.status_code,
            )

        logger.info(f"MetaConversionsClient: Sent {event['event_name']} ({event['event_id']})")
        return response.json()
