"""Transactional email through the Resend HTTP API"""

import logging
from typing import Optional, Protocol

import httpx

from app.config import RESEND_API_KEY, FROM_EMAIL, HTTP_TIMEOUT_SECONDS
from app.features.billing.domain import IntegrationName
from app.features.billing.errors import IntegrationError, IntegrationNotConfiguredError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html: str, text: str) -> str: ...


class ResendEmailService:
    """Sends one email per call and returns the provider message ID"""

    def __init__(
        self,
        api_key: Optional[str] = RESEND_API_KEY,
        from_email: str = FROM_EMAIL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        """
        Raises:
            IntegrationNotConfiguredError: If RESEND_API_KEY is not set
            IntegrationError: On a non-2xx response
        """
        if not self.is_configured:
            raise IntegrationNotConfiguredError(IntegrationName.WELCOME_EMAIL.value)

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                RESEND_API_URL,
                json={
                    "from": self.from_email,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                    "text": text,
                },
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )

        if response.status_code >= 300:
            raise IntegrationError(
                IntegrationName.WELCOME_EMAIL.value,
                f"Resend API error: {response.text}",
                status_code=response.status_code,
            )

        message_id = response.json().get("id", "")
        logger.info(f"ResendEmailService: Sent '{subject}' to {to} (id={message_id})")
        return message_id
