"""Post-provisioning integrations

Each integration runs concurrently inside its own retry loop. A failure is
logged and returned as an Err for that integration only; it never aborts the
others or the event.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.config import APP_URL
from app.features.billing.domain import IntegrationName
from app.features.billing.errors import IntegrationNotConfiguredError
from app.features.billing.results import Err, Ok, Result, SKIPPED, is_ok
from app.features.billing.retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_async
from app.services.analytics_webhook import AnalyticsWebhookClient
from app.services.auth_provider import AuthProvider
from app.services.conversion_tracking import MetaConversionsClient
from app.services.email_service import EmailSender
from app.services.email_templates import welcome_back_email, welcome_email
from app.services.wallet_service import WalletService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionedCustomer:
    """A checkout customer after provisioning, as the integrations see them"""
    user_id: str
    email: str
    is_new_subscriber: bool
    name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    event_time: Optional[datetime] = None
    # Checkout session metadata set by the storefront (_fbp, _fbc, last_url, product_name)
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class IntegrationOutcome:
    integration: IntegrationName
    result: Result

    @property
    def ok(self) -> bool:
        return is_ok(self.result)


class IntegrationFanout:
    def __init__(
        self,
        auth_provider: AuthProvider,
        email_sender: EmailSender,
        analytics: AnalyticsWebhookClient,
        conversions: MetaConversionsClient,
        wallets: WalletService,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        app_url: str = APP_URL,
    ):
        self.auth_provider = auth_provider
        self.email_sender = email_sender
        self.analytics = analytics
        self.conversions = conversions
        self.wallets = wallets
        self.retry_policy = retry_policy
        self._sleep = sleep
        self.app_url = app_url

    async def run(self, customer: ProvisionedCustomer) -> List[IntegrationOutcome]:
        """Run every integration for the customer; never raises"""
        integrations = [
            (IntegrationName.WELCOME_EMAIL, self.email_sender, self._send_welcome_email),
            (IntegrationName.ANALYTICS_WEBHOOK, self.analytics, self._send_analytics),
            (IntegrationName.CONVERSION_TRACKING, self.conversions, self._send_conversion),
            (IntegrationName.WALLET, self.wallets, self._ensure_wallet),
        ]

        results = await asyncio.gather(
            *(self._run_one(name, adapter, fn, customer) for name, adapter, fn in integrations),
            return_exceptions=True,
        )

        outcomes: List[IntegrationOutcome] = []
        for (name, _, _), result in zip(integrations, results):
            if isinstance(result, BaseException):
                self._log_failure(name, customer, result)
                result = Err(reason=str(result), error=result)
            outcomes.append(IntegrationOutcome(integration=name, result=result))

        failed = [o.integration.value for o in outcomes if not o.ok]
        if failed:
            logger.warning(f"IntegrationFanout: {len(failed)} integration(s) failed for {customer.email}: {failed}")
        else:
            logger.info(f"IntegrationFanout: All integrations completed for {customer.email}")

        return outcomes

    async def _run_one(
        self,
        name: IntegrationName,
        adapter: Any,
        fn: Callable[[ProvisionedCustomer], Awaitable[Any]],
        customer: ProvisionedCustomer,
    ) -> Result:
        if not getattr(adapter, "is_configured", True):
            logger.info(f"IntegrationFanout: {name.value} not configured, skipping")
            return Ok(SKIPPED)

        try:
            value = await retry_async(
                lambda: fn(customer),
                self.retry_policy,
                sleep=self._sleep,
                operation=name.value,
            )
        except IntegrationNotConfiguredError:
            logger.info(f"IntegrationFanout: {name.value} not configured, skipping")
            return Ok(SKIPPED)
        except Exception as e:
            self._log_failure(name, customer, e)
            return Err(reason=str(e), error=e)

        return Ok(value)

    def _log_failure(self, name: IntegrationName, customer: ProvisionedCustomer, error: BaseException) -> None:
        logger.error(
            f"IntegrationFanout: {name.value} failed for {customer.email} "
            f"(customer={customer.stripe_customer_id}, subscription={customer.subscription_id}): {error}",
            exc_info=error,
        )

    async def _send_welcome_email(self, customer: ProvisionedCustomer) -> str:
        if customer.is_new_subscriber:
            magic_link = await self.auth_provider.generate_magic_link(customer.email, redirect_to=self.app_url)
            content = welcome_email(customer.email, customer.name, magic_link)
        else:
            content = welcome_back_email(customer.email, customer.name, self.app_url)

        return await self.email_sender.send(customer.email, content.subject, content.html, content.text)

    async def _send_analytics(self, customer: ProvisionedCustomer) -> int:
        payload = self.analytics.build_payload(
            email=customer.email,
            name=customer.name,
            phone=customer.phone,
            country=customer.country,
            amount_total=customer.amount_total,
            currency=customer.currency,
            customer_id=customer.stripe_customer_id,
            subscription_id=customer.subscription_id,
            is_new_subscriber=customer.is_new_subscriber,
        )
        return await self.analytics.send(payload)

    async def _send_conversion(self, customer: ProvisionedCustomer) -> Any:
        event = self.conversions.build_subscribe_event(
            email=customer.email,
            subscription_id=customer.subscription_id or customer.user_id,
            name=customer.name,
            phone=customer.phone,
            country=customer.country,
            value=customer.amount_total,
            currency=customer.currency,
            event_time=int(customer.event_time.timestamp()) if customer.event_time else None,
            fbp=customer.metadata.get("_fbp"),
            fbc=customer.metadata.get("_fbc"),
            source_url=customer.metadata.get("last_url"),
            content_name=customer.metadata.get("product_name"),
        )
        return await self.conversions.send_event(event)

    async def _ensure_wallet(self, customer: ProvisionedCustomer) -> Optional[str]:
        return await self.wallets.ensure_wallet(customer.user_id, customer.email)
