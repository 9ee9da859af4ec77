"""Webhook service for handling verified Stripe events

Every event is recorded in the stripe_events ledger before anything else,
handled at most once to completion, retried with backoff on transient
failures, and marked failed (never raised) when retries run out.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, assert_never

import stripe

from app.config import STRIPE_SECRET_KEY
from app.features.billing.domain import WebhookOutcome
from app.features.billing.events import (
    BillingEvent,
    CheckoutSessionCompleted,
    InvoicePaid,
    SubscriptionDeleted,
    SubscriptionUpdated,
    UnknownEvent,
    parse_event,
)
from app.features.billing.fanout import IntegrationFanout, ProvisionedCustomer
from app.features.billing.provisioning import CustomerDetails, UserProvisioner
from app.features.billing.repositories.stripe_events import StripeEventRepository
from app.features.billing.retry import DEFAULT_RETRY_POLICY, RetryPolicy, retry_async
from app.features.billing.subscription_cache import (
    SubscriptionCacheUpdater,
    snapshot_from_invoice,
    snapshot_from_subscription,
)

logger = logging.getLogger(__name__)

# Initialize Stripe
stripe.api_key = STRIPE_SECRET_KEY

SubscriptionFetcher = Callable[[str], Awaitable[Dict[str, Any]]]


def _as_dict(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


async def retrieve_subscription(subscription_id: str) -> Dict[str, Any]:
    """Fetch the current subscription from Stripe"""
    subscription = stripe.Subscription.retrieve(subscription_id)
    return _as_dict(subscription)


class BillingWebhookService:
    """Service for handling Stripe payment and subscription webhooks"""

    def __init__(
        self,
        stripe_event_repo: StripeEventRepository,
        provisioner: UserProvisioner,
        fanout: IntegrationFanout,
        cache_updater: SubscriptionCacheUpdater,
        fetch_subscription: SubscriptionFetcher = retrieve_subscription,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.stripe_event_repo = stripe_event_repo
        self.provisioner = provisioner
        self.fanout = fanout
        self.cache_updater = cache_updater
        self.fetch_subscription = fetch_subscription
        self.retry_policy = retry_policy
        self._sleep = sleep

    async def handle_webhook_event(self, envelope: Dict[str, Any]) -> WebhookOutcome:
        """
        Process one verified Stripe event envelope.

        Never raises: a delivery that exhausts its retries is recorded as
        failed in the ledger and reported as WebhookOutcome.FAILED.
        """
        event_id = envelope["id"]
        event_type = envelope["type"]
        logger.info(f"BillingWebhookService: Handling webhook event {event_type} (ID: {event_id})")

        await self._persist_raw_event(event_id, event_type, envelope)

        if await self._check_idempotency(event_id):
            logger.info(f"BillingWebhookService: Event {event_id} already processed, skipping")
            return WebhookOutcome.ALREADY_PROCESSED

        async def attempt() -> None:
            await self._count_attempt(event_id)
            await self.dispatch(event)

        try:
            # A malformed object is recorded as failed without retrying
            event = parse_event(envelope)
            await retry_async(
                attempt,
                self.retry_policy,
                sleep=self._sleep,
                operation=f"{event_type} {event_id}",
            )
        except Exception as e:
            logger.error(
                f"BillingWebhookService: Event {event_type} (ID: {event_id}) failed after retries: {e}",
                exc_info=True,
            )
            await self._record_failure(event_id, e)
            return WebhookOutcome.FAILED

        await self._mark_event_processed(event_id)
        logger.info(f"BillingWebhookService: Processed {event_type} (ID: {event_id})")
        return WebhookOutcome.PROCESSED

    async def dispatch(self, event: BillingEvent) -> None:
        """Route a parsed event to its handler; errors propagate to the retry loop"""
        if isinstance(event, CheckoutSessionCompleted):
            await self.handle_checkout_session_completed(event)
        elif isinstance(event, InvoicePaid):
            await self.handle_invoice_paid(event)
        elif isinstance(event, SubscriptionDeleted):
            await self.handle_subscription_deleted(event)
        elif isinstance(event, SubscriptionUpdated):
            await self.handle_subscription_updated(event)
        elif isinstance(event, UnknownEvent):
            logger.info(f"BillingWebhookService: Unhandled event type {event.event_type} (stored but ignored)")
        else:
            assert_never(event)

    async def handle_checkout_session_completed(self, event: CheckoutSessionCompleted) -> None:
        """
        Provision the paying customer, then fire the integrations.

        Provisioning errors propagate (and are retried); integration
        failures are isolated inside the fan-out.
        """
        logger.info(f"BillingWebhookService: Processing checkout.session.completed {event.session_id}")

        result = await self.provisioner.provision(CustomerDetails(
            email=event.email,
            name=event.name,
            phone=event.phone,
            stripe_customer_id=event.customer_id,
            session_id=event.session_id,
        ))

        outcomes = await self.fanout.run(ProvisionedCustomer(
            user_id=result.user_id,
            email=result.email,
            is_new_subscriber=result.is_new_subscriber,
            name=event.name,
            phone=event.phone,
            country=event.country,
            stripe_customer_id=event.customer_id,
            subscription_id=event.subscription_id,
            amount_total=event.amount_total,
            currency=event.currency,
            event_time=event.created,
            metadata=dict(event.metadata),
        ))

        summary = ", ".join(f"{o.integration.value}={'ok' if o.ok else 'error'}" for o in outcomes)
        logger.info(f"BillingWebhookService: Checkout {event.session_id} integrations: {summary}")

    async def handle_invoice_paid(self, event: InvoicePaid) -> None:
        """Refresh the cache from the paid invoice and the current subscription"""
        if not event.subscription_id:
            logger.info(f"BillingWebhookService: Invoice {event.invoice_id} has no subscription, skipping")
            return

        subscription = await self.fetch_subscription(event.subscription_id)
        snapshot = snapshot_from_invoice(event.raw_object, subscription, self._updated_at(event))
        await self.cache_updater.apply(snapshot)

    async def handle_subscription_updated(self, event: SubscriptionUpdated) -> None:
        if not event.subscription_id:
            logger.warning(f"BillingWebhookService: Event {event.event_id} has no subscription ID, skipping")
            return
        snapshot = snapshot_from_subscription(event.raw_object, self._updated_at(event))
        await self.cache_updater.apply(snapshot)

    async def handle_subscription_deleted(self, event: SubscriptionDeleted) -> None:
        if not event.subscription_id:
            logger.warning(f"BillingWebhookService: Event {event.event_id} has no subscription ID, skipping")
            return
        snapshot = snapshot_from_subscription(event.raw_object, self._updated_at(event), deleted=True)
        await self.cache_updater.apply(snapshot)

    @staticmethod
    def _updated_at(event: BillingEvent) -> datetime:
        return event.created or datetime.now(timezone.utc)

    async def _persist_raw_event(self, event_id: str, event_type: str, envelope: Dict[str, Any]) -> None:
        """A ledger outage must not stop processing; the event is still handled"""
        try:
            await self.stripe_event_repo.record_event(event_id, event_type, envelope)
            logger.debug(f"BillingWebhookService: Persisted event {event_id} of type {event_type}")
        except Exception as e:
            logger.error(f"BillingWebhookService: Failed to persist event {event_id}: {e}", exc_info=True)

    async def _check_idempotency(self, event_id: str) -> bool:
        try:
            return await self.stripe_event_repo.is_processed(event_id)
        except Exception as e:
            logger.error(f"BillingWebhookService: Idempotency check failed for {event_id}: {e}", exc_info=True)
            return False

    async def _count_attempt(self, event_id: str) -> None:
        try:
            await self.stripe_event_repo.mark_processing(event_id)
        except Exception as e:
            logger.warning(f"BillingWebhookService: Could not update retry count for {event_id}: {e}")

    async def _mark_event_processed(self, event_id: str) -> None:
        try:
            await self.stripe_event_repo.mark_processed(event_id)
        except Exception as e:
            logger.error(f"BillingWebhookService: Failed to mark {event_id} processed: {e}", exc_info=True)

    async def _record_failure(self, event_id: str, error: Exception) -> None:
        try:
            await self.stripe_event_repo.mark_failed(event_id, str(error))
        except Exception as e:
            logger.error(f"BillingWebhookService: Failed to record failure for {event_id}: {e}", exc_info=True)

