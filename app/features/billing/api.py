"""Stripe webhook endpoint"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from app.config import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    WEBHOOK_RATE_LIMIT,
    WEBHOOK_RATE_WINDOW_SECONDS,
)
from app.features.billing.domain import WebhookOutcome
from app.features.billing.errors import InvalidPayloadError, InvalidSignatureError
from app.features.billing.fanout import IntegrationFanout
from app.features.billing.provisioning import UserProvisioner
from app.features.billing.rate_limit import RateLimitStore, create_rate_limit_store
from app.features.billing.repositories import (
    StripeEventRepository,
    SubscriptionCacheRepository,
    UserAccountRepository,
)
from app.features.billing.schemas import WebhookAck, WebhookError
from app.features.billing.signature import construct_event
from app.features.billing.subscription_cache import SubscriptionCacheUpdater
from app.features.billing.webhook_service import BillingWebhookService
from app.infra.supabase import get_supabase_client
from app.services import (
    AnalyticsWebhookClient,
    CavosWalletClient,
    MetaConversionsClient,
    ResendEmailService,
    SupabaseAuthProvider,
    WalletService,
)

logger = logging.getLogger(__name__)

stripe_router = APIRouter(prefix="/api/stripe", tags=["stripe"])

_rate_limit_store: Optional[RateLimitStore] = None


def _error(status_code: int, message: str, code: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail=WebhookError(error=message, code=code).model_dump())


def get_rate_limit_store() -> RateLimitStore:
    global _rate_limit_store
    if _rate_limit_store is None:
        _rate_limit_store = create_rate_limit_store()
    return _rate_limit_store


async def _reject_unverified(
    request: Request,
    store: RateLimitStore,
    message: str,
    code: str,
) -> HTTPException:
    """
    Build the 400 for a delivery that failed verification.

    Only unverified deliveries are counted; a host over its budget of them
    gets 429 instead. Signed deliveries are never throttled.
    """
    client_host = request.client.host if request.client else "unknown"
    allowed = await store.check_and_increment(
        f"stripe-webhook-unverified:{client_host}",
        WEBHOOK_RATE_LIMIT,
        WEBHOOK_RATE_WINDOW_SECONDS,
    )
    if not allowed:
        logger.warning(f"Too many unverified Stripe webhook requests from {client_host}")
        return _error(429, "Too many requests", "RATE_LIMITED")
    return _error(400, message, code)


def get_webhook_service() -> BillingWebhookService:
    """Wire the webhook service against the live Supabase client and vendor adapters"""
    try:
        client = get_supabase_client()
    except ValueError as e:
        logger.error(f"Stripe webhook cannot run: {e}")
        raise _error(500, "Database not configured", "MISSING_DATABASE_CONFIG") from e

    user_repo = UserAccountRepository(client)
    auth_provider = SupabaseAuthProvider(client)

    fanout = IntegrationFanout(
        auth_provider=auth_provider,
        email_sender=ResendEmailService(),
        analytics=AnalyticsWebhookClient(),
        conversions=MetaConversionsClient(),
        wallets=WalletService(CavosWalletClient(), user_repo),
    )

    return BillingWebhookService(
        stripe_event_repo=StripeEventRepository(client),
        provisioner=UserProvisioner(auth_provider, user_repo),
        fanout=fanout,
        cache_updater=SubscriptionCacheUpdater(SubscriptionCacheRepository(client)),
    )


@stripe_router.post(
    "/webhook",
    response_model=WebhookAck,
    response_model_exclude_none=True,
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    webhook_service: BillingWebhookService = Depends(get_webhook_service),
    rate_limit_store: RateLimitStore = Depends(get_rate_limit_store),
):
    """
    Stripe webhook endpoint

    Handles:
    - checkout.session.completed: Provision the customer and run integrations
    - invoice.paid: Refresh the subscription cache
    - customer.subscription.updated: Refresh the subscription cache
    - customer.subscription.deleted: Mark the cached subscription canceled

    Every verified delivery is acknowledged with 200, including ones whose
    processing failed; failures are recorded in the event ledger instead.
    """
    if not STRIPE_WEBHOOK_SECRET:
        logger.error("Stripe webhook secret is not configured")
        raise _error(500, "Webhook secret not configured", "MISSING_WEBHOOK_SECRET")

    if not STRIPE_SECRET_KEY:
        logger.error("Stripe secret key is not configured")
        raise _error(500, "Stripe key not configured", "MISSING_STRIPE_KEY")

    if not stripe_signature:
        logger.warning("Stripe webhook request without signature header")
        raise await _reject_unverified(request, rate_limit_store, "Missing stripe-signature header", "MISSING_SIGNATURE")

    payload = await request.body()
    logger.info(f"Received Stripe webhook request (payload size: {len(payload)} bytes)")

    try:
        event = construct_event(payload, stripe_signature, STRIPE_WEBHOOK_SECRET)
    except InvalidSignatureError as e:
        logger.error(f"Invalid signature: {e}")
        raise await _reject_unverified(request, rate_limit_store, "Invalid signature", "INVALID_SIGNATURE") from e
    except InvalidPayloadError as e:
        logger.error(f"Invalid payload: {e}")
        raise _error(400, "Invalid payload", "INVALID_PAYLOAD") from e

    outcome = await webhook_service.handle_webhook_event(event)

    if outcome == WebhookOutcome.ALREADY_PROCESSED:
        return WebhookAck(received=True, already_processed=True)

    return WebhookAck(received=True)
