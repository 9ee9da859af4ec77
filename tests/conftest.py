"""Shared fixtures: in-memory repositories, fake vendors and Stripe payload builders."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from app.features.billing.errors import IdentityAlreadyExistsError, IdentityNotFoundError
from app.features.billing.fanout import IntegrationFanout
from app.features.billing.models.stripe_event import StripeEvent
from app.features.billing.models.subscription_cache import SubscriptionCache, SubscriptionSnapshot
from app.features.billing.models.user_account import UserAccount, UserAccountUpsert
from app.features.billing.provisioning import UserProvisioner
from app.features.billing.retry import RetryPolicy
from app.features.billing.subscription_cache import SubscriptionCacheUpdater
from app.features.billing.webhook_service import BillingWebhookService

WEBHOOK_SECRET = "whsec_test_secret"


# ---------------------------------------------------------------------------
# Stripe payload helpers
# ---------------------------------------------------------------------------


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def make_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_1", created: int = 1_700_000_000) -> Dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "livemode": False,
        "data": {"object": obj},
    }


def checkout_session(
    email: Optional[str] = "ana@example.com",
    name: Optional[str] = "Ana María Solís",
    session_id: str = "cs_test_1",
    customer_id: str = "cus_1",
    subscription_id: str = "sub_1",
    metadata: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    return {
        "id": session_id,
        "object": "checkout.session",
        "mode": "subscription",
        "customer": customer_id,
        "subscription": subscription_id,
        "amount_total": 990,
        "currency": "usd",
        "customer_details": {
            "email": email,
            "name": name,
            "phone": "+506 8888-7777",
            "address": {"country": "CR"},
        },
        "metadata": metadata or {},
    }


def subscription_object(
    subscription_id: str = "sub_1",
    status: str = "active",
    start: int = 1_700_000_000,
    end: int = 1_702_592_000,
    cancel_at_period_end: bool = False,
    customer_id: str = "cus_1",
) -> Dict[str, Any]:
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer_id,
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "items": {"data": [{"current_period_start": start, "current_period_end": end}]},
    }


def invoice_object(
    subscription_id: str = "sub_1",
    start: int = 1_700_000_000,
    end: int = 1_702_592_000,
    customer_id: str = "cus_1",
) -> Dict[str, Any]:
    return {
        "id": "in_1",
        "object": "invoice",
        "customer": customer_id,
        "amount_paid": 990,
        "currency": "usd",
        "parent": {"subscription_details": {"subscription": subscription_id}},
        "lines": {"data": [{"period": {"start": start, "end": end}}]},
    }


def as_body(event: Dict[str, Any]) -> bytes:
    return json.dumps(event).encode("utf-8")


# ---------------------------------------------------------------------------
# In-memory repositories
# ---------------------------------------------------------------------------


class FakeStripeEventRepository:
    def __init__(self):
        self.rows: Dict[str, StripeEvent] = {}
        self.fail_record = False

    async def record_event(self, event_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        if self.fail_record:
            raise RuntimeError("ledger unavailable")
        if event_id not in self.rows:
            self.rows[event_id] = StripeEvent(id=event_id, type=event_type, payload=payload)

    async def is_processed(self, event_id: str) -> bool:
        row = self.rows.get(event_id)
        return bool(row and row.processed)

    async def mark_processing(self, event_id: str) -> Optional[StripeEvent]:
        row = self.rows.get(event_id)
        if row is None:
            return None
        row.retry_count += 1
        row.last_retry_at = datetime.now(timezone.utc)
        return row

    async def mark_processed(self, event_id: str) -> Optional[StripeEvent]:
        row = self.rows.get(event_id)
        if row is None:
            return None
        row.processed = True
        row.processed_at = datetime.now(timezone.utc)
        row.processing_error = None
        return row

    async def mark_failed(self, event_id: str, error: str) -> Optional[StripeEvent]:
        row = self.rows.get(event_id)
        if row is None:
            return None
        row.processing_error = error
        row.failed_at = datetime.now(timezone.utc)
        return row


class FakeUserAccountRepository:
    def __init__(self):
        self.rows: Dict[str, UserAccount] = {}
        self.upserts: List[UserAccountUpsert] = []
        self.fail_upsert = False
        self.fail_lookup = False

    async def find_by_id(self, id: str) -> Optional[UserAccount]:
        if self.fail_lookup:
            raise RuntimeError("users table unavailable")
        return self.rows.get(id)

    async def find_by_email(self, email: str) -> Optional[UserAccount]:
        return next((row for row in self.rows.values() if row.email == email), None)

    async def upsert_profile(self, data: UserAccountUpsert) -> Optional[UserAccount]:
        if self.fail_upsert:
            raise RuntimeError("users table unavailable")
        self.upserts.append(data)
        fields = data.model_dump(exclude_unset=True)
        existing = self.rows.get(data.id)
        merged = {**existing.model_dump(), **fields} if existing else fields
        self.rows[data.id] = UserAccount(**merged)
        return self.rows[data.id]

    async def set_wallet(self, user_id: str, wallet_address: str, wallet_provider: str) -> Optional[UserAccount]:
        row = self.rows.get(user_id)
        if row is None or row.wallet_address:
            return None
        row.wallet_address = wallet_address
        row.wallet_provider = wallet_provider
        row.wallet_created_at = datetime.now(timezone.utc)
        return row


class FakeSubscriptionCacheRepository:
    def __init__(self):
        self.rows: Dict[str, SubscriptionCache] = {}
        self.applied: List[SubscriptionSnapshot] = []
        self.failures_remaining = 0

    async def apply_snapshot(self, snapshot: SubscriptionSnapshot) -> None:
        if self.failures_remaining:
            self.failures_remaining -= 1
            raise RuntimeError("rpc timeout")
        self.applied.append(snapshot)
        self.rows[snapshot.stripe_subscription_id] = SubscriptionCache(**snapshot.model_dump())

    async def find_by_subscription_id(self, stripe_subscription_id: str) -> Optional[SubscriptionCache]:
        return self.rows.get(stripe_subscription_id)


# ---------------------------------------------------------------------------
# Fake vendors
# ---------------------------------------------------------------------------


class FakeAuthProvider:
    def __init__(self, existing: Optional[Dict[str, str]] = None):
        self.identities: Dict[str, str] = dict(existing or {})
        self.created: List[str] = []
        self.magic_links: List[str] = []
        self.create_failures_remaining = 0

    async def create_identity(self, email: str, metadata: Dict[str, Any]) -> str:
        if self.create_failures_remaining:
            self.create_failures_remaining -= 1
            raise RuntimeError("auth service unavailable")
        if email in self.identities:
            raise IdentityAlreadyExistsError(email)
        user_id = f"user-{len(self.identities) + 1}"
        self.identities[email] = user_id
        self.created.append(email)
        return user_id

    async def find_identity_by_email(self, email: str) -> str:
        if email not in self.identities:
            raise IdentityNotFoundError(email)
        return self.identities[email]

    async def generate_magic_link(self, email: str, redirect_to: Optional[str] = None) -> str:
        self.magic_links.append(email)
        return f"https://auth.example.com/verify?token=tok-{email}"


class FakeEmailSender:
    is_configured = True

    def __init__(self, failures: int = 0):
        self.sent: List[Dict[str, str]] = []
        self.failures_remaining = failures

    async def send(self, to: str, subject: str, html: str, text: str) -> str:
        if self.failures_remaining:
            self.failures_remaining -= 1
            raise RuntimeError("email provider 503")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"email-{len(self.sent)}"


class UnconfiguredIntegration:
    """Stands in for any vendor client without credentials"""
    is_configured = False


class RecordingAnalytics:
    is_configured = True

    def __init__(self, fail: bool = False):
        self.payloads: List[Dict[str, Any]] = []
        self.fail = fail

    @staticmethod
    def build_payload(**kwargs) -> Dict[str, Any]:
        return dict(kwargs)

    async def send(self, payload: Dict[str, Any]) -> int:
        if self.fail:
            raise RuntimeError("analytics down")
        self.payloads.append(payload)
        return 200


class RecordingSleep:
    """Async sleep replacement that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, base_delay=1.0, max_delay=30.0)


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def event_repo() -> FakeStripeEventRepository:
    return FakeStripeEventRepository()


@pytest.fixture
def user_repo() -> FakeUserAccountRepository:
    return FakeUserAccountRepository()


@pytest.fixture
def cache_repo() -> FakeSubscriptionCacheRepository:
    return FakeSubscriptionCacheRepository()


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def subscriptions() -> Dict[str, Dict[str, Any]]:
    """Subscriptions returned by the fake Stripe fetcher, keyed by ID"""
    return {}


@pytest.fixture
def fanout(auth_provider, email_sender, retry_policy, sleeper) -> IntegrationFanout:
    return IntegrationFanout(
        auth_provider=auth_provider,
        email_sender=email_sender,
        analytics=UnconfiguredIntegration(),
        conversions=UnconfiguredIntegration(),
        wallets=UnconfiguredIntegration(),
        retry_policy=retry_policy,
        sleep=sleeper,
        app_url="https://app.example.com",
    )


@pytest.fixture
def webhook_service(event_repo, user_repo, cache_repo, auth_provider, fanout, subscriptions, retry_policy, sleeper):
    async def fetch_subscription(subscription_id: str) -> Dict[str, Any]:
        return subscriptions[subscription_id]

    return BillingWebhookService(
        stripe_event_repo=event_repo,
        provisioner=UserProvisioner(auth_provider, user_repo),
        fanout=fanout,
        cache_updater=SubscriptionCacheUpdater(cache_repo),
        fetch_subscription=fetch_subscription,
        retry_policy=retry_policy,
        sleep=sleeper,
    )
