"""Tests for the vendor adapters using httpx.MockTransport and a mocked Supabase client."""

import hashlib
import json
from unittest.mock import MagicMock

import httpx
import pytest
from supabase import AuthApiError

from app.config import PRODUCT_NAME
from app.features.billing.errors import (
    IdentityAlreadyExistsError,
    IdentityNotFoundError,
    IntegrationError,
    IntegrationNotConfiguredError,
)
from app.features.billing.models.user_account import UserAccount
from app.services.analytics_webhook import AnalyticsWebhookClient
from app.services.auth_provider import SupabaseAuthProvider
from app.services.conversion_tracking import MetaConversionsClient, hash_identifier
from app.services.email_service import RESEND_API_URL, ResendEmailService
from app.services.email_templates import welcome_back_email, welcome_email
from app.services.wallet_service import CavosWalletClient, WalletService, derive_wallet_secret
from tests.conftest import FakeUserAccountRepository

pytestmark = pytest.mark.unit


class Recorder:
    """MockTransport handler that records requests and replies with a fixed response"""

    def __init__(self, status_code: int = 200, body=None):
        self.requests = []
        self.status_code = status_code
        self.body = body if body is not None else {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


class TestResendEmailService:
    async def test_send(self):
        recorder = Recorder(body={"id": "msg_1"})
        service = ResendEmailService(api_key="re_key", from_email="Club <hola@example.com>", transport=httpx.MockTransport(recorder))

        message_id = await service.send("ana@example.com", "Hola", "<p>Hola</p>", "Hola")

        assert message_id == "msg_1"
        request = recorder.requests[0]
        assert str(request.url) == RESEND_API_URL
        assert request.headers["Authorization"] == "Bearer re_key"
        assert recorder.last_json["to"] == ["ana@example.com"]
        assert recorder.last_json["from"] == "Club <hola@example.com>"

    async def test_error_status_raises(self):
        service = ResendEmailService(api_key="re_key", transport=httpx.MockTransport(Recorder(status_code=422)))
        with pytest.raises(IntegrationError) as exc_info:
            await service.send("ana@example.com", "Hola", "<p>Hola</p>", "Hola")
        assert exc_info.value.status_code == 422

    async def test_unconfigured_raises(self):
        with pytest.raises(IntegrationNotConfiguredError):
            await ResendEmailService(api_key=None).send("a@example.com", "s", "h", "t")


class TestEmailTemplates:
    def test_welcome_contains_link_in_both_bodies(self):
        content = welcome_email("ana@example.com", "Ana Solís", "https://auth.example.com/x?a=1&b=2", product_name="Club")
        assert "https://auth.example.com/x?a=1&amp;b=2" in content.html
        assert "https://auth.example.com/x?a=1&b=2" in content.text
        assert "Hola Ana," in content.text

    def test_welcome_back_has_no_access_link(self):
        content = welcome_back_email("ana@example.com", None, "https://app.example.com", product_name="Club")
        assert "https://app.example.com" in content.text
        assert "token" not in content.html
        assert content.text.startswith("Hola,")

    def test_name_is_escaped(self):
        content = welcome_back_email("ana@example.com", "<script>", "https://app.example.com", product_name="Club")
        assert "<script>" not in content.html


class TestAnalyticsWebhookClient:
    async def test_posts_payload(self):
        recorder = Recorder()
        client = AnalyticsWebhookClient(url="https://hooks.example.com/catch/1", transport=httpx.MockTransport(recorder))
        payload = client.build_payload(
            email="ana@example.com",
            name="Ana",
            phone=None,
            amount_total=990,
            currency="usd",
            customer_id="cus_1",
            subscription_id="sub_1",
            is_new_subscriber=True,
            country="CR",
        )

        assert await client.send(payload) == 200
        assert recorder.last_json["country"] == "CR"
        assert recorder.last_json["amount"] == 9.9
        assert recorder.last_json["currency"] == "USD"
        assert recorder.last_json["is_new_subscriber"] is True

    async def test_error_status_raises(self):
        client = AnalyticsWebhookClient(url="https://hooks.example.com/catch/1", transport=httpx.MockTransport(Recorder(status_code=500)))
        with pytest.raises(IntegrationError):
            await client.send({})

    def test_unconfigured(self):
        assert AnalyticsWebhookClient(url=None).is_configured is False


class TestMetaConversionsClient:
    def test_subscribe_event_hashes_personal_data(self):
        client = MetaConversionsClient(access_token="tok", pixel_id="123", event_source_url="https://club.example.com")
        event = client.build_subscribe_event(
            email=" Ana@Example.com ",
            subscription_id="sub_1",
            name="Ana María Solís",
            phone="+506 8888-7777",
            value=990,
            currency="usd",
            event_time=1_700_000_000,
        )

        assert event["event_name"] == "Subscribe"
        assert event["event_id"] == "subscribe_sub_1"
        assert event["user_data"]["em"] == [hashlib.sha256(b"ana@example.com").hexdigest()]
        assert event["user_data"]["ph"] == [hashlib.sha256(b"50688887777").hexdigest()]
        assert event["user_data"]["fn"] == [hash_identifier("Ana")]
        assert event["user_data"]["ln"] == [hash_identifier("Solís")]
        assert event["custom_data"] == {"content_name": PRODUCT_NAME, "value": 9.9, "currency": "USD"}
        assert event["event_source_url"] == "https://club.example.com"
        assert "fbp" not in event["user_data"]

    def test_subscribe_event_carries_browser_click_ids(self):
        client = MetaConversionsClient(access_token="tok", pixel_id="123", event_source_url="https://club.example.com")
        event = client.build_subscribe_event(
            email="ana@example.com",
            subscription_id="sub_1",
            fbp="fb.1.1700000000.123",
            fbc="fb.1.1700000000.AbCdEf",
            source_url="https://club.example.com/planes?utm_source=ig",
            content_name="Club Anual",
        )

        assert event["user_data"]["fbp"] == "fb.1.1700000000.123"
        assert event["user_data"]["fbc"] == "fb.1.1700000000.AbCdEf"
        assert event["event_source_url"] == "https://club.example.com/planes?utm_source=ig"
        assert event["custom_data"]["content_name"] == "Club Anual"

    async def test_send_event(self):
        recorder = Recorder(body={"events_received": 1})
        client = MetaConversionsClient(access_token="tok", pixel_id="123", transport=httpx.MockTransport(recorder))

        result = await client.send_event(client.build_subscribe_event(email="a@example.com", subscription_id="sub_1"))

        assert result == {"events_received": 1}
        request = recorder.requests[0]
        assert request.url.path == "/v18.0/123/events"
        assert request.url.params["access_token"] == "tok"
        assert recorder.last_json["data"][0]["event_id"] == "subscribe_sub_1"

    def test_needs_token_and_pixel(self):
        assert MetaConversionsClient(access_token="tok", pixel_id=None).is_configured is False


class TestWallets:
    def test_secret_is_deterministic(self):
        assert derive_wallet_secret("Ana@Example.com") == derive_wallet_secret(" ana@example.com")
        assert derive_wallet_secret("ana@example.com") != derive_wallet_secret("bea@example.com")
        assert derive_wallet_secret("ana@example.com").endswith(hashlib.sha256(b"ana@example.com").hexdigest())

    async def test_create_wallet(self):
        recorder = Recorder(body={"address": "0xabc"})
        client = CavosWalletClient(api_key="cv_key", endpoint="https://cavos.example.com/", transport=httpx.MockTransport(recorder))

        assert await client.create_wallet("ana@example.com", "secret") == "0xabc"
        assert str(recorder.requests[0].url) == "https://cavos.example.com/wallets/create"
        assert recorder.last_json["identifier"] == "ana@example.com"

    async def test_response_without_address_raises(self):
        client = CavosWalletClient(api_key="cv_key", transport=httpx.MockTransport(Recorder(body={})))
        with pytest.raises(IntegrationError):
            await client.create_wallet("ana@example.com", "secret")

    async def test_ensure_wallet_creates_once(self):
        recorder = Recorder(body={"address": "0xabc"})
        user_repo = FakeUserAccountRepository()
        user_repo.rows["u1"] = UserAccount(id="u1", email="ana@example.com")
        service = WalletService(CavosWalletClient(api_key="cv_key", transport=httpx.MockTransport(recorder)), user_repo)

        assert await service.ensure_wallet("u1", "ana@example.com") == "0xabc"
        assert await service.ensure_wallet("u1", "ana@example.com") == "0xabc"

        assert len(recorder.requests) == 1
        assert user_repo.rows["u1"].wallet_provider == "cavos"

    async def test_ensure_wallet_skips_when_unconfigured(self):
        service = WalletService(CavosWalletClient(api_key=None), FakeUserAccountRepository())
        assert await service.ensure_wallet("u1", "ana@example.com") is None


class TestSupabaseAuthProvider:
    async def test_create_identity(self):
        client = MagicMock()
        client.auth.admin.create_user.return_value = MagicMock(user=MagicMock(id="uuid-1"))

        user_id = await SupabaseAuthProvider(client).create_identity("ana@example.com", {"name": "Ana"})

        assert user_id == "uuid-1"
        attributes = client.auth.admin.create_user.call_args.args[0]
        assert attributes["email_confirm"] is True

    async def test_duplicate_email_is_translated(self):
        client = MagicMock()
        client.auth.admin.create_user.side_effect = AuthApiError(
            "A user with this email address has already been registered", 422, "email_exists"
        )
        with pytest.raises(IdentityAlreadyExistsError):
            await SupabaseAuthProvider(client).create_identity("ana@example.com", {})

    async def test_other_auth_errors_propagate(self):
        client = MagicMock()
        client.auth.admin.create_user.side_effect = AuthApiError("Database error", 500, "unexpected_failure")
        with pytest.raises(AuthApiError):
            await SupabaseAuthProvider(client).create_identity("ana@example.com", {})

    async def test_find_identity_scans_pages(self):
        client = MagicMock()
        page_1 = [MagicMock(id="u1", email="x@example.com"), MagicMock(id="u2", email="y@example.com")]
        page_2 = [MagicMock(id="u3", email="Ana@Example.com")]
        client.auth.admin.list_users.side_effect = [page_1, page_2]

        user_id = await SupabaseAuthProvider(client, page_size=2).find_identity_by_email("ana@example.com")

        assert user_id == "u3"
        assert client.auth.admin.list_users.call_count == 2

    async def test_find_identity_not_found(self):
        client = MagicMock()
        client.auth.admin.list_users.return_value = []
        with pytest.raises(IdentityNotFoundError):
            await SupabaseAuthProvider(client).find_identity_by_email("ana@example.com")

    async def test_generate_magic_link(self):
        client = MagicMock()
        client.auth.admin.generate_link.return_value = MagicMock(properties=MagicMock(action_link="https://auth/link"))

        link = await SupabaseAuthProvider(client).generate_magic_link("ana@example.com", redirect_to="https://app")

        assert link == "https://auth/link"
        params = client.auth.admin.generate_link.call_args.args[0]
        assert params["type"] == "magiclink"
        assert params["options"] == {"redirect_to": "https://app"}
