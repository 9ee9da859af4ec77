"""Embedded wallet creation through the Cavos API"""

import hashlib
import logging
from typing import Any, Dict, Optional

import httpx

from app.config import CAVOS_API_KEY, CAVOS_ENDPOINT, HTTP_TIMEOUT_SECONDS
from app.features.billing.domain import IntegrationName, WALLET_PROVIDER
from app.features.billing.errors import IntegrationError, IntegrationNotConfiguredError
from app.features.billing.repositories.user_accounts import UserAccountRepository

logger = logging.getLogger(__name__)

WALLET_SECRET_PREFIX = "Cv!"


def derive_wallet_secret(email: str) -> str:
    """Deterministic per-user wallet secret: fixed prefix + sha256(normalized email)"""
    digest = hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()
    return f"{WALLET_SECRET_PREFIX}{digest}"


class CavosWalletClient:
    def __init__(
        self,
        api_key: Optional[str] = CAVOS_API_KEY,
        endpoint: str = CAVOS_ENDPOINT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def create_wallet(self, email: str, secret: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Create a wallet for the identity and return its address.

        Raises:
            IntegrationNotConfiguredError: If CAVOS_API_KEY is not set
            IntegrationError: On a non-2xx response or a response without an address
        """
        if not self.is_configured:
            raise IntegrationNotConfiguredError(IntegrationName.WALLET.value)

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                f"{self.endpoint}/wallets/create",
                json={
                    "identifier": email,
                    "secret": secret,
                    "recoveryMethod": "email",
                    "sponsoredGas": True,
                    "metadata": metadata or {},
                },
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )

        if response.status_code >= 300:
            raise IntegrationError(
                IntegrationName.WALLET.value,
                f"Cavos API error: {response.text}",
                status_code=response.status_code,
            )

        address = response.json().get("address")
        if not address:
            raise IntegrationError(IntegrationName.WALLET.value, "Cavos response has no wallet address")

        logger.info(f"CavosWalletClient: Created wallet {address}")
        return address


class WalletService:
    """Creates a wallet for a user at most once and records it on the profile"""

    def __init__(self, client: CavosWalletClient, user_repo: UserAccountRepository):
        self.client = client
        self.user_repo = user_repo

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured

    async def ensure_wallet(self, user_id: str, email: str) -> Optional[str]:
        """
        Return the user's wallet address, creating the wallet if needed.

        Returns None when the wallet provider is not configured.
        """
        if not self.client.is_configured:
            logger.info(f"WalletService: Wallet provider not configured, skipping for {user_id}")
            return None

        user = await self.user_repo.find_by_id(user_id)
        if user and user.wallet_address:
            logger.info(f"WalletService: User {user_id} already has wallet {user.wallet_address}")
            return user.wallet_address

        address = await self.client.create_wallet(
            email,
            derive_wallet_secret(email),
            metadata={"user_id": user_id},
        )

        stored = await self.user_repo.set_wallet(user_id, address, WALLET_PROVIDER)
        if stored is None:
            logger.warning(f"WalletService: Wallet for {user_id} was not stored (row missing or wallet already set)")
        else:
            logger.info(f"WalletService: Stored wallet {address} for {user_id}")

        return address
