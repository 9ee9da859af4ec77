"""Account provisioning for a completed checkout

Resolves the paying customer to an auth identity (creating one when needed),
decides whether this is their first subscription, and upserts the profile row.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.features.billing.errors import IdentityAlreadyExistsError, MissingCustomerEmailError
from app.features.billing.models.user_account import UserAccountUpsert
from app.features.billing.repositories.user_accounts import UserAccountRepository
from app.services.auth_provider import AuthProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerDetails:
    """Customer fields taken from a checkout session"""
    email: Optional[str]
    name: Optional[str] = None
    phone: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    session_id: Optional[str] = None


@dataclass(frozen=True)
class ProvisioningResult:
    user_id: str
    email: str
    is_new_identity: bool
    is_new_subscriber: bool
    profile_saved: bool
    profile_lookup_failed: bool = False


class UserProvisioner:
    def __init__(self, auth_provider: AuthProvider, user_repo: UserAccountRepository):
        self.auth_provider = auth_provider
        self.user_repo = user_repo

    async def provision(self, customer: CustomerDetails) -> ProvisioningResult:
        """
        Make sure the customer has an identity and a profile.

        Raises:
            MissingCustomerEmailError: If the session has no email (not retried)
            Exception: Identity creation and lookup failures propagate
        """
        email = (customer.email or "").strip().lower()
        if not email:
            raise MissingCustomerEmailError(customer.session_id)

        user_id, is_new_identity = await self._resolve_identity(email, customer)

        profile_lookup_failed = False
        try:
            existing = await self.user_repo.find_by_id(user_id)
        except Exception as e:
            logger.error(f"UserProvisioner: Profile lookup failed for {user_id}, treating as new: {e}", exc_info=True)
            existing = None
            profile_lookup_failed = True
        is_new_subscriber = existing is None or existing.subscription_started_at is None

        # An unread row may already carry subscription_started_at; don't stamp over it
        profile_saved = await self._save_profile(
            user_id,
            email,
            customer,
            stamp_started_at=is_new_subscriber and not profile_lookup_failed,
        )

        logger.info(
            f"UserProvisioner: Provisioned {user_id} "
            f"(new_identity={is_new_identity}, new_subscriber={is_new_subscriber}, profile_saved={profile_saved})"
        )
        return ProvisioningResult(
            user_id=user_id,
            email=email,
            is_new_identity=is_new_identity,
            is_new_subscriber=is_new_subscriber,
            profile_saved=profile_saved,
            profile_lookup_failed=profile_lookup_failed,
        )

    async def _resolve_identity(self, email: str, customer: CustomerDetails) -> tuple[str, bool]:
        metadata: Dict[str, Any] = {"source": "stripe_checkout"}
        if customer.name:
            metadata["name"] = customer.name
        if customer.stripe_customer_id:
            metadata["stripe_customer_id"] = customer.stripe_customer_id

        try:
            user_id = await self.auth_provider.create_identity(email, metadata)
            return user_id, True
        except IdentityAlreadyExistsError:
            logger.info(f"UserProvisioner: Identity already exists for {email}, looking it up")

        user_id = await self.auth_provider.find_identity_by_email(email)
        return user_id, False

    async def _save_profile(
        self,
        user_id: str,
        email: str,
        customer: CustomerDetails,
        stamp_started_at: bool,
    ) -> bool:
        """Upsert the profile; a failure here is reported, not raised"""
        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {"id": user_id, "email": email, "updated_at": now}
        # Only send what we know, so an existing name/phone is never nulled
        if customer.name:
            fields["name"] = customer.name
        if customer.phone:
            fields["phone"] = customer.phone
        if customer.stripe_customer_id:
            fields["stripe_customer_id"] = customer.stripe_customer_id
        if stamp_started_at:
            fields["subscription_started_at"] = now

        try:
            await self.user_repo.upsert_profile(UserAccountUpsert(**fields))
            return True
        except Exception as e:
            logger.error(f"UserProvisioner: Failed to save profile for {user_id}: {e}", exc_info=True)
            return False
