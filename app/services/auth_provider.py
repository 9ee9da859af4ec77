"""
Authentication provider adapter

Wraps the Supabase Auth admin API (service-role only) behind the three calls
the provisioning pipeline needs.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from supabase import AuthApiError, Client  # type: ignore

from app.features.billing.errors import IdentityAlreadyExistsError, IdentityNotFoundError

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_CODES = {"email_exists", "user_already_exists"}


class AuthProvider(Protocol):
    async def create_identity(self, email: str, metadata: Dict[str, Any]) -> str: ...

    async def find_identity_by_email(self, email: str) -> str: ...

    async def generate_magic_link(self, email: str, redirect_to: Optional[str] = None) -> str: ...


def _is_duplicate_email(error: AuthApiError) -> bool:
    code = getattr(error, "code", None)
    if code in DUPLICATE_EMAIL_CODES:
        return True
    message = (getattr(error, "message", None) or str(error)).lower()
    return "already been registered" in message or "already registered" in message


class SupabaseAuthProvider:
    """Identity management through supabase.auth.admin"""

    def __init__(self, client: Client, page_size: int = 1000, max_pages: int = 50):
        self._client = client
        self._page_size = page_size
        self._max_pages = max_pages

    async def create_identity(self, email: str, metadata: Dict[str, Any]) -> str:
        """
        Create a confirmed identity for a paying customer.

        Raises:
            IdentityAlreadyExistsError: If the email is already registered
            AuthApiError: Any other auth API failure
        """
        try:
            response = self._client.auth.admin.create_user({
                "email": email,
                "email_confirm": True,
                "user_metadata": metadata,
            })
        except AuthApiError as e:
            if _is_duplicate_email(e):
                raise IdentityAlreadyExistsError(email) from e
            logger.error(f"SupabaseAuthProvider: create_user failed for {email}: {e}")
            raise

        user_id = response.user.id
        logger.info(f"SupabaseAuthProvider: Created identity {user_id}")
        return str(user_id)

    async def find_identity_by_email(self, email: str) -> str:
        """
        Look an identity up by email.

        The admin API has no email filter, so pages are scanned until a match
        or a short page.

        Raises:
            IdentityNotFoundError: If no identity has this email
        """
        target = email.strip().lower()

        for page in range(1, self._max_pages + 1):
            users = self._client.auth.admin.list_users(page=page, per_page=self._page_size)
            for user in users:
                if (user.email or "").strip().lower() == target:
                    return str(user.id)
            if len(users) < self._page_size:
                break

        raise IdentityNotFoundError(email)

    async def generate_magic_link(self, email: str, redirect_to: Optional[str] = None) -> str:
        """Generate a one-time sign-in link for the welcome email"""
        params: Dict[str, Any] = {"type": "magiclink", "email": email}
        if redirect_to:
            params["options"] = {"redirect_to": redirect_to}

        response = self._client.auth.admin.generate_link(params)

        action_link = getattr(getattr(response, "properties", None), "action_link", None)
        if not action_link:
            raise ValueError("No magic link returned by auth provider")

        return action_link
