"""User profile repository (public.users)"""
from datetime import datetime, timezone
from typing import Optional

from supabase import Client  # type: ignore

from app.features.billing.models.user_account import UserAccount, UserAccountUpsert, UserAccountUpdate

from app.infra.supabase.repositories.base import BaseRepository


class UserAccountRepository(BaseRepository[UserAccount, UserAccountUpsert, UserAccountUpdate]):
    """Repository for platform user profiles"""

    def __init__(self, client: Client):
        super().__init__(client, "users", UserAccount)

    async def find_by_email(self, email: str) -> Optional[UserAccount]:
        results = await self.find_by_filters({"email": email}, limit=1)
        return results[0] if results else None

    async def upsert_profile(self, data: UserAccountUpsert) -> Optional[UserAccount]:
        """Create or refresh the profile row keyed by auth identity ID"""
        return await self.upsert(data)

    async def set_wallet(self, user_id: str, wallet_address: str, wallet_provider: str) -> Optional[UserAccount]:
        """
        Attach a wallet to the user unless one is already attached.

        Returns None when the row already had a wallet (or does not exist).
        """
        now = datetime.now(timezone.utc)
        update_data = UserAccountUpdate(
            wallet_address=wallet_address,
            wallet_provider=wallet_provider,
            wallet_created_at=now,
            updated_at=now,
        )
        response = (
            self._client.table(self._table_name)
            .update(update_data.model_dump(exclude_unset=True, mode='json'))
            .eq("id", user_id)
            .is_("wallet_address", "null")
            .execute()
        )

        if not response.data:
            return None

        return self._to_model(response.data[0])
