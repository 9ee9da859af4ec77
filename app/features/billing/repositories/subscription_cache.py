"""Subscription cache repository"""
from typing import Optional

from supabase import Client  # type: ignore

from app.features.billing.models.subscription_cache import SubscriptionCache, SubscriptionSnapshot

from app.infra.supabase.repositories.base import BaseRepository

UPDATE_SUBSCRIPTION_CACHE_RPC = "update_subscription_cache"


class SubscriptionCacheRepository(BaseRepository[SubscriptionCache, SubscriptionSnapshot, SubscriptionSnapshot]):
    """
    Repository for subscription_cache.

    Writes go exclusively through the update_subscription_cache function,
    an upsert keyed by stripe_subscription_id.
    """

    def __init__(self, client: Client):
        super().__init__(client, "subscription_cache", SubscriptionCache, id_column="stripe_subscription_id")

    async def find_by_subscription_id(self, stripe_subscription_id: str) -> Optional[SubscriptionCache]:
        return await self.find_by_id(stripe_subscription_id)

    async def apply_snapshot(self, snapshot: SubscriptionSnapshot) -> None:
        """Upsert the cache row via RPC; errors propagate to the caller"""
        self._client.rpc(UPDATE_SUBSCRIPTION_CACHE_RPC, snapshot.to_rpc_params()).execute()
