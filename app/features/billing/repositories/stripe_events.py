"""Stripe events repository - the idempotency ledger"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client  # type: ignore

from app.features.billing.models.stripe_event import StripeEvent, StripeEventCreate, StripeEventUpdate

from app.infra.supabase.repositories.base import BaseRepository


class StripeEventRepository(BaseRepository[StripeEvent, StripeEventCreate, StripeEventUpdate]):
    """
    Repository for the stripe_events table.

    Rows are never deleted. Once processed is true the event must not be
    handled again.
    """

    def __init__(self, client: Client):
        super().__init__(client, "stripe_events", StripeEvent)

    async def record_event(self, event_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        """Insert the event on first receipt; a redelivery leaves the existing row untouched"""
        create_data = StripeEventCreate(
            id=event_id,
            type=event_type,
            payload=payload,
            processed=False,
            retry_count=0,
            created_at=datetime.now(timezone.utc),
        )
        await self.upsert(create_data, ignore_duplicates=True)

    async def find_by_event_id(self, event_id: str) -> Optional[StripeEvent]:
        """Find Stripe event by Stripe event ID"""
        return await self.find_by_id(event_id)

    async def is_processed(self, event_id: str) -> bool:
        event = await self.find_by_event_id(event_id)
        return bool(event and event.processed)

    async def mark_processing(self, event_id: str) -> Optional[StripeEvent]:
        """Count a processing attempt"""
        event = await self.find_by_event_id(event_id)
        retry_count = event.retry_count if event else 0

        update_data = StripeEventUpdate(
            retry_count=retry_count + 1,
            last_retry_at=datetime.now(timezone.utc),
        )
        return await self.update(event_id, update_data)

    async def mark_processed(self, event_id: str) -> Optional[StripeEvent]:
        """Terminal success: the event will be skipped from now on"""
        update_data = StripeEventUpdate(
            processed=True,
            processed_at=datetime.now(timezone.utc),
            processing_error=None,
        )
        return await self.update(event_id, update_data)

    async def mark_failed(self, event_id: str, error: str) -> Optional[StripeEvent]:
        """Terminal failure after retries; processed stays false so a manual replay is possible"""
        update_data = StripeEventUpdate(
            processing_error=error,
            failed_at=datetime.now(timezone.utc),
        )
        return await self.update(event_id, update_data)
