"""Subscription cache updater

Every subscription-affecting event is reduced to the same SubscriptionSnapshot
and written through one idempotent RPC, so the row converges no matter which
event (or replay of it) arrives.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from app.features.billing.domain import SubscriptionStatus
from app.features.billing.events import (
    id_of,
    from_unix,
    invoice_line_period,
    invoice_subscription_id,
    subscription_period,
)
from app.features.billing.models.subscription_cache import SubscriptionSnapshot
from app.features.billing.repositories.subscription_cache import SubscriptionCacheRepository

logger = logging.getLogger(__name__)


def snapshot_from_subscription(
    subscription: Dict[str, Any],
    updated_at: datetime,
    deleted: bool = False,
) -> SubscriptionSnapshot:
    """Snapshot of a subscription object; a deletion is forced to canceled"""
    start, end = subscription_period(subscription)
    status = subscription.get("status") or SubscriptionStatus.INCOMPLETE.value
    cancel_at_period_end = bool(subscription.get("cancel_at_period_end", False))

    if deleted:
        status = SubscriptionStatus.CANCELED.value
        cancel_at_period_end = True

    return SubscriptionSnapshot(
        stripe_subscription_id=subscription["id"],
        stripe_customer_id=id_of(subscription.get("customer")),
        status=status,
        current_period_start=from_unix(start),
        current_period_end=from_unix(end),
        cancel_at_period_end=cancel_at_period_end,
        stripe_updated_at=updated_at,
    )


def snapshot_from_invoice(
    invoice: Dict[str, Any],
    subscription: Dict[str, Any],
    updated_at: datetime,
) -> SubscriptionSnapshot:
    """
    Snapshot after a paid invoice.

    The period comes from the invoice's first line; status and the cancel
    flag come from the freshly retrieved subscription.
    """
    snapshot = snapshot_from_subscription(subscription, updated_at)

    line_start, line_end = invoice_line_period(invoice)
    if line_start is not None and line_end is not None:
        snapshot = snapshot.model_copy(update={
            "current_period_start": from_unix(line_start),
            "current_period_end": from_unix(line_end),
        })

    subscription_id = invoice_subscription_id(invoice) or snapshot.stripe_subscription_id
    customer_id = id_of(invoice.get("customer")) or snapshot.stripe_customer_id
    return snapshot.model_copy(update={
        "stripe_subscription_id": subscription_id,
        "stripe_customer_id": customer_id,
    })


class SubscriptionCacheUpdater:
    def __init__(self, repo: SubscriptionCacheRepository):
        self.repo = repo

    async def apply(self, snapshot: SubscriptionSnapshot) -> None:
        """Write the snapshot; RPC errors propagate so the event is retried"""
        await self.repo.apply_snapshot(snapshot)
        logger.info(
            f"SubscriptionCacheUpdater: {snapshot.stripe_subscription_id} -> {snapshot.status} "
            f"(period_end={snapshot.current_period_end}, cancel_at_period_end={snapshot.cancel_at_period_end})"
        )

    async def get(self, stripe_subscription_id: str) -> Optional[SubscriptionSnapshot]:
        return await self.repo.find_by_subscription_id(stripe_subscription_id)
