"""Subscription cache row - the access-control snapshot of a Stripe subscription"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class SubscriptionSnapshot(BaseModel):
    """
    Everything the update_subscription_cache RPC needs.

    Every event path (invoice paid, subscription updated/deleted) builds this
    same shape, so the cache row never depends on which event wrote it.
    """
    stripe_subscription_id: str
    stripe_customer_id: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    stripe_updated_at: datetime

    def to_rpc_params(self) -> dict:
        """Parameter names of the Postgres function"""
        return {
            "p_stripe_subscription_id": self.stripe_subscription_id,
            "p_stripe_customer_id": self.stripe_customer_id,
            "p_status": self.status,
            "p_current_period_start": self.current_period_start.isoformat() if self.current_period_start else None,
            "p_current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "p_cancel_at_period_end": self.cancel_at_period_end,
            "p_stripe_updated_at": self.stripe_updated_at.isoformat(),
        }


class SubscriptionCache(SubscriptionSnapshot):
    """Complete subscription_cache row from database"""
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
