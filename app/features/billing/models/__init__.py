"""Billing feature models"""
from .stripe_event import StripeEvent, StripeEventCreate, StripeEventUpdate
from .user_account import UserAccount, UserAccountUpsert, UserAccountUpdate
from .subscription_cache import SubscriptionCache, SubscriptionSnapshot

__all__ = [
    "StripeEvent",
    "StripeEventCreate",
    "StripeEventUpdate",
    "UserAccount",
    "UserAccountUpsert",
    "UserAccountUpdate",
    "SubscriptionCache",
    "SubscriptionSnapshot",
]
