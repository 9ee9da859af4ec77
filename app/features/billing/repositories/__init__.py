"""Billing feature repositories"""
from .stripe_events import StripeEventRepository
from .user_accounts import UserAccountRepository
from .subscription_cache import SubscriptionCacheRepository

__all__ = [
    "StripeEventRepository",
    "UserAccountRepository",
    "SubscriptionCacheRepository",
]
