"""Domain enums for the Billing feature"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """Stripe subscription status as cached for access control"""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"


class StripeEventType(str, Enum):
    """Stripe event types the webhook acts on"""
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    INVOICE_PAID = "invoice.paid"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class WebhookOutcome(str, Enum):
    """How a single webhook delivery ended"""
    PROCESSED = "processed"
    ALREADY_PROCESSED = "already_processed"
    FAILED = "failed"


class IntegrationName(str, Enum):
    """Downstream integrations fired after a checkout is provisioned"""
    WELCOME_EMAIL = "welcome_email"
    ANALYTICS_WEBHOOK = "analytics_webhook"
    CONVERSION_TRACKING = "conversion_tracking"
    WALLET = "wallet"


WALLET_PROVIDER = "cavos"
