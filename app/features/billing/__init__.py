"""Billing feature module

Import the router from app.features.billing.api; this package only re-exports
the leaf modules so vendor adapters can depend on them without a cycle.
"""

from app.features.billing.domain import (
    IntegrationName,
    StripeEventType,
    SubscriptionStatus,
    WebhookOutcome,
)
from app.features.billing.errors import (
    BillingError,
    NonRetryableError,
    WebhookNotConfiguredError,
    InvalidSignatureError,
    InvalidPayloadError,
    MissingCustomerEmailError,
    IdentityAlreadyExistsError,
    IdentityNotFoundError,
    IntegrationError,
    IntegrationNotConfiguredError,
)
from app.features.billing.results import Ok, Err, Result

__all__ = [
    "IntegrationName",
    "StripeEventType",
    "SubscriptionStatus",
    "WebhookOutcome",
    "BillingError",
    "NonRetryableError",
    "WebhookNotConfiguredError",
    "InvalidSignatureError",
    "InvalidPayloadError",
    "MissingCustomerEmailError",
    "IdentityAlreadyExistsError",
    "IdentityNotFoundError",
    "IntegrationError",
    "IntegrationNotConfiguredError",
    "Ok",
    "Err",
    "Result",
]
