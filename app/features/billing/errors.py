"""Exceptions raised by the billing webhook pipeline"""


class BillingError(Exception):
    """Base class for billing pipeline errors"""


class NonRetryableError(BillingError):
    """A failure that no amount of retrying can fix (bad data, missing config)"""


class WebhookNotConfiguredError(NonRetryableError):
    """Webhook secret or Stripe key is not configured - fail closed"""

    def __init__(self, message: str, code: str = "MISSING_WEBHOOK_SECRET"):
        super().__init__(message)
        self.code = code


class InvalidSignatureError(NonRetryableError):
    """Webhook body could not be authenticated against the shared secret"""


class InvalidPayloadError(NonRetryableError):
    """Webhook body is not a JSON Stripe event envelope"""


class MissingCustomerEmailError(NonRetryableError):
    """Checkout session carried no customer email, so no account can be provisioned"""

    def __init__(self, session_id: str | None):
        super().__init__(f"No customer email in checkout session {session_id}")
        self.session_id = session_id


class IdentityAlreadyExistsError(BillingError):
    """Auth provider refused to create an identity because the email is taken"""

    def __init__(self, email: str):
        super().__init__(f"Identity already exists for {email}")
        self.email = email


class IdentityNotFoundError(BillingError):
    """No auth identity matches the given email"""

    def __init__(self, email: str):
        super().__init__(f"No identity found for {email}")
        self.email = email


class IntegrationError(BillingError):
    """A downstream integration (email, analytics, wallet...) call failed"""

    def __init__(self, integration: str, message: str, status_code: int | None = None):
        super().__init__(f"{integration}: {message}")
        self.integration = integration
        self.status_code = status_code


class IntegrationNotConfiguredError(NonRetryableError):
    """Integration credentials are missing; retrying cannot help"""

    def __init__(self, integration: str):
        super().__init__(f"{integration} is not configured")
        self.integration = integration
