"""External service adapters used by the billing pipeline"""

from app.services.auth_provider import AuthProvider, SupabaseAuthProvider
from app.services.email_service import EmailSender, ResendEmailService
from app.services.email_templates import EmailContent, welcome_email, welcome_back_email
from app.services.analytics_webhook import AnalyticsWebhookClient
from app.services.conversion_tracking import MetaConversionsClient
from app.services.wallet_service import CavosWalletClient, WalletService, derive_wallet_secret

__all__ = [
    "AuthProvider",
    "SupabaseAuthProvider",
    "EmailSender",
    "ResendEmailService",
    "EmailContent",
    "welcome_email",
    "welcome_back_email",
    "AnalyticsWebhookClient",
    "MetaConversionsClient",
    "CavosWalletClient",
    "WalletService",
    "derive_wallet_secret",
]
