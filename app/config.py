import os
from dotenv import load_dotenv

load_dotenv(dotenv_path=".env")

# Stripe
# STRIPE_DEV_MODE=true switches to the test-mode secret pair
STRIPE_DEV_MODE = os.getenv("STRIPE_DEV_MODE", "false").lower() == "true"

if STRIPE_DEV_MODE:
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_TEST_WEBHOOK_SECRET")
    STRIPE_SECRET_KEY = os.getenv("STRIPE_TEST_SECRET_KEY")
else:
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# Email (Resend)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
FROM_EMAIL = os.getenv("FROM_EMAIL", "Club <equipo@example.com>")
APP_URL = os.getenv("APP_URL", "http://localhost:5173")
PRODUCT_NAME = os.getenv("PRODUCT_NAME", "Club")

# Outbound analytics webhook (Zapier-style catch hook)
ANALYTICS_WEBHOOK_URL = os.getenv("ANALYTICS_WEBHOOK_URL")

# Meta Conversions API
META_ACCESS_TOKEN = os.getenv("META_ACCESS_TOKEN")
META_PIXEL_ID = os.getenv("META_PIXEL_ID")

# Wallet provider (Cavos)
CAVOS_API_KEY = os.getenv("CAVOS_API_KEY")
CAVOS_ENDPOINT = os.getenv("CAVOS_ENDPOINT", "https://api.cavos.xyz")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# Retry policy for webhook processing and integrations (seconds)
WEBHOOK_MAX_RETRIES = int(os.getenv("WEBHOOK_MAX_RETRIES", "3"))
WEBHOOK_RETRY_BASE_DELAY = float(os.getenv("WEBHOOK_RETRY_BASE_DELAY", "1.0"))
WEBHOOK_RETRY_MAX_DELAY = float(os.getenv("WEBHOOK_RETRY_MAX_DELAY", "30.0"))
WEBHOOK_RETRY_JITTER = float(os.getenv("WEBHOOK_RETRY_JITTER", "0"))

# Rate limiting for the webhook endpoint
REDIS_URL = os.getenv("REDIS_URL")
WEBHOOK_RATE_LIMIT = int(os.getenv("WEBHOOK_RATE_LIMIT", "120"))
WEBHOOK_RATE_WINDOW_SECONDS = int(os.getenv("WEBHOOK_RATE_WINDOW_SECONDS", "60"))
