"""Health check and configuration status endpoints"""

from fastapi import APIRouter

from app import config

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "club-billing-backend",
    }


@router.get("/config")
async def config_status():
    """
    Report which integrations have credentials.

    Only booleans are returned; secrets never leave the process.
    """
    integrations = {
        "stripe_webhook_secret": bool(config.STRIPE_WEBHOOK_SECRET),
        "stripe_secret_key": bool(config.STRIPE_SECRET_KEY),
        "supabase": bool(config.SUPABASE_URL and config.SUPABASE_SERVICE_ROLE_KEY),
        "email": bool(config.RESEND_API_KEY),
        "analytics_webhook": bool(config.ANALYTICS_WEBHOOK_URL),
        "conversion_tracking": bool(config.META_ACCESS_TOKEN and config.META_PIXEL_ID),
        "wallet": bool(config.CAVOS_API_KEY),
        "redis_rate_limit": bool(config.REDIS_URL),
    }
    ready = integrations["stripe_webhook_secret"] and integrations["stripe_secret_key"] and integrations["supabase"]
    return {
        "status": "ready" if ready else "misconfigured",
        "stripe_mode": "test" if config.STRIPE_DEV_MODE else "live",
        "integrations": integrations,
    }
