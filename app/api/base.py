from fastapi import APIRouter
from app.api import health
from app.features.billing.api import stripe_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(health.router)
api_router.include_router(stripe_router)
