import logging

# Log configuration (before other imports)
# ruff: noqa: E402
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    force=True
)

from fastapi import FastAPI  # noqa: E402
from app.api.base import api_router  # noqa: E402

app = FastAPI(
    title="Club Billing Backend",
    description="Stripe webhook ingestion and subscriber provisioning",
    version="1.0.0"
)

# Include all API routes
app.include_router(api_router)


@app.get("/")
def read_root():
    return {
        "message": "Club Billing Backend",
        "docs": "/docs",
        "version": "1.0.0"
    }
