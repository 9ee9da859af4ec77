"""API request/response schemas for the billing webhook"""
from typing import Optional

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Body returned to Stripe for every verified delivery"""
    received: bool = True
    already_processed: Optional[bool] = None


class WebhookError(BaseModel):
    error: str
    code: str
