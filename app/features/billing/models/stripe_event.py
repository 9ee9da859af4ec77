"""Stripe event ledger model (idempotency + audit)"""
from datetime import datetime
from typing import Optional, Any, Dict
from pydantic import BaseModel


class StripeEventBase(BaseModel):
    """Base Stripe event fields"""
    id: str  # Stripe event ID (evt_...)
    type: str
    payload: Dict[str, Any]


class StripeEventCreate(StripeEventBase):
    """Row written on first receipt of an event"""
    processed: bool = False
    retry_count: int = 0
    created_at: Optional[datetime] = None


class StripeEventUpdate(BaseModel):
    """Stripe event update model - all fields optional"""
    processed: Optional[bool] = None
    retry_count: Optional[int] = None
    processing_error: Optional[str] = None
    processed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    last_retry_at: Optional[datetime] = None


class StripeEvent(StripeEventBase):
    """Complete Stripe event model from database"""
    processed: bool = False
    retry_count: int = 0
    processing_error: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    last_retry_at: Optional[datetime] = None

    class Config:
        from_attributes = True
