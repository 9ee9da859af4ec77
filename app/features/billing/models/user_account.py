"""Platform user profile (public.users, keyed by the auth identity ID)"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class UserAccountBase(BaseModel):
    """Base user profile fields"""
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    stripe_customer_id: Optional[str] = None


class UserAccountUpsert(UserAccountBase):
    """
    Profile write from provisioning.

    subscription_started_at is only set (and therefore only sent) for a
    first-ever subscriber; exclude_unset keeps it out of the upsert otherwise.
    """
    id: str
    subscription_started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserAccountUpdate(BaseModel):
    """User profile update model - wallet fields are written once"""
    wallet_address: Optional[str] = None
    wallet_provider: Optional[str] = None
    wallet_created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserAccount(UserAccountBase):
    """Complete user profile model from database"""
    id: str  # auth.users UUID as string
    subscription_started_at: Optional[datetime] = None
    wallet_address: Optional[str] = None
    wallet_provider: Optional[str] = None
    wallet_created_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
