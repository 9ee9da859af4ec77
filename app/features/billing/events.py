"""Typed view of the Stripe events the webhook understands

parse_event() turns a verified envelope into exactly one of the variants in
BillingEvent. Anything we do not handle becomes UnknownEvent.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.features.billing.domain import StripeEventType


def from_unix(ts: Optional[int]) -> Optional[datetime]:
    """Stripe timestamps are integer seconds since the epoch"""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class EventEnvelope(BaseModel):
    """Fields shared by every Stripe event"""
    event_id: str
    event_type: str
    created: Optional[datetime] = None
    livemode: bool = False
    raw_object: Dict[str, Any] = Field(default_factory=dict, repr=False)


class CheckoutSessionCompleted(EventEnvelope):
    kind: Literal["checkout_session_completed"] = "checkout_session_completed"
    session_id: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)


class InvoicePaid(EventEnvelope):
    kind: Literal["invoice_paid"] = "invoice_paid"
    invoice_id: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    amount_paid: Optional[int] = None
    currency: Optional[str] = None


class SubscriptionChange(EventEnvelope):
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None
    status: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


class SubscriptionUpdated(SubscriptionChange):
    kind: Literal["subscription_updated"] = "subscription_updated"


class SubscriptionDeleted(SubscriptionChange):
    kind: Literal["subscription_deleted"] = "subscription_deleted"


class UnknownEvent(EventEnvelope):
    kind: Literal["unknown"] = "unknown"


BillingEvent = Union[
    CheckoutSessionCompleted,
    InvoicePaid,
    SubscriptionUpdated,
    SubscriptionDeleted,
    UnknownEvent,
]


def id_of(value: Any) -> Optional[str]:
    """Stripe fields may be an ID string or an expanded object"""
    if isinstance(value, dict):
        return value.get("id")
    return value


def invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    """
    Subscription ID of an invoice.

    Newer API versions nest it under parent.subscription_details; older ones
    keep it at the top level.
    """
    parent = invoice.get("parent") or {}
    subscription_details = parent.get("subscription_details") or {}
    subscription_id = id_of(subscription_details.get("subscription"))
    if not subscription_id:
        subscription_id = id_of(invoice.get("subscription"))
    return subscription_id


def invoice_line_period(invoice: Dict[str, Any]) -> tuple[Optional[int], Optional[int]]:
    """Billing period of the first invoice line (unix seconds)"""
    lines = (invoice.get("lines") or {}).get("data") or []
    if not lines:
        return None, None
    period = lines[0].get("period") or {}
    return period.get("start"), period.get("end")


def subscription_period(subscription: Dict[str, Any]) -> tuple[Optional[int], Optional[int]]:
    """
    Current period of a subscription (unix seconds).

    Recent API versions moved the period onto the subscription items.
    """
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")
    return start, end


def _subscription_change_fields(subscription: Dict[str, Any]) -> Dict[str, Any]:
    start, end = subscription_period(subscription)
    return {
        "subscription_id": subscription.get("id"),
        "customer_id": id_of(subscription.get("customer")),
        "status": subscription.get("status"),
        "current_period_start": from_unix(start),
        "current_period_end": from_unix(end),
        "cancel_at_period_end": bool(subscription.get("cancel_at_period_end", False)),
    }


def parse_event(envelope: Dict[str, Any]) -> BillingEvent:
    """Map a verified Stripe event envelope to its typed variant"""
    event_type = envelope.get("type", "")
    obj = (envelope.get("data") or {}).get("object") or {}
    common = {
        "event_id": envelope.get("id", ""),
        "event_type": event_type,
        "created": from_unix(envelope.get("created")),
        "livemode": bool(envelope.get("livemode", False)),
        "raw_object": obj,
    }

    if event_type == StripeEventType.CHECKOUT_SESSION_COMPLETED.value:
        details = obj.get("customer_details") or {}
        address = details.get("address") or {}
        return CheckoutSessionCompleted(
            **common,
            session_id=obj.get("id"),
            customer_id=id_of(obj.get("customer")),
            subscription_id=id_of(obj.get("subscription")),
            email=details.get("email") or obj.get("customer_email"),
            name=details.get("name"),
            phone=details.get("phone"),
            country=address.get("country"),
            amount_total=obj.get("amount_total"),
            currency=obj.get("currency"),
            metadata=obj.get("metadata") or {},
        )

    if event_type == StripeEventType.INVOICE_PAID.value:
        start, end = invoice_line_period(obj)
        return InvoicePaid(
            **common,
            invoice_id=obj.get("id"),
            customer_id=id_of(obj.get("customer")),
            subscription_id=invoice_subscription_id(obj),
            period_start=from_unix(start),
            period_end=from_unix(end),
            amount_paid=obj.get("amount_paid"),
            currency=obj.get("currency"),
        )

    if event_type == StripeEventType.SUBSCRIPTION_UPDATED.value:
        return SubscriptionUpdated(**common, **_subscription_change_fields(obj))

    if event_type == StripeEventType.SUBSCRIPTION_DELETED.value:
        return SubscriptionDeleted(**common, **_subscription_change_fields(obj))

    return UnknownEvent(**common)
