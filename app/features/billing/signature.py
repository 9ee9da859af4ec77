"""Stripe webhook signature verification

Stripe signs every delivery with a `Stripe-Signature` header of the form
`t=<unix_ts>,v1=<hex_hmac>`, where the HMAC-SHA256 is computed over
`"{t}.{raw_body}"` with the endpoint's signing secret. The SDK does the
constant-time comparison and the timestamp tolerance check.
"""
import json
import logging
from typing import Optional, Union

import stripe

from app.features.billing.errors import (
    InvalidPayloadError,
    InvalidSignatureError,
    WebhookNotConfiguredError,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


def _as_text(payload: Union[bytes, str]) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8")
    return payload


def verify_signature(
    payload: Union[bytes, str],
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """
    Check that a raw webhook body was signed with the shared secret.

    Returns False for an absent, malformed, stale or mismatched signature.

    Raises:
        WebhookNotConfiguredError: If no secret is configured
    """
    if not secret:
        raise WebhookNotConfiguredError("Webhook secret not configured")

    if not signature_header:
        logger.warning("Webhook signature check failed: no signature header")
        return False

    try:
        body = _as_text(payload)
    except UnicodeDecodeError:
        logger.warning("Webhook signature check failed: body is not UTF-8")
        return False

    try:
        return bool(stripe.WebhookSignature.verify_header(body, signature_header, secret, tolerance))
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Webhook signature check failed: {e}")
        return False


def construct_event(
    payload: Union[bytes, str],
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> dict:
    """
    Verify the signature, then parse the body into a Stripe event envelope.

    Raises:
        WebhookNotConfiguredError: If no secret is configured
        InvalidSignatureError: If the signature does not verify
        InvalidPayloadError: If the verified body is not a JSON event
    """
    if not verify_signature(payload, signature_header, secret, tolerance):
        raise InvalidSignatureError("Webhook signature verification failed")

    try:
        event = json.loads(_as_text(payload))
    except ValueError as e:
        raise InvalidPayloadError(f"Invalid payload: {e}") from e

    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise InvalidPayloadError("Payload is not a Stripe event envelope")

    return event
