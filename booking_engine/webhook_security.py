"""
Webhook Security Module

Verifies the Stripe-Signature header before any event reaches the reconciler.
Verification uses the Stripe SDK, which checks the HMAC and rejects events
older than its tolerance window.
"""

import json
import logging

import stripe
from fastapi import HTTPException, Request

from .config import STRIPE_WEBHOOK_SECRET

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


async def verify_stripe_webhook(request: Request) -> dict:
    """
    Verify a Stripe webhook and return the event as a plain dict.

    Raises:
        HTTPException: 400 if the signature is missing or invalid
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature or not STRIPE_WEBHOOK_SECRET:
        logger.warning("❌ Stripe webhook missing signature or webhook secret not configured")
        raise HTTPException(status_code=400, detail="Missing signature or webhook secret")

    try:
        stripe.Webhook.construct_event(
            payload, signature, STRIPE_WEBHOOK_SECRET, tolerance=MAX_WEBHOOK_AGE_SECONDS
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"❌ Stripe webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Webhook signature verification failed") from e

    return json.loads(payload)
