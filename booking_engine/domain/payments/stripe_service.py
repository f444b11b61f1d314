"""Stripe service - Integration with the Stripe API"""

import logging
from typing import Optional

import stripe

from ...config import STRIPE_API_KEY, STRIPE_CURRENCY
from ...exceptions import PaymentProcessorError

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Dollars to cents, as Stripe expects"""
    return int(round(amount * 100))


class StripeService:
    """Service for Stripe API operations"""

    def __init__(self):
        self.api_key = STRIPE_API_KEY
        self.currency = STRIPE_CURRENCY

        if not self.api_key:
            logger.warning("STRIPE_API_KEY not set; payment endpoints will fail until configured")
        else:
            stripe.api_key = self.api_key
            logger.info(f"Stripe client initialized (currency={self.currency})")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _require_client(self):
        if not self.is_available():
            raise PaymentProcessorError("Payment processing is not configured")

    def create_payment_intent(
        self,
        amount: float,
        metadata: dict,
        description: str,
        receipt_email: Optional[str] = None,
    ) -> dict:
        """Create a payment intent; returns its id and client secret"""
        self._require_client()

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=self.currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                receipt_email=receipt_email or None,
                description=description,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create payment intent for {metadata.get('bookingNumber')}: {e}")
            raise PaymentProcessorError("Failed to create payment intent") from e

        logger.info(f"💵 Payment intent {intent.id} created for ${amount:.2f}")
        return {"id": intent.id, "client_secret": intent.client_secret}

    def create_checkout_session(
        self,
        amount: float,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: dict,
        customer_email: Optional[str] = None,
    ) -> dict:
        """Create a hosted checkout session; returns its id and redirect url"""
        self._require_client()

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {"name": product_name[:100]},
                            "unit_amount": to_minor_units(amount),
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=customer_email or None,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session for {metadata.get('bookingNumber')}: {e}")
            raise PaymentProcessorError("Failed to create checkout session") from e

        logger.info(f"🛒 Checkout session {session.id} created for ${amount:.2f}")
        return {"id": session.id, "url": session.url}


# Singleton instance
stripe_service = StripeService()
