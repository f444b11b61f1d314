"""Payment service - Starting direct payments for consumer bookings"""

import logging

from sqlalchemy.orm import Session

from ...auth import Actor
from ...config import DEPOSIT_PERCENT, FRONTEND_URL
from ...database import unit_of_work
from ...exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ...models import Booking, BookingStatus, PaymentStatus, UserRole
from ..bookings.repository import BookingRepository
from ..pricing.calculator import deposit_amount
from . import stripe_service as stripe_module
from .repository import PaymentRepository

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class PaymentService:
    """Service layer for payment initiation"""

    def __init__(self, db: Session, processor=None):
        self.db = db
        self.repo = PaymentRepository()
        self.booking_repo = BookingRepository()
        self.processor = processor or stripe_module.stripe_service

    def _payable_booking(self, actor: Actor, booking_id: int) -> Booking:
        booking = self.booking_repo.get_booking(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.customer_id != actor.id and actor.role != UserRole.ADMIN:
            raise AuthorizationError("You do not have permission to pay for this booking")
        if booking.is_corporate:
            raise ValidationError("Corporate bookings require invoicing, not direct payment")
        if booking.status not in PAYABLE_STATUSES:
            raise ConflictError("Only pending or confirmed bookings can be paid")
        return booking

    def payment_amount(self, booking: Booking, deposit_only: bool) -> float:
        """Outstanding balance, or the deposit share of the price capped at that balance"""
        outstanding = round(booking.final_price - self.repo.completed_total(self.db, booking.id), 2)
        if outstanding <= 0:
            raise ConflictError("Booking is already paid in full")
        if deposit_only:
            return min(deposit_amount(booking.final_price, DEPOSIT_PERCENT), outstanding)
        return outstanding

    def _metadata(self, actor: Actor, booking: Booking, deposit_only: bool) -> dict:
        return {
            "bookingId": str(booking.id),
            "bookingNumber": booking.booking_number,
            "userId": str(actor.id),
            "depositOnly": "true" if deposit_only else "false",
        }

    def _record_pending(self, actor: Actor, booking: Booking, amount: float, processor_id: str):
        with unit_of_work(self.db):
            self.repo.add_payment(
                self.db,
                booking_id=booking.id,
                amount=amount,
                status=PaymentStatus.PENDING,
                stripe_payment_id=processor_id,
                processed_by_id=actor.id,
            )

    def create_payment_intent(self, actor: Actor, booking_id: int, deposit_only: bool = False) -> dict:
        booking = self._payable_booking(actor, booking_id)
        amount = self.payment_amount(booking, deposit_only)

        intent = self.processor.create_payment_intent(
            amount=amount,
            metadata=self._metadata(actor, booking, deposit_only),
            description=f"{booking.product.name} - Booking #{booking.booking_number}",
            receipt_email=booking.customer.email if booking.customer else None,
        )
        self._record_pending(actor, booking, amount, intent["id"])

        logger.info(
            f"💵 {'Deposit' if deposit_only else 'Payment'} of ${amount:.2f} started "
            f"for booking {booking_id}"
        )
        return {"clientSecret": intent["client_secret"], "paymentIntentId": intent["id"], "amount": amount}

    def create_checkout_session(self, actor: Actor, booking_id: int, deposit_only: bool = False) -> dict:
        booking = self._payable_booking(actor, booking_id)
        amount = self.payment_amount(booking, deposit_only)

        session = self.processor.create_checkout_session(
            amount=amount,
            product_name=f"{booking.product.name} - Booking #{booking.booking_number}",
            success_url=f"{FRONTEND_URL}/bookings/{booking.id}?payment=success",
            cancel_url=f"{FRONTEND_URL}/bookings/{booking.id}?payment=cancelled",
            metadata=self._metadata(actor, booking, deposit_only),
            customer_email=booking.customer.email if booking.customer else None,
        )
        # Stored under the session id until checkout.session.completed swaps in the intent id
        self._record_pending(actor, booking, amount, session["id"])

        logger.info(f"🛒 Checkout of ${amount:.2f} started for booking {booking_id}")
        return {"sessionId": session["id"], "url": session["url"], "amount": amount}
