"""
Settlement reconciler - applies payment processor events to payments and bookings.

Events can arrive twice and in any order. Every handler locates the payment by
its processor reference, changes its status with a compare-and-set, and
recomputes the amount paid from all COMPLETED payments before deciding whether
the booking is settled. A replayed event finds nothing left to change and
becomes a logged no-op.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...database import unit_of_work
from ...exceptions import ConflictError
from ...models import Booking, BookingStatus, Payment, PaymentStatus
from ...services.notification_service import NotificationService
from ..bookings.lifecycle import ReservationLifecycle, StaleTransition
from ..bookings.repository import BookingRepository
from ..packages.ledger import CreditLedger
from .repository import PaymentRepository

logger = logging.getLogger(__name__)


class SettlementReconciler:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock
        self.repo = PaymentRepository()
        self.booking_repo = BookingRepository()
        self.lifecycle = ReservationLifecycle(db, clock)
        self.ledger = CreditLedger(db)
        self.notifier = NotificationService(db)
        self.handlers = {
            "checkout.session.completed": self.handle_checkout_completed,
            "payment_intent.succeeded": self.handle_payment_succeeded,
            "charge.refunded": self.handle_charge_refunded,
        }

    def handle_event(self, event: dict) -> dict:
        """Dispatch a verified processor event; unknown types are ignored"""
        event_type = event.get("type")
        handler = self.handlers.get(event_type)
        if not handler:
            logger.info(f"ℹ️ Unhandled payment event type: {event_type}")
            return {"outcome": "ignored", "type": event_type}

        logger.info(f"📨 Processing {event_type} ({event.get('id', 'no id')})")
        return handler(event["data"]["object"])

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle_checkout_completed(self, session: dict) -> dict:
        return self._settle(session.get("id"), settled_id=session.get("payment_intent"))

    def handle_payment_succeeded(self, intent: dict) -> dict:
        return self._settle(intent.get("id"))

    def handle_charge_refunded(self, charge: dict) -> dict:
        payment = self.repo.get_by_processor_id(self.db, charge.get("payment_intent"))
        if not payment:
            logger.warning(f"⚠️ Refund for unknown payment intent {charge.get('payment_intent')}")
            return {"outcome": "not_found"}
        if payment.status == PaymentStatus.REFUNDED:
            logger.info(f"⏭️ Payment {payment.id} already refunded, skipping")
            return {"outcome": "duplicate", "paymentId": payment.id}

        refunds = (charge.get("refunds") or {}).get("data") or []
        refund_id = refunds[0].get("id") if refunds else None

        with unit_of_work(self.db):
            if self.repo.mark_refunded(self.db, payment.id, self.clock(), refund_id) == 0:
                logger.info(f"⏭️ Payment {payment.id} refunded by a concurrent delivery")
                return {"outcome": "duplicate", "paymentId": payment.id}
            self.booking_repo.add_timeline(
                self.db,
                booking_id=payment.booking_id,
                action="PAYMENT_REFUNDED",
                details=f"Payment of ${payment.amount:.2f} refunded",
            )

        # Booking status is left for staff to decide
        logger.info(f"↩️ Payment {payment.id} refunded (refund={refund_id})")
        return {"outcome": "refunded", "paymentId": payment.id}

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _settle(self, processor_id: str, settled_id: Optional[str] = None) -> dict:
        payment = self.repo.get_by_processor_id(self.db, processor_id)
        if not payment:
            logger.warning(f"⚠️ No payment recorded for processor reference {processor_id}")
            return {"outcome": "not_found"}
        if payment.status != PaymentStatus.PENDING:
            logger.info(f"⏭️ Payment {payment.id} already {payment.status}, skipping")
            return {"outcome": "duplicate", "paymentId": payment.id}

        notices = []
        with unit_of_work(self.db):
            if self.repo.mark_completed(self.db, payment.id, self.clock(), settled_id) == 0:
                logger.info(f"⏭️ Payment {payment.id} settled by a concurrent delivery")
                return {"outcome": "duplicate", "paymentId": payment.id}

            booking = self.booking_repo.get_booking(self.db, payment.booking_id)
            paid = self.repo.completed_total(self.db, booking.id)

            if paid < booking.final_price:
                remaining = booking.final_price - paid
                self.booking_repo.add_timeline(
                    self.db,
                    booking_id=booking.id,
                    action="PAYMENT_RECEIVED",
                    details=(
                        f"Deposit payment of ${payment.amount:.2f} received. "
                        f"Remaining: ${remaining:.2f}"
                    ),
                )
                outcome = "partial"
            else:
                outcome, notices = self._confirm_if_pending(booking, payment)
                if paid > booking.final_price:
                    self._record_overpayment(booking, paid)

        self.notifier.dispatch(notices)
        logger.info(
            f"💰 Payment {payment.id} completed for booking {payment.booking_id} "
            f"(paid ${paid:.2f} of ${booking.final_price:.2f}, outcome={outcome})"
        )
        return {"outcome": outcome, "paymentId": payment.id, "amountPaid": paid}

    def _confirm_if_pending(self, booking: Booking, payment: Payment) -> tuple:
        if booking.status != BookingStatus.PENDING:
            logger.info(f"ℹ️ Booking {booking.booking_number} fully paid while {booking.status}")
            return "paid", []

        if booking.package_id:
            try:
                self.ledger.check_available(booking.package_id)
            except ConflictError as e:
                # Payment stays recorded; staff decide what happens to the booking
                logger.warning(
                    f"⚠️ Booking {booking.booking_number} paid but not confirmed: {e.detail}"
                )
                self.booking_repo.add_timeline(
                    self.db,
                    booking_id=booking.id,
                    action="CONFIRMATION_BLOCKED",
                    details=(
                        f"Payment of ${payment.amount:.2f} completed but the booking was not "
                        f"confirmed: {e.detail}"
                    ),
                )
                return "blocked", []

        try:
            notices = self.lifecycle.apply(booking, "payment_confirm", amount=payment.amount)
        except StaleTransition:
            logger.info(f"ℹ️ Booking {booking.booking_number} left PENDING before payment confirmation")
            return "paid", []
        return "confirmed", notices

    def _record_overpayment(self, booking: Booking, paid: float) -> None:
        excess = paid - booking.final_price
        logger.warning(
            f"⚠️ Booking {booking.booking_number} overpaid by ${excess:.2f} "
            f"(paid ${paid:.2f}, price ${booking.final_price:.2f})"
        )
        self.booking_repo.add_timeline(
            self.db,
            booking_id=booking.id,
            action="OVERPAYMENT",
            details=f"Payments exceed the final price by ${excess:.2f}",
        )
