"""
Reservation lifecycle - the booking status state machine.

Every legal transition is declared once in TRANSITIONS together with the
effects that must run with it. ``ReservationLifecycle.apply`` performs the
status change as a compare-and-set on the status the caller observed, runs the
effects, and appends exactly one timeline entry. It never commits: callers wrap
it in ``unit_of_work`` so the status change, credit deduction and timeline entry
land together or not at all. Customer notices are returned, not sent, so they
can be dispatched after the commit.

    DRAFT       -> CONFIRMED (confirm, approve_quote), CANCELLED (cancel)
    PENDING     -> CONFIRMED (approve, approve_quote, payment_confirm), CANCELLED (reject)
    CONFIRMED   -> COMPLETED (complete), NO_SHOW (no_show), CANCELLED (cancel),
                   INVOICED (invoice)
    IN_PROGRESS -> COMPLETED (complete)
    INVOICED    -> COMPLETED (complete)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...exceptions import ConflictError, ValidationError
from ...models import Booking, BookingStatus, UserRole
from ...services.notification_service import Notice
from ..packages.ledger import CreditLedger
from ..pricing.calculator import calculate_vat
from .numbering import generate_invoice_number
from .repository import BookingRepository

logger = logging.getLogger(__name__)


class StaleTransition(ConflictError):
    """The booking left the expected status before the update landed"""


@dataclass
class TransitionContext:
    db: Session
    booking: Booking
    actor_id: Optional[int]
    now: datetime
    params: dict
    notices: list = field(default_factory=list)


# ============================================================================
# EFFECTS
# ============================================================================


def deduct_credit(ctx: TransitionContext) -> None:
    if ctx.booking.package_id:
        CreditLedger(ctx.db).deduct(ctx.booking.package_id)


def stamp_completed_at(ctx: TransitionContext) -> None:
    ctx.booking.completed_at = ctx.now


def issue_invoice(ctx: TransitionContext) -> None:
    booking = ctx.booking
    booking.invoice_number = generate_invoice_number(ctx.now)
    booking.invoice_sent_at = ctx.now
    booking.vat_amount = calculate_vat(booking.final_price, booking.vat_rate)
    ctx.params["invoice_number"] = booking.invoice_number


def notify_customer(ctx: TransitionContext) -> None:
    transition = TRANSITIONS[ctx.params["action"]]
    if not transition.notice:
        return
    subject, template = transition.notice
    booking = ctx.booking
    ctx.notices.append(
        Notice(
            user_id=booking.customer_id,
            subject=subject,
            message=template.format(**_format_args(ctx)),
            metadata={
                "bookingId": booking.id,
                "bookingNumber": booking.booking_number,
                "type": transition.notice_type,
            },
        )
    )


def _format_args(ctx: TransitionContext) -> dict:
    return {
        "number": ctx.booking.booking_number,
        "date": ctx.booking.scheduled_at.strftime("%Y-%m-%d") if ctx.booking.scheduled_at else "",
        **ctx.params,
    }


@dataclass(frozen=True)
class Transition:
    action: str
    sources: tuple
    target: str
    timeline_action: str
    details: str
    required_role: Optional[str]  # None = system-initiated
    effects: tuple = ()
    notice: Optional[tuple] = None
    notice_type: Optional[str] = None
    conflict_message: Optional[str] = None
    corporate_message: Optional[str] = None  # set = corporate bookings only


TRANSITIONS: dict = {
    t.action: t
    for t in (
        Transition(
            action="confirm",
            sources=(BookingStatus.DRAFT,),
            target=BookingStatus.CONFIRMED,
            timeline_action="CONFIRMED",
            details="Draft booking confirmed by staff",
            required_role=UserRole.STAFF,
            effects=(deduct_credit, notify_customer),
            notice=("Booking Confirmed", "Your booking {number} has been confirmed. See you on {date}!"),
            notice_type="booking_confirmed",
            conflict_message="Only draft bookings can be confirmed",
        ),
        Transition(
            action="approve",
            sources=(BookingStatus.PENDING,),
            target=BookingStatus.CONFIRMED,
            timeline_action="APPROVED",
            details="Booking approved by admin",
            required_role=UserRole.ADMIN,
            effects=(deduct_credit, notify_customer),
            notice=("Booking Confirmed", "Your booking {number} has been confirmed. See you on {date}!"),
            notice_type="booking_confirmed",
            conflict_message="Only pending bookings can be approved",
        ),
        Transition(
            action="approve_quote",
            sources=(BookingStatus.DRAFT, BookingStatus.PENDING),
            target=BookingStatus.CONFIRMED,
            timeline_action="QUOTE_APPROVED",
            details="Quote approved by admin{terms_clause}",
            required_role=UserRole.ADMIN,
            effects=(deduct_credit, notify_customer),
            notice=(
                "Quote Approved",
                "Your quote request for booking {number} has been approved.{terms_notice}",
            ),
            notice_type="quote_approved",
            conflict_message="Only draft or pending quote requests can be approved",
            corporate_message="This booking does not have a quote request",
        ),
        Transition(
            action="payment_confirm",
            sources=(BookingStatus.PENDING,),
            target=BookingStatus.CONFIRMED,
            timeline_action="PAYMENT_COMPLETED",
            details="Payment of ${amount:.2f} completed. Booking confirmed.",
            required_role=None,
            effects=(deduct_credit, notify_customer),
            notice=(
                "Booking Confirmed",
                "Your payment of ${amount:.2f} was successful. Booking #{number} is now confirmed!",
            ),
            notice_type="booking_confirmed",
        ),
        Transition(
            action="reject",
            sources=(BookingStatus.PENDING,),
            target=BookingStatus.CANCELLED,
            timeline_action="REJECTED",
            details="Booking rejected by admin",
            required_role=UserRole.ADMIN,
            effects=(notify_customer,),
            notice=(
                "Booking Cancelled",
                "Unfortunately, your booking {number} could not be confirmed. "
                "Please contact us for more information or to reschedule.",
            ),
            notice_type="booking_rejected",
            conflict_message="Only pending bookings can be rejected",
        ),
        Transition(
            action="cancel",
            sources=(BookingStatus.DRAFT, BookingStatus.CONFIRMED),
            target=BookingStatus.CANCELLED,
            timeline_action="CANCELLED",
            details="Booking cancelled by staff",
            required_role=UserRole.STAFF,
            effects=(notify_customer,),
            notice=("Booking Cancelled", "Your booking {number} has been cancelled."),
            notice_type="booking_cancelled",
            conflict_message="Only draft or confirmed bookings can be cancelled",
        ),
        Transition(
            action="complete",
            sources=(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.INVOICED),
            target=BookingStatus.COMPLETED,
            timeline_action="COMPLETED",
            details="Booking marked as completed",
            required_role=UserRole.STAFF,
            effects=(stamp_completed_at, notify_customer),
            notice=(
                "Booking Completed",
                "Your booking #{number} has been marked as completed. "
                "Thank you for choosing our services!",
            ),
            notice_type="booking_completed",
            conflict_message="Only confirmed, in-progress or invoiced bookings can be completed",
        ),
        Transition(
            action="no_show",
            sources=(BookingStatus.CONFIRMED,),
            target=BookingStatus.NO_SHOW,
            timeline_action="NO_SHOW",
            details="Customer did not show up",
            required_role=UserRole.STAFF,
            effects=(notify_customer,),
            notice=(
                "Booking No-Show",
                "Your booking #{number} has been marked as a no-show. "
                "Please contact us if you have any questions.",
            ),
            notice_type="booking_no_show",
            conflict_message="Only confirmed bookings can be marked as no-show",
        ),
        Transition(
            action="invoice",
            sources=(BookingStatus.CONFIRMED,),
            target=BookingStatus.INVOICED,
            timeline_action="INVOICE_CREATED",
            details="Invoice {invoice_number} created",
            required_role=UserRole.STAFF,
            effects=(issue_invoice,),
            conflict_message="Only confirmed bookings can be invoiced",
            corporate_message="Only corporate bookings can be invoiced",
        ),
    )
}

STAFF_ACTIONS = ("approve", "reject", "confirm", "complete", "no_show", "cancel", "invoice")


class ReservationLifecycle:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.repo = BookingRepository()
        self.clock = clock

    def can_apply(self, booking: Booking, action: str) -> bool:
        transition = TRANSITIONS.get(action)
        return bool(transition) and booking.status in transition.sources

    def apply(
        self,
        booking: Booking,
        action: str,
        actor_id: Optional[int] = None,
        updates: Optional[dict] = None,
        **params,
    ) -> list:
        """
        Move ``booking`` along ``action``; returns the notices to send after commit.

        Raises ConflictError when the booking is not in a source status and
        StaleTransition when another writer changed the status first.
        """
        transition = TRANSITIONS.get(action)
        if not transition:
            raise ValidationError(f"Unknown booking action '{action}'")

        expected = booking.status
        if expected not in transition.sources:
            raise ConflictError(
                transition.conflict_message
                or f"Cannot {action.replace('_', ' ')} a booking in status {expected}"
            )
        if transition.corporate_message and not booking.is_corporate:
            raise ConflictError(transition.corporate_message)

        swapped = self.repo.compare_and_set_status(
            self.db, booking.id, expected, transition.target, updates or {}
        )
        if swapped == 0:
            logger.warning(
                f"⚠️ Booking {booking.id} left {expected} before '{action}' could apply"
            )
            raise StaleTransition(f"Booking {booking.booking_number} was updated by someone else")
        self.db.refresh(booking)

        ctx = TransitionContext(
            db=self.db,
            booking=booking,
            actor_id=actor_id,
            now=self.clock(),
            params={"action": action, **params},
        )
        for effect in transition.effects:
            effect(ctx)

        self.repo.add_timeline(
            self.db,
            booking_id=booking.id,
            user_id=actor_id,
            action=transition.timeline_action,
            details=transition.details.format(**_format_args(ctx)),
        )
        self.db.flush()

        logger.info(
            f"🔄 Booking {booking.booking_number} {expected} → {transition.target} "
            f"via '{action}' (actor={actor_id or 'system'})"
        )
        return ctx.notices
