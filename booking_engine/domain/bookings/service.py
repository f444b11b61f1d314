"""Booking service - Business logic for booking creation and staff workflow"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import CORPORATE_ROLES, Actor, require_role
from ...config import DEFAULT_BOOKING_TIME
from ...database import unit_of_work
from ...exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ...models import Booking, BookingGroup, BookingStatus, CorporateOrg, CorporatePackage, UserRole
from ...services.notification_service import Notice, NotificationService
from ..packages.ledger import CreditLedger
from ..packages.repository import PackageRepository
from ..pricing.calculator import AddOnLine, PriceBreakdown, calculate_price
from .lifecycle import STAFF_ACTIONS, TRANSITIONS, ReservationLifecycle
from .occurrences import (
    OccurrenceGenerator,
    ReservationTemplate,
    bulk_schedule,
    multi_day_schedule,
)
from .repository import BookingRepository
from .schemas import BookingCreate, BookingDetails, DraftSave

logger = logging.getLogger(__name__)

DETAIL_COLUMNS = {
    "notes": "notes",
    "contactName": "contact_name",
    "contactEmail": "contact_email",
    "contactPhone": "contact_phone",
    "eventAddress": "event_address",
    "eventType": "event_type",
    "eventNotes": "event_notes",
    "hasPowerSupply": "has_power_supply",
    "hasParking": "has_parking",
    "attendeeCount": "attendee_count",
    "referralSource": "referral_source",
    "poNumber": "po_number",
    "costCentre": "cost_centre",
    "vatRate": "vat_rate",
}

# Copied verbatim when a booking is cloned
CLONED_COLUMNS = (
    "product_id",
    "org_id",
    "package_id",
    "final_price",
    "is_corporate",
    "vat_rate",
    *(column for column in DETAIL_COLUMNS.values() if column != "vat_rate"),
)


@dataclass
class PricedRequest:
    """Everything resolved from a request before any row is written"""

    org: Optional[CorporateOrg]
    package: Optional[CorporatePackage]
    is_corporate: bool
    add_ons: list  # (add_on_id, quantity, unit_price)
    price: PriceBreakdown


@dataclass
class CreationResult:
    bookings: list
    group: Optional[BookingGroup] = None

    @property
    def booking(self) -> Booking:
        return self.bookings[0]


def detail_columns(data: BookingDetails) -> dict:
    return {column: getattr(data, name) for name, column in DETAIL_COLUMNS.items()}


class BookingService:
    """Service layer for booking operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()
        self.package_repo = PackageRepository()
        self.ledger = CreditLedger(db)
        self.lifecycle = ReservationLifecycle(db)
        self.generator = OccurrenceGenerator(db)
        self.notifier = NotificationService(db)

    # ------------------------------------------------------------------
    # Lookups and access checks
    # ------------------------------------------------------------------

    def _get_or_404(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def _is_org_member(self, actor: Actor, booking: Booking) -> bool:
        if not booking.org_id or actor.role not in CORPORATE_ROLES:
            return False
        return self.repo.get_active_seat(self.db, actor.id, booking.org_id) is not None

    def _can_access(self, actor: Actor, booking: Booking) -> bool:
        return (
            booking.customer_id == actor.id or actor.is_staff or self._is_org_member(actor, booking)
        )

    # ------------------------------------------------------------------
    # Pricing inputs
    # ------------------------------------------------------------------

    def _resolve_org(self, actor: Actor, org_id: Optional[int]) -> Optional[CorporateOrg]:
        if org_id:
            org = self.repo.get_org(self.db, org_id)
            if not org:
                raise NotFoundError("Organization not found")
            if not actor.is_staff and not self.repo.get_active_seat(self.db, actor.id, org_id):
                raise AuthorizationError("You are not a member of this organization")
            return org

        seat = self.repo.get_active_seat(self.db, actor.id)
        return seat.org if seat else None

    def _resolve_package(
        self, org: Optional[CorporateOrg], package_id: Optional[int], check_credits: bool
    ) -> Optional[CorporatePackage]:
        if not package_id:
            return None

        if check_credits:
            package = self.ledger.check_available(package_id)
        else:
            package = self.package_repo.get_package(self.db, package_id)
            if not package:
                raise NotFoundError("Corporate package not found")

        if org is None or package.org_id != org.id:
            raise ValidationError("Package does not belong to your organization")
        return package

    def _resolve_add_ons(self, product_id: int, selections: list) -> list:
        catalog = self.repo.get_active_add_ons(self.db, [s.id for s in selections])
        lines = []
        for selection in selections:
            add_on = catalog.get(selection.id)
            if not add_on:
                raise ValidationError(f"Add-on {selection.id} not found or inactive")
            if add_on.product_id is not None and add_on.product_id != product_id:
                raise ValidationError(f"Add-on '{add_on.name}' is not available for this product")
            lines.append((add_on.id, selection.quantity, add_on.price))
        return lines

    def _price_request(
        self,
        actor: Actor,
        product_id: int,
        org_id: Optional[int],
        package_id: Optional[int],
        selections: list,
        check_credits: bool,
    ) -> PricedRequest:
        product = self.repo.get_active_product(self.db, product_id)
        if not product:
            raise NotFoundError("Product not found or inactive")

        org = self._resolve_org(actor, org_id)
        package = self._resolve_package(org, package_id, check_credits)
        add_ons = self._resolve_add_ons(product.id, selections)

        org_discount = org.discount_percent if org and org.is_active else 0
        price = calculate_price(
            product.price,
            org_discount_percent=org_discount,
            add_ons=[AddOnLine(unit_price, quantity) for _, quantity, unit_price in add_ons],
            package_discount_percent=package.permanent_discount_percent if package else None,
        )
        is_corporate = org is not None or actor.role in CORPORATE_ROLES
        return PricedRequest(org, package, is_corporate, add_ons, price)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(self, actor: Actor, data: BookingCreate) -> CreationResult:
        """
        Create one booking, or the whole set for a bulk, multi-day or recurring
        request. Package credits are checked here but only consumed on confirmation.
        Held slots are stored as drafts yet go through the same checks and admin
        notification as a submitted booking.
        """
        priced = self._price_request(
            actor,
            data.productId,
            data.orgId,
            data.packageId,
            data.addOns,
            check_credits=not data.isDraft,
        )
        quote_requested = priced.is_corporate and data.requestQuote
        status = BookingStatus.DRAFT if data.isDraft or data.holdSlot else BookingStatus.PENDING

        if data.isDraft:
            action, details = "DRAFT_CREATED", "Booking draft created"
        elif quote_requested:
            action = "QUOTE_REQUESTED"
            details = "Quote request submitted - awaiting admin review and approval"
        elif data.holdSlot:
            action = "SLOT_HELD"
            details = "Slot held without payment - awaiting admin confirmation"
        else:
            action = "CREATED"
            details = "Booking request submitted - awaiting admin approval for availability"

        template = ReservationTemplate(
            fields={
                "customer_id": actor.id,
                "product_id": data.productId,
                "org_id": priced.org.id if priced.org else None,
                "package_id": priced.package.id if priced.package else None,
                "final_price": priced.price.final_price,
                "status": status,
                "is_corporate": priced.is_corporate,
                "quote_requested": quote_requested,
                **detail_columns(data),
            },
            add_ons=priced.add_ons,
            user_id=actor.id,
            timeline_action=action,
            timeline_details=details,
        )

        with unit_of_work(self.db):
            result = self._generate(template, data)

        logger.info(
            f"✅ {len(result.bookings)} booking(s) created by user {actor.id} "
            f"starting with {result.booking.booking_number} (${priced.price.final_price:.2f})"
        )

        if not data.isDraft:
            self.notifier.dispatch(self._admin_notices(result, quote_requested))
        return result

    def _generate(self, template: ReservationTemplate, data: BookingCreate) -> CreationResult:
        if data.mode == "bulk":
            bookings, group = self.generator.bulk(template, bulk_schedule(data.bulkLocations))
            return CreationResult(bookings, group)

        if data.mode == "multi_day":
            time_of_day = (
                data.scheduledAt.strftime("%H:%M") if data.scheduledAt else DEFAULT_BOOKING_TIME
            )
            schedule = multi_day_schedule(data.multiDayDates, time_of_day)
            return CreationResult(self.generator.multi_day(template, schedule))

        if data.mode == "recurring":
            return CreationResult(
                self.generator.recurring(
                    template, data.scheduledAt, data.recurringRule, data.recurringEndDate
                )
            )

        scheduled_at = data.scheduledAt or datetime.utcnow()
        return CreationResult([self.generator.single(template, scheduled_at)])

    def _admin_notices(self, result: CreationResult, quote_requested: bool) -> list[Notice]:
        booking = result.booking
        if quote_requested:
            subject = "New Quote Request"
            message = (
                f"New quote request {booking.booking_number} from corporate customer. "
                f"Amount: ${booking.final_price:.2f}"
            )
            notice_type = "quote_request"
        else:
            subject = "New Booking Request"
            message = (
                f"New booking {booking.booking_number} requires approval. "
                f"Amount: ${booking.final_price:.2f}"
            )
            notice_type = "booking_request"
        if len(result.bookings) > 1:
            message += f" ({len(result.bookings)} reservations)"

        return [
            Notice(
                user_id=admin_id,
                subject=subject,
                message=message,
                metadata={
                    "bookingId": booking.id,
                    "bookingNumber": booking.booking_number,
                    "type": notice_type,
                },
            )
            for admin_id in self.notifier.admin_ids()
        ]

    def save_draft(self, actor: Actor, data: DraftSave) -> Booking:
        """Create a draft, or update one the actor owns; credits are not checked"""
        priced = self._price_request(
            actor, data.productId, data.orgId, data.packageId, data.addOns, check_credits=False
        )
        fields = {
            "product_id": data.productId,
            "org_id": priced.org.id if priced.org else None,
            "package_id": priced.package.id if priced.package else None,
            "final_price": priced.price.final_price,
            "is_corporate": priced.is_corporate,
            "scheduled_at": data.scheduledAt or datetime.utcnow(),
            **detail_columns(data),
        }

        if data.id is None:
            template = ReservationTemplate(
                fields={
                    **fields,
                    "customer_id": actor.id,
                    "status": BookingStatus.DRAFT,
                },
                add_ons=priced.add_ons,
                user_id=actor.id,
                timeline_action="DRAFT_CREATED",
                timeline_details="Booking draft created",
            )
            scheduled_at = template.fields.pop("scheduled_at")
            with unit_of_work(self.db):
                booking = self.generator.single(template, scheduled_at)
            logger.info(f"📝 Draft {booking.booking_number} saved by user {actor.id}")
            return booking

        draft = self.repo.get_booking(self.db, data.id)
        if not draft or draft.customer_id != actor.id or draft.status != BookingStatus.DRAFT:
            raise NotFoundError("Draft not found")

        with unit_of_work(self.db):
            updated = self.repo.compare_and_set_status(
                self.db, draft.id, BookingStatus.DRAFT, BookingStatus.DRAFT, fields
            )
            if updated == 0:
                raise ConflictError("Draft was submitted or changed by someone else")
            self.repo.clear_booking_add_ons(self.db, draft.id)
            for add_on_id, quantity, unit_price in priced.add_ons:
                self.repo.add_booking_add_on(self.db, draft.id, add_on_id, quantity, unit_price)
            self.repo.add_timeline(
                self.db,
                booking_id=draft.id,
                user_id=actor.id,
                action="DRAFT_UPDATED",
                details="Booking draft updated",
            )

        logger.info(f"📝 Draft {draft.booking_number} updated by user {actor.id}")
        return draft

    def clone_booking(self, actor: Actor, booking_id: int) -> Booking:
        """Copy a booking into a new draft scheduled tomorrow at the same time"""
        original = self._get_or_404(booking_id)
        if not self._can_access(actor, original):
            raise AuthorizationError("You do not have permission to clone this booking")

        tomorrow = (datetime.utcnow() + timedelta(days=1)).date()
        scheduled_at = datetime.combine(tomorrow, original.scheduled_at.time().replace(second=0))

        template = ReservationTemplate(
            fields={
                **{column: getattr(original, column) for column in CLONED_COLUMNS},
                "customer_id": actor.id,
                "status": BookingStatus.DRAFT,
                "quote_requested": False,
            },
            add_ons=[(a.add_on_id, a.quantity, a.price) for a in original.add_ons],
            user_id=actor.id,
            timeline_action="CLONED",
            timeline_details=f"Booking cloned from {original.booking_number}",
        )

        with unit_of_work(self.db):
            clone = self.generator.single(template, scheduled_at)

        logger.info(f"📋 Booking {original.booking_number} cloned to {clone.booking_number}")
        return clone

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, actor: Actor, booking_id: int) -> Booking:
        booking = self.repo.get_booking_detail(self.db, booking_id)
        if not booking or not self._can_access(actor, booking):
            raise NotFoundError("Booking not found")
        return booking

    def list_bookings(self, actor: Actor, status: Optional[str] = None) -> list[Booking]:
        if status and status not in BookingStatus.ALL:
            raise ValidationError(f"Unknown booking status '{status}'")
        customer_id = None if actor.is_staff else actor.id
        return self.repo.list_bookings(self.db, customer_id=customer_id, status=status)

    def list_quote_requests(self, actor: Actor) -> list[Booking]:
        require_role(actor, UserRole.ADMIN)
        return self.repo.list_quote_requests(self.db)

    def dashboard_counts(self, actor: Actor) -> dict:
        require_role(actor, UserRole.STAFF)
        return self.repo.count_pending(self.db)

    # ------------------------------------------------------------------
    # Staff workflow
    # ------------------------------------------------------------------

    def perform_action(
        self, actor: Actor, booking_id: int, action: str, net_terms: Optional[int] = None
    ) -> Booking:
        """Apply a staff action; approve or confirm on a quote request goes to quote approval"""
        if action not in STAFF_ACTIONS:
            raise ValidationError(
                f"Unknown action '{action}'. Expected one of: {', '.join(STAFF_ACTIONS)}"
            )

        booking = self._get_or_404(booking_id)
        if action in ("approve", "confirm") and booking.quote_requested:
            return self.approve_quote(actor, booking_id, net_terms)

        require_role(actor, TRANSITIONS[action].required_role)

        with unit_of_work(self.db):
            notices = self.lifecycle.apply(booking, action, actor_id=actor.id)

        self.notifier.dispatch(notices)
        return booking

    def approve_quote(self, actor: Actor, booking_id: int, net_terms: Optional[int] = None) -> Booking:
        """
        Confirm a corporate quote request in one unit of work: status, quote
        stamps, net terms, credit deduction and timeline land together.
        """
        require_role(actor, UserRole.ADMIN)

        if net_terms is not None and net_terms < 0:
            raise ValidationError("Net terms must be a non-negative number of days")

        booking = self._get_or_404(booking_id)
        if not booking.quote_requested:
            raise ConflictError("This booking does not have a quote request")

        updates = {
            "quote_requested": False,
            "quote_approved_at": datetime.utcnow(),
            "quote_approved_by_id": actor.id,
        }
        if net_terms is not None:
            updates["net_terms"] = net_terms

        with unit_of_work(self.db):
            notices = self.lifecycle.apply(
                booking,
                "approve_quote",
                actor_id=actor.id,
                updates=updates,
                terms_clause=f" with Net {net_terms} payment terms" if net_terms is not None else "",
                terms_notice=f" Payment terms: Net {net_terms} days." if net_terms is not None else "",
            )

        self.notifier.dispatch(notices)
        return booking

    def recalculate_price(self, actor: Actor, booking_id: int) -> Booking:
        """Re-run pricing for a booking that is not yet confirmed"""
        require_role(actor, UserRole.STAFF)

        booking = self._get_or_404(booking_id)
        if booking.status not in (BookingStatus.DRAFT, BookingStatus.PENDING):
            raise ConflictError("Only draft or pending bookings can be repriced")

        org = booking.org
        package = booking.package
        price = calculate_price(
            booking.product.price,
            org_discount_percent=org.discount_percent if org and org.is_active else 0,
            add_ons=[AddOnLine(line.price, line.quantity) for line in booking.add_ons],
            package_discount_percent=package.permanent_discount_percent if package else None,
        )

        previous = booking.final_price
        with unit_of_work(self.db):
            updated = self.repo.compare_and_set_status(
                self.db,
                booking.id,
                booking.status,
                booking.status,
                {"final_price": price.final_price},
            )
            if updated == 0:
                raise ConflictError(f"Booking {booking.booking_number} was updated by someone else")
            self.repo.add_timeline(
                self.db,
                booking_id=booking.id,
                user_id=actor.id,
                action="PRICE_RECALCULATED",
                details=f"Price recalculated from ${previous:.2f} to ${price.final_price:.2f}",
            )

        self.db.refresh(booking)
        logger.info(
            f"💲 Booking {booking.booking_number} repriced ${previous:.2f} → ${price.final_price:.2f}"
        )
        return booking
