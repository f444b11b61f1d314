"""Booking repository - Database operations for bookings"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import (
    AddOn,
    Booking,
    BookingAddOn,
    BookingGroup,
    BookingStatus,
    BookingTimeline,
    CorporateOrg,
    OrgSeat,
    Product,
)


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_booking_detail(db: Session, booking_id: int) -> Optional[Booking]:
        """Booking with timeline, payments and add-ons eagerly loaded"""
        return (
            db.query(Booking)
            .options(
                selectinload(Booking.timeline),
                selectinload(Booking.payments),
                selectinload(Booking.add_ons),
            )
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def list_bookings(
        db: Session, customer_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Booking]:
        query = db.query(Booking)
        if customer_id is not None:
            query = query.filter(Booking.customer_id == customer_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.scheduled_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def list_quote_requests(db: Session) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(
                Booking.is_corporate.is_(True),
                Booking.quote_requested.is_(True),
                Booking.status == BookingStatus.PENDING,
            )
            .order_by(Booking.created_at.asc(), Booking.id.asc())
            .all()
        )

    @staticmethod
    def count_pending(db: Session) -> dict:
        pending_bookings = (
            db.query(func.count(Booking.id))
            .filter(Booking.status == BookingStatus.PENDING, Booking.quote_requested.is_(False))
            .scalar()
        )
        pending_quotes = (
            db.query(func.count(Booking.id))
            .filter(Booking.status == BookingStatus.PENDING, Booking.quote_requested.is_(True))
            .scalar()
        )
        return {"pendingBookings": pending_bookings or 0, "pendingQuotes": pending_quotes or 0}

    @staticmethod
    def add_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(**booking_data)
        db.add(booking)
        db.flush()
        return booking

    @staticmethod
    def add_booking_add_on(db: Session, booking_id: int, add_on_id: int, quantity: int, price: float):
        db.add(BookingAddOn(booking_id=booking_id, add_on_id=add_on_id, quantity=quantity, price=price))

    @staticmethod
    def clear_booking_add_ons(db: Session, booking_id: int) -> None:
        db.query(BookingAddOn).filter(BookingAddOn.booking_id == booking_id).delete(
            synchronize_session=False
        )

    @staticmethod
    def add_group(db: Session, name: str, description: Optional[str] = None) -> BookingGroup:
        group = BookingGroup(name=name, description=description)
        db.add(group)
        db.flush()
        return group

    @staticmethod
    def add_timeline(
        db: Session, booking_id: int, action: str, details: str, user_id: Optional[int] = None
    ) -> BookingTimeline:
        entry = BookingTimeline(booking_id=booking_id, user_id=user_id, action=action, details=details)
        db.add(entry)
        return entry

    @staticmethod
    def compare_and_set_status(
        db: Session, booking_id: int, expected: str, new_status: str, updates: dict
    ) -> int:
        """
        Change status only if it still equals ``expected``.
        Returns rows updated; 0 means another writer got there first.
        """
        values = {Booking.status: new_status}
        values.update({getattr(Booking, key): value for key, value in updates.items()})
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == expected)
            .update(values, synchronize_session=False)
        )

    # Catalog and organization lookups
    @staticmethod
    def get_active_product(db: Session, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id, Product.is_active.is_(True)).first()

    @staticmethod
    def get_active_add_ons(db: Session, add_on_ids: list[int]) -> dict[int, AddOn]:
        if not add_on_ids:
            return {}
        rows = db.query(AddOn).filter(AddOn.id.in_(add_on_ids), AddOn.is_active.is_(True)).all()
        return {row.id: row for row in rows}

    @staticmethod
    def get_org(db: Session, org_id: int) -> Optional[CorporateOrg]:
        return db.query(CorporateOrg).filter(CorporateOrg.id == org_id).first()

    @staticmethod
    def get_active_seat(db: Session, user_id: int, org_id: Optional[int] = None) -> Optional[OrgSeat]:
        query = db.query(OrgSeat).filter(OrgSeat.user_id == user_id, OrgSeat.is_active.is_(True))
        if org_id is not None:
            query = query.filter(OrgSeat.org_id == org_id)
        return query.order_by(OrgSeat.id.asc()).first()
