import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class UserRole:
    CUSTOMER = "CUSTOMER"
    CORPORATE_MEMBER = "CORPORATE_MEMBER"
    CORPORATE_ADMIN = "CORPORATE_ADMIN"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class BookingStatus:
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    INVOICED = "INVOICED"

    ALL = (DRAFT, PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED, NO_SHOW, INVOICED)
    TERMINAL = (COMPLETED, CANCELLED, NO_SHOW)


class PaymentStatus:
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"


class RecurringRule:
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"

    ALL = (DAILY, WEEKLY, MONTHLY)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(50), default=UserRole.CUSTOMER, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="customer", foreign_keys="Booking.customer_id")
    seats = relationship("OrgSeat", back_populates="user")


class CorporateOrg(Base):
    __tablename__ = "corporate_orgs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    discount_percent = Column(Float, default=0, nullable=False)  # Negotiated rate on base prices
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    seats = relationship("OrgSeat", back_populates="org")
    packages = relationship("CorporatePackage", back_populates="org")


class OrgSeat(Base):
    __tablename__ = "org_seats"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("corporate_orgs.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    org = relationship("CorporateOrg", back_populates="seats")
    user = relationship("User", back_populates="seats")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    add_ons = relationship("AddOn", back_populates="product")


class AddOn(Base):
    __tablename__ = "add_ons"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)  # null = any product
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    product = relationship("Product", back_populates="add_ons")


class CorporatePackage(Base):
    """Prepaid credit pool owned by a corporate organization"""

    __tablename__ = "corporate_packages"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("corporate_orgs.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    total_credits = Column(Integer, nullable=False)
    # Incremented once per booking, at the moment that booking is confirmed
    used_credits = Column(Integer, default=0, nullable=False)
    permanent_discount_percent = Column(Float, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    org = relationship("CorporateOrg", back_populates="packages")
    bookings = relationship("Booking", back_populates="package")

    @property
    def remaining_credits(self) -> int:
        return max(0, (self.total_credits or 0) - (self.used_credits or 0))


class BookingGroup(Base):
    """Label for reservations created together by a bulk booking"""

    __tablename__ = "booking_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="booking_group")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )
    booking_number = Column(String(64), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    org_id = Column(Integer, ForeignKey("corporate_orgs.id"), nullable=True)
    package_id = Column(Integer, ForeignKey("corporate_packages.id"), nullable=True)

    # Status workflow: see domain/bookings/lifecycle.py for the legal transitions
    status = Column(String(20), default=BookingStatus.PENDING, nullable=False, index=True)
    scheduled_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    # Corporate / quote handling
    is_corporate = Column(Boolean, default=False, nullable=False)
    quote_requested = Column(Boolean, default=False, nullable=False)
    quote_approved_at = Column(DateTime, nullable=True)
    quote_approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    net_terms = Column(Integer, nullable=True)  # Days

    # Pricing
    final_price = Column(Float, nullable=False)
    vat_rate = Column(Float, nullable=True)  # Percent
    vat_amount = Column(Float, nullable=True)

    # Invoicing
    invoice_number = Column(String(64), unique=True, nullable=True)
    invoice_sent_at = Column(DateTime, nullable=True)

    # Linkage
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurring_rule = Column(String(20), nullable=True)  # DAILY, WEEKLY, MONTHLY
    recurring_end_date = Column(DateTime, nullable=True)
    parent_booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True, index=True)
    booking_group_id = Column(Integer, ForeignKey("booking_groups.id"), nullable=True, index=True)

    # Event details
    contact_name = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    event_address = Column(String(500), nullable=True)
    event_type = Column(String(100), nullable=True)
    event_notes = Column(Text, nullable=True)
    has_power_supply = Column(Boolean, default=False, nullable=False)
    has_parking = Column(Boolean, default=False, nullable=False)
    attendee_count = Column(Integer, nullable=True)
    referral_source = Column(String(100), nullable=True)
    po_number = Column(String(100), nullable=True)
    cost_centre = Column(String(100), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("User", back_populates="bookings", foreign_keys=[customer_id])
    product = relationship("Product")
    org = relationship("CorporateOrg")
    package = relationship("CorporatePackage", back_populates="bookings")
    booking_group = relationship("BookingGroup", back_populates="bookings")
    parent_booking = relationship("Booking", remote_side=[id], back_populates="child_bookings")
    child_bookings = relationship("Booking", back_populates="parent_booking")
    add_ons = relationship("BookingAddOn", back_populates="booking", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="booking", order_by="Payment.id")
    timeline = relationship(
        "BookingTimeline", back_populates="booking", order_by="BookingTimeline.id"
    )


class BookingAddOn(Base):
    __tablename__ = "booking_add_ons"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    add_on_id = Column(Integer, ForeignKey("add_ons.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    price = Column(Float, nullable=False)  # Unit price captured at booking time

    booking = relationship("Booking", back_populates="add_ons")
    add_on = relationship("AddOn")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    status = Column(String(20), default=PaymentStatus.PENDING, nullable=False)
    # Checkout session id until the session completes, then the payment intent id
    stripe_payment_id = Column(String(255), nullable=True, index=True)
    stripe_refund_id = Column(String(255), nullable=True)
    processed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="payments")


class BookingTimeline(Base):
    """Append-only audit entry; rows are never updated after insert"""

    __tablename__ = "booking_timeline"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # null = system
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="timeline")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), default="IN_APP", nullable=False)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    meta = Column("metadata", JSON, default=dict)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
