import pytest
from helpers import actor_for, timeline_actions

from booking_engine.domain.bookings.schemas import BookingCreate
from booking_engine.domain.bookings.service import BookingService
from booking_engine.exceptions import (
    AuthorizationError,
    ConflictError,
    PackageExhausted,
    ValidationError,
)
from booking_engine.models import BookingStatus, Notification


@pytest.fixture
def quote(db, admin, corporate_member, product, make_package):
    """A pending corporate quote request backed by a package with credits to spare"""
    user, org = corporate_member
    package = make_package(org, total_credits=2)
    result = BookingService(db).create_booking(
        actor_for(user),
        BookingCreate(
            productId=product.id,
            scheduledAt="2030-06-01T10:00:00",
            packageId=package.id,
            requestQuote=True,
        ),
    )
    return result.booking, package, user


def test_quote_request_is_recorded(db, admin, quote):
    booking, package, _ = quote

    db.refresh(package)
    assert booking.status == BookingStatus.PENDING
    assert booking.quote_requested is True
    assert booking.is_corporate is True
    assert package.used_credits == 0
    assert timeline_actions(db, booking.id) == ["QUOTE_REQUESTED"]

    admin_notices = db.query(Notification).filter(Notification.user_id == admin.id).all()
    assert [n.subject for n in admin_notices] == ["New Quote Request"]


def test_approve_routes_quote_through_quote_approval(db, admin, quote):
    booking, package, user = quote

    BookingService(db).perform_action(actor_for(admin), booking.id, "approve", net_terms=30)

    db.refresh(package)
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.quote_requested is False
    assert booking.quote_approved_at is not None
    assert booking.quote_approved_by_id == admin.id
    assert booking.net_terms == 30
    assert package.used_credits == 1
    assert timeline_actions(db, booking.id) == ["QUOTE_REQUESTED", "QUOTE_APPROVED"]

    customer_notices = db.query(Notification).filter(Notification.user_id == user.id).all()
    assert [n.subject for n in customer_notices] == ["Quote Approved"]
    assert "Net 30" in customer_notices[0].message


def test_quote_approval_without_terms(db, admin, quote):
    booking, _, _ = quote

    BookingService(db).approve_quote(actor_for(admin), booking.id)

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.net_terms is None


def test_failed_quote_approval_changes_nothing(db, admin, quote):
    booking, package, _ = quote
    package.used_credits = package.total_credits
    db.commit()

    with pytest.raises(PackageExhausted):
        BookingService(db).approve_quote(actor_for(admin), booking.id, net_terms=15)

    db.refresh(booking)
    db.refresh(package)
    assert booking.status == BookingStatus.PENDING
    assert booking.quote_requested is True
    assert booking.quote_approved_at is None
    assert booking.net_terms is None
    assert package.used_credits == package.total_credits
    assert timeline_actions(db, booking.id) == ["QUOTE_REQUESTED"]


def test_negative_net_terms_rejected(db, admin, quote):
    booking, _, _ = quote

    with pytest.raises(ValidationError):
        BookingService(db).approve_quote(actor_for(admin), booking.id, net_terms=-5)

    db.refresh(booking)
    assert booking.status == BookingStatus.PENDING


def test_quote_approval_needs_a_quote(db, admin, customer, make_booking):
    booking = make_booking(customer)

    with pytest.raises(ConflictError) as exc:
        BookingService(db).approve_quote(actor_for(admin), booking.id)
    assert exc.value.detail == "This booking does not have a quote request"


def test_quote_approval_is_admin_only(db, staff, quote):
    booking, _, _ = quote

    with pytest.raises(AuthorizationError):
        BookingService(db).approve_quote(actor_for(staff), booking.id)


def test_consumer_quote_request_is_ignored(db, customer, product):
    result = BookingService(db).create_booking(
        actor_for(customer),
        BookingCreate(productId=product.id, scheduledAt="2030-06-01T10:00:00", requestQuote=True),
    )

    assert result.booking.is_corporate is False
    assert result.booking.quote_requested is False
    assert timeline_actions(db, result.booking.id) == ["CREATED"]


@pytest.fixture
def quote_draft(db, corporate_member, product, make_package):
    user, org = corporate_member
    package = make_package(org, total_credits=2)
    result = BookingService(db).create_booking(
        actor_for(user),
        BookingCreate(productId=product.id, packageId=package.id, isDraft=True, requestQuote=True),
    )
    return result.booking, package


def test_confirming_quote_draft_approves_the_quote(db, admin, quote_draft):
    booking, package = quote_draft
    assert booking.status == BookingStatus.DRAFT
    assert booking.quote_requested is True

    BookingService(db).perform_action(actor_for(admin), booking.id, "confirm", net_terms=45)

    db.refresh(booking)
    db.refresh(package)
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.quote_requested is False
    assert booking.quote_approved_at is not None
    assert booking.quote_approved_by_id == admin.id
    assert booking.net_terms == 45
    assert package.used_credits == 1
    assert timeline_actions(db, booking.id) == ["DRAFT_CREATED", "QUOTE_APPROVED"]


def test_staff_cannot_confirm_quote_draft(db, staff, quote_draft):
    booking, package = quote_draft

    with pytest.raises(AuthorizationError):
        BookingService(db).perform_action(actor_for(staff), booking.id, "confirm")

    db.refresh(booking)
    db.refresh(package)
    assert booking.status == BookingStatus.DRAFT
    assert booking.quote_requested is True
    assert package.used_credits == 0
