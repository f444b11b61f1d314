import pytest
from helpers import actor_for, timeline_actions

from booking_engine.domain.bookings.lifecycle import (
    TRANSITIONS,
    ReservationLifecycle,
    StaleTransition,
)
from booking_engine.domain.bookings.service import BookingService
from booking_engine.exceptions import (
    AuthorizationError,
    ConflictError,
    PackageExhausted,
    ValidationError,
)
from booking_engine.models import Booking, BookingStatus, Notification


@pytest.fixture
def package(make_org, make_package):
    return make_package(make_org(), total_credits=1)


def test_approve_deducts_credit_once(db, customer, admin, package, make_booking):
    booking = make_booking(customer, package=package)
    service = BookingService(db)

    db.refresh(package)
    assert package.used_credits == 0

    service.perform_action(actor_for(admin), booking.id, "approve")
    with pytest.raises(ConflictError) as exc:
        service.perform_action(actor_for(admin), booking.id, "approve")

    assert exc.value.detail == "Only pending bookings can be approved"
    db.refresh(package)
    db.refresh(booking)
    assert package.used_credits == 1
    assert booking.status == BookingStatus.CONFIRMED
    assert timeline_actions(db, booking.id).count("APPROVED") == 1


def test_approve_notifies_customer(db, customer, admin, make_booking):
    booking = make_booking(customer)

    BookingService(db).perform_action(actor_for(admin), booking.id, "approve")

    notices = db.query(Notification).filter(Notification.user_id == customer.id).all()
    assert [n.subject for n in notices] == ["Booking Confirmed"]
    assert notices[0].meta["bookingId"] == booking.id
    assert booking.booking_number in notices[0].message


def test_confirming_draft_deducts_credit(db, customer, staff, package, make_booking):
    booking = make_booking(customer, status=BookingStatus.DRAFT, package=package)

    BookingService(db).perform_action(actor_for(staff), booking.id, "confirm")

    db.refresh(package)
    assert booking.status == BookingStatus.CONFIRMED
    assert package.used_credits == 1
    assert timeline_actions(db, booking.id) == ["CONFIRMED"]


def test_reject_leaves_credits_alone(db, customer, admin, package, make_booking):
    booking = make_booking(customer, package=package)

    BookingService(db).perform_action(actor_for(admin), booking.id, "reject")

    db.refresh(package)
    assert booking.status == BookingStatus.CANCELLED
    assert package.used_credits == 0
    assert timeline_actions(db, booking.id) == ["REJECTED"]


def test_exhausted_package_blocks_confirmation(db, customer, admin, package, make_booking):
    first = make_booking(customer, package=package)
    second = make_booking(customer, package=package)
    service = BookingService(db)

    service.perform_action(actor_for(admin), first.id, "approve")
    with pytest.raises(PackageExhausted):
        service.perform_action(actor_for(admin), second.id, "approve")

    db.refresh(second)
    db.refresh(package)
    assert second.status == BookingStatus.PENDING
    assert package.used_credits == 1
    assert timeline_actions(db, second.id) == []


def test_complete_stamps_completion(db, customer, staff, make_booking):
    booking = make_booking(customer, status=BookingStatus.CONFIRMED)

    BookingService(db).perform_action(actor_for(staff), booking.id, "complete")

    assert booking.status == BookingStatus.COMPLETED
    assert booking.completed_at is not None


@pytest.mark.parametrize(
    "status,action",
    [
        (BookingStatus.PENDING, "complete"),
        (BookingStatus.PENDING, "no_show"),
        (BookingStatus.DRAFT, "approve"),
        (BookingStatus.COMPLETED, "cancel"),
        (BookingStatus.CANCELLED, "confirm"),
        (BookingStatus.NO_SHOW, "complete"),
    ],
)
def test_illegal_transitions_rejected(db, customer, admin, make_booking, status, action):
    booking = make_booking(customer, status=status)

    with pytest.raises(ConflictError):
        BookingService(db).perform_action(actor_for(admin), booking.id, action)

    db.refresh(booking)
    assert booking.status == status
    assert timeline_actions(db, booking.id) == []


def test_unknown_action(db, customer, admin, make_booking):
    booking = make_booking(customer)

    with pytest.raises(ValidationError):
        BookingService(db).perform_action(actor_for(admin), booking.id, "teleport")


def test_roles_enforced(db, customer, staff, make_booking):
    booking = make_booking(customer)
    service = BookingService(db)

    with pytest.raises(AuthorizationError):
        service.perform_action(actor_for(customer), booking.id, "cancel")
    with pytest.raises(AuthorizationError):
        service.perform_action(actor_for(staff), booking.id, "approve")


def test_invoice_corporate_booking(db, customer, staff, make_org, make_booking):
    booking = make_booking(
        customer, status=BookingStatus.CONFIRMED, org=make_org(), final_price=200, vat_rate=20
    )
    service = BookingService(db)

    service.perform_action(actor_for(staff), booking.id, "invoice")

    assert booking.status == BookingStatus.INVOICED
    assert booking.invoice_number.startswith("INV-")
    assert booking.invoice_sent_at is not None
    assert booking.vat_amount == pytest.approx(40)

    service.perform_action(actor_for(staff), booking.id, "complete")
    assert booking.status == BookingStatus.COMPLETED
    assert timeline_actions(db, booking.id) == ["INVOICE_CREATED", "COMPLETED"]


def test_invoice_requires_corporate_booking(db, customer, staff, make_booking):
    booking = make_booking(customer, status=BookingStatus.CONFIRMED)

    with pytest.raises(ConflictError) as exc:
        BookingService(db).perform_action(actor_for(staff), booking.id, "invoice")
    assert exc.value.detail == "Only corporate bookings can be invoiced"


def test_losing_a_race_changes_nothing(db, customer, admin, package, make_booking):
    booking = make_booking(customer, package=package)
    # Another writer confirms the booking behind this session's back
    db.query(Booking).filter(Booking.id == booking.id).update(
        {Booking.status: BookingStatus.CONFIRMED}, synchronize_session=False
    )
    assert booking.status == BookingStatus.PENDING

    with pytest.raises(StaleTransition):
        ReservationLifecycle(db).apply(booking, "approve", actor_id=admin.id)
    db.rollback()

    db.refresh(package)
    assert package.used_credits == 0
    assert timeline_actions(db, booking.id) == []


def test_every_transition_into_confirmed_deducts():
    into_confirmed = [t for t in TRANSITIONS.values() if t.target == BookingStatus.CONFIRMED]

    assert {t.action for t in into_confirmed} == {
        "confirm",
        "approve",
        "approve_quote",
        "payment_confirm",
    }
    for transition in into_confirmed:
        assert any(effect.__name__ == "deduct_credit" for effect in transition.effects)
