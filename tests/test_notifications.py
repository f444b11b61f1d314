import pytest
from helpers import actor_for, payment_event, timeline_actions
from sqlalchemy.exc import OperationalError

from booking_engine.domain.bookings.service import BookingService
from booking_engine.domain.payments.reconciler import SettlementReconciler
from booking_engine.models import BookingStatus, Notification, PaymentStatus
from booking_engine.services import notification_service
from booking_engine.services.notification_service import Notice, NotificationService


def unavailable_notification(**kwargs):
    raise OperationalError("INSERT INTO notifications", {}, Exception("no such table: notifications"))


@pytest.fixture
def broken_notifications(monkeypatch):
    monkeypatch.setattr(notification_service, "Notification", unavailable_notification)


def test_dispatch_counts_failures(db, customer, broken_notifications):
    notices = [Notice(user_id=customer.id, subject="Booking Confirmed", message="See you soon")]

    result = NotificationService(db).dispatch(notices)

    assert result == {"sent": 0, "failed": 1}


def test_session_usable_after_failed_send(db, customer, monkeypatch):
    monkeypatch.setattr(notification_service, "Notification", unavailable_notification)
    service = NotificationService(db)
    notice = Notice(user_id=customer.id, subject="Booking Confirmed", message="See you soon")

    assert service.send(notice) is False
    monkeypatch.undo()

    assert service.send(notice) is True
    assert db.query(Notification).filter(Notification.user_id == customer.id).count() == 1


def test_failed_notice_keeps_confirmation(
    db, customer, admin, make_org, make_package, make_booking, broken_notifications
):
    package = make_package(make_org(), total_credits=1)
    booking = make_booking(customer, package=package)

    BookingService(db).perform_action(actor_for(admin), booking.id, "approve")

    db.refresh(booking)
    db.refresh(package)
    assert booking.status == BookingStatus.CONFIRMED
    assert package.used_credits == 1
    assert timeline_actions(db, booking.id) == ["APPROVED"]
    assert db.query(Notification).count() == 0


def test_failed_notice_keeps_settlement(
    db, customer, make_booking, make_payment, broken_notifications
):
    booking = make_booking(customer, final_price=100.0)
    payment = make_payment(booking, 100.0, "pi_notify")

    result = SettlementReconciler(db).handle_event(
        payment_event("payment_intent.succeeded", {"id": "pi_notify", "object": "payment_intent"})
    )

    db.refresh(booking)
    db.refresh(payment)
    assert result["outcome"] == "confirmed"
    assert booking.status == BookingStatus.CONFIRMED
    assert payment.status == PaymentStatus.COMPLETED
    assert timeline_actions(db, booking.id) == ["PAYMENT_COMPLETED"]
