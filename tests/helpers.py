from booking_engine.auth import Actor
from booking_engine.models import BookingTimeline, User


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role)


def auth_headers(user: User) -> dict:
    return {"X-User-Id": str(user.id), "X-User-Role": user.role}


def timeline_actions(db, booking_id: int) -> list[str]:
    rows = (
        db.query(BookingTimeline)
        .filter(BookingTimeline.booking_id == booking_id)
        .order_by(BookingTimeline.id)
        .all()
    )
    return [row.action for row in rows]


def payment_event(event_type: str, obj: dict, event_id: str = "evt_test") -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}
