"""
Occurrence generator - expands one booking request into linked reservations.

    bulk       one reservation per location, all sharing a BookingGroup
    multi-day  one independent reservation per date, same time of day
    recurring  a parent at the start date plus children linked to it

Schedules are computed by pure functions; OccurrenceGenerator only persists
them. Nothing here commits: the caller's unit of work decides whether all of
the generated rows exist or none do.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ...models import Booking, BookingGroup, RecurringRule
from ...shared.validators import combine_date_time
from .numbering import child_booking_number, generate_booking_number, group_member_number
from .repository import BookingRepository

logger = logging.getLogger(__name__)

# Fixed bound on generated occurrences (parent included)
MAX_OCCURRENCES = 52

RULE_STEPS = {
    RecurringRule.DAILY: relativedelta(days=1),
    RecurringRule.WEEKLY: relativedelta(weeks=1),
    RecurringRule.MONTHLY: relativedelta(months=1),
}


def recurring_schedule(
    start: datetime, rule: str, end: Optional[datetime] = None
) -> list[datetime]:
    """
    Occurrence datetimes for a recurring rule, parent first.

    Each occurrence is ``start + k * step`` so monthly dates clamp to the month
    end without drifting. The end date is inclusive by calendar day and the
    first occurrence is always produced.
    """
    step = RULE_STEPS.get(rule)
    if step is None:
        raise ValueError(f"Unsupported recurring rule '{rule}'")

    schedule = []
    for k in range(MAX_OCCURRENCES):
        occurrence = start + step * k
        if k > 0 and end is not None and occurrence.date() > end.date():
            break
        schedule.append(occurrence)
    return schedule


def multi_day_schedule(dates: Iterable[date], time_of_day: str) -> list[datetime]:
    return [combine_date_time(day, time_of_day) for day in dates]


def bulk_schedule(locations: Iterable) -> list[tuple[str, datetime]]:
    """(address, scheduled_at) for each location with ``address``, ``date`` and ``time``"""
    return [
        (location.address, combine_date_time(location.date, location.time))
        for location in locations
    ]


@dataclass
class ReservationTemplate:
    """Column values shared by every reservation generated from one request"""

    fields: dict
    # (add_on_id, quantity, unit_price) captured at request time
    add_ons: list = field(default_factory=list)
    user_id: Optional[int] = None
    timeline_action: str = "CREATED"
    timeline_details: str = "Booking request submitted - awaiting admin approval for availability"


class OccurrenceGenerator:
    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def _create(
        self, template: ReservationTemplate, booking_number: str, scheduled_at: datetime, **overrides
    ) -> Booking:
        values = {**template.fields, **overrides}
        booking = self.repo.add_booking(
            self.db, booking_number=booking_number, scheduled_at=scheduled_at, **values
        )
        for add_on_id, quantity, unit_price in template.add_ons:
            self.repo.add_booking_add_on(self.db, booking.id, add_on_id, quantity, unit_price)
        self.repo.add_timeline(
            self.db,
            booking_id=booking.id,
            user_id=template.user_id,
            action=template.timeline_action,
            details=template.timeline_details,
        )
        return booking

    def single(self, template: ReservationTemplate, scheduled_at: datetime) -> Booking:
        return self._create(template, generate_booking_number(), scheduled_at)

    def bulk(
        self, template: ReservationTemplate, locations: list[tuple[str, datetime]]
    ) -> tuple[list[Booking], BookingGroup]:
        now = datetime.utcnow()
        group = self.repo.add_group(
            self.db,
            name=f"Bulk Booking - {now:%Y-%m-%d}",
            description=f"Bulk booking with {len(locations)} locations",
        )
        prefix = generate_booking_number(now)
        bookings = [
            self._create(
                template,
                group_member_number(prefix, index),
                scheduled_at,
                event_address=address or template.fields.get("event_address"),
                booking_group_id=group.id,
            )
            for index, (address, scheduled_at) in enumerate(locations, start=1)
        ]
        self.db.flush()
        logger.info(f"📍 Bulk booking group {group.id} created with {len(bookings)} locations")
        return bookings, group

    def multi_day(self, template: ReservationTemplate, schedule: list[datetime]) -> list[Booking]:
        bookings = [self._create(template, generate_booking_number(), at) for at in schedule]
        self.db.flush()
        logger.info(f"📅 Multi-day booking created with {len(bookings)} dates")
        return bookings

    def recurring(
        self,
        template: ReservationTemplate,
        start: datetime,
        rule: str,
        end: Optional[datetime] = None,
    ) -> list[Booking]:
        schedule = recurring_schedule(start, rule, end)

        parent = self._create(
            template,
            generate_booking_number(),
            schedule[0],
            is_recurring=True,
            recurring_rule=rule,
            recurring_end_date=end,
        )
        bookings = [parent]
        for occurrence, scheduled_at in enumerate(schedule[1:], start=1):
            bookings.append(
                self._create(
                    template,
                    child_booking_number(parent.booking_number, occurrence),
                    scheduled_at,
                    is_recurring=True,
                    recurring_rule=rule,
                    parent_booking_id=parent.id,
                )
            )
        self.db.flush()

        logger.info(
            f"🔁 Recurring {rule} booking {parent.booking_number} created with "
            f"{len(bookings)} occurrences"
        )
        return bookings
