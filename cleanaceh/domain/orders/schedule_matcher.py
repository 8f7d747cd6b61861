"""
Schedule matching for new bookings.

A cleaner is bookable on a date when their weekly schedule covers that
weekday, the requested start falls inside the day's window (end inclusive)
and they hold no other active order that day. The same-day check is a
whole-day conflict, not a time-range overlap.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import DoubleBooked, NoSchedule, OutsideWindow
from ...shared.validators import minutes_since_midnight
from .repository import OrderRepository

logger = logging.getLogger(__name__)

NO_SCHEDULE = "no_schedule"
OUTSIDE_WINDOW = "outside_window"
DOUBLE_BOOKED = "double_booked"

_REASON_ERRORS = {
    NO_SCHEDULE: NoSchedule,
    OUTSIDE_WINDOW: OutsideWindow,
    DOUBLE_BOOKED: DoubleBooked,
}


@dataclass(frozen=True)
class BookingCheck:
    ok: bool
    reason: Optional[str] = None

    def raise_for_reason(self) -> None:
        if not self.ok:
            raise _REASON_ERRORS[self.reason]()


def day_of_week(service_date: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (service_date.weekday() + 1) % 7


def is_bookable(
    db: Session,
    cleaner_id: str,
    service_date: date,
    start_time: time,
    end_time: Optional[time] = None,
) -> BookingCheck:
    # end_time is accepted for callers that know it; the conflict check is per day
    schedule = OrderRepository.get_schedule(db, cleaner_id, day_of_week(service_date))
    if not schedule or not schedule.is_available:
        return BookingCheck(ok=False, reason=NO_SCHEDULE)

    requested = minutes_since_midnight(start_time)
    if requested < minutes_since_midnight(schedule.start_time) or requested > minutes_since_midnight(
        schedule.end_time
    ):
        return BookingCheck(ok=False, reason=OUTSIDE_WINDOW)

    if OrderRepository.has_active_order_on(db, cleaner_id, service_date):
        logger.info(f"📅 Cleaner {cleaner_id} already booked on {service_date}")
        return BookingCheck(ok=False, reason=DOUBLE_BOOKED)

    return BookingCheck(ok=True)
