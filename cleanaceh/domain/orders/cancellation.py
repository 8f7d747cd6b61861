"""Cancellation fee policy"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from ...models import Order
from ...shared.clock import as_aware, service_datetime
from .pricing import round_half_up

LATE_CANCELLATION_HOURS = 12
LATE_CANCELLATION_RATE = Decimal("0.25")


def hours_until_service(order: Order, now: datetime) -> float:
    """Hours from `now` until the booked start; negative once the slot has passed"""
    starts_at = service_datetime(order.service_date, order.start_time)
    return (starts_at - as_aware(now)).total_seconds() / 3600


def compute_cancellation_fee(order: Order, now: Optional[datetime] = None) -> int:
    """
    Fee owed when an order is cancelled at `now`.

    25% of the order total inside the 12 hours before the booked start,
    nothing earlier and nothing once the start has passed. The fee is
    informational; no charge is issued for it.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    hours = hours_until_service(order, now)
    if 0 < hours < LATE_CANCELLATION_HOURS:
        return round_half_up(Decimal(order.total_price) * LATE_CANCELLATION_RATE)
    return 0
