"""Time helpers. Stored timestamps are naive UTC; service times are wall-clock in SERVICE_TIMEZONE."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from ..config import SERVICE_TIMEZONE


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def service_tz() -> ZoneInfo:
    return ZoneInfo(SERVICE_TIMEZONE)


def local_today() -> date:
    return datetime.now(service_tz()).date()


def service_datetime(service_date: date, start_time: time) -> datetime:
    """Aware datetime for a booked slot, in the service timezone"""
    return datetime.combine(service_date, start_time, tzinfo=service_tz())


def as_aware(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
