"""Cleaner router - Weekly schedules and availability checks"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_cleaner
from ...database import get_db
from ...models import CleanerSchedule, User
from ...shared.responses import send_success
from ...shared.validators import HHMM_PATTERN, format_hhmm
from .schemas import ScheduleReplace
from .service import DAY_NAMES, CleanerScheduleService

router = APIRouter(prefix="/cleaners", tags=["Cleaners"])


def get_schedule_service(db: Session = Depends(get_db)) -> CleanerScheduleService:
    """Dependency injection for CleanerScheduleService"""
    return CleanerScheduleService(db)


def format_schedule(schedule: CleanerSchedule) -> dict:
    return {
        "id": schedule.id,
        "dayOfWeek": schedule.day_of_week,
        "dayName": DAY_NAMES[schedule.day_of_week],
        "startTime": format_hhmm(schedule.start_time),
        "endTime": format_hhmm(schedule.end_time),
        "isAvailable": schedule.is_available,
        "createdAt": schedule.created_at,
    }


# /me routes are declared before /{cleaner_id} so "me" is never taken for an id


@router.put("/me/schedules")
async def replace_my_schedules(
    data: ScheduleReplace,
    current_user: User = Depends(require_cleaner),
    service: CleanerScheduleService = Depends(get_schedule_service),
):
    schedules = service.replace_schedules(data, current_user)
    return send_success([format_schedule(s) for s in schedules], "Schedule updated successfully")


@router.get("/{cleaner_id}/schedules")
async def get_cleaner_schedules(
    cleaner_id: str,
    current_user: User = Depends(get_current_user),
    service: CleanerScheduleService = Depends(get_schedule_service),
):
    schedules = service.get_schedules(cleaner_id)
    return send_success([format_schedule(s) for s in schedules], "Schedule retrieved successfully")


@router.get("/{cleaner_id}/availability")
async def check_cleaner_availability(
    cleaner_id: str,
    service_date: date = Query(..., alias="date"),
    startTime: str = Query(..., pattern=HHMM_PATTERN.pattern),
    endTime: Optional[str] = Query(None, pattern=HHMM_PATTERN.pattern),
    current_user: User = Depends(get_current_user),
    service: CleanerScheduleService = Depends(get_schedule_service),
):
    """Whether a booking for the given date and start time would pass the schedule checks"""
    check = service.check_availability(cleaner_id, service_date, startTime, endTime)
    return send_success(
        {
            "cleanerId": cleaner_id,
            "date": service_date,
            "startTime": startTime,
            "available": check.ok,
            "reason": check.reason,
        },
        "Availability checked successfully",
    )
