"""Cleaner schedule service - Weekly availability windows"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFound
from ...models import CleanerProfile, CleanerSchedule, User
from ...shared.validators import parse_hhmm
from ..orders.schedule_matcher import BookingCheck, is_bookable
from .schemas import ScheduleReplace

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


class CleanerScheduleService:
    def __init__(self, db: Session):
        self.db = db

    def _profile(self, cleaner_id: str) -> CleanerProfile:
        profile = self.db.query(CleanerProfile).filter(CleanerProfile.id == cleaner_id).first()
        if not profile:
            raise NotFound("Cleaner not found")
        return profile

    def _own_profile(self, user: User) -> CleanerProfile:
        profile = self.db.query(CleanerProfile).filter(CleanerProfile.user_id == user.id).first()
        if not profile:
            raise NotFound("Cleaner profile not found")
        return profile

    def get_schedules(self, cleaner_id: str) -> list[CleanerSchedule]:
        profile = self._profile(cleaner_id)
        return (
            self.db.query(CleanerSchedule)
            .filter(CleanerSchedule.cleaner_id == profile.id)
            .order_by(CleanerSchedule.day_of_week)
            .all()
        )

    def replace_schedules(self, data: ScheduleReplace, user: User) -> list[CleanerSchedule]:
        """Swap the cleaner's whole week in one transaction"""
        profile = self._own_profile(user)

        self.db.query(CleanerSchedule).filter(CleanerSchedule.cleaner_id == profile.id).delete(
            synchronize_session=False
        )
        for entry in data.schedules:
            self.db.add(
                CleanerSchedule(
                    cleaner_id=profile.id,
                    day_of_week=entry.dayOfWeek,
                    start_time=parse_hhmm(entry.startTime),
                    end_time=parse_hhmm(entry.endTime),
                    is_available=entry.isAvailable,
                )
            )
        self.db.commit()
        logger.info(f"📅 Replaced schedule for cleaner {profile.id} ({len(data.schedules)} days)")
        return self.get_schedules(profile.id)

    def check_availability(
        self, cleaner_id: str, service_date: date, start_time: str, end_time: Optional[str] = None
    ) -> BookingCheck:
        profile = self._profile(cleaner_id)
        return is_bookable(
            self.db,
            profile.id,
            service_date,
            parse_hhmm(start_time),
            parse_hhmm(end_time) if end_time else None,
        )
