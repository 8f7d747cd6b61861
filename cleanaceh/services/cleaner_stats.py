"""
Cleaner job counters, bumped when an order completes.

Only total_jobs is written here. total_reviews counts customer reviews and
belongs to the review flow, which this service does not implement.
"""

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import CleanerProfile

logger = logging.getLogger(__name__)


class CleanerStatsService:
    def __init__(self, db: Session):
        self.db = db

    def record_completed_job(self, cleaner_id: str) -> bool:
        """Increment total_jobs. Failures are logged and never raised."""
        try:
            self.db.execute(
                update(CleanerProfile)
                .where(CleanerProfile.id == cleaner_id)
                .values(total_jobs=CleanerProfile.total_jobs + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            logger.info(f"📈 Recorded completed job for cleaner {cleaner_id}")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update stats for cleaner {cleaner_id}: {e}")
            return False
