"""
In-app notification sink.

Rows land in the `notifications` table. Delivery is fire-and-forget: callers
invoke it after their own commit, and a failure here is logged without
touching the caller's already-committed work.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        user_id: Optional[str],
        title: str,
        message: str,
        type: str,
        related_id: Optional[str] = None,
    ) -> bool:
        """Store one notification. Returns False when it could not be written."""
        if not user_id:
            logger.debug(f"⚠️ Skipping '{title}' notification with no recipient")
            return False

        try:
            self.db.add(
                Notification(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=type,
                    related_id=related_id,
                )
            )
            self.db.commit()
            logger.info(f"🔔 Notification '{title}' queued for user {user_id}")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store notification for user {user_id}: {e}")
            return False
