"""
Notification Service
Delivers in-app notifications for booking workflow events.

Notices are collected while a unit of work runs and dispatched only after it
commits. Delivery failures are logged and never undo the change that produced them.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.orm import Session

from ..models import Notification, User, UserRole

logger = logging.getLogger(__name__)


@dataclass
class Notice:
    user_id: int
    subject: str
    message: str
    metadata: dict = field(default_factory=dict)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def admin_ids(self) -> list[int]:
        return [row.id for row in self.db.query(User.id).filter(User.role == UserRole.ADMIN).all()]

    def send(self, notice: Notice) -> bool:
        """Persist one notification in its own commit; returns False on failure"""
        try:
            self.db.add(
                Notification(
                    user_id=notice.user_id,
                    type="IN_APP",
                    subject=notice.subject,
                    message=notice.message,
                    meta=notice.metadata,
                )
            )
            self.db.commit()
            logger.info(f"🔔 '{notice.subject}' notification sent to user {notice.user_id}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"❌ Failed to send '{notice.subject}' notification to user {notice.user_id}: {e}"
            )
            return False

    def dispatch(self, notices: Iterable[Notice]) -> dict:
        result = {"sent": 0, "failed": 0}
        for notice in notices:
            if self.send(notice):
                result["sent"] += 1
            else:
                result["failed"] += 1
        return result
