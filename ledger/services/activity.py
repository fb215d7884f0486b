# ledger/services/activity.py - Persisted audit trail of ledger mutations
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import List, Optional
import logging
import uuid

from ledger.models.activity import ActivityLog

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Writes one ActivityLog row per mutation inside the caller's unit of work"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        description: str,
        subject_type: str,
        subject_id: Optional[uuid.UUID] = None,
        actor_id: Optional[str] = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            action=action,
            description=description,
            subject_type=subject_type,
            subject_id=subject_id,
            actor_id=actor_id,
        )
        self.db.add(entry)
        logger.info(f"[{action}] {description} (actor={actor_id})")
        return entry

    def for_subject(self, subject_type: str, subject_id: uuid.UUID) -> List[ActivityLog]:
        return list(
            self.db.execute(
                select(ActivityLog)
                .where(ActivityLog.subject_type == subject_type, ActivityLog.subject_id == subject_id)
                .order_by(ActivityLog.created_at)
            ).scalars()
        )
