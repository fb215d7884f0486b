# ledger/models/activity.py - Audit trail of ledger mutations
from __future__ import annotations
import uuid
from datetime import datetime
from typing import Literal

from sqlalchemy import String, Text, DateTime, CheckConstraint, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ledger.models.base import Base, utcnow

ActivityAction = Literal["create", "update", "delete"]


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[ActivityAction] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    subject_type: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    actor_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("action IN ('create','update','delete')", name="ck_activity_action"),
        Index("ix_activity_logs_subject", "subject_type", "subject_id"),
    )
