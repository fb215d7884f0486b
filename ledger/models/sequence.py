# ledger/models/sequence.py - Per-scope counters for sequential identifiers
from datetime import datetime

from sqlalchemy import String, BigInteger, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from ledger.models.base import Base, utcnow


class IdentifierSequence(Base):
    """
    One row per identifier scope ("TXN:20240101", "FD", ...).

    last_value is bumped by a single upsert statement, so two writers in the
    same scope can never be handed the same number.
    """

    __tablename__ = "identifier_sequences"

    scope: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<IdentifierSequence {self.scope}={self.last_value}>"
