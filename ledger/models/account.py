# ledger/models/account.py - Monetary accounts (bank, cash, mobile wallet)
from __future__ import annotations
import uuid
from decimal import Decimal
from typing import Literal

from sqlalchemy import String, Numeric, Text, CheckConstraint, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ledger.models.base import Base, TimestampMixin, SoftDeleteMixin

AccountType = Literal["bank", "cash", "mobile_wallet"]
AccountStatus = Literal["active", "inactive"]


class Account(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    number: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    type: Mapped[AccountType] = mapped_column(String(16), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255))
    branch: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)

    # current_balance is only written at creation and by AccountStore afterwards
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    current_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[AccountStatus] = mapped_column(String(16), nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("type IN ('bank','cash','mobile_wallet')", name="ck_account_type"),
        CheckConstraint("status IN ('active','inactive')", name="ck_account_status"),
        CheckConstraint("opening_balance >= 0", name="ck_account_opening_balance_positive"),
        Index("ix_accounts_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self) -> str:
        return f"<Account {self.number} {self.name} balance={self.current_balance}>"
