# ledger/models/transaction.py - The canonical money-movement history
from __future__ import annotations
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from sqlalchemy import (
    String, Numeric, Date, DateTime, Text, ForeignKey, CheckConstraint, Index, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger.models.base import Base, TimestampMixin, SoftDeleteMixin

TransactionType = Literal["income", "expense", "transfer", "asset_purchase"]


class Transaction(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    account_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("accounts.id"), nullable=False, index=True)
    type: Mapped[TransactionType] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    income_category_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("income_categories.id"))
    expense_category_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("expense_categories.id"))
    transfer_to_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("accounts.id"), index=True
    )

    payment_method: Mapped[str | None] = mapped_column(String(64))
    reference_number: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(64))

    # Effect undone but row kept as audit trail (welfare donation deletion)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Originating welfare records; rows with any of these set are owned by the welfare engine
    welfare_loan_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("welfare_loans.id"), index=True
    )
    welfare_installment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("welfare_loan_installments.id"), index=True
    )
    welfare_donation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("welfare_fund_donations.id"), index=True
    )

    account: Mapped["Account"] = relationship("Account", foreign_keys=[account_id])
    transfer_to_account: Mapped[Optional["Account"]] = relationship("Account", foreign_keys=[transfer_to_account_id])
    income_category: Mapped[Optional["IncomeCategory"]] = relationship("IncomeCategory")
    expense_category: Mapped[Optional["ExpenseCategory"]] = relationship("ExpenseCategory")

    __table_args__ = (
        CheckConstraint(
            "type IN ('income','expense','transfer','asset_purchase')", name="ck_transaction_type"
        ),
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("ix_transactions_account_date", "account_id", "transaction_date"),
    )

    @property
    def is_live(self) -> bool:
        """True while the row's balance effect is still applied"""
        return self.deleted_at is None and self.reversed_at is None

    @property
    def is_welfare_owned(self) -> bool:
        return any((self.welfare_loan_id, self.welfare_installment_id, self.welfare_donation_id))

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} {self.type} {self.amount}>"
