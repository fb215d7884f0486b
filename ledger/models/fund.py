# ledger/models/fund.py - Investor capital and its sub-ledger
from __future__ import annotations
import uuid
from datetime import date
from decimal import Decimal
from typing import Literal

from sqlalchemy import (
    String, Numeric, Date, Text, ForeignKey, CheckConstraint, Index, Uuid, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger.models.base import Base, TimestampMixin

FundStatus = Literal["active", "closed"]
FundDirection = Literal["in", "out"]


class Investor(TimestampMixin, Base):
    __tablename__ = "investors"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    investor_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))
    investor_type: Mapped[str] = mapped_column(String(32), nullable=False, default="individual")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")

    funds: Mapped[list["Fund"]] = relationship("Fund", back_populates="investor")

    __table_args__ = (
        CheckConstraint("status IN ('active','inactive')", name="ck_investor_status"),
    )


class Fund(TimestampMixin, Base):
    __tablename__ = "funds"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    fund_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    investor_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("investors.id"), nullable=False, index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("accounts.id"), nullable=False)
    current_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[FundStatus] = mapped_column(String(16), nullable=False, default="active")
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(64))

    investor: Mapped["Investor"] = relationship("Investor", back_populates="funds")
    transactions: Mapped[list["FundTransaction"]] = relationship(
        "FundTransaction",
        back_populates="fund",
        order_by="FundTransaction.transaction_date",
    )

    __table_args__ = (
        CheckConstraint("status IN ('active','closed')", name="ck_fund_status"),
        Index("ix_funds_investor_status", "investor_id", "status"),
        # at most one active fund per investor
        Index(
            "uix_funds_one_active_per_investor",
            "investor_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )


class FundTransaction(TimestampMixin, Base):
    __tablename__ = "fund_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    fund_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("funds.id"), nullable=False, index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("accounts.id"), nullable=False, index=True)
    direction: Mapped[FundDirection] = mapped_column(String(8), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(64))

    fund: Mapped["Fund"] = relationship("Fund", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("direction IN ('in','out')", name="ck_fund_transaction_direction"),
        CheckConstraint("amount > 0", name="ck_fund_transaction_amount_positive"),
    )
