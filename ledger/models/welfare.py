# ledger/models/welfare.py - Staff welfare loans, installments and fund donations
from __future__ import annotations
import uuid
from datetime import date
from decimal import Decimal
from typing import Literal

from sqlalchemy import (
    String, Integer, Numeric, Date, Text, ForeignKey, CheckConstraint, Index, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger.models.base import Base, TimestampMixin, SoftDeleteMixin

LoanStatus = Literal["active", "paid", "cancelled"]
InstallmentStatus = Literal["pending", "paid"]


class WelfareLoan(TimestampMixin, Base):
    __tablename__ = "welfare_loans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    teacher_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("accounts.id"), nullable=False)

    loan_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    installment_count: Mapped[int] = mapped_column(Integer, nullable=False)
    paid_installments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    loan_date: Mapped[date] = mapped_column(Date, nullable=False)
    first_installment_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[LoanStatus] = mapped_column(String(16), nullable=False, default="active")
    purpose: Mapped[str | None] = mapped_column(Text)
    remarks: Mapped[str | None] = mapped_column(Text)
    approved_by: Mapped[str | None] = mapped_column(String(64))
    created_by: Mapped[str | None] = mapped_column(String(64))

    installments: Mapped[list["WelfareLoanInstallment"]] = relationship(
        "WelfareLoanInstallment",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="WelfareLoanInstallment.installment_number",
    )

    __table_args__ = (
        CheckConstraint("status IN ('active','paid','cancelled')", name="ck_welfare_loan_status"),
        CheckConstraint("loan_amount > 0", name="ck_welfare_loan_amount_positive"),
        CheckConstraint("installment_count >= 1", name="ck_welfare_loan_installment_count"),
        Index("ix_welfare_loans_status", "status"),
    )

    @property
    def progress_percentage(self) -> float:
        if not self.loan_amount:
            return 0.0
        return round(float(self.total_paid / self.loan_amount * 100), 2)

    @property
    def is_fully_paid(self) -> bool:
        return self.remaining_amount <= 0


class WelfareLoanInstallment(TimestampMixin, Base):
    __tablename__ = "welfare_loan_installments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("welfare_loans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[InstallmentStatus] = mapped_column(String(16), nullable=False, default="pending")

    paid_date: Mapped[date | None] = mapped_column(Date)
    account_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("accounts.id"))
    payment_method: Mapped[str | None] = mapped_column(String(64))
    reference_number: Mapped[str | None] = mapped_column(String(255))
    remarks: Mapped[str | None] = mapped_column(Text)
    paid_by: Mapped[str | None] = mapped_column(String(64))

    loan: Mapped["WelfareLoan"] = relationship("WelfareLoan", back_populates="installments")

    __table_args__ = (
        CheckConstraint("status IN ('pending','paid')", name="ck_welfare_installment_status"),
        CheckConstraint("amount > 0", name="ck_welfare_installment_amount_positive"),
        UniqueConstraint("loan_id", "installment_number", name="uix_welfare_installment_number"),
    )

    def is_overdue(self, today: date) -> bool:
        return self.status == "pending" and self.due_date < today

    def days_overdue(self, today: date) -> int:
        if not self.is_overdue(today):
            return 0
        return (today - self.due_date).days


class WelfareFundDonation(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "welfare_fund_donations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    donation_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    account_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("accounts.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    donation_date: Mapped[date] = mapped_column(Date, nullable=False)
    donor_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Anonymous")
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(255))
    remarks: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_welfare_donation_amount_positive"),
    )
