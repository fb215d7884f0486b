# ledger/models/category.py - Income and expense categories referenced by transactions
from __future__ import annotations
import uuid
from typing import Literal

from sqlalchemy import String, Text, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ledger.models.base import Base, TimestampMixin

CategoryStatus = Literal["active", "inactive"]


class IncomeCategory(TimestampMixin, Base):
    __tablename__ = "income_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    code: Mapped[str | None] = mapped_column(String(50), unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[CategoryStatus] = mapped_column(String(16), nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("status IN ('active','inactive')", name="ck_income_category_status"),
    )


class ExpenseCategory(TimestampMixin, Base):
    __tablename__ = "expense_categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    code: Mapped[str | None] = mapped_column(String(50), unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[CategoryStatus] = mapped_column(String(16), nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("status IN ('active','inactive')", name="ck_expense_category_status"),
    )
