# ledger/services/categories.py - Income/expense categories and system category bootstrap
from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from typing import List, Optional, Type, Union
import logging

from ledger.core.db import unit_of_work
from ledger.core.errors import ValidationError
from ledger.models.category import IncomeCategory, ExpenseCategory

logger = logging.getLogger(__name__)

Category = Union[IncomeCategory, ExpenseCategory]

# Categories the welfare engine books against, created on first use
WELFARE_LOAN_CATEGORY = ("SWF-LOAN", "Staff Welfare Loan", "Loans given to teachers from staff welfare fund")
WELFARE_RECOVERY_CATEGORY = (
    "SWF-RECOVERY", "Staff Welfare Loan Recovery", "Loan installments received from teachers"
)
WELFARE_DONATION_CATEGORY = (
    "SWF-DONATION", "Staff Welfare Fund Donation", "Donations received for staff welfare fund"
)


class CategoryService:
    def __init__(self, db: Session):
        self.db = db

    def create_income_category(self, name: str, code: Optional[str] = None, description: Optional[str] = None) -> IncomeCategory:
        return self._create(IncomeCategory, name, code, description)

    def create_expense_category(self, name: str, code: Optional[str] = None, description: Optional[str] = None) -> ExpenseCategory:
        return self._create(ExpenseCategory, name, code, description)

    def list_income_categories(self) -> List[IncomeCategory]:
        return list(self.db.execute(select(IncomeCategory).order_by(IncomeCategory.name)).scalars())

    def list_expense_categories(self) -> List[ExpenseCategory]:
        return list(self.db.execute(select(ExpenseCategory).order_by(ExpenseCategory.name)).scalars())

    def system_income_category(self, definition: tuple) -> IncomeCategory:
        return self._find_or_create(IncomeCategory, *definition)

    def system_expense_category(self, definition: tuple) -> ExpenseCategory:
        return self._find_or_create(ExpenseCategory, *definition)

    def _create(self, model: Type[Category], name: str, code: Optional[str], description: Optional[str]) -> Category:
        if not name or not name.strip():
            raise ValidationError("Category name is required", field="name")
        with unit_of_work(self.db):
            duplicate = self.db.execute(select(model).where(model.name == name.strip())).scalar_one_or_none()
            if duplicate is not None:
                raise ValidationError(f"Category {name} already exists", field="name")
            category = model(name=name.strip(), code=code, description=description)
            self.db.add(category)
            self.db.flush()
        return category

    def _find_or_create(self, model: Type[Category], code: str, name: str, description: str) -> Category:
        """Match by code, else adopt an operator-made category of the same name"""
        matches = self.db.execute(
            select(model).where(or_(model.code == code, model.name == name))
        ).scalars().all()
        category = next((c for c in matches if c.code == code), None)
        if category is None and matches:
            category = matches[0]
            if category.code is None:
                category.code = code
                self.db.flush()
                logger.info(f"Assigned system code {code} to category {category.name}")
        if category is None:
            category = model(name=name, code=code, description=description, status="active")
            self.db.add(category)
            self.db.flush()
            logger.info(f"Created system category {code} ({model.__tablename__})")
        return category
