# ledger/models/__init__.py - Import all models so SQLAlchemy can discover them

from ledger.models.base import Base

from ledger.models.account import Account
from ledger.models.category import IncomeCategory, ExpenseCategory
from ledger.models.transaction import Transaction
from ledger.models.sequence import IdentifierSequence
from ledger.models.fund import Investor, Fund, FundTransaction
from ledger.models.welfare import WelfareLoan, WelfareLoanInstallment, WelfareFundDonation
from ledger.models.activity import ActivityLog

__all__ = [
    "Base",
    "Account",
    "IncomeCategory",
    "ExpenseCategory",
    "Transaction",
    "IdentifierSequence",
    "Investor",
    "Fund",
    "FundTransaction",
    "WelfareLoan",
    "WelfareLoanInstallment",
    "WelfareFundDonation",
    "ActivityLog",
]
