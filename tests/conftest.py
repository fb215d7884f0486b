# tests/conftest.py
"""
Shared fixtures: a fresh in-memory database per test, a fixed clock for
identifier days, and the ledger services bound to one session.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import date
from decimal import Decimal

from ledger.core.db import DatabaseManager
from ledger.services.accounts import AccountStore
from ledger.services.categories import CategoryService
from ledger.services.funds import FundLedger
from ledger.services.transactions import TransactionLedger
from ledger.services.welfare import WelfareLoanEngine


TODAY = date(2024, 1, 1)


@pytest.fixture
def database():
    manager = DatabaseManager("sqlite:///:memory:")
    manager.create_all()
    yield manager
    manager.close()


@pytest.fixture
def db(database):
    session = database.SessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    return lambda: TODAY


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def accounts(db):
    return AccountStore(db)


@pytest.fixture
def ledger(db, clock):
    return TransactionLedger(db, clock)


@pytest.fixture
def funds(db, clock):
    return FundLedger(db, clock)


@pytest.fixture
def welfare(db, clock):
    return WelfareLoanEngine(db, clock)


# =============================================================================
# Records
# =============================================================================

@pytest.fixture
def bank_account(accounts):
    """Bank account opened with 1000.00"""
    return accounts.create(
        name="Main Bank",
        number="0200-1001",
        type="bank",
        opening_balance=Decimal("1000.00"),
        bank_name="Sonali Bank",
        branch="Motijheel",
        actor_id="admin",
    )


@pytest.fixture
def cash_account(accounts):
    """Petty cash with nothing in it"""
    return accounts.create(name="Petty Cash", number="CASH-01", type="cash", actor_id="admin")


@pytest.fixture
def income_category(db):
    return CategoryService(db).create_income_category("Tuition Fees", code="TUITION")


@pytest.fixture
def expense_category(db):
    return CategoryService(db).create_expense_category("Utilities", code="UTIL")


@pytest.fixture
def investor(funds):
    return funds.create_investor("Rahim Uddin", email="rahim@example.com", phone="01700000000", actor_id="admin")


def balance_of(accounts, account):
    """Balance as committed in the database"""
    return accounts.get_balance(account.id)
