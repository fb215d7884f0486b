# tests/test_welfare.py
"""
Tests for the welfare loan engine.

Tests cover:
- Disbursement builds the schedule and debits the account
- Installment payments, full repayment and double payment
- Cancel and edit of untouched loans only
- Donations and their preserved reversal
- Fund summary and overdue installments
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from ledger.core.errors import AlreadyPaid, InvalidStateTransition, NotFound, ValidationError
from ledger.models.transaction import Transaction
from ledger.services.categories import CategoryService
from ledger.services.reconcile import BalanceReconciler
from ledger.services.welfare import WelfareLoanEngine


LOAN_DAY = date(2024, 1, 1)


@pytest.fixture(autouse=True)
def balances_reconcile(db):
    """Every test must leave stored balances equal to their history"""
    yield
    db.rollback()
    assert BalanceReconciler(db).check_all() == []


@pytest.fixture
def welfare_account(accounts):
    """Account holding the welfare fund, opened with 20000.00"""
    return accounts.create(
        name="Welfare Fund", number="0200-2002", type="bank", opening_balance=Decimal("20000.00")
    )


@pytest.fixture
def loan(welfare, welfare_account):
    """10000 at 3000 a month from 2024-01-01"""
    return welfare.create_loan(
        "T-101", welfare_account.id, 10000, 3000, LOAN_DAY, LOAN_DAY,
        teacher_name="Nasrin Akter", purpose="Medical", actor_id="head",
    )


def _disbursement(db, loan):
    return db.query(Transaction).filter(Transaction.welfare_loan_id == loan.id).one()


class TestCreateLoan:
    def test_schedule_and_totals(self, loan):
        assert loan.loan_number == "SWL-20240101-0001"
        assert loan.installment_count == 4
        assert loan.installment_amount == Decimal("3000.00")
        assert loan.remaining_amount == Decimal("10000.00")
        assert loan.status == "active"
        assert [i.amount for i in loan.installments] == [
            Decimal("3000.00"), Decimal("3000.00"), Decimal("3000.00"), Decimal("1000.00"),
        ]
        assert [i.due_date for i in loan.installments] == [
            date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1),
        ]

    def test_disbursement_debits_account(self, db, accounts, loan, welfare_account):
        tx = _disbursement(db, loan)

        assert accounts.get_balance(welfare_account.id) == Decimal("10000.00")
        assert tx.type == "expense"
        assert tx.amount == Decimal("10000.00")
        assert tx.description == f"Welfare Fund Loan to Nasrin Akter - {loan.loan_number}"
        assert tx.expense_category.code == "SWF-LOAN"

    def test_may_overdraw_account(self, welfare, accounts, cash_account):
        welfare.create_loan("T-2", cash_account.id, 500, 250, LOAN_DAY, LOAN_DAY)
        assert accounts.get_balance(cash_account.id) == Decimal("-500.00")

    def test_first_installment_before_loan_date_rejected(self, welfare, welfare_account):
        with pytest.raises(ValidationError):
            welfare.create_loan("T-2", welfare_account.id, 500, 250, date(2024, 2, 1), LOAN_DAY)

    def test_teacher_required(self, welfare, welfare_account):
        with pytest.raises(ValidationError):
            welfare.create_loan("", welfare_account.id, 500, 250, LOAN_DAY, LOAN_DAY)

    def test_installment_above_loan_is_kept_as_requested(self, welfare, welfare_account):
        small = welfare.create_loan("T-3", welfare_account.id, 500, 800, LOAN_DAY, LOAN_DAY)

        assert small.installment_amount == Decimal("800.00")
        assert small.installment_count == 1
        assert [i.amount for i in small.installments] == [Decimal("500.00")]

    def test_adopts_existing_category_with_the_same_name(self, db, welfare, welfare_account):
        """A category an operator made by hand gets the system code instead of a duplicate"""
        existing = CategoryService(db).create_expense_category("Staff Welfare Loan")

        created = welfare.create_loan("T-4", welfare_account.id, 500, 250, LOAN_DAY, LOAN_DAY)

        assert _disbursement(db, created).expense_category_id == existing.id
        assert existing.code == "SWF-LOAN"
        assert len(CategoryService(db).list_expense_categories()) == 1


class TestPayInstallment:
    def test_first_payment(self, db, welfare, accounts, loan, welfare_account):
        first = loan.installments[0]
        paid = welfare.pay_installment(first.id, welfare_account.id, "cash", date(2024, 1, 5), actor_id="clerk")

        assert paid.status == "paid"
        assert paid.paid_by == "clerk"
        assert loan.total_paid == Decimal("3000.00")
        assert loan.remaining_amount == Decimal("7000.00")
        assert loan.paid_installments == 1
        assert loan.status == "active"
        assert accounts.get_balance(welfare_account.id) == Decimal("13000.00")

        recovery = db.query(Transaction).filter(Transaction.welfare_installment_id == first.id).one()
        assert recovery.type == "income"
        assert recovery.description == f"Loan Installment #1 - {loan.loan_number}"

    def test_paying_twice_is_refused(self, welfare, accounts, loan, welfare_account):
        first = loan.installments[0]
        welfare.pay_installment(first.id, welfare_account.id, "cash", date(2024, 1, 5))

        with pytest.raises(AlreadyPaid):
            welfare.pay_installment(first.id, welfare_account.id, "cash", date(2024, 1, 6))

        assert loan.total_paid == Decimal("3000.00")
        assert accounts.get_balance(welfare_account.id) == Decimal("13000.00")

    def test_full_repayment_marks_loan_paid(self, welfare, accounts, loan, welfare_account):
        for installment in list(loan.installments):
            welfare.pay_installment(installment.id, welfare_account.id, "bank_transfer", installment.due_date)

        assert loan.status == "paid"
        assert loan.remaining_amount == Decimal("0.00")
        assert loan.paid_installments == 4
        assert accounts.get_balance(welfare_account.id) == Decimal("20000.00")

    def test_payment_into_another_account(self, welfare, accounts, loan, cash_account):
        welfare.pay_installment(loan.installments[0].id, cash_account.id, "cash", date(2024, 1, 5))
        assert accounts.get_balance(cash_account.id) == Decimal("3000.00")

    def test_cancelled_loan_cannot_be_paid(self, welfare, loan, welfare_account):
        welfare.cancel_loan(loan.id)
        with pytest.raises(InvalidStateTransition):
            welfare.pay_installment(loan.installments[0].id, welfare_account.id, "cash", date(2024, 1, 5))

    def test_unknown_installment(self, welfare, welfare_account):
        with pytest.raises(NotFound):
            welfare.pay_installment(uuid.uuid4(), welfare_account.id, "cash", date(2024, 1, 5))

    def test_locks_loan_before_installment(self, welfare, loan, welfare_account, monkeypatch):
        """Same order as edit_loan, so the two cannot deadlock"""
        order = []
        lock_loan = WelfareLoanEngine._lock_loan
        lock_installment = WelfareLoanEngine._lock_installment

        def record_loan(engine, loan_id):
            order.append("loan")
            return lock_loan(engine, loan_id)

        def record_installment(engine, installment_id):
            order.append("installment")
            return lock_installment(engine, installment_id)

        monkeypatch.setattr(WelfareLoanEngine, "_lock_loan", record_loan)
        monkeypatch.setattr(WelfareLoanEngine, "_lock_installment", record_installment)

        welfare.pay_installment(loan.installments[0].id, welfare_account.id, "cash", date(2024, 1, 5))

        assert order[:2] == ["loan", "installment"]

    def test_donation_and_recovery_adopt_named_categories(self, db, welfare, loan, welfare_account):
        categories = CategoryService(db)
        recovery = categories.create_income_category("Staff Welfare Loan Recovery")
        donations = categories.create_income_category("Staff Welfare Fund Donation")

        welfare.pay_installment(loan.installments[0].id, welfare_account.id, "cash", date(2024, 1, 5))
        welfare.add_donation(welfare_account.id, 100, LOAN_DAY, "cash")

        assert recovery.code == "SWF-RECOVERY"
        assert donations.code == "SWF-DONATION"
        assert len(categories.list_income_categories()) == 2


class TestCancelLoan:
    def test_cancel_restores_balance(self, db, welfare, accounts, loan, welfare_account):
        welfare.cancel_loan(loan.id, actor_id="head")

        assert loan.status == "cancelled"
        assert accounts.get_balance(welfare_account.id) == Decimal("20000.00")
        assert _disbursement(db, loan).deleted_at is not None

    def test_cancel_after_payment_refused(self, welfare, accounts, loan, welfare_account):
        welfare.pay_installment(loan.installments[0].id, welfare_account.id, "cash", date(2024, 1, 5))

        with pytest.raises(InvalidStateTransition):
            welfare.cancel_loan(loan.id)

        assert loan.status == "active"
        assert accounts.get_balance(welfare_account.id) == Decimal("13000.00")

    def test_cancel_twice_refused(self, welfare, loan):
        welfare.cancel_loan(loan.id)
        with pytest.raises(InvalidStateTransition):
            welfare.cancel_loan(loan.id)


class TestEditLoan:
    def test_larger_loan_debits_the_difference(self, db, welfare, accounts, loan, welfare_account):
        edited = welfare.edit_loan(loan.id, 12000, 4)

        assert accounts.get_balance(welfare_account.id) == Decimal("8000.00")
        assert edited.loan_amount == Decimal("12000.00")
        assert edited.remaining_amount == Decimal("12000.00")
        assert [i.amount for i in edited.installments] == [Decimal("3000.00")] * 4
        assert _disbursement(db, loan).amount == Decimal("12000.00")

    def test_smaller_loan_regenerates_schedule(self, welfare, accounts, loan, welfare_account):
        edited = welfare.edit_loan(loan.id, 8000, 3, first_installment_date=date(2024, 2, 10))

        assert accounts.get_balance(welfare_account.id) == Decimal("12000.00")
        assert edited.installment_count == 3
        assert [i.installment_number for i in edited.installments] == [1, 2, 3]
        assert [i.amount for i in edited.installments] == [
            Decimal("2666.67"), Decimal("2666.67"), Decimal("2666.66"),
        ]
        assert edited.installments[0].due_date == date(2024, 2, 10)

    def test_edit_after_payment_refused(self, welfare, loan, welfare_account):
        welfare.pay_installment(loan.installments[0].id, welfare_account.id, "cash", date(2024, 1, 5))
        with pytest.raises(InvalidStateTransition):
            welfare.edit_loan(loan.id, 12000, 4)


class TestDonations:
    def test_donation_credits_account(self, db, welfare, accounts, welfare_account):
        donation = welfare.add_donation(welfare_account.id, 2500, LOAN_DAY, "cash")

        assert donation.donation_number == "SWF-20240101-0001"
        assert donation.donor_name == "Anonymous"
        assert accounts.get_balance(welfare_account.id) == Decimal("22500.00")

    def test_deleted_donation_keeps_reversed_transaction(self, db, welfare, accounts, welfare_account):
        donation = welfare.add_donation(welfare_account.id, 2500, LOAN_DAY, "cash", donor_name="PTA")

        welfare.delete_donation(donation.id)

        tx = db.query(Transaction).filter(Transaction.welfare_donation_id == donation.id).one()
        assert accounts.get_balance(welfare_account.id) == Decimal("20000.00")
        assert tx.reversed_at is not None
        assert tx.deleted_at is None
        assert donation.is_deleted
        assert welfare.list_donations() == []

    def test_deleted_donation_cannot_be_deleted_again(self, welfare, welfare_account):
        donation = welfare.add_donation(welfare_account.id, 100, LOAN_DAY, "cash")
        welfare.delete_donation(donation.id)
        with pytest.raises(NotFound):
            welfare.delete_donation(donation.id)


class TestSummary:
    def test_fund_summary(self, welfare, loan, welfare_account):
        welfare.add_donation(welfare_account.id, 15000, LOAN_DAY, "cash")
        welfare.pay_installment(loan.installments[0].id, welfare_account.id, "cash", date(2024, 1, 5))
        other = welfare.create_loan("T-9", welfare_account.id, 1000, 500, LOAN_DAY, LOAN_DAY)
        welfare.cancel_loan(other.id)

        summary = welfare.fund_summary()

        assert summary["total_donations"] == Decimal("15000.00")
        assert summary["total_loans_given"] == Decimal("10000.00")
        assert summary["total_recovered"] == Decimal("3000.00")
        assert summary["outstanding"] == Decimal("7000.00")
        assert summary["available_balance"] == Decimal("8000.00")

    def test_overdue_installments(self, welfare, loan, welfare_account):
        welfare.pay_installment(loan.installments[0].id, welfare_account.id, "cash", date(2024, 1, 5))

        overdue = welfare.overdue_installments(today=date(2024, 3, 15))

        assert [i.installment_number for i in overdue] == [2, 3]
        assert overdue[0].days_overdue(date(2024, 3, 15)) == 43
