# tests/test_reconcile.py
"""
Tests for balance reconciliation against history.
"""

from datetime import date
from decimal import Decimal

from ledger.services.reconcile import BalanceReconciler


class TestReconcile:
    def test_mixed_operations_leave_no_drift(
        self, db, ledger, funds, welfare, investor, bank_account, cash_account, income_category, expense_category
    ):
        ledger.record(bank_account.id, "income", 500, date(2024, 1, 1), category_id=income_category.id)
        expense = ledger.record(bank_account.id, "expense", 120, date(2024, 1, 2), category_id=expense_category.id)
        ledger.record(bank_account.id, "transfer", 300, date(2024, 1, 3), transfer_to_account_id=cash_account.id)
        ledger.amend(expense.id, amount=150)
        funds.fund_in(investor.id, bank_account.id, 800, date(2024, 1, 4))
        funds.fund_out(investor.id, bank_account.id, 200, date(2024, 1, 5))
        loan = welfare.create_loan("T-1", bank_account.id, 600, 200, date(2024, 1, 6), date(2024, 2, 1))
        welfare.pay_installment(loan.installments[0].id, cash_account.id, "cash", date(2024, 2, 1))
        donation = welfare.add_donation(bank_account.id, 90, date(2024, 1, 7), "cash")
        welfare.delete_donation(donation.id)

        assert BalanceReconciler(db).check_all() == []

    def test_balance_as_of_rebuilds_history(self, db, ledger, bank_account, income_category, expense_category):
        ledger.record(bank_account.id, "income", 500, date(2024, 1, 1), category_id=income_category.id)
        ledger.record(bank_account.id, "expense", 200, date(2024, 1, 10), category_id=expense_category.id)
        reconciler = BalanceReconciler(db)

        assert reconciler.balance_as_of(bank_account.id, date(2023, 12, 31)) == Decimal("1000.00")
        assert reconciler.balance_as_of(bank_account.id, date(2024, 1, 5)) == Decimal("1500.00")
        assert reconciler.balance_as_of(bank_account.id, date(2024, 1, 31)) == Decimal("1300.00")

    def test_drift_is_reported(self, db, bank_account):
        bank_account.current_balance = Decimal("1234.00")
        db.commit()

        drifts = BalanceReconciler(db).check_all()

        assert len(drifts) == 1
        assert drifts[0].label == "0200-1001"
        assert drifts[0].difference == Decimal("234.00")
