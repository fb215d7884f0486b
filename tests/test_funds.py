# tests/test_funds.py
"""
Tests for the fund ledger.

Tests cover:
- Fund-in opens a fund and credits fund and account together
- Fund-out sufficiency checks on fund and account
- Auto-close at zero and a new fund on the next deposit
- Edits apply the signed difference, deletes the full inverse
- Reopening a closed fund and the one-active-fund rule
- Investor deletion and the investor ledger
"""

import threading
import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from ledger.core.db import DatabaseManager
from ledger.core.errors import (
    HasDependents, InsufficientFunds, InvalidStateTransition, NoActiveFund, NotFound,
)
from ledger.models.fund import Fund
from ledger.services.accounts import AccountStore
from ledger.services.funds import FundLedger
from ledger.services.reconcile import BalanceReconciler


DAY = date(2024, 1, 1)


@pytest.fixture(autouse=True)
def balances_reconcile(db):
    """Every test must leave stored balances equal to their history"""
    yield
    db.rollback()
    assert BalanceReconciler(db).check_all() == []


class TestFundIn:
    def test_first_deposit_opens_fund(self, funds, accounts, investor, bank_account):
        tx = funds.fund_in(investor.id, bank_account.id, 200, DAY, actor_id="admin")
        fund = funds.active_fund(investor.id)

        assert investor.investor_code == "INV-0001"
        assert fund.fund_code == "FD-0001"
        assert fund.current_balance == Decimal("200.00")
        assert tx.transaction_number == "FTRX-20240101-0001"
        assert tx.direction == "in"
        assert tx.description == "Fund received from: Rahim Uddin"
        assert accounts.get_balance(bank_account.id) == Decimal("1200.00")

    def test_later_deposits_join_the_active_fund(self, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 200, DAY)
        funds.fund_in(investor.id, bank_account.id, 300, DAY)
        fund = funds.active_fund(investor.id)
        assert fund.current_balance == Decimal("500.00")
        assert len(fund.transactions) == 2

    def test_unknown_investor(self, funds, bank_account):
        with pytest.raises(NotFound):
            funds.fund_in(uuid.uuid4(), bank_account.id, 10, DAY)


class TestFundOut:
    def test_withdrawal_debits_fund_and_account(self, funds, accounts, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 500, DAY)
        tx = funds.fund_out(investor.id, bank_account.id, 200, DAY)

        assert tx.direction == "out"
        assert funds.active_fund(investor.id).current_balance == Decimal("300.00")
        assert accounts.get_balance(bank_account.id) == Decimal("1300.00")

    def test_more_than_fund_balance_is_rejected(self, funds, accounts, investor, bank_account):
        """The account could cover it but the fund cannot"""
        funds.fund_in(investor.id, bank_account.id, 100, DAY)

        with pytest.raises(InsufficientFunds) as exc_info:
            funds.fund_out(investor.id, bank_account.id, 150, DAY)

        assert exc_info.value.context["target"] == "fund"
        assert funds.active_fund(investor.id).current_balance == Decimal("100.00")
        assert accounts.get_balance(bank_account.id) == Decimal("1100.00")

    def test_more_than_account_balance_is_rejected(self, funds, accounts, investor, bank_account, cash_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)

        with pytest.raises(InsufficientFunds) as exc_info:
            funds.fund_out(investor.id, cash_account.id, 50, DAY)

        assert exc_info.value.context["target"] == "account"
        assert accounts.get_balance(cash_account.id) == Decimal("0.00")

    def test_no_active_fund(self, funds, investor, bank_account):
        with pytest.raises(NoActiveFund):
            funds.fund_out(investor.id, bank_account.id, 10, DAY)

    def test_emptied_fund_closes_and_next_deposit_opens_new_one(self, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)
        first = funds.active_fund(investor.id)
        funds.fund_out(investor.id, bank_account.id, 100, DAY)

        assert first.status == "closed"
        assert funds.active_fund(investor.id) is None

        funds.fund_in(investor.id, bank_account.id, 40, DAY)
        second = funds.active_fund(investor.id)
        assert second.id != first.id
        assert second.fund_code == "FD-0002"


class TestEditTransaction:
    def test_increasing_an_in_adds_the_difference(self, funds, accounts, investor, bank_account):
        """200 -> 500 moves both balances by +300, not to 500"""
        funds.fund_in(investor.id, bank_account.id, 100, DAY)
        tx = funds.fund_in(investor.id, bank_account.id, 200, DAY)

        funds.edit_transaction(tx.id, amount=500)

        assert funds.active_fund(investor.id).current_balance == Decimal("600.00")
        assert accounts.get_balance(bank_account.id) == Decimal("1600.00")

    def test_increasing_an_out_subtracts_the_difference(self, funds, accounts, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 500, DAY)
        tx = funds.fund_out(investor.id, bank_account.id, 100, DAY)

        funds.edit_transaction(tx.id, amount=150)

        assert funds.active_fund(investor.id).current_balance == Decimal("350.00")
        assert accounts.get_balance(bank_account.id) == Decimal("1350.00")

    def test_edit_cannot_drive_fund_negative(self, funds, investor, bank_account):
        tx = funds.fund_in(investor.id, bank_account.id, 500, DAY)
        funds.fund_out(investor.id, bank_account.id, 400, DAY)

        with pytest.raises(InsufficientFunds):
            funds.edit_transaction(tx.id, amount=300)
        assert funds.active_fund(investor.id).current_balance == Decimal("100.00")

    def test_edit_to_zero_balance_closes_fund(self, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 500, DAY)
        tx = funds.fund_out(investor.id, bank_account.id, 100, DAY)
        fund = funds.active_fund(investor.id)

        funds.edit_transaction(tx.id, amount=500)

        assert fund.status == "closed"

    def test_description_only(self, funds, investor, bank_account):
        tx = funds.fund_in(investor.id, bank_account.id, 500, DAY)
        funds.edit_transaction(tx.id, description="Initial capital")
        assert funds.get_transaction(tx.id).description == "Initial capital"
        assert funds.active_fund(investor.id).current_balance == Decimal("500.00")


class TestDeleteTransaction:
    def test_deleting_an_in_reverses_it(self, funds, accounts, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)
        tx = funds.fund_in(investor.id, bank_account.id, 50, DAY)

        funds.delete_transaction(tx.id)

        assert funds.active_fund(investor.id).current_balance == Decimal("100.00")
        assert accounts.get_balance(bank_account.id) == Decimal("1100.00")
        with pytest.raises(NotFound):
            funds.get_transaction(tx.id)

    def test_deleting_an_out_reopens_closed_fund(self, funds, accounts, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)
        fund = funds.active_fund(investor.id)
        out = funds.fund_out(investor.id, bank_account.id, 100, DAY)
        assert fund.status == "closed"

        funds.delete_transaction(out.id)

        assert fund.status == "active"
        assert fund.current_balance == Decimal("100.00")
        assert accounts.get_balance(bank_account.id) == Decimal("1100.00")

    def test_reopen_refused_while_another_fund_is_active(self, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)
        out = funds.fund_out(investor.id, bank_account.id, 100, DAY)
        funds.fund_in(investor.id, bank_account.id, 30, DAY)

        with pytest.raises(InvalidStateTransition):
            funds.delete_transaction(out.id)

    def test_deleting_the_only_deposit_closes_the_fund(self, funds, investor, bank_account):
        tx = funds.fund_in(investor.id, bank_account.id, 100, DAY)
        fund = funds.active_fund(investor.id)
        funds.delete_transaction(tx.id)
        assert fund.status == "closed"
        assert fund.current_balance == Decimal("0.00")

    def test_deposit_can_be_deleted_after_account_is_spent(
        self, funds, ledger, accounts, investor, cash_account, expense_category
    ):
        """Removing a mistaken deposit may overdraw operating cash, never the fund"""
        tx = funds.fund_in(investor.id, cash_account.id, 500, DAY)
        fund = funds.active_fund(investor.id)
        ledger.record(cash_account.id, "expense", 300, DAY, category_id=expense_category.id)

        funds.delete_transaction(tx.id)

        assert accounts.get_balance(cash_account.id) == Decimal("-300.00")
        assert fund.current_balance == Decimal("0.00")
        assert fund.status == "closed"

    def test_edit_down_may_overdraw_account(
        self, funds, ledger, accounts, investor, cash_account, expense_category
    ):
        funds.fund_in(investor.id, cash_account.id, 100, DAY)
        tx = funds.fund_in(investor.id, cash_account.id, 400, DAY)
        ledger.record(cash_account.id, "expense", 450, DAY, category_id=expense_category.id)

        funds.edit_transaction(tx.id, amount=200)

        assert funds.active_fund(investor.id).current_balance == Decimal("300.00")
        assert accounts.get_balance(cash_account.id) == Decimal("-150.00")


class TestInvestors:
    def test_investor_with_funds_cannot_be_deleted(self, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 10, DAY)
        with pytest.raises(HasDependents):
            funds.delete_investor(investor.id)

    def test_investor_without_funds_is_deleted(self, funds, investor):
        funds.delete_investor(investor.id)
        with pytest.raises(NotFound):
            funds.get_investor(investor.id)

    def test_ledger_spans_all_funds(self, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)
        funds.fund_out(investor.id, bank_account.id, 100, date(2024, 1, 2))
        funds.fund_in(investor.id, bank_account.id, 70, date(2024, 1, 3))

        entries = funds.investor_ledger(investor.id)
        assert [(e.direction, e.amount) for e in entries] == [
            ("in", Decimal("100.00")), ("out", Decimal("100.00")), ("in", Decimal("70.00")),
        ]
        assert len({e.fund_id for e in entries}) == 2

    def test_statistics(self, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)
        funds.fund_out(investor.id, bank_account.id, 40, DAY)

        stats = funds.statistics()

        assert stats["total_investors"] == 1
        assert stats["active_investors"] == 1
        assert stats["total_active_balance"] == Decimal("60.00")
        assert stats["total_in"] == Decimal("100.00")
        assert stats["total_out"] == Decimal("40.00")


class TestOneActiveFund:
    def test_second_active_fund_is_refused_by_the_database(self, db, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, DAY)

        db.add(Fund(
            fund_code="FD-9999", investor_id=investor.id, account_id=bank_account.id,
            current_balance=Decimal("0.00"), status="active",
        ))
        with pytest.raises(IntegrityError):
            db.flush()

    def test_closed_funds_do_not_count(self, funds, investor, bank_account):
        for _ in range(3):
            funds.fund_in(investor.id, bank_account.id, 10, DAY)
            funds.fund_out(investor.id, bank_account.id, 10, DAY)

        funds.fund_in(investor.id, bank_account.id, 10, DAY)

        assert funds.active_fund(investor.id).fund_code == "FD-0004"

    def test_concurrent_first_deposits_share_one_fund(self, tmp_path, clock):
        """Threads with their own sessions depositing for an investor without a fund"""
        manager = DatabaseManager(f"sqlite:///{tmp_path / 'funds.db'}")
        manager.create_all()

        setup = manager.SessionLocal()
        account = AccountStore(setup).create(name="Main Bank", number="0200-1001", type="bank")
        investor = FundLedger(setup, clock).create_investor("Rahim Uddin")
        account_id, investor_id = account.id, investor.id
        setup.close()

        workers, amount = 6, Decimal("25.00")
        barrier = threading.Barrier(workers)
        errors = []
        lock = threading.Lock()

        def work():
            session = manager.SessionLocal()
            try:
                barrier.wait()
                FundLedger(session, clock).fund_in(investor_id, account_id, amount, DAY)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=work) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        check = manager.SessionLocal()
        active = check.query(Fund).filter(Fund.investor_id == investor_id, Fund.status == "active").all()
        drifts = BalanceReconciler(check).check_all()
        check.close()
        manager.close()

        assert errors == []
        assert len(active) == 1
        assert active[0].current_balance == amount * workers
        assert drifts == []
