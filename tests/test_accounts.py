# tests/test_accounts.py
"""
Tests for the account store.

Tests cover:
- Creation validation and opening balance
- Increment/decrement and negative balances
- Descriptive updates
- Deletion blocked by dependents
- Activity log entries
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from ledger.core.errors import HasDependents, NotFound, ValidationError
from ledger.services.activity import ActivityLogger


class TestCreate:
    def test_current_balance_starts_at_opening_balance(self, bank_account):
        assert bank_account.opening_balance == Decimal("1000.00")
        assert bank_account.current_balance == Decimal("1000.00")
        assert bank_account.status == "active"

    def test_rejects_negative_opening_balance(self, accounts):
        with pytest.raises(ValidationError):
            accounts.create(name="Bad", number="X-1", type="cash", opening_balance="-1")

    def test_rejects_unknown_type(self, accounts):
        with pytest.raises(ValidationError):
            accounts.create(name="Bad", number="X-1", type="crypto")

    def test_rejects_duplicate_number(self, accounts, bank_account):
        with pytest.raises(ValidationError):
            accounts.create(name="Copy", number=bank_account.number, type="bank")

    def test_creation_is_logged(self, db, bank_account):
        entries = ActivityLogger(db).for_subject("account", bank_account.id)
        assert [e.action for e in entries] == ["create"]
        assert entries[0].actor_id == "admin"


class TestBalanceMutation:
    def test_increment_and_decrement(self, accounts, bank_account):
        assert accounts.increment(bank_account.id, "250.50") == Decimal("1250.50")
        assert accounts.decrement(bank_account.id, 50) == Decimal("1200.50")
        assert accounts.get_balance(bank_account.id) == Decimal("1200.50")

    def test_decrement_may_overdraw(self, accounts, cash_account):
        """The store itself has no overdraft protection"""
        assert accounts.decrement(cash_account.id, "10.00") == Decimal("-10.00")

    @pytest.mark.parametrize("amount", [0, "-5", None, "abc"])
    def test_amount_must_be_positive(self, accounts, bank_account, amount):
        with pytest.raises(ValidationError):
            accounts.increment(bank_account.id, amount)

    def test_unknown_account(self, accounts):
        with pytest.raises(NotFound):
            accounts.get_balance(uuid.uuid4())


class TestUpdate:
    def test_descriptive_fields(self, accounts, bank_account):
        updated = accounts.update(bank_account.id, name="Main Bank (Dhaka)", status="inactive")
        assert updated.name == "Main Bank (Dhaka)"
        assert updated.status == "inactive"

    def test_balance_is_not_editable(self, accounts, bank_account):
        with pytest.raises(ValidationError):
            accounts.update(bank_account.id, current_balance=Decimal("5"))

    def test_name_and_number_are_trimmed(self, accounts, bank_account):
        updated = accounts.update(bank_account.id, name="  Main Bank  ", number=" 0200-9 ")
        assert updated.name == "Main Bank"
        assert updated.number == "0200-9"

    @pytest.mark.parametrize("field", ["name", "number"])
    def test_blank_name_or_number_rejected(self, accounts, bank_account, field):
        with pytest.raises(ValidationError) as exc_info:
            accounts.update(bank_account.id, **{field: "   "})
        assert exc_info.value.context["field"] == field
        assert accounts.get(bank_account.id).number == "0200-1001"

    def test_padded_number_of_another_account_is_a_duplicate(self, accounts, bank_account, cash_account):
        with pytest.raises(ValidationError):
            accounts.update(cash_account.id, number=" 0200-1001 ")

    def test_inactive_account_rejects_new_records(self, accounts, ledger, bank_account, income_category):
        accounts.update(bank_account.id, status="inactive")
        with pytest.raises(ValidationError):
            ledger.record(bank_account.id, "income", 10, date(2024, 1, 1), category_id=income_category.id)


class TestDelete:
    def test_delete_unused_account(self, accounts, cash_account):
        accounts.delete(cash_account.id)
        with pytest.raises(NotFound):
            accounts.get(cash_account.id)
        assert cash_account.id not in [a.id for a in accounts.list()]

    def test_blocked_by_live_transaction(self, accounts, ledger, bank_account, income_category):
        ledger.record(bank_account.id, "income", 10, date(2024, 1, 1), category_id=income_category.id)
        with pytest.raises(HasDependents):
            accounts.delete(bank_account.id)

    def test_blocked_by_incoming_transfer(self, accounts, ledger, bank_account, cash_account):
        ledger.record(bank_account.id, "transfer", 10, date(2024, 1, 1), transfer_to_account_id=cash_account.id)
        with pytest.raises(HasDependents):
            accounts.delete(cash_account.id)

    def test_deleted_transactions_do_not_block(self, accounts, ledger, cash_account, income_category):
        tx = ledger.record(cash_account.id, "income", 10, date(2024, 1, 1), category_id=income_category.id)
        ledger.reverse_and_delete(tx.id)
        accounts.delete(cash_account.id)

    def test_blocked_by_fund(self, accounts, funds, investor, bank_account):
        funds.fund_in(investor.id, bank_account.id, 100, date(2024, 1, 1))
        with pytest.raises(HasDependents):
            accounts.delete(bank_account.id)


class TestList:
    def test_filters(self, accounts, bank_account, cash_account):
        assert [a.id for a in accounts.list(type="cash")] == [cash_account.id]
        assert [a.id for a in accounts.list(search="sonali")] == [bank_account.id]
