# ledger/services/accounts.py - Account registry and the only writer of current_balance
from sqlalchemy.orm import Session
from sqlalchemy import select, or_, exists
from decimal import Decimal
from typing import List, Optional
import logging
import uuid

from ledger.core.db import unit_of_work
from ledger.core.errors import ValidationError, NotFound, HasDependents
from ledger.core.money import to_money, positive_money, format_currency, ZERO
from ledger.models.account import Account
from ledger.models.transaction import Transaction
from ledger.models.fund import Fund, FundTransaction
from ledger.models.welfare import WelfareLoan, WelfareFundDonation
from ledger.services.activity import ActivityLogger

logger = logging.getLogger(__name__)

ACCOUNT_TYPES = ("bank", "cash", "mobile_wallet")
ACCOUNT_STATUSES = ("active", "inactive")
_EDITABLE_FIELDS = ("name", "number", "type", "bank_name", "branch", "description", "status")


class AccountStore:
    """
    Registry of monetary accounts.

    ``adjust`` is the single code path that changes ``current_balance``: it
    locks the row (SELECT ... FOR UPDATE on PostgreSQL), reloads it and applies
    the delta in Python. Every engine reaches it through increment/decrement
    or the effect applier.
    """

    def __init__(self, db: Session):
        self.db = db
        self.activity = ActivityLogger(db)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def create(
        self,
        name: str,
        number: str,
        type: str,
        opening_balance=0,
        bank_name: Optional[str] = None,
        branch: Optional[str] = None,
        description: Optional[str] = None,
        status: str = "active",
        actor_id: Optional[str] = None,
    ) -> Account:
        """Create an account whose current balance starts at its opening balance"""
        if not name or not name.strip():
            raise ValidationError("Account name is required", field="name")
        if not number or not number.strip():
            raise ValidationError("Account number is required", field="number")
        self._check_type(type)
        self._check_status(status)
        opening = to_money(opening_balance, "opening_balance")
        if opening < ZERO:
            raise ValidationError("opening_balance must not be negative", field="opening_balance")

        with unit_of_work(self.db):
            self._check_number_free(number)
            account = Account(
                name=name.strip(),
                number=number.strip(),
                type=type,
                bank_name=bank_name,
                branch=branch,
                description=description,
                opening_balance=opening,
                current_balance=opening,
                status=status,
            )
            self.db.add(account)
            self.db.flush()
            self.activity.record(
                "create",
                f"Created account {account.name} ({account.number}) with opening balance {format_currency(opening)}",
                "account", account.id, actor_id,
            )

        return account

    def get(self, account_id: uuid.UUID) -> Account:
        account = self.db.get(Account, account_id)
        if account is None or account.is_deleted:
            raise NotFound("Account", account_id)
        return account

    def get_active(self, account_id: uuid.UUID) -> Account:
        """Account that may receive new records"""
        account = self.get(account_id)
        if not account.is_active:
            raise ValidationError(f"Account {account.number} is inactive", account_id=account_id)
        return account

    def list(
        self,
        type: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Account]:
        query = select(Account).where(Account.deleted_at.is_(None))
        if type:
            query = query.where(Account.type == type)
        if status:
            query = query.where(Account.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(Account.name.ilike(pattern), Account.number.ilike(pattern), Account.bank_name.ilike(pattern))
            )
        return list(self.db.execute(query.order_by(Account.name)).scalars())

    def update(self, account_id: uuid.UUID, actor_id: Optional[str] = None, **fields) -> Account:
        """Edit descriptive fields; balances are not editable here"""
        unknown = set(fields) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        for key, label in (("name", "Account name"), ("number", "Account number")):
            if key in fields:
                if not fields[key] or not fields[key].strip():
                    raise ValidationError(f"{label} is required", field=key)
                fields[key] = fields[key].strip()

        with unit_of_work(self.db):
            account = self.get(account_id)
            if "type" in fields:
                self._check_type(fields["type"])
            if "status" in fields:
                self._check_status(fields["status"])
            if "number" in fields and fields["number"] != account.number:
                self._check_number_free(fields["number"])
            for key, value in fields.items():
                setattr(account, key, value)
            self.db.flush()
            self.activity.record("update", f"Updated account {account.name}", "account", account.id, actor_id)

        return account

    def delete(self, account_id: uuid.UUID, actor_id: Optional[str] = None) -> None:
        """
        Soft-delete an account nothing references.

        Raises:
            HasDependents: live transactions, fund records, loans or donations
                still point at the account
        """
        with unit_of_work(self.db):
            account = self.get(account_id)
            blockers = self._dependents(account.id)
            if blockers:
                raise HasDependents(
                    f"Account {account.number} has dependent records: {', '.join(blockers)}",
                    account_id=account.id,
                )
            account.soft_delete()
            self.activity.record("delete", f"Deleted account {account.name}", "account", account.id, actor_id)

    # ------------------------------------------------------------------
    # Balance mutation
    # ------------------------------------------------------------------

    def lock(self, account_id: uuid.UUID) -> Account:
        """Load the account row under a write lock, refreshing any cached copy"""
        self.db.flush()
        account = self.db.execute(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None or account.is_deleted:
            raise NotFound("Account", account_id)
        return account

    def adjust(self, account_id: uuid.UUID, delta: Decimal) -> Decimal:
        """Apply a signed delta to the balance; returns the new balance"""
        account = self.lock(account_id)
        account.current_balance = to_money(account.current_balance + delta)
        self.db.flush()
        logger.debug(f"Account {account.number} {delta:+} -> {account.current_balance}")
        return account.current_balance

    def increment(self, account_id: uuid.UUID, amount) -> Decimal:
        value = positive_money(amount)
        with unit_of_work(self.db):
            return self.adjust(account_id, value)

    def decrement(self, account_id: uuid.UUID, amount) -> Decimal:
        """Lower the balance; operating accounts are allowed to go negative"""
        value = positive_money(amount)
        with unit_of_work(self.db):
            return self.adjust(account_id, -value)

    def get_balance(self, account_id: uuid.UUID) -> Decimal:
        account = self.db.execute(
            select(Account).where(Account.id == account_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None or account.is_deleted:
            raise NotFound("Account", account_id)
        return account.current_balance

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_type(self, type: str) -> None:
        if type not in ACCOUNT_TYPES:
            raise ValidationError(f"Invalid account type: {type}", field="type")

    def _check_status(self, status: str) -> None:
        if status not in ACCOUNT_STATUSES:
            raise ValidationError(f"Invalid account status: {status}", field="status")

    def _check_number_free(self, number: str) -> None:
        # Soft-deleted accounts keep their number
        taken = self.db.execute(select(exists().where(Account.number == number.strip()))).scalar()
        if taken:
            raise ValidationError(f"Account number {number} is already in use", field="number")

    def _dependents(self, account_id: uuid.UUID) -> List[str]:
        checks = {
            "transactions": select(exists().where(
                or_(Transaction.account_id == account_id, Transaction.transfer_to_account_id == account_id),
                Transaction.deleted_at.is_(None),
            )),
            "fund transactions": select(exists().where(FundTransaction.account_id == account_id)),
            "funds": select(exists().where(Fund.account_id == account_id)),
            "welfare loans": select(exists().where(WelfareLoan.account_id == account_id)),
            "welfare donations": select(exists().where(
                WelfareFundDonation.account_id == account_id,
                WelfareFundDonation.deleted_at.is_(None),
            )),
        }
        return [name for name, query in checks.items() if self.db.execute(query).scalar()]
