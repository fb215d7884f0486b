# ledger/services/transactions.py - Transaction ledger: record, amend, reverse
from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from datetime import date
from typing import Callable, List, Optional
import logging
import uuid

from ledger.core.db import unit_of_work
from ledger.core.errors import ValidationError, NotFound, HasDependents, InvalidStateTransition
from ledger.core.money import positive_money, format_currency
from ledger.models.base import utcnow
from ledger.models.category import IncomeCategory, ExpenseCategory
from ledger.models.transaction import Transaction
from ledger.services.accounts import AccountStore
from ledger.services.activity import ActivityLogger
from ledger.services.effects import EffectSet, EffectApplier, LedgerEffect, OverdraftPolicy, ACCOUNT
from ledger.services.identifiers import IdentifierGenerator, TRANSACTION_NUMBER

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("income", "expense", "transfer", "asset_purchase")


def transaction_effects(tx: Transaction) -> EffectSet:
    """Balance impact of a transaction row as it currently stands"""
    if tx.type == "income":
        return EffectSet.of(LedgerEffect(ACCOUNT, tx.account_id, tx.amount))
    if tx.type in ("expense", "asset_purchase"):
        return EffectSet.of(LedgerEffect(ACCOUNT, tx.account_id, -tx.amount))
    if tx.type == "transfer":
        return EffectSet.of(
            LedgerEffect(ACCOUNT, tx.account_id, -tx.amount),
            LedgerEffect(ACCOUNT, tx.transfer_to_account_id, tx.amount),
        )
    raise ValidationError(f"Invalid transaction type: {tx.type}", field="type")


class TransactionLedger:
    """
    Canonical record of money movement between accounts and the outside world.

    Every public operation is one unit of work: the row, the balance change
    and the activity entry commit together or not at all.
    """

    def __init__(self, db: Session, clock: Optional[Callable[[], date]] = None):
        self.db = db
        self.accounts = AccountStore(db)
        self.identifiers = IdentifierGenerator(db, clock)
        self.applier = EffectApplier(db)
        self.activity = ActivityLogger(db)

    def record(
        self,
        account_id: uuid.UUID,
        type: str,
        amount,
        transaction_date: date,
        category_id: Optional[uuid.UUID] = None,
        transfer_to_account_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
        payment_method: Optional[str] = None,
        reference_number: Optional[str] = None,
        actor_id: Optional[str] = None,
        welfare_loan_id: Optional[uuid.UUID] = None,
        welfare_installment_id: Optional[uuid.UUID] = None,
        welfare_donation_id: Optional[uuid.UUID] = None,
    ) -> Transaction:
        """
        Record a transaction and apply its balance effect.

        income credits the account, expense and asset_purchase debit it, and
        transfer debits the source and credits the destination. Operating
        accounts may go negative.

        Raises:
            ValidationError: bad type, amount, category or transfer target
            NotFound: account, destination or category does not exist
        """
        if type not in TRANSACTION_TYPES:
            raise ValidationError(f"Invalid transaction type: {type}", field="type")
        value = positive_money(amount)
        if transaction_date is None:
            raise ValidationError("transaction_date is required", field="transaction_date")

        with unit_of_work(self.db):
            self.accounts.get_active(account_id)
            income_category_id, expense_category_id = self._resolve_category(type, category_id)
            self._check_transfer_target(type, account_id, transfer_to_account_id)

            tx = Transaction(
                transaction_number=self.identifiers.next_id(TRANSACTION_NUMBER),
                account_id=account_id,
                type=type,
                amount=value,
                transaction_date=transaction_date,
                income_category_id=income_category_id,
                expense_category_id=expense_category_id,
                transfer_to_account_id=transfer_to_account_id,
                payment_method=payment_method,
                reference_number=reference_number,
                description=description,
                created_by=actor_id,
                welfare_loan_id=welfare_loan_id,
                welfare_installment_id=welfare_installment_id,
                welfare_donation_id=welfare_donation_id,
            )
            self.applier.apply(transaction_effects(tx), OverdraftPolicy.ALLOW)
            self._insert(tx)
            self.activity.record(
                "create",
                f"Recorded {type} {tx.transaction_number} of {format_currency(value)}",
                "transaction", tx.id, actor_id,
            )

        logger.info(f"Recorded {type} transaction {tx.transaction_number}: {value}")
        return tx

    def get(self, transaction_id: uuid.UUID, include_deleted: bool = False) -> Transaction:
        tx = self.db.get(Transaction, transaction_id)
        if tx is None or (tx.is_deleted and not include_deleted):
            raise NotFound("Transaction", transaction_id)
        return tx

    def list(
        self,
        account_id: Optional[uuid.UUID] = None,
        type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        include_deleted: bool = False,
    ) -> List[Transaction]:
        query = select(Transaction)
        if not include_deleted:
            query = query.where(Transaction.deleted_at.is_(None))
        if account_id:
            query = query.where(
                or_(Transaction.account_id == account_id, Transaction.transfer_to_account_id == account_id)
            )
        if type:
            query = query.where(Transaction.type == type)
        if date_from:
            query = query.where(Transaction.transaction_date >= date_from)
        if date_to:
            query = query.where(Transaction.transaction_date <= date_to)
        query = query.order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc())
        return list(self.db.execute(query).scalars())

    def reverse_and_delete(self, transaction_id: uuid.UUID, actor_id: Optional[str] = None) -> Transaction:
        """
        Undo a transaction's balance effect and soft-delete it.

        Raises:
            HasDependents: the row belongs to a welfare loan or donation and
                must be removed through the welfare engine
        """
        with unit_of_work(self.db):
            tx = self.get(transaction_id)
            self._guard_welfare_owned(tx)
            self.apply_reversal(tx)
            self.activity.record(
                "delete", f"Deleted transaction {tx.transaction_number}", "transaction", tx.id, actor_id
            )
        return tx

    def amend(
        self,
        transaction_id: uuid.UUID,
        amount=None,
        transaction_date: Optional[date] = None,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Transaction:
        """Edit amount, date or description; balances follow old.reversed() + new"""
        with unit_of_work(self.db):
            tx = self.get(transaction_id)
            self._guard_welfare_owned(tx)
            self.apply_amendment(tx, amount=amount, transaction_date=transaction_date, description=description)
            self.activity.record(
                "update", f"Updated transaction {tx.transaction_number}", "transaction", tx.id, actor_id
            )
        return tx

    # ------------------------------------------------------------------
    # Primitives shared with the welfare engine. They expect to run inside
    # an open unit of work and skip the ownership guard.
    # ------------------------------------------------------------------

    def apply_reversal(self, tx: Transaction) -> None:
        """Apply the inverse effect and soft-delete the row"""
        if not tx.is_live:
            raise InvalidStateTransition(f"Transaction {tx.transaction_number} is already reversed")
        self.applier.apply(transaction_effects(tx).reversed(), OverdraftPolicy.ALLOW)
        tx.soft_delete()
        logger.info(f"Reversed and deleted transaction {tx.transaction_number}")

    def apply_reversal_preserving(self, tx: Transaction) -> None:
        """Apply the inverse effect but keep the row visible as history"""
        if not tx.is_live:
            raise InvalidStateTransition(f"Transaction {tx.transaction_number} is already reversed")
        self.applier.apply(transaction_effects(tx).reversed(), OverdraftPolicy.ALLOW)
        tx.reversed_at = utcnow()
        logger.info(f"Reversed transaction {tx.transaction_number} (row kept)")

    def apply_amendment(self, tx: Transaction, amount=None, transaction_date=None, description=None) -> None:
        old = transaction_effects(tx)
        if amount is not None:
            tx.amount = positive_money(amount)
        if transaction_date is not None:
            tx.transaction_date = transaction_date
        if description is not None:
            tx.description = description
        self.applier.apply(old.reversed() + transaction_effects(tx), OverdraftPolicy.ALLOW)

    def _insert(self, tx: Transaction) -> None:
        self.db.add(tx)
        self.db.flush()

    def _guard_welfare_owned(self, tx: Transaction) -> None:
        if tx.is_welfare_owned:
            raise HasDependents(
                f"Transaction {tx.transaction_number} belongs to a welfare record; "
                f"change it through the welfare fund instead",
                transaction_id=tx.id,
            )

    def _resolve_category(self, type: str, category_id: Optional[uuid.UUID]):
        if type == "income":
            if category_id is None:
                raise ValidationError("Income transactions require a category", field="category_id")
            if self.db.get(IncomeCategory, category_id) is None:
                raise NotFound("Income category", category_id)
            return category_id, None
        if type == "expense":
            if category_id is None:
                raise ValidationError("Expense transactions require a category", field="category_id")
            if self.db.get(ExpenseCategory, category_id) is None:
                raise NotFound("Expense category", category_id)
            return None, category_id
        if type == "asset_purchase" and category_id is not None:
            if self.db.get(ExpenseCategory, category_id) is None:
                raise NotFound("Expense category", category_id)
            return None, category_id
        return None, None

    def _check_transfer_target(
        self, type: str, account_id: uuid.UUID, transfer_to_account_id: Optional[uuid.UUID]
    ) -> None:
        if type != "transfer":
            if transfer_to_account_id is not None:
                raise ValidationError(
                    "Only transfers take a destination account", field="transfer_to_account_id"
                )
            return
        if transfer_to_account_id is None:
            raise ValidationError("Transfers require a destination account", field="transfer_to_account_id")
        if transfer_to_account_id == account_id:
            raise ValidationError(
                "Transfer destination must differ from the source account", field="transfer_to_account_id"
            )
        self.accounts.get_active(transfer_to_account_id)
