# ledger/services/reconcile.py - Recompute balances from history and report drift
from sqlalchemy.orm import Session
from sqlalchemy import select, func, case
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional
import logging
import uuid

from ledger.core.errors import NotFound
from ledger.core.money import to_money, ZERO
from ledger.models.account import Account
from ledger.models.fund import Fund, FundTransaction
from ledger.models.transaction import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Drift:
    target: str
    target_id: uuid.UUID
    label: str
    stored: Decimal
    expected: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored - self.expected

    @property
    def balanced(self) -> bool:
        return self.difference == ZERO


class BalanceReconciler:
    """
    Read-only checks of stored balances against the records behind them.

    An account's expected balance is its opening balance plus every live
    transaction (not deleted, not reversed) and every fund movement through it.
    """

    def __init__(self, db: Session):
        self.db = db

    def expected_account_balance(self, account_id: uuid.UUID, as_of: Optional[date] = None) -> Decimal:
        account = self.db.get(Account, account_id)
        if account is None:
            raise NotFound("Account", account_id)

        live = (Transaction.deleted_at.is_(None), Transaction.reversed_at.is_(None))
        on_or_before = (Transaction.transaction_date <= as_of,) if as_of else ()

        own = self.db.execute(
            select(func.coalesce(func.sum(case(
                (Transaction.type == "income", Transaction.amount),
                else_=-Transaction.amount,
            )), 0)).where(Transaction.account_id == account_id, *live, *on_or_before)
        ).scalar_one()

        transfers_in = self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.transfer_to_account_id == account_id,
                Transaction.type == "transfer",
                *live,
                *on_or_before,
            )
        ).scalar_one()

        fund_filters = (FundTransaction.transaction_date <= as_of,) if as_of else ()
        fund_net = self.db.execute(
            select(func.coalesce(func.sum(case(
                (FundTransaction.direction == "in", FundTransaction.amount),
                else_=-FundTransaction.amount,
            )), 0)).where(FundTransaction.account_id == account_id, *fund_filters)
        ).scalar_one()

        return to_money(account.opening_balance + to_money(own) + to_money(transfers_in) + to_money(fund_net))

    def balance_as_of(self, account_id: uuid.UUID, as_of: date) -> Decimal:
        """Account balance at the end of a given day, rebuilt from history"""
        return self.expected_account_balance(account_id, as_of)

    def check_account(self, account_id: uuid.UUID) -> Drift:
        account = self.db.get(Account, account_id)
        if account is None:
            raise NotFound("Account", account_id)
        return Drift(
            target="account",
            target_id=account.id,
            label=account.number,
            stored=account.current_balance,
            expected=self.expected_account_balance(account.id),
        )

    def check_fund(self, fund_id: uuid.UUID) -> Drift:
        fund = self.db.get(Fund, fund_id)
        if fund is None:
            raise NotFound("Fund", fund_id)
        net = self.db.execute(
            select(func.coalesce(func.sum(case(
                (FundTransaction.direction == "in", FundTransaction.amount),
                else_=-FundTransaction.amount,
            )), 0)).where(FundTransaction.fund_id == fund.id)
        ).scalar_one()
        return Drift(
            target="fund",
            target_id=fund.id,
            label=fund.fund_code,
            stored=fund.current_balance,
            expected=to_money(net),
        )

    def check_all(self) -> List[Drift]:
        """Every account and fund whose stored balance disagrees with its history"""
        accounts = list(self.db.execute(select(Account.id).where(Account.deleted_at.is_(None))).scalars())
        funds = list(self.db.execute(select(Fund.id)).scalars())
        results = [self.check_account(a) for a in accounts] + [self.check_fund(f) for f in funds]
        drifted = [r for r in results if not r.balanced]
        for drift in drifted:
            logger.warning(
                f"Balance drift on {drift.target} {drift.label}: stored {drift.stored}, expected {drift.expected}"
            )
        return drifted
