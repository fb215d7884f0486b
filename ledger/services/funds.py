# ledger/services/funds.py - Investor capital held in operating accounts
from sqlalchemy.orm import Session
from sqlalchemy import select, func, exists, update
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional
import logging
import uuid

from ledger.core.db import unit_of_work
from ledger.core.errors import ValidationError, NotFound, HasDependents, NoActiveFund, InvalidStateTransition
from ledger.core.money import to_money, positive_money, format_currency, ZERO
from ledger.models.base import utcnow
from ledger.models.fund import Investor, Fund, FundTransaction
from ledger.services.accounts import AccountStore
from ledger.services.activity import ActivityLogger
from ledger.services.effects import EffectSet, EffectApplier, LedgerEffect, OverdraftPolicy, ACCOUNT, FUND
from ledger.services.identifiers import (
    IdentifierGenerator, FUND_CODE, FUND_TRANSACTION_NUMBER, INVESTOR_CODE
)

logger = logging.getLogger(__name__)


def fund_effects(tx: FundTransaction) -> EffectSet:
    """in credits fund and account together, out debits both"""
    signed = tx.amount if tx.direction == "in" else -tx.amount
    return EffectSet.of(
        LedgerEffect(FUND, tx.fund_id, signed),
        LedgerEffect(ACCOUNT, tx.account_id, signed),
    )


class FundLedger:
    """
    Per-investor funds backed by operating accounts.

    Fund movements never let the fund or the backing account go negative.
    An investor has at most one active fund; a fund whose balance reaches
    zero is closed and the next deposit opens a new one.
    """

    def __init__(self, db: Session, clock: Optional[Callable[[], date]] = None):
        self.db = db
        self.accounts = AccountStore(db)
        self.identifiers = IdentifierGenerator(db, clock)
        self.applier = EffectApplier(db)
        self.activity = ActivityLogger(db)

    # ------------------------------------------------------------------
    # Investors
    # ------------------------------------------------------------------

    def create_investor(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        investor_type: str = "individual",
        actor_id: Optional[str] = None,
    ) -> Investor:
        if not name or not name.strip():
            raise ValidationError("Investor name is required", field="name")
        with unit_of_work(self.db):
            investor = Investor(
                investor_code=self.identifiers.next_id(INVESTOR_CODE),
                name=name.strip(),
                email=email,
                phone=phone,
                investor_type=investor_type,
            )
            self.db.add(investor)
            self.db.flush()
            self.activity.record(
                "create", f"Created investor {investor.investor_code} ({investor.name})",
                "investor", investor.id, actor_id,
            )
        return investor

    def get_investor(self, investor_id: uuid.UUID) -> Investor:
        investor = self.db.get(Investor, investor_id)
        if investor is None:
            raise NotFound("Investor", investor_id)
        return investor

    def list_investors(self) -> List[Investor]:
        return list(self.db.execute(select(Investor).order_by(Investor.investor_code)).scalars())

    def delete_investor(self, investor_id: uuid.UUID, actor_id: Optional[str] = None) -> None:
        with unit_of_work(self.db):
            investor = self.get_investor(investor_id)
            if self.db.execute(select(exists().where(Fund.investor_id == investor.id))).scalar():
                raise HasDependents(
                    f"Cannot delete investor {investor.investor_code} with existing funds",
                    investor_id=investor.id,
                )
            self.db.delete(investor)
            self.activity.record(
                "delete", f"Deleted investor {investor.investor_code}", "investor", investor.id, actor_id
            )

    # ------------------------------------------------------------------
    # Fund movements
    # ------------------------------------------------------------------

    def fund_in(
        self,
        investor_id: uuid.UUID,
        account_id: uuid.UUID,
        amount,
        transaction_date: date,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> FundTransaction:
        """Deposit investor money; opens a fund when the investor has no active one"""
        value = positive_money(amount)
        with unit_of_work(self.db):
            investor = self._lock_investor(investor_id)
            self.accounts.get_active(account_id)

            fund = self.active_fund(investor.id, lock=True)
            if fund is None:
                fund = Fund(
                    fund_code=self.identifiers.next_id(FUND_CODE),
                    investor_id=investor.id,
                    account_id=account_id,
                    current_balance=ZERO,
                    status="active",
                    description=f"Fund for investor: {investor.name}",
                    created_by=actor_id,
                )
                self.db.add(fund)
                self.db.flush()
                logger.info(f"Opened fund {fund.fund_code} for investor {investor.investor_code}")

            tx = self._record(fund, account_id, "in", value, transaction_date,
                              description or f"Fund received from: {investor.name}", actor_id)

        return tx

    def fund_out(
        self,
        investor_id: uuid.UUID,
        account_id: uuid.UUID,
        amount,
        transaction_date: date,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> FundTransaction:
        """
        Return money to an investor from their active fund.

        Raises:
            NoActiveFund: the investor has nothing to withdraw from
            InsufficientFunds: the fund or the paying account is short
        """
        value = positive_money(amount)
        with unit_of_work(self.db):
            investor = self._lock_investor(investor_id)
            self.accounts.get_active(account_id)

            fund = self.active_fund(investor.id, lock=True)
            if fund is None:
                raise NoActiveFund(
                    f"No active fund found for investor {investor.investor_code}", investor_id=investor.id
                )

            tx = self._record(fund, account_id, "out", value, transaction_date,
                              description or f"Fund returned to: {investor.name}", actor_id)
            self._sync_status(fund)

        return tx

    def edit_transaction(
        self,
        transaction_id: uuid.UUID,
        amount=None,
        transaction_date: Optional[date] = None,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> FundTransaction:
        """
        Change a fund transaction; fund and account move by the difference.

        Corrections only guard the fund balance. The backing account may go
        negative, as it may for any operating transaction.

        Raises:
            InsufficientFunds: the change would drive the fund below zero
            InvalidStateTransition: the change would reopen a fund while the
                investor already has another active one
        """
        with unit_of_work(self.db):
            tx = self.get_transaction(transaction_id)
            self._lock_investor(tx.fund.investor_id)
            old = fund_effects(tx)
            if amount is not None:
                tx.amount = positive_money(amount)
            if transaction_date is not None:
                tx.transaction_date = transaction_date
            if description is not None:
                tx.description = description
            self.applier.apply(old.reversed() + fund_effects(tx), OverdraftPolicy.PROTECT_FUNDS)
            self._sync_status(tx.fund)
            self.activity.record(
                "update", f"Updated fund transaction {tx.transaction_number}",
                "fund_transaction", tx.id, actor_id,
            )
        return tx

    def delete_transaction(self, transaction_id: uuid.UUID, actor_id: Optional[str] = None) -> None:
        """Reverse a fund transaction's effect on fund and account, then remove the row"""
        with unit_of_work(self.db):
            tx = self.get_transaction(transaction_id)
            fund = tx.fund
            self._lock_investor(fund.investor_id)
            self.applier.apply(fund_effects(tx).reversed(), OverdraftPolicy.PROTECT_FUNDS)
            self._sync_status(fund)
            self.activity.record(
                "delete", f"Deleted fund transaction {tx.transaction_number} of {format_currency(tx.amount)}",
                "fund_transaction", tx.id, actor_id,
            )
            self.db.delete(tx)
            self.db.flush()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: uuid.UUID) -> FundTransaction:
        tx = self.db.get(FundTransaction, transaction_id)
        if tx is None:
            raise NotFound("Fund transaction", transaction_id)
        return tx

    def get_fund(self, fund_id: uuid.UUID) -> Fund:
        fund = self.db.get(Fund, fund_id)
        if fund is None:
            raise NotFound("Fund", fund_id)
        return fund

    def active_fund(self, investor_id: uuid.UUID, lock: bool = False) -> Optional[Fund]:
        query = select(Fund).where(Fund.investor_id == investor_id, Fund.status == "active")
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(query).scalars().first()

    def investor_ledger(self, investor_id: uuid.UUID) -> List[FundTransaction]:
        """Every fund movement of one investor across all their funds, oldest first"""
        self.get_investor(investor_id)
        return list(
            self.db.execute(
                select(FundTransaction)
                .join(Fund, FundTransaction.fund_id == Fund.id)
                .where(Fund.investor_id == investor_id)
                .order_by(FundTransaction.transaction_date, FundTransaction.created_at)
            ).scalars()
        )

    def statistics(self) -> Dict[str, object]:
        def total(direction: str) -> Decimal:
            return to_money(self.db.execute(
                select(func.coalesce(func.sum(FundTransaction.amount), 0))
                .where(FundTransaction.direction == direction)
            ).scalar_one())

        active_balance = self.db.execute(
            select(func.coalesce(func.sum(Fund.current_balance), 0)).where(Fund.status == "active")
        ).scalar_one()
        return {
            "total_investors": self.db.execute(select(func.count(Investor.id))).scalar_one(),
            "active_investors": self.db.execute(
                select(func.count(func.distinct(Fund.investor_id))).where(Fund.status == "active")
            ).scalar_one(),
            "total_active_balance": to_money(active_balance),
            "total_in": total("in"),
            "total_out": total("out"),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(
        self,
        fund: Fund,
        account_id: uuid.UUID,
        direction: str,
        amount: Decimal,
        transaction_date: date,
        description: str,
        actor_id: Optional[str],
    ) -> FundTransaction:
        if transaction_date is None:
            raise ValidationError("transaction_date is required", field="transaction_date")
        tx = FundTransaction(
            transaction_number=self.identifiers.next_id(FUND_TRANSACTION_NUMBER),
            fund_id=fund.id,
            account_id=account_id,
            direction=direction,
            amount=amount,
            transaction_date=transaction_date,
            description=description,
            created_by=actor_id,
        )
        self.applier.apply(fund_effects(tx), OverdraftPolicy.REQUIRE_SUFFICIENT)
        self.db.add(tx)
        self.db.flush()
        verb = "Received" if direction == "in" else "Returned"
        self.activity.record(
            "create",
            f"{verb} {format_currency(amount)} on fund {fund.fund_code} ({tx.transaction_number})",
            "fund_transaction", tx.id, actor_id,
        )
        return tx

    def _lock_investor(self, investor_id: uuid.UUID) -> Investor:
        """
        Serialize fund changes per investor.

        A fund that does not exist yet cannot be locked, so the owning investor
        row is. An UPDATE takes the row lock on PostgreSQL and the database
        write lock on SQLite, which ignores FOR UPDATE.
        """
        self.db.flush()
        locked = self.db.execute(
            update(Investor)
            .where(Investor.id == investor_id)
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if locked.rowcount == 0:
            raise NotFound("Investor", investor_id)
        investor = self.get_investor(investor_id)
        self.db.refresh(investor)
        return investor

    def _sync_status(self, fund: Fund) -> None:
        """Close an emptied fund; reopen a closed one that regained a balance"""
        if fund.status == "active" and fund.current_balance <= ZERO:
            fund.status = "closed"
            logger.info(f"Fund {fund.fund_code} closed at zero balance")
        elif fund.status == "closed" and fund.current_balance > ZERO:
            other = self.db.execute(
                select(exists().where(
                    Fund.investor_id == fund.investor_id,
                    Fund.status == "active",
                    Fund.id != fund.id,
                ))
            ).scalar()
            if other:
                raise InvalidStateTransition(
                    f"Fund {fund.fund_code} cannot be reopened while the investor has another active fund",
                    fund_id=fund.id,
                )
            fund.status = "active"
            logger.info(f"Fund {fund.fund_code} reopened")
        self.db.flush()
