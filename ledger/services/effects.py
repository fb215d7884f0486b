# ledger/services/effects.py - Balance effects and their inverses
"""
Balance effects.

Every record that moves money describes its impact as an ``EffectSet``:
signed deltas against account or fund balances. Creating a record applies
its set; deleting it applies ``effects.reversed()``; editing applies
``old.reversed() + new``. Engines never hand-write inverse arithmetic.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterator, List, Tuple
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger.core.errors import InsufficientFunds, NotFound
from ledger.core.money import to_money, format_currency, ZERO
from ledger.models.fund import Fund
from ledger.services.accounts import AccountStore

logger = logging.getLogger(__name__)

ACCOUNT = "account"
FUND = "fund"

# Funds are locked and checked before accounts
_TARGET_ORDER = {FUND: 0, ACCOUNT: 1}


class OverdraftPolicy(str, Enum):
    # operating cash may go negative
    ALLOW = "allow"
    # investor capital: every decreased balance must stay >= 0
    REQUIRE_SUFFICIENT = "require_sufficient"
    # corrections to investor capital: only fund balances must stay >= 0
    PROTECT_FUNDS = "protect_funds"

    def guards(self, target: str) -> bool:
        if self is OverdraftPolicy.REQUIRE_SUFFICIENT:
            return True
        return self is OverdraftPolicy.PROTECT_FUNDS and target == FUND


@dataclass(frozen=True)
class LedgerEffect:
    target: str
    target_id: uuid.UUID
    delta: Decimal

    def reversed(self) -> "LedgerEffect":
        return LedgerEffect(self.target, self.target_id, -self.delta)


@dataclass(frozen=True)
class EffectSet:
    effects: Tuple[LedgerEffect, ...] = ()

    @classmethod
    def of(cls, *effects: LedgerEffect) -> "EffectSet":
        return cls(tuple(effects))

    def reversed(self) -> "EffectSet":
        return EffectSet(tuple(effect.reversed() for effect in self.effects))

    def __add__(self, other: "EffectSet") -> "EffectSet":
        return EffectSet(self.effects + other.effects)

    def __iter__(self) -> Iterator[LedgerEffect]:
        return iter(self.effects)

    def __len__(self) -> int:
        return len(self.effects)

    def net(self) -> "EffectSet":
        """Combine deltas per target and drop the ones that cancel out"""
        totals: Dict[Tuple[str, uuid.UUID], Decimal] = {}
        for effect in self.effects:
            key = (effect.target, effect.target_id)
            totals[key] = totals.get(key, ZERO) + effect.delta
        return EffectSet(tuple(
            LedgerEffect(target, target_id, delta)
            for (target, target_id), delta in totals.items()
            if delta != ZERO
        ))

    def delta_for(self, target: str, target_id: uuid.UUID) -> Decimal:
        return sum(
            (e.delta for e in self.effects if e.target == target and e.target_id == target_id),
            ZERO,
        )


class EffectApplier:
    """Applies an EffectSet to account and fund balances inside the current unit of work"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountStore(db)

    def apply(self, effects: EffectSet, policy: OverdraftPolicy = OverdraftPolicy.ALLOW) -> EffectSet:
        """
        Lock every touched row, enforce the overdraft policy, then mutate.

        Raises:
            InsufficientFunds: a balance the policy guards would drop below
                zero (nothing has been changed yet)
        """
        # Locking reloads rows, so pending edits must reach the database first
        self.db.flush()
        net = effects.net()
        ordered: List[LedgerEffect] = sorted(
            net, key=lambda e: (_TARGET_ORDER[e.target], str(e.target_id))
        )

        for effect in ordered:
            balance, label = self._lock(effect)
            if policy.guards(effect.target) and effect.delta < ZERO:
                if balance + effect.delta < ZERO:
                    raise InsufficientFunds(
                        f"Insufficient {label} balance. Available: {format_currency(balance)}",
                        target=effect.target,
                        target_id=effect.target_id,
                        available=balance,
                    )

        for effect in ordered:
            if effect.target == ACCOUNT:
                self.accounts.adjust(effect.target_id, effect.delta)
            else:
                fund = self._lock_fund(effect.target_id)
                fund.current_balance = to_money(fund.current_balance + effect.delta)
                logger.debug(f"Fund {fund.fund_code} {effect.delta:+} -> {fund.current_balance}")

        self.db.flush()
        return net

    def _lock(self, effect: LedgerEffect) -> Tuple[Decimal, str]:
        if effect.target == ACCOUNT:
            return self.accounts.lock(effect.target_id).current_balance, "account"
        return self._lock_fund(effect.target_id).current_balance, "fund"

    def _lock_fund(self, fund_id: uuid.UUID) -> Fund:
        fund = self.db.execute(
            select(Fund)
            .where(Fund.id == fund_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if fund is None:
            raise NotFound("Fund", fund_id)
        return fund
