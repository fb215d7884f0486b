# ledger/services/identifiers.py - Sequential human-readable identifiers
"""
Identifier generation.

Codes look like ``TXN-20240101-0001`` (day-scoped) or ``FD-0001``
(counter-scoped). Numbers are drawn from an ``identifier_sequences`` row per
scope, bumped by one ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING``
statement; the database serializes concurrent writers on that row, so no two
callers can receive the same number.

Each candidate is still checked against the owning table, which covers rows
written before the counter existed. Soft-deleted rows are included in the
check because their numbers stay reserved.
"""
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional
import logging

from sqlalchemy import select, exists
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ledger.core.config import settings
from ledger.core.errors import IdentifierCollision, LedgerError
from ledger.models.base import utcnow
from ledger.models.sequence import IdentifierSequence
from ledger.models.transaction import Transaction
from ledger.models.fund import Investor, Fund, FundTransaction
from ledger.models.welfare import WelfareLoan, WelfareFundDonation

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True)
class IdentifierSeries:
    prefix: str
    model: type
    column: str
    daily: bool = True

    def scope(self, day: date) -> str:
        if self.daily:
            return f"{self.prefix}:{day:%Y%m%d}"
        return self.prefix

    def format(self, day: date, number: int, width: int) -> str:
        if self.daily:
            return f"{self.prefix}-{day:%Y%m%d}-{number:0{width}d}"
        return f"{self.prefix}-{number:0{width}d}"


TRANSACTION_NUMBER = IdentifierSeries("TXN", Transaction, "transaction_number")
FUND_TRANSACTION_NUMBER = IdentifierSeries("FTRX", FundTransaction, "transaction_number")
LOAN_NUMBER = IdentifierSeries("SWL", WelfareLoan, "loan_number")
DONATION_NUMBER = IdentifierSeries("SWF", WelfareFundDonation, "donation_number")
FUND_CODE = IdentifierSeries("FD", Fund, "fund_code", daily=False)
INVESTOR_CODE = IdentifierSeries("INV", Investor, "investor_code", daily=False)


class IdentifierGenerator:
    """Allocates codes inside the caller's unit of work"""

    def __init__(self, db: Session, clock: Optional[Callable[[], date]] = None):
        self.db = db
        self.clock = clock or date.today

    def next_id(self, series: IdentifierSeries, on: Optional[date] = None) -> str:
        """
        Return the next unused code in a series.

        Args:
            series: which identifier family to draw from
            on: day for day-scoped series (defaults to the generator clock)

        Raises:
            IdentifierCollision: every attempt hit an existing code
        """
        day = on or self.clock()
        scope = series.scope(day)
        column = getattr(series.model, series.column)

        for attempt in range(1, settings.IDENTIFIER_MAX_ATTEMPTS + 1):
            number = self._allocate(scope)
            code = series.format(day, number, settings.IDENTIFIER_PAD_WIDTH)
            taken = self.db.execute(select(exists().where(column == code))).scalar()
            if not taken:
                return code
            logger.warning(f"Identifier {code} already exists (attempt {attempt}), drawing next number")

        raise IdentifierCollision(
            f"Could not allocate a free identifier in scope {scope} after "
            f"{settings.IDENTIFIER_MAX_ATTEMPTS} attempts",
            scope=scope,
        )

    def peek(self, series: IdentifierSeries, on: Optional[date] = None) -> int:
        """Last number handed out in a scope (0 when the scope is unused)"""
        day = on or self.clock()
        sequence = self.db.get(IdentifierSequence, series.scope(day))
        return sequence.last_value if sequence else 0

    def _allocate(self, scope: str) -> int:
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise LedgerError(f"Identifier sequences are not supported on {dialect}")

        now = utcnow()
        stmt = insert(IdentifierSequence).values(scope=scope, last_value=1, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[IdentifierSequence.scope],
            set_={
                "last_value": IdentifierSequence.last_value + 1,
                "updated_at": now,
            },
        ).returning(IdentifierSequence.last_value)
        return self.db.execute(stmt).scalar_one()
