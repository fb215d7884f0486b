# ledger/services/schedule.py - Monthly installment schedules for welfare loans
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_CEILING
from typing import List

from dateutil.relativedelta import relativedelta

from ledger.core.errors import ValidationError
from ledger.core.money import positive_money, round_money, ZERO


@dataclass(frozen=True)
class ScheduledInstallment:
    number: int
    amount: Decimal
    due_date: date


def installment_count_for(loan_amount: Decimal, installment_amount: Decimal) -> int:
    """ceil(loan / installment)"""
    return int((loan_amount / installment_amount).to_integral_value(rounding=ROUND_CEILING))


def build_schedule(
    loan_amount,
    installment_amount,
    installment_count: int,
    first_installment_date: date,
) -> List[ScheduledInstallment]:
    """
    Equal monthly installments with the remainder on the last one.

    Installment i (1-based) is due i-1 months after the first date; a day
    that does not exist in the target month clamps to its last day.
    Amounts always sum to exactly loan_amount.
    """
    loan = positive_money(loan_amount, "loan_amount")
    each = positive_money(installment_amount, "installment_amount")
    if installment_count < 1:
        raise ValidationError("installment_count must be at least 1", field="installment_count")

    last = loan - each * (installment_count - 1)
    if last <= ZERO:
        raise ValidationError(
            f"{installment_count} installments of {each} exceed the loan amount {loan}",
            field="installment_count",
        )

    schedule = []
    for number in range(1, installment_count + 1):
        schedule.append(ScheduledInstallment(
            number=number,
            amount=last if number == installment_count else each,
            due_date=first_installment_date + relativedelta(months=number - 1),
        ))
    return schedule


def schedule_by_installment_amount(loan_amount, installment_amount, first_installment_date: date):
    """Schedule for a fixed monthly amount; the count follows from it"""
    loan = positive_money(loan_amount, "loan_amount")
    each = positive_money(installment_amount, "installment_amount")
    count = installment_count_for(loan, each)
    return build_schedule(loan, each, count, first_installment_date)


def schedule_by_count(loan_amount, installment_count: int, first_installment_date: date):
    """Schedule for a fixed number of months; each installment is loan / count rounded to cents"""
    loan = positive_money(loan_amount, "loan_amount")
    if installment_count is None or installment_count < 1:
        raise ValidationError("installment_count must be at least 1", field="installment_count")
    each = round_money(loan / installment_count)
    return build_schedule(loan, each, installment_count, first_installment_date)
