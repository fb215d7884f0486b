# ledger/services/welfare.py - Staff welfare loans, repayments and donations
"""
Welfare Loan Engine.

Loan lifecycle::

    active --(remaining reaches 0)--> paid
    active --(cancel, nothing paid)--> cancelled

Every loan, installment payment and donation writes its money movement
through the TransactionLedger, with the originating welfare row linked by
foreign key. Those transactions can only be changed from here.
"""
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional
import logging
import uuid

from ledger.core.db import unit_of_work
from ledger.core.errors import ValidationError, NotFound, AlreadyPaid, InvalidStateTransition
from ledger.core.money import positive_money, to_money, format_currency, ZERO
from ledger.models.transaction import Transaction
from ledger.models.welfare import WelfareLoan, WelfareLoanInstallment, WelfareFundDonation
from ledger.services.accounts import AccountStore
from ledger.services.activity import ActivityLogger
from ledger.services.categories import (
    CategoryService, WELFARE_LOAN_CATEGORY, WELFARE_RECOVERY_CATEGORY, WELFARE_DONATION_CATEGORY
)
from ledger.services.identifiers import IdentifierGenerator, LOAN_NUMBER, DONATION_NUMBER
from ledger.services.schedule import ScheduledInstallment, schedule_by_installment_amount, schedule_by_count
from ledger.services.transactions import TransactionLedger

logger = logging.getLogger(__name__)


class WelfareLoanEngine:
    def __init__(self, db: Session, clock: Optional[Callable[[], date]] = None):
        self.db = db
        self.clock = clock or date.today
        self.accounts = AccountStore(db)
        self.ledger = TransactionLedger(db, clock)
        self.categories = CategoryService(db)
        self.identifiers = IdentifierGenerator(db, clock)
        self.activity = ActivityLogger(db)

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    def create_loan(
        self,
        teacher_id: str,
        account_id: uuid.UUID,
        loan_amount,
        installment_amount,
        loan_date: date,
        first_installment_date: date,
        teacher_name: Optional[str] = None,
        purpose: Optional[str] = None,
        remarks: Optional[str] = None,
        approved_by: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> WelfareLoan:
        """
        Disburse a loan: schedule, loan row and expense transaction in one unit.

        installment_count = ceil(loan_amount / installment_amount); the last
        installment takes whatever remains so the schedule sums exactly.
        An installment above the loan is kept as requested and the schedule is a
        single payment of the whole loan.
        """
        if not teacher_id:
            raise ValidationError("teacher_id is required", field="teacher_id")
        amount = positive_money(loan_amount, "loan_amount")
        each = positive_money(installment_amount, "installment_amount")
        self._check_dates(loan_date, first_installment_date)
        schedule = schedule_by_installment_amount(amount, installment_amount, first_installment_date)

        with unit_of_work(self.db):
            self.accounts.get_active(account_id)
            loan = WelfareLoan(
                loan_number=self.identifiers.next_id(LOAN_NUMBER),
                teacher_id=teacher_id,
                account_id=account_id,
                loan_amount=amount,
                total_paid=ZERO,
                remaining_amount=amount,
                installment_count=len(schedule),
                paid_installments=0,
                installment_amount=each,
                loan_date=loan_date,
                first_installment_date=first_installment_date,
                status="active",
                purpose=purpose,
                remarks=remarks,
                approved_by=approved_by or actor_id,
                created_by=actor_id,
            )
            self.db.add(loan)
            self.db.flush()
            self._write_schedule(loan, schedule)

            category = self.categories.system_expense_category(WELFARE_LOAN_CATEGORY)
            self.ledger.record(
                account_id=account_id,
                type="expense",
                amount=amount,
                transaction_date=loan_date,
                category_id=category.id,
                description=self._disbursement_description(loan, teacher_name),
                payment_method="bank_transfer",
                actor_id=actor_id,
                welfare_loan_id=loan.id,
            )
            self.activity.record(
                "create",
                f"Created welfare loan {loan.loan_number} of {format_currency(amount)} for teacher {teacher_id}",
                "welfare_loan", loan.id, actor_id,
            )

        logger.info(f"Welfare loan {loan.loan_number} disbursed: {amount} in {loan.installment_count} installments")
        return loan

    def pay_installment(
        self,
        installment_id: uuid.UUID,
        account_id: uuid.UUID,
        payment_method: str,
        paid_date: date,
        reference_number: Optional[str] = None,
        remarks: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> WelfareLoanInstallment:
        """
        Record a repayment.

        Raises:
            AlreadyPaid: the installment was paid before
            InvalidStateTransition: the loan is no longer active
        """
        if not payment_method:
            raise ValidationError("payment_method is required", field="payment_method")
        if paid_date is None:
            raise ValidationError("paid_date is required", field="paid_date")

        with unit_of_work(self.db):
            # loan before installment, the order edit_loan locks them in
            loan = self._lock_loan(self.get_installment(installment_id).loan_id)
            installment = self._lock_installment(installment_id)
            if installment.status == "paid":
                raise AlreadyPaid(
                    f"Installment #{installment.installment_number} is already paid",
                    installment_id=installment.id,
                )
            if loan.status != "active":
                raise InvalidStateTransition(
                    f"Loan {loan.loan_number} is {loan.status}; installments can only be paid on active loans",
                    loan_id=loan.id,
                )
            self.accounts.get_active(account_id)

            installment.status = "paid"
            installment.paid_date = paid_date
            installment.account_id = account_id
            installment.payment_method = payment_method
            installment.reference_number = reference_number
            installment.remarks = remarks
            installment.paid_by = actor_id

            loan.total_paid = to_money(loan.total_paid + installment.amount)
            loan.remaining_amount = to_money(loan.loan_amount - loan.total_paid)
            loan.paid_installments += 1
            if loan.remaining_amount <= ZERO:
                loan.status = "paid"
            self.db.flush()

            category = self.categories.system_income_category(WELFARE_RECOVERY_CATEGORY)
            self.ledger.record(
                account_id=account_id,
                type="income",
                amount=installment.amount,
                transaction_date=paid_date,
                category_id=category.id,
                description=f"Loan Installment #{installment.installment_number} - {loan.loan_number}",
                payment_method=payment_method,
                reference_number=reference_number,
                actor_id=actor_id,
                welfare_installment_id=installment.id,
            )
            self.activity.record(
                "update",
                f"Received installment #{installment.installment_number} of "
                f"{format_currency(installment.amount)} for loan {loan.loan_number}",
                "welfare_loan", loan.id, actor_id,
            )

        if loan.status == "paid":
            logger.info(f"Welfare loan {loan.loan_number} fully repaid")
        return installment

    def cancel_loan(self, loan_id: uuid.UUID, actor_id: Optional[str] = None) -> WelfareLoan:
        """Undo a disbursement; only allowed while nothing has been repaid"""
        with unit_of_work(self.db):
            loan = self._lock_loan(loan_id)
            self._require_untouched(loan, "cancelled")
            disbursement = self._disbursement(loan)
            self.ledger.apply_reversal(disbursement)
            loan.status = "cancelled"
            self.db.flush()
            self.activity.record(
                "update", f"Cancelled welfare loan {loan.loan_number}", "welfare_loan", loan.id, actor_id
            )

        logger.info(f"Welfare loan {loan.loan_number} cancelled")
        return loan

    def edit_loan(
        self,
        loan_id: uuid.UUID,
        loan_amount,
        installment_count: int,
        loan_date: Optional[date] = None,
        first_installment_date: Optional[date] = None,
        teacher_name: Optional[str] = None,
        purpose: Optional[str] = None,
        remarks: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> WelfareLoan:
        """
        Change amount, installment count or dates of an untouched loan.

        The schedule is rebuilt from scratch and the disbursement transaction
        is amended, which moves the account by old amount minus new amount.
        """
        amount = positive_money(loan_amount, "loan_amount")

        with unit_of_work(self.db):
            loan = self._lock_loan(loan_id)
            self._require_untouched(loan, "edited")
            new_loan_date = loan_date or loan.loan_date
            new_first_date = first_installment_date or loan.first_installment_date
            self._check_dates(new_loan_date, new_first_date)
            schedule = schedule_by_count(amount, installment_count, new_first_date)

            loan.installments.clear()
            # old rows must be gone before the unique (loan_id, number) pairs are reused
            self.db.flush()

            loan.loan_amount = amount
            loan.remaining_amount = amount
            loan.installment_count = len(schedule)
            loan.installment_amount = schedule[0].amount
            loan.loan_date = new_loan_date
            loan.first_installment_date = new_first_date
            if purpose is not None:
                loan.purpose = purpose
            if remarks is not None:
                loan.remarks = remarks
            self._write_schedule(loan, schedule)

            self.ledger.apply_amendment(
                self._disbursement(loan),
                amount=amount,
                transaction_date=new_loan_date,
                description=self._disbursement_description(loan, teacher_name),
            )
            self.activity.record(
                "update", f"Updated welfare loan {loan.loan_number}", "welfare_loan", loan.id, actor_id
            )

        return loan

    def get_loan(self, loan_id: uuid.UUID) -> WelfareLoan:
        loan = self.db.get(WelfareLoan, loan_id)
        if loan is None:
            raise NotFound("Welfare loan", loan_id)
        return loan

    def list_loans(self, status: Optional[str] = None, teacher_id: Optional[str] = None) -> List[WelfareLoan]:
        query = select(WelfareLoan)
        if status:
            query = query.where(WelfareLoan.status == status)
        if teacher_id:
            query = query.where(WelfareLoan.teacher_id == teacher_id)
        return list(self.db.execute(query.order_by(WelfareLoan.loan_date.desc())).scalars())

    def get_installment(self, installment_id: uuid.UUID) -> WelfareLoanInstallment:
        installment = self.db.get(WelfareLoanInstallment, installment_id)
        if installment is None:
            raise NotFound("Installment", installment_id)
        return installment

    def overdue_installments(self, today: Optional[date] = None) -> List[WelfareLoanInstallment]:
        today = today or self.clock()
        return list(
            self.db.execute(
                select(WelfareLoanInstallment)
                .join(WelfareLoan, WelfareLoanInstallment.loan_id == WelfareLoan.id)
                .where(
                    WelfareLoan.status == "active",
                    WelfareLoanInstallment.status == "pending",
                    WelfareLoanInstallment.due_date < today,
                )
                .order_by(WelfareLoanInstallment.due_date)
            ).scalars()
        )

    # ------------------------------------------------------------------
    # Donations
    # ------------------------------------------------------------------

    def add_donation(
        self,
        account_id: uuid.UUID,
        amount,
        donation_date: date,
        payment_method: str,
        donor_name: Optional[str] = None,
        reference_number: Optional[str] = None,
        remarks: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> WelfareFundDonation:
        value = positive_money(amount)
        if donation_date is None:
            raise ValidationError("donation_date is required", field="donation_date")
        if not payment_method:
            raise ValidationError("payment_method is required", field="payment_method")

        with unit_of_work(self.db):
            self.accounts.get_active(account_id)
            donation = WelfareFundDonation(
                donation_number=self.identifiers.next_id(DONATION_NUMBER),
                account_id=account_id,
                amount=value,
                donation_date=donation_date,
                donor_name=donor_name or "Anonymous",
                payment_method=payment_method,
                reference_number=reference_number,
                remarks=remarks,
                created_by=actor_id,
            )
            self.db.add(donation)
            self.db.flush()

            category = self.categories.system_income_category(WELFARE_DONATION_CATEGORY)
            self.ledger.record(
                account_id=account_id,
                type="income",
                amount=value,
                transaction_date=donation_date,
                category_id=category.id,
                description=f"Welfare Fund Donation from {donation.donor_name} - {donation.donation_number}",
                payment_method=payment_method,
                reference_number=reference_number,
                actor_id=actor_id,
                welfare_donation_id=donation.id,
            )
            self.activity.record(
                "create",
                f"Recorded donation {donation.donation_number} of {format_currency(value)} from {donation.donor_name}",
                "welfare_donation", donation.id, actor_id,
            )

        return donation

    def delete_donation(self, donation_id: uuid.UUID, actor_id: Optional[str] = None) -> WelfareFundDonation:
        """
        Remove a donation from the welfare fund.

        The account credit is reversed but the income transaction is kept,
        marked reversed, as the audit trail of money that once came in.
        """
        with unit_of_work(self.db):
            donation = self.db.get(WelfareFundDonation, donation_id)
            if donation is None or donation.is_deleted:
                raise NotFound("Welfare donation", donation_id)

            tx = self.db.execute(
                select(Transaction).where(
                    Transaction.welfare_donation_id == donation.id,
                    Transaction.deleted_at.is_(None),
                    Transaction.reversed_at.is_(None),
                )
            ).scalars().first()
            if tx is None:
                raise NotFound("Donation transaction for", donation.donation_number)
            self.ledger.apply_reversal_preserving(tx)
            donation.soft_delete()
            self.db.flush()
            self.activity.record(
                "delete", f"Deleted donation {donation.donation_number}", "welfare_donation", donation.id, actor_id
            )

        return donation

    def list_donations(self) -> List[WelfareFundDonation]:
        return list(
            self.db.execute(
                select(WelfareFundDonation)
                .where(WelfareFundDonation.deleted_at.is_(None))
                .order_by(WelfareFundDonation.donation_date.desc())
            ).scalars()
        )

    # ------------------------------------------------------------------
    # Fund summary
    # ------------------------------------------------------------------

    def fund_summary(self) -> Dict[str, Decimal]:
        """Welfare fund balance = donations - loans given + recoveries (computed, never stored)"""
        donations = to_money(self.db.execute(
            select(func.coalesce(func.sum(WelfareFundDonation.amount), 0))
            .where(WelfareFundDonation.deleted_at.is_(None))
        ).scalar_one())
        loans_given = to_money(self.db.execute(
            select(func.coalesce(func.sum(WelfareLoan.loan_amount), 0))
            .where(WelfareLoan.status.in_(("active", "paid")))
        ).scalar_one())
        recovered = to_money(self.db.execute(
            select(func.coalesce(func.sum(WelfareLoan.total_paid), 0))
            .where(WelfareLoan.status.in_(("active", "paid")))
        ).scalar_one())
        outstanding = to_money(self.db.execute(
            select(func.coalesce(func.sum(WelfareLoan.remaining_amount), 0))
            .where(WelfareLoan.status == "active")
        ).scalar_one())
        return {
            "total_donations": donations,
            "total_loans_given": loans_given,
            "total_recovered": recovered,
            "outstanding": outstanding,
            "available_balance": donations - loans_given + recovered,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write_schedule(self, loan: WelfareLoan, schedule: List[ScheduledInstallment]) -> None:
        for item in schedule:
            loan.installments.append(WelfareLoanInstallment(
                installment_number=item.number,
                amount=item.amount,
                due_date=item.due_date,
                status="pending",
            ))
        self.db.flush()

    def _disbursement(self, loan: WelfareLoan) -> Transaction:
        tx = self.db.execute(
            select(Transaction).where(
                Transaction.welfare_loan_id == loan.id,
                Transaction.deleted_at.is_(None),
            )
        ).scalars().first()
        if tx is None:
            raise NotFound("Disbursement transaction for loan", loan.loan_number)
        return tx

    def _disbursement_description(self, loan: WelfareLoan, teacher_name: Optional[str]) -> str:
        return f"Welfare Fund Loan to {teacher_name or loan.teacher_id} - {loan.loan_number}"

    def _require_untouched(self, loan: WelfareLoan, verb: str) -> None:
        if loan.status != "active" or loan.total_paid > ZERO:
            raise InvalidStateTransition(
                f"Loan {loan.loan_number} cannot be {verb}: only active loans with no payments qualify",
                loan_id=loan.id,
                status=loan.status,
            )

    def _check_dates(self, loan_date: date, first_installment_date: date) -> None:
        if loan_date is None or first_installment_date is None:
            raise ValidationError("loan_date and first_installment_date are required")
        if first_installment_date < loan_date:
            raise ValidationError(
                "first_installment_date cannot be before loan_date", field="first_installment_date"
            )

    def _lock_loan(self, loan_id: uuid.UUID) -> WelfareLoan:
        self.db.flush()
        loan = self.db.execute(
            select(WelfareLoan)
            .where(WelfareLoan.id == loan_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if loan is None:
            raise NotFound("Welfare loan", loan_id)
        return loan

    def _lock_installment(self, installment_id: uuid.UUID) -> WelfareLoanInstallment:
        self.db.flush()
        installment = self.db.execute(
            select(WelfareLoanInstallment)
            .where(WelfareLoanInstallment.id == installment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if installment is None:
            raise NotFound("Installment", installment_id)
        return installment
