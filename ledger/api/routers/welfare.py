# ledger/api/routers/welfare.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from ledger.core.db import get_db
from ledger.api.deps.actor import get_actor_id
from ledger.services.welfare import WelfareLoanEngine
from ledger.schemas.welfare import (
    LoanCreate, LoanUpdate, LoanOut, LoanDetail, InstallmentPayment, InstallmentOut,
    DonationCreate, DonationOut, WelfareSummary,
)

router = APIRouter()


@router.get("/summary", response_model=WelfareSummary)
async def welfare_summary(db: Session = Depends(get_db)):
    """Welfare fund position: donations - loans given + recoveries"""
    return WelfareSummary(**WelfareLoanEngine(db).fund_summary())


# Loans

@router.post("/loans", response_model=LoanDetail, status_code=status.HTTP_201_CREATED)
async def create_loan(
    data: LoanCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    loan = WelfareLoanEngine(db).create_loan(**data.model_dump(), actor_id=actor_id)
    return LoanDetail.model_validate(loan)


@router.get("/loans", response_model=List[LoanOut])
async def list_loans(
    status_filter: Optional[str] = Query(None, alias="status"),
    teacher_id: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    loans = WelfareLoanEngine(db).list_loans(status=status_filter, teacher_id=teacher_id)
    return [LoanOut.model_validate(l) for l in loans]


@router.get("/loans/overdue", response_model=List[InstallmentOut])
async def overdue_installments(db: Session = Depends(get_db)):
    return [InstallmentOut.model_validate(i) for i in WelfareLoanEngine(db).overdue_installments()]


@router.get("/loans/{loan_id}", response_model=LoanDetail)
async def get_loan(loan_id: UUID, db: Session = Depends(get_db)):
    return LoanDetail.model_validate(WelfareLoanEngine(db).get_loan(loan_id))


@router.put("/loans/{loan_id}", response_model=LoanDetail)
async def edit_loan(
    loan_id: UUID,
    data: LoanUpdate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    loan = WelfareLoanEngine(db).edit_loan(loan_id, **data.model_dump(), actor_id=actor_id)
    return LoanDetail.model_validate(loan)


@router.post("/loans/{loan_id}/cancel", response_model=LoanOut)
async def cancel_loan(
    loan_id: UUID,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    return LoanOut.model_validate(WelfareLoanEngine(db).cancel_loan(loan_id, actor_id=actor_id))


@router.post("/installments/{installment_id}/pay", response_model=InstallmentOut)
async def pay_installment(
    installment_id: UUID,
    data: InstallmentPayment,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    installment = WelfareLoanEngine(db).pay_installment(installment_id, **data.model_dump(), actor_id=actor_id)
    return InstallmentOut.model_validate(installment)


# Donations

@router.post("/donations", response_model=DonationOut, status_code=status.HTTP_201_CREATED)
async def add_donation(
    data: DonationCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    return DonationOut.model_validate(WelfareLoanEngine(db).add_donation(**data.model_dump(), actor_id=actor_id))


@router.get("/donations", response_model=List[DonationOut])
async def list_donations(db: Session = Depends(get_db)):
    return [DonationOut.model_validate(d) for d in WelfareLoanEngine(db).list_donations()]


@router.delete("/donations/{donation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_donation(
    donation_id: UUID,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Reverses the account credit; the income transaction stays as history"""
    WelfareLoanEngine(db).delete_donation(donation_id, actor_id=actor_id)
