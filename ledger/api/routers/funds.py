# ledger/api/routers/funds.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from ledger.core.db import get_db
from ledger.api.deps.actor import get_actor_id
from ledger.services.funds import FundLedger
from ledger.schemas.fund import (
    InvestorCreate, InvestorOut, FundMovement, FundTransactionUpdate, FundTransactionOut, FundOut,
    FundStatistics,
)

router = APIRouter()


@router.post("/investors", response_model=InvestorOut, status_code=status.HTTP_201_CREATED)
async def create_investor(
    data: InvestorCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    investor = FundLedger(db).create_investor(**data.model_dump(), actor_id=actor_id)
    return InvestorOut.model_validate(investor)


@router.get("/investors", response_model=List[InvestorOut])
async def list_investors(db: Session = Depends(get_db)):
    return [InvestorOut.model_validate(i) for i in FundLedger(db).list_investors()]


@router.delete("/investors/{investor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_investor(
    investor_id: UUID,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    FundLedger(db).delete_investor(investor_id, actor_id=actor_id)


@router.get("/investors/{investor_id}/ledger", response_model=List[FundTransactionOut])
async def investor_ledger(investor_id: UUID, db: Session = Depends(get_db)):
    """All fund movements of one investor, oldest first"""
    return [FundTransactionOut.model_validate(t) for t in FundLedger(db).investor_ledger(investor_id)]


@router.get("/investors/{investor_id}/active", response_model=Optional[FundOut])
async def active_fund(investor_id: UUID, db: Session = Depends(get_db)):
    ledger = FundLedger(db)
    ledger.get_investor(investor_id)
    fund = ledger.active_fund(investor_id)
    return FundOut.model_validate(fund) if fund else None


@router.post("/in", response_model=FundTransactionOut, status_code=status.HTTP_201_CREATED)
async def fund_in(
    data: FundMovement,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    tx = FundLedger(db).fund_in(**data.model_dump(), actor_id=actor_id)
    return FundTransactionOut.model_validate(tx)


@router.post("/out", response_model=FundTransactionOut, status_code=status.HTTP_201_CREATED)
async def fund_out(
    data: FundMovement,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    tx = FundLedger(db).fund_out(**data.model_dump(), actor_id=actor_id)
    return FundTransactionOut.model_validate(tx)


@router.get("/statistics", response_model=FundStatistics)
async def fund_statistics(db: Session = Depends(get_db)):
    return FundStatistics(**FundLedger(db).statistics())


@router.get("/{fund_id}", response_model=FundOut)
async def get_fund(fund_id: UUID, db: Session = Depends(get_db)):
    return FundOut.model_validate(FundLedger(db).get_fund(fund_id))


@router.patch("/transactions/{transaction_id}", response_model=FundTransactionOut)
async def edit_fund_transaction(
    transaction_id: UUID,
    data: FundTransactionUpdate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    tx = FundLedger(db).edit_transaction(transaction_id, actor_id=actor_id, **data.model_dump(exclude_unset=True))
    return FundTransactionOut.model_validate(tx)


@router.delete("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fund_transaction(
    transaction_id: UUID,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    FundLedger(db).delete_transaction(transaction_id, actor_id=actor_id)
