# ledger/api/routers/transactions.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import date

from ledger.core.db import get_db
from ledger.api.deps.actor import get_actor_id
from ledger.services.categories import CategoryService
from ledger.services.transactions import TransactionLedger
from ledger.schemas.transaction import (
    TransactionCreate, TransactionUpdate, TransactionOut, CategoryCreate, CategoryOut
)

router = APIRouter()


@router.post("/", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
async def record_transaction(
    data: TransactionCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Record income, expense, transfer or asset purchase and move the balance"""
    tx = TransactionLedger(db).record(**data.model_dump(), actor_id=actor_id)
    return TransactionOut.model_validate(tx)


@router.get("/", response_model=List[TransactionOut])
async def list_transactions(
    account_id: Optional[UUID] = Query(None),
    type: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    include_deleted: bool = Query(False),
    db: Session = Depends(get_db)
):
    txs = TransactionLedger(db).list(
        account_id=account_id,
        type=type,
        date_from=date_from,
        date_to=date_to,
        include_deleted=include_deleted,
    )
    return [TransactionOut.model_validate(t) for t in txs]


@router.get("/categories/income", response_model=List[CategoryOut])
async def list_income_categories(db: Session = Depends(get_db)):
    return [CategoryOut.model_validate(c) for c in CategoryService(db).list_income_categories()]


@router.post("/categories/income", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_income_category(data: CategoryCreate, db: Session = Depends(get_db)):
    return CategoryOut.model_validate(CategoryService(db).create_income_category(**data.model_dump()))


@router.get("/categories/expense", response_model=List[CategoryOut])
async def list_expense_categories(db: Session = Depends(get_db)):
    return [CategoryOut.model_validate(c) for c in CategoryService(db).list_expense_categories()]


@router.post("/categories/expense", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_expense_category(data: CategoryCreate, db: Session = Depends(get_db)):
    return CategoryOut.model_validate(CategoryService(db).create_expense_category(**data.model_dump()))


@router.get("/{transaction_id}", response_model=TransactionOut)
async def get_transaction(transaction_id: UUID, db: Session = Depends(get_db)):
    return TransactionOut.model_validate(TransactionLedger(db).get(transaction_id, include_deleted=True))


@router.patch("/{transaction_id}", response_model=TransactionOut)
async def amend_transaction(
    transaction_id: UUID,
    data: TransactionUpdate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    tx = TransactionLedger(db).amend(transaction_id, actor_id=actor_id, **data.model_dump(exclude_unset=True))
    return TransactionOut.model_validate(tx)


@router.delete("/{transaction_id}", response_model=TransactionOut)
async def delete_transaction(
    transaction_id: UUID,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Reverse the balance effect and soft-delete"""
    tx = TransactionLedger(db).reverse_and_delete(transaction_id, actor_id=actor_id)
    return TransactionOut.model_validate(tx)
