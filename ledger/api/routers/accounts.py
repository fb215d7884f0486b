# ledger/api/routers/accounts.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import date

from ledger.core.db import get_db
from ledger.api.deps.actor import get_actor_id
from ledger.services.accounts import AccountStore
from ledger.services.reconcile import BalanceReconciler
from ledger.schemas.account import (
    AccountCreate, AccountUpdate, AccountOut, BalanceOut, DriftOut
)

router = APIRouter()


@router.post("/", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: AccountCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    account = AccountStore(db).create(**data.model_dump(), actor_id=actor_id)
    return AccountOut.model_validate(account)


@router.get("/", response_model=List[AccountOut])
async def list_accounts(
    type: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    accounts = AccountStore(db).list(type=type, status=status_filter, search=search)
    return [AccountOut.model_validate(a) for a in accounts]


@router.get("/reconciliation", response_model=List[DriftOut])
async def reconciliation_report(db: Session = Depends(get_db)):
    """Accounts and funds whose stored balance disagrees with their history"""
    return [DriftOut.model_validate(d) for d in BalanceReconciler(db).check_all()]


@router.get("/{account_id}", response_model=AccountOut)
async def get_account(account_id: UUID, db: Session = Depends(get_db)):
    return AccountOut.model_validate(AccountStore(db).get(account_id))


@router.patch("/{account_id}", response_model=AccountOut)
async def update_account(
    account_id: UUID,
    data: AccountUpdate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    account = AccountStore(db).update(account_id, actor_id=actor_id, **data.model_dump(exclude_unset=True))
    return AccountOut.model_validate(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: UUID,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    AccountStore(db).delete(account_id, actor_id=actor_id)


@router.get("/{account_id}/balance", response_model=BalanceOut)
async def get_balance(
    account_id: UUID,
    as_of: Optional[date] = Query(None, description="Rebuild the balance from history up to this day"),
    db: Session = Depends(get_db)
):
    if as_of:
        balance = BalanceReconciler(db).balance_as_of(account_id, as_of)
    else:
        balance = AccountStore(db).get_balance(account_id)
    return BalanceOut(account_id=account_id, balance=balance, as_of=as_of)
