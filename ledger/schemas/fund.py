# ledger/schemas/fund.py
from pydantic import BaseModel, Field, EmailStr
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


class InvestorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    investor_type: str = Field("individual", max_length=32)


class InvestorOut(BaseModel):
    id: UUID
    investor_code: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    investor_type: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class FundMovement(BaseModel):
    """Body for both fund-in and fund-out"""
    investor_id: UUID
    account_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    transaction_date: date
    description: Optional[str] = None


class FundTransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    transaction_date: Optional[date] = None
    description: Optional[str] = None


class FundTransactionOut(BaseModel):
    id: UUID
    transaction_number: str
    fund_id: UUID
    account_id: UUID
    direction: str
    amount: Decimal
    transaction_date: date
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class FundOut(BaseModel):
    id: UUID
    fund_code: str
    investor_id: UUID
    account_id: UUID
    current_balance: Decimal
    status: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class FundStatistics(BaseModel):
    total_investors: int
    active_investors: int
    total_active_balance: Decimal
    total_in: Decimal
    total_out: Decimal
