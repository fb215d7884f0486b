# ledger/schemas/account.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    number: str = Field(..., min_length=1, max_length=255)
    type: Literal["bank", "cash", "mobile_wallet"]
    opening_balance: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    bank_name: Optional[str] = Field(None, max_length=255)
    branch: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    status: Literal["active", "inactive"] = "active"

    @field_validator('name', 'number')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Value cannot be empty or whitespace')
        return v.strip()


class AccountUpdate(BaseModel):
    """Descriptive fields only; balances move through transactions"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    number: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[Literal["bank", "cash", "mobile_wallet"]] = None
    bank_name: Optional[str] = Field(None, max_length=255)
    branch: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None


class AccountOut(BaseModel):
    id: UUID
    name: str
    number: str
    type: str
    bank_name: Optional[str] = None
    branch: Optional[str] = None
    description: Optional[str] = None
    opening_balance: Decimal
    current_balance: Decimal
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BalanceOut(BaseModel):
    account_id: UUID
    balance: Decimal
    as_of: Optional[date] = None


class DriftOut(BaseModel):
    target: str
    target_id: UUID
    label: str
    stored: Decimal
    expected: Decimal
    difference: Decimal

    class Config:
        from_attributes = True
