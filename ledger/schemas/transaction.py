# ledger/schemas/transaction.py
from pydantic import BaseModel, Field, model_validator
from typing import Optional, Literal
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


class TransactionCreate(BaseModel):
    account_id: UUID
    type: Literal["income", "expense", "transfer", "asset_purchase"]
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    transaction_date: date
    category_id: Optional[UUID] = None
    transfer_to_account_id: Optional[UUID] = None
    payment_method: Optional[str] = Field(None, max_length=64)
    reference_number: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None

    @model_validator(mode='after')
    def check_transfer_target(self):
        """Transfers need a destination other than the source"""
        if self.type == "transfer" and self.transfer_to_account_id == self.account_id:
            raise ValueError('Transfer destination must differ from the source account')
        return self


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    transaction_date: Optional[date] = None
    description: Optional[str] = None


class TransactionOut(BaseModel):
    id: UUID
    transaction_number: str
    account_id: UUID
    type: str
    amount: Decimal
    transaction_date: date
    income_category_id: Optional[UUID] = None
    expense_category_id: Optional[UUID] = None
    transfer_to_account_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    reversed_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    welfare_loan_id: Optional[UUID] = None
    welfare_installment_id: Optional[UUID] = None
    welfare_donation_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class CategoryOut(CategoryCreate):
    id: UUID
    status: str

    class Config:
        from_attributes = True
