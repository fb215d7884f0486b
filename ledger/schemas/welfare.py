# ledger/schemas/welfare.py
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


class LoanCreate(BaseModel):
    teacher_id: str = Field(..., min_length=1, max_length=64)
    teacher_name: Optional[str] = Field(None, max_length=255)
    account_id: UUID
    loan_amount: Decimal = Field(..., gt=0, decimal_places=2)
    installment_amount: Decimal = Field(..., gt=0, decimal_places=2)
    loan_date: date
    first_installment_date: date
    purpose: Optional[str] = None
    remarks: Optional[str] = None

    @model_validator(mode='after')
    def check_dates(self):
        if self.first_installment_date < self.loan_date:
            raise ValueError('first_installment_date cannot be before loan_date')
        return self


class LoanUpdate(BaseModel):
    loan_amount: Decimal = Field(..., gt=0, decimal_places=2)
    installment_count: int = Field(..., ge=1, le=120)
    loan_date: Optional[date] = None
    first_installment_date: Optional[date] = None
    teacher_name: Optional[str] = Field(None, max_length=255)
    purpose: Optional[str] = None
    remarks: Optional[str] = None


class InstallmentPayment(BaseModel):
    account_id: UUID
    payment_method: str = Field(..., min_length=1, max_length=64)
    paid_date: date
    reference_number: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None


class InstallmentOut(BaseModel):
    id: UUID
    loan_id: UUID
    installment_number: int
    amount: Decimal
    due_date: date
    status: str
    paid_date: Optional[date] = None
    account_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None

    class Config:
        from_attributes = True


class LoanOut(BaseModel):
    id: UUID
    loan_number: str
    teacher_id: str
    account_id: UUID
    loan_amount: Decimal
    total_paid: Decimal
    remaining_amount: Decimal
    installment_count: int
    paid_installments: int
    installment_amount: Decimal
    loan_date: date
    first_installment_date: date
    status: str
    purpose: Optional[str] = None
    remarks: Optional[str] = None
    progress_percentage: float
    created_at: datetime

    class Config:
        from_attributes = True


class LoanDetail(LoanOut):
    installments: List[InstallmentOut] = []


class DonationCreate(BaseModel):
    account_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    donation_date: date
    payment_method: str = Field(..., min_length=1, max_length=64)
    donor_name: Optional[str] = Field(None, max_length=255)
    reference_number: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None


class DonationOut(BaseModel):
    id: UUID
    donation_number: str
    account_id: UUID
    amount: Decimal
    donation_date: date
    donor_name: str
    payment_method: str
    reference_number: Optional[str] = None
    remarks: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WelfareSummary(BaseModel):
    total_donations: Decimal
    total_loans_given: Decimal
    total_recovered: Decimal
    outstanding: Decimal
    available_balance: Decimal
