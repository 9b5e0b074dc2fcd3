from datetime import date, datetime
from typing import Optional, Literal

from pydantic import BaseModel, Field, field_validator

from backoffice.schemas.customer_schemas import CustomerMiniOut
from backoffice.schemas.user_schemas import UserMiniOut
from backoffice.schemas.branch_schemas import BranchOut

PaymentMethod = Literal["Cash", "Bank Transfer", "Mobile Money", "Check"]
TransactionType = Literal["loan_disbursement", "daily_payment", "penalty", "refund"]


class PaymentRecordIn(BaseModel):
    # identity tuple
    application_id: int
    customer_id: int
    agent_id: int
    branch_id: int
    payment_date: date

    expected_amount: float = Field(gt=0)
    actual_amount: Optional[float] = Field(None, ge=0)
    payment_method: PaymentMethod = "Cash"
    notes: Optional[str] = None

    # set to turn the blind upsert into an optimistic check
    expected_version: Optional[int] = Field(None, ge=1)
    # keep the weekly roster row in step with the daily record
    sync_weekly: bool = True

    @field_validator("notes", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class WeeklyTrackingIn(BaseModel):
    application_id: int
    customer_id: int
    agent_id: int
    branch_id: int
    week_start: date
    day: str
    amount: float = Field(ge=0)
    is_paid: bool


class LoanApplicationRefOut(BaseModel):
    application_id: int
    product_id: int
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    class Config:
        from_attributes = True


class DailyPaymentOut(BaseModel):
    payment_id: int
    application_id: int
    customer_id: int
    agent_id: int
    branch_id: int
    payment_date: date
    expected_amount: float
    actual_amount: Optional[float] = None
    payment_method: Optional[str] = None
    is_paid: bool
    payment_time: Optional[datetime] = None
    notes: Optional[str] = None
    version: int

    customer: Optional[CustomerMiniOut] = None

    class Config:
        from_attributes = True


class WeeklyTrackingOut(BaseModel):
    tracking_id: int
    application_id: int
    customer_id: int
    agent_id: int
    branch_id: int
    week_start: date

    monday_paid: bool
    monday_amount: float
    tuesday_paid: bool
    tuesday_amount: float
    wednesday_paid: bool
    wednesday_amount: float
    thursday_paid: bool
    thursday_amount: float
    friday_paid: bool
    friday_amount: float
    saturday_paid: bool
    saturday_amount: float

    customer: Optional[CustomerMiniOut] = None
    loan_application: Optional[LoanApplicationRefOut] = None

    class Config:
        from_attributes = True


class PaymentRecordResult(BaseModel):
    payment: DailyPaymentOut
    transaction_id: int
    weekly: Optional[WeeklyTrackingOut] = None


class TransactionCreate(BaseModel):
    """Manual ledger entries; disbursements and collections are written by their workflows."""
    application_id: Optional[int] = None
    customer_id: int
    transaction_type: Literal["penalty", "refund"]
    amount: float = Field(gt=0)
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class TransactionOut(BaseModel):
    transaction_id: int
    application_id: Optional[int] = None
    customer_id: int
    agent_id: int
    branch_id: int
    transaction_type: TransactionType
    amount: float
    payment_method: Optional[str] = None
    reference_number: str
    description: Optional[str] = None
    transaction_date: datetime

    customer: Optional[CustomerMiniOut] = None
    agent: Optional[UserMiniOut] = None
    branch: Optional[BranchOut] = None

    class Config:
        from_attributes = True
