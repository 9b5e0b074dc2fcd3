from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, datetime
from typing import Optional, List, Literal

from backoffice.schemas.branch_schemas import BranchOut
from backoffice.schemas.customer_schemas import CustomerMiniOut
from backoffice.schemas.loan_product_schemas import LoanProductOut
from backoffice.schemas.user_schemas import UserMiniOut

LoanStatus = Literal["pending", "approved", "rejected", "disbursed"]


class LoanApplicationCreate(BaseModel):
    customer_id: int
    product_id: int
    # default to the signed-in agent and their branch
    agent_id: Optional[int] = None
    branch_id: Optional[int] = None
    purpose: Optional[str] = None

    @field_validator("purpose", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str

    @field_validator("reason", mode="before")
    def reason_required(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("A rejection reason is required")
        return v


class DisburseRequest(BaseModel):
    disbursement_date: date
    start_date: date
    # defaults to the last scheduled collection day
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date < self.disbursement_date:
            raise ValueError("start_date cannot be before disbursement_date")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class LoanApplicationOut(BaseModel):
    application_id: int
    customer_id: int
    product_id: int
    agent_id: int
    branch_id: int
    purpose: Optional[str] = None

    status: LoanStatus
    application_date: date

    approved_by: Optional[int] = None
    approval_date: Optional[date] = None
    rejection_reason: Optional[str] = None

    disbursement_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None

    created_at: Optional[datetime] = None

    customer: Optional[CustomerMiniOut] = None
    agent: Optional[UserMiniOut] = None
    loan_product: Optional[LoanProductOut] = None
    branch: Optional[BranchOut] = None

    class Config:
        from_attributes = True


class DisbursementResult(BaseModel):
    application: LoanApplicationOut
    scheduled_days: int
    transaction_id: int


class ScheduleRepairOut(BaseModel):
    application_id: int
    created_days: int
    scheduled_dates: List[date]
