from datetime import date, datetime
from typing import Optional, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from backoffice.schemas.branch_schemas import BranchOut
from backoffice.schemas.loan_product_schemas import LoanProductOut
from backoffice.schemas.user_schemas import UserMiniOut

GuarantorType = Literal["primary", "secondary"]

MAX_GUARANTORS = 2


def _empty_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class CustomerBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=80)
    last_name: str = Field(..., min_length=1, max_length=80)
    phone: str = Field(..., min_length=3, max_length=40)
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: str = Field(..., min_length=1)
    occupation: Optional[str] = None
    monthly_income: Optional[float] = Field(None, ge=0)
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None

    @field_validator(
        "email", "occupation", "bank_name", "bank_account",
        "emergency_contact_name", "emergency_contact_phone",
        mode="before",
    )
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class CustomerCreate(CustomerBase):
    # filled from the registering agent when omitted
    branch_id: Optional[int] = None
    agent_id: Optional[int] = None


class CustomerUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=80)
    last_name: Optional[str] = Field(None, min_length=1, max_length=80)
    phone: Optional[str] = Field(None, min_length=3, max_length=40)
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = Field(None, min_length=1)
    occupation: Optional[str] = None
    monthly_income: Optional[float] = Field(None, ge=0)
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    is_active: Optional[bool] = None

    # required columns: omit them to keep the value, null is not a value
    @field_validator("first_name", "last_name", "phone", "address", "is_active")
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v

    @field_validator(
        "email", "occupation", "bank_name", "bank_account",
        "emergency_contact_name", "emergency_contact_phone",
        mode="before",
    )
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class GuarantorIn(BaseModel):
    # defaults by position in the registration form
    guarantor_type: Optional[GuarantorType] = None
    first_name: str = Field(..., min_length=1, max_length=80)
    last_name: str = Field(..., min_length=1, max_length=80)
    phone: str = Field(..., min_length=3, max_length=40)
    address: str = Field(..., min_length=1)
    occupation: Optional[str] = None
    monthly_income: Optional[float] = Field(None, ge=0)
    relationship_to_customer: Optional[str] = None

    @field_validator("occupation", "relationship_to_customer", mode="before")
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class GuarantorOut(BaseModel):
    guarantor_id: int
    customer_id: int
    guarantor_type: GuarantorType
    first_name: str
    last_name: str
    phone: str
    address: str
    occupation: Optional[str] = None
    monthly_income: Optional[float] = None
    relationship_to_customer: Optional[str] = None

    class Config:
        from_attributes = True


class CustomerRegistration(BaseModel):
    """
    Registration form: the customer plus one primary and at most one
    secondary guarantor.
    """
    customer: CustomerCreate
    guarantors: List[GuarantorIn] = []

    @model_validator(mode="after")
    def check_guarantors(self):
        if len(self.guarantors) == 0:
            raise ValueError("At least one guarantor is required.")
        if len(self.guarantors) > MAX_GUARANTORS:
            raise ValueError(f"At most {MAX_GUARANTORS} guarantors may be registered.")

        for i, g in enumerate(self.guarantors):
            if g.guarantor_type is None:
                g.guarantor_type = "primary" if i == 0 else "secondary"

        primaries = [g for g in self.guarantors if g.guarantor_type == "primary"]
        if len(primaries) != 1:
            raise ValueError("Exactly one primary guarantor is required.")
        return self


class LoanApplicationMiniOut(BaseModel):
    application_id: int
    product_id: int
    status: str
    application_date: date
    loan_product: Optional[LoanProductOut] = None

    class Config:
        from_attributes = True


class CustomerMiniOut(BaseModel):
    customer_id: int
    first_name: str
    last_name: str
    phone: str
    address: Optional[str] = None
    branch_id: int
    agent_id: int
    is_active: bool

    class Config:
        from_attributes = True


class CustomerOut(CustomerBase):
    customer_id: int
    branch_id: int
    agent_id: int
    is_active: bool
    created_at: Optional[datetime] = None

    agent: Optional[UserMiniOut] = None
    branch: Optional[BranchOut] = None
    guarantors: List[GuarantorOut] = []
    loan_applications: List[LoanApplicationMiniOut] = []

    class Config:
        from_attributes = True
