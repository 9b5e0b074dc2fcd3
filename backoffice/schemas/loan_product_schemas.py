from typing import Optional

from pydantic import BaseModel, Field


class LoanProductCreate(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=100)
    principal_amount: float = Field(gt=0)
    daily_payment: float = Field(gt=0)
    duration_days: int = Field(gt=0)
    # defaults to daily_payment * duration_days
    total_amount: Optional[float] = Field(None, gt=0)
    is_active: bool = True


class LoanProductUpdate(BaseModel):
    product_name: Optional[str] = Field(None, min_length=1, max_length=100)
    daily_payment: Optional[float] = Field(None, gt=0)
    duration_days: Optional[int] = Field(None, gt=0)
    total_amount: Optional[float] = Field(None, gt=0)
    is_active: Optional[bool] = None


class LoanProductOut(BaseModel):
    product_id: int
    product_name: str
    principal_amount: float
    daily_payment: float
    duration_days: int
    total_amount: float
    is_active: bool

    class Config:
        from_attributes = True
