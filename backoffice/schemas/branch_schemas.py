from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class BranchCreate(BaseModel):
    branch_name: str = Field(..., min_length=1, max_length=100)
    branch_code: str = Field(..., min_length=1, max_length=10)
    address: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("branch_code", mode="before")
    def upper_code(cls, v):
        return str(v).strip().upper() if v is not None else v


class BranchOut(BaseModel):
    branch_id: int
    branch_name: str
    branch_code: str
    address: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BranchSelect(BaseModel):
    branch_id: int
