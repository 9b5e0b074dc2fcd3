from typing import Optional, Literal

from pydantic import BaseModel, Field, field_validator

from backoffice.schemas.branch_schemas import BranchOut

RoleName = Literal["admin", "sub_admin", "agent"]


# ---------- NESTED MINI SCHEMAS ----------

class UserMiniOut(BaseModel):
    user_id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str

    class Config:
        from_attributes = True


class UserOut(BaseModel):
    # None for a placeholder profile that has not materialized yet
    user_id: Optional[int] = None
    auth_id: Optional[str] = None
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: RoleName
    branch_id: Optional[int] = None
    is_active: bool = True
    email_verified: bool = False

    branch: Optional[BranchOut] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Fields staff may change on their own profile."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=80)
    last_name: Optional[str] = Field(None, min_length=1, max_length=80)
    phone: Optional[str] = None

    @field_validator("phone", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("first_name", "last_name")
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v


class UserAdminUpdate(BaseModel):
    role: Optional[RoleName] = None
    branch_id: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("role", "is_active")
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v
