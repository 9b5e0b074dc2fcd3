from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator, model_validator

from backoffice.schemas.branch_schemas import BranchOut
from backoffice.schemas.user_schemas import RoleName, UserOut


class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=180)
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=80)
    last_name: str = Field(..., min_length=1, max_length=80)
    phone: Optional[str] = None
    role: RoleName
    branch_id: Optional[int] = None

    @field_validator("email", mode="before")
    def normalize_email(cls, v):
        v = str(v or "").strip().lower()
        if "@" not in v:
            raise ValueError("A valid email address is required")
        return v

    @model_validator(mode="after")
    def branch_for_scoped_roles(self):
        if self.role in ("sub_admin", "agent") and self.branch_id is None:
            raise ValueError("branch_id is required for sub_admin and agent accounts")
        if self.role == "admin":
            # admins are scoped to every branch
            self.branch_id = None
        return self


class SignInRequest(BaseModel):
    email: str
    password: str

    @field_validator("email", mode="before")
    def normalize_email(cls, v):
        return str(v or "").strip().lower()


class ResendRequest(BaseModel):
    email: str

    @field_validator("email", mode="before")
    def normalize_email(cls, v):
        return str(v or "").strip().lower()


class AuthUserOut(BaseModel):
    auth_id: str
    email: str
    email_confirmed_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None
    user_metadata: dict = {}

    class Config:
        from_attributes = True


class AuthResult(BaseModel):
    user: UserOut
    auth_user: AuthUserOut
    access_token: Optional[str] = None
    token_type: str = "bearer"
    email_confirmation_required: bool = False


class CurrentUserOut(BaseModel):
    user: Optional[UserOut] = None


class LoginContextOut(BaseModel):
    selected_branch: Optional[BranchOut] = None
    branches: List[BranchOut] = []
