from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from backoffice.core.config import SELECTED_BRANCH_COOKIE
from backoffice.core.guards import (
    get_current_identity,
    get_current_session,
    public_only_policy,
    require_identity,
)
from backoffice.models.branches_model import Branch
from backoffice.models.user_model import AuthSession, User
from backoffice.schemas import (
    AuthResult,
    CurrentUserOut,
    LoginContextOut,
    ProfileUpdate,
    ResendRequest,
    SignInRequest,
    SignUpRequest,
    UserOut,
)
from backoffice.services import auth_service
from backoffice.utils.database import get_db

router = APIRouter(prefix="/auth", tags=["Auth"])


def _selected_branch(db: Session, request: Request, branch_id: Optional[int]):
    if branch_id is None:
        raw = request.cookies.get(SELECTED_BRANCH_COOKIE)
        branch_id = int(raw) if raw and raw.isdigit() else None
    if branch_id is None:
        return None
    return db.query(Branch).filter(Branch.branch_id == branch_id).first()


def _login_context(db: Session, request: Request, identity: Optional[User], branch_id: Optional[int]):
    decision = public_only_policy(identity)
    if not decision.allowed:
        return RedirectResponse(decision.redirect_to, status_code=303)

    return LoginContextOut(
        selected_branch=_selected_branch(db, request, branch_id),
        branches=db.query(Branch).order_by(Branch.branch_name.asc()).all(),
    )


# =================================================
# 🔹 PUBLIC PAGES (signed-in staff are sent home)
# =================================================
@router.get("/login", response_model=LoginContextOut)
def login_page(
        request: Request,
        branch_id: Optional[int] = Query(None, description="Branch chosen on the landing page"),
        identity: Optional[User] = Depends(get_current_identity),
        db: Session = Depends(get_db),
):
    return _login_context(db, request, identity, branch_id)


@router.get("/signup", response_model=LoginContextOut)
def signup_page(
        request: Request,
        branch_id: Optional[int] = Query(None),
        identity: Optional[User] = Depends(get_current_identity),
        db: Session = Depends(get_db),
):
    return _login_context(db, request, identity, branch_id)


# =================================================
# ✅ SIGN UP / IN / OUT
# =================================================
@router.post("/signup", response_model=AuthResult, status_code=201)
def signup(
        payload: SignUpRequest,
        db: Session = Depends(get_db),
        identity: Optional[User] = Depends(get_current_identity),
):
    return auth_service.sign_up(db, payload, requested_by=identity)


@router.post("/login", response_model=AuthResult)
def login(payload: SignInRequest, db: Session = Depends(get_db)):
    return auth_service.sign_in(db, payload.email, payload.password)


@router.post("/logout")
def logout(
        session: Optional[AuthSession] = Depends(get_current_session),
        db: Session = Depends(get_db),
):
    if session is not None:
        auth_service.sign_out(db, session)
    return {"message": "Signed out"}


# =================================================
# 🔹 CURRENT USER
# =================================================
@router.get("/me", response_model=CurrentUserOut)
def me(identity: Optional[User] = Depends(get_current_identity)):
    return {"user": identity}


@router.patch("/me", response_model=UserOut)
def update_me(
        payload: ProfileUpdate,
        identity: User = Depends(require_identity),
        db: Session = Depends(get_db),
):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "Nothing to update")
    return auth_service.update_profile(db, identity, updates)


# =================================================
# 🔹 EMAIL VERIFICATION
# =================================================
@router.get("/verify")
def verify(token: str = Query(...), db: Session = Depends(get_db)):
    identity = auth_service.verify_email(db, token)
    return {"message": "Email confirmed. You can now sign in.", "email": identity.email}


@router.post("/resend")
def resend(payload: ResendRequest, db: Session = Depends(get_db)):
    auth_service.resend_verification(db, payload.email)
    return {"message": "If the address is registered and unconfirmed, a new verification link was sent."}
