import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from backoffice.core.guards import Roles, require_roles
from backoffice.core.session import AuthEvent, AuthNotification, apply_auth_event
from backoffice.models.branches_model import Branch
from backoffice.models.user_model import AuthIdentity, User
from backoffice.schemas import UserAdminUpdate, UserOut
from backoffice.services import auth_service
from backoffice.utils.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


# LIST (admin: everyone, sub_admin: agents of own branch)
@router.get("/", response_model=list[UserOut])
def list_users(
        role: Optional[str] = Query(None),
        branch_id: Optional[int] = Query(None),
        is_active: Optional[bool] = Query(None),
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.APPROVERS)),
):
    q = db.query(User).options(joinedload(User.branch))

    if identity.role == Roles.SUB_ADMIN:
        branch_id = identity.branch_id
        role = Roles.AGENT
    if branch_id is not None:
        q = q.filter(User.branch_id == branch_id)
    if role:
        q = q.filter(User.role == role)
    if is_active is not None:
        q = q.filter(User.is_active.is_(is_active))

    return q.order_by(User.first_name.asc(), User.last_name.asc()).all()


@router.get("/agents", response_model=list[UserOut])
def list_agents(
        branch_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.APPROVERS)),
):
    if identity.role == Roles.SUB_ADMIN:
        branch_id = identity.branch_id

    q = db.query(User).filter(User.role == Roles.AGENT, User.is_active.is_(True))
    if branch_id is not None:
        q = q.filter(User.branch_id == branch_id)
    return q.order_by(User.first_name.asc()).all()


# UPDATE (role / branch / activation)
@router.patch("/{user_id}", response_model=UserOut)
def update_user(
        user_id: int,
        payload: UserAdminUpdate,
        db: Session = Depends(get_db),
        admin: User = Depends(require_roles(Roles.ADMIN)),
):
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(404, "User not found")

    updates = payload.model_dump(exclude_unset=True)
    if "branch_id" in updates and updates["branch_id"] is not None:
        if not db.query(Branch).filter(Branch.branch_id == updates["branch_id"]).first():
            raise HTTPException(400, "Invalid branch_id")

    role = updates.get("role", user.role)
    branch_id = updates.get("branch_id", user.branch_id)
    if role in Roles.BRANCH_SCOPED and branch_id is None:
        raise HTTPException(400, "sub_admin and agent accounts need a branch")
    if role == Roles.ADMIN:
        updates["branch_id"] = None

    for key, value in updates.items():
        setattr(user, key, value)

    try:
        if user.auth_id:
            if updates.get("is_active") is False:
                # deactivation ends every live session
                auth_service.sign_out_everywhere(db, user.auth_id)
            else:
                apply_auth_event(db, AuthNotification(AuthEvent.USER_UPDATED, user.auth_id))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Update user %s failed", user_id)
        raise

    logger.info("User %s updated by admin %s: %s", user_id, admin.user_id, sorted(updates))
    db.refresh(user)
    return user


# PROVISION (repair for identities whose profile never materialized)
@router.post("/provision/{auth_id}", response_model=UserOut, status_code=201)
def provision_user(
        auth_id: str,
        db: Session = Depends(get_db),
        admin: User = Depends(require_roles(Roles.ADMIN)),
):
    identity = db.query(AuthIdentity).filter(AuthIdentity.auth_id == auth_id).first()
    if not identity:
        raise HTTPException(404, "Auth identity not found")

    try:
        profile = auth_service.provision_profile(db, identity, created_by=admin.user_id)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Provision profile failed for %s", auth_id)
        raise

    db.refresh(profile)
    return profile
