from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from backoffice.core.config import SELECTED_BRANCH_COOKIE
from backoffice.core.guards import Roles, require_roles
from backoffice.models.branches_model import Branch
from backoffice.schemas import BranchCreate, BranchOut, BranchSelect
from backoffice.utils.database import get_db

router = APIRouter(prefix="/branches", tags=["Branches"])


# READ ALL (public: the landing page lists branches)
@router.get("/", response_model=list[BranchOut])
def list_branches(db: Session = Depends(get_db)):
    return db.query(Branch).order_by(Branch.branch_name.asc()).all()


# READ ONE
@router.get("/{branch_id}", response_model=BranchOut)
def get_branch(branch_id: int, db: Session = Depends(get_db)):
    branch = db.query(Branch).filter(Branch.branch_id == branch_id).first()
    if not branch:
        raise HTTPException(404, "Branch not found")

    return branch


# CREATE
@router.post("/", response_model=BranchOut, status_code=201)
def create_branch(
        payload: BranchCreate,
        db: Session = Depends(get_db),
        _admin=Depends(require_roles(Roles.ADMIN)),
):
    exists = (
        db.query(Branch)
        .filter((Branch.branch_name == payload.branch_name) | (Branch.branch_code == payload.branch_code))
        .first()
    )
    if exists:
        raise HTTPException(400, "Branch name or code already exists")

    branch = Branch(**payload.model_dump())
    db.add(branch)
    db.commit()
    db.refresh(branch)
    return branch


# SELECT (remembered for the login page)
@router.post("/select", response_model=BranchOut)
def select_branch(payload: BranchSelect, response: Response, db: Session = Depends(get_db)):
    branch = db.query(Branch).filter(Branch.branch_id == payload.branch_id).first()
    if not branch:
        raise HTTPException(404, "Branch not found")

    response.set_cookie(SELECTED_BRANCH_COOKIE, str(branch.branch_id), samesite="lax")
    return branch
