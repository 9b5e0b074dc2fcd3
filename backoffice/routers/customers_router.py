from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backoffice.core.guards import Roles, ensure_in_scope, require_roles, scoped_filters
from backoffice.models.user_model import User
from backoffice.schemas import (
    CustomerOut,
    CustomerRegistration,
    CustomerUpdate,
    GuarantorIn,
    GuarantorOut,
)
from backoffice.services import customer_service
from backoffice.utils.database import get_db

router = APIRouter(prefix="/customers", tags=["Customers"])


def _get_in_scope(db: Session, customer_id: int, identity: User):
    customer = customer_service.get_customer_by_id(db, customer_id)
    if not customer:
        raise HTTPException(404, "Customer not found")
    ensure_in_scope(identity, customer.branch_id, customer.agent_id)
    return customer


# REGISTER (customer + guarantors)
@router.post("/", response_model=CustomerOut, status_code=201)
def register_customer(
        payload: CustomerRegistration,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    customer = payload.customer.model_dump()

    if identity.role == Roles.AGENT:
        customer["agent_id"] = identity.user_id
        customer["branch_id"] = identity.branch_id
    elif identity.role == Roles.SUB_ADMIN:
        customer["branch_id"] = identity.branch_id

    if customer.get("agent_id") is None or customer.get("branch_id") is None:
        raise HTTPException(400, "agent_id and branch_id are required")

    agent = db.query(User).filter(User.user_id == customer["agent_id"]).first()
    if not agent or agent.role != Roles.AGENT or agent.branch_id != customer["branch_id"]:
        raise HTTPException(400, "agent_id must be an agent of the customer's branch")

    guarantors = [g.model_dump() for g in payload.guarantors]
    return customer_service.create_customer(db, customer, guarantors)


# LIST
@router.get("/", response_model=list[CustomerOut])
def list_customers(
        branch_id: Optional[int] = Query(None),
        agent_id: Optional[int] = Query(None),
        is_active: Optional[bool] = Query(None),
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    branch_id, agent_id = scoped_filters(identity, branch_id, agent_id)
    return customer_service.get_customers(db, branch_id=branch_id, agent_id=agent_id, is_active=is_active)


# READ ONE
@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(
        customer_id: int,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    return _get_in_scope(db, customer_id, identity)


# UPDATE
@router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(
        customer_id: int,
        payload: CustomerUpdate,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    _get_in_scope(db, customer_id, identity)

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, "Nothing to update")
    return customer_service.update_customer(db, customer_id, updates)


# DELETE (soft)
@router.delete("/{customer_id}")
def delete_customer(
        customer_id: int,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.APPROVERS)),
):
    _get_in_scope(db, customer_id, identity)
    customer_service.delete_customer(db, customer_id)
    return {"message": "Customer deactivated"}


# GUARANTORS
@router.get("/{customer_id}/guarantors", response_model=list[GuarantorOut])
def list_guarantors(
        customer_id: int,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    _get_in_scope(db, customer_id, identity)
    return customer_service.get_guarantors(db, customer_id)


@router.post("/{customer_id}/guarantors", response_model=GuarantorOut, status_code=201)
def add_guarantor(
        customer_id: int,
        payload: GuarantorIn,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    _get_in_scope(db, customer_id, identity)
    return customer_service.add_guarantor(db, customer_id, payload.model_dump())
