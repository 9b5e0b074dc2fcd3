import logging
from typing import Optional, List

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload, selectinload

from backoffice.models.branches_model import Branch
from backoffice.models.customer_model import Customer, Guarantor
from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.user_model import User
from backoffice.schemas.customer_schemas import MAX_GUARANTORS

logger = logging.getLogger(__name__)


def _with_relations(q):
    return q.options(
        joinedload(Customer.agent),
        joinedload(Customer.branch),
        selectinload(Customer.guarantors),
        selectinload(Customer.loan_applications).joinedload(LoanApplication.loan_product),
    )


def create_customer(db: Session, customer: dict, guarantors: List[dict]) -> Customer:
    """Customer and guarantors are written in one transaction."""
    branch = db.query(Branch).filter(Branch.branch_id == customer.get("branch_id")).first()
    if not branch:
        raise HTTPException(400, "Invalid branch_id")

    agent = db.query(User).filter(User.user_id == customer.get("agent_id")).first()
    if not agent or not agent.is_active:
        raise HTTPException(400, "Invalid agent_id")

    row = Customer(**customer)
    try:
        db.add(row)
        db.flush()  # gives row.customer_id

        for g in guarantors:
            db.add(Guarantor(customer_id=row.customer_id, **g))

        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Create customer failed")
        raise

    logger.info(
        "Customer %s registered by agent %s with %s guarantor(s)",
        row.customer_id, row.agent_id, len(guarantors),
    )
    return get_customer_by_id(db, row.customer_id)


def get_customers(
        db: Session,
        branch_id: Optional[int] = None,
        agent_id: Optional[int] = None,
        is_active: Optional[bool] = None,
):
    q = _with_relations(db.query(Customer))

    if branch_id is not None:
        q = q.filter(Customer.branch_id == branch_id)
    if agent_id is not None:
        q = q.filter(Customer.agent_id == agent_id)
    if is_active is not None:
        q = q.filter(Customer.is_active.is_(is_active))

    return q.order_by(Customer.created_at.desc(), Customer.customer_id.desc()).all()


def get_customer_by_id(db: Session, customer_id: int) -> Optional[Customer]:
    return (
        _with_relations(db.query(Customer))
        .filter(Customer.customer_id == customer_id)
        .first()
    )


def update_customer(db: Session, customer_id: int, updates: dict) -> Customer:
    row = db.query(Customer).filter(Customer.customer_id == customer_id).first()
    if not row:
        raise HTTPException(404, "Customer not found")

    for key, value in updates.items():
        setattr(row, key, value)

    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Update customer %s failed", customer_id)
        raise

    return get_customer_by_id(db, customer_id)


def delete_customer(db: Session, customer_id: int):
    """Soft delete; customers are never removed."""
    row = db.query(Customer).filter(Customer.customer_id == customer_id).first()
    if not row:
        raise HTTPException(404, "Customer not found")

    row.is_active = False
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Delete customer %s failed", customer_id)
        raise
    logger.info("Customer %s deactivated", customer_id)


def get_guarantors(db: Session, customer_id: int):
    return (
        db.query(Guarantor)
        .filter(Guarantor.customer_id == customer_id)
        .order_by(Guarantor.guarantor_type.asc())
        .all()
    )


def add_guarantor(db: Session, customer_id: int, guarantor: dict) -> Guarantor:
    existing = get_guarantors(db, customer_id)
    if len(existing) >= MAX_GUARANTORS:
        raise HTTPException(409, f"A customer can have at most {MAX_GUARANTORS} guarantors")

    taken = {g.guarantor_type for g in existing}
    g_type = guarantor.get("guarantor_type") or ("secondary" if "primary" in taken else "primary")
    if g_type in taken:
        raise HTTPException(409, f"Customer already has a {g_type} guarantor")

    row = Guarantor(customer_id=customer_id, **{**guarantor, "guarantor_type": g_type})
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except Exception:
        db.rollback()
        logger.exception("Add guarantor failed for customer %s", customer_id)
        raise
    return row
