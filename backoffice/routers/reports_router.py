from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from backoffice.core.guards import Roles, require_roles
from backoffice.models.user_model import User
from backoffice.utils.database import get_db

router = APIRouter(prefix="/reports", tags=["Reports"])


def _branch_scope(identity: User, branch_id: Optional[int]) -> Optional[int]:
    if identity.role == Roles.SUB_ADMIN:
        return identity.branch_id
    return branch_id


@router.get("/overdue")
def overdue_report(
        as_on: date,
        branch_id: Optional[int] = None,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.APPROVERS)),
):
    branch_id = _branch_scope(identity, branch_id)
    rows = db.execute(
        text("""
             select p.application_id,
                    p.customer_id,
                    c.first_name || ' ' || c.last_name as customer_name,
                    c.phone,
                    p.agent_id,
                    p.branch_id,
                    p.payment_date,
                    p.expected_amount
             from daily_payments p
                      join loan_applications a on a.application_id = p.application_id
                      join customers c on c.customer_id = p.customer_id
             where p.is_paid = :unpaid
               and p.payment_date < :as_on
               and a.status = 'disbursed'
               and (:bid is null or p.branch_id = :bid)
             order by p.payment_date asc, p.customer_id asc
             """),
        {"as_on": as_on, "bid": branch_id, "unpaid": False},
    ).mappings().all()

    return [
        {
            "application_id": r["application_id"],
            "customer_id": r["customer_id"],
            "customer_name": r["customer_name"],
            "phone": r["phone"],
            "agent_id": r["agent_id"],
            "branch_id": r["branch_id"],
            "payment_date": r["payment_date"],
            "due_left": float(r["expected_amount"]),
        }
        for r in rows
    ]


@router.get("/portfolio/branch")
def branch_portfolio(
        branch_id: Optional[int] = None,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.APPROVERS)),
):
    branch_id = _branch_scope(identity, branch_id)
    if branch_id is None:
        raise HTTPException(400, "branch_id is required")

    row = db.execute(
        text("""
             select count(*) as active_loans,
                    coalesce(sum(pr.principal_amount), 0) as total_portfolio,
                    coalesce(sum(pr.total_amount), 0) as total_repayable
             from loan_applications a
                      join loan_products pr on pr.product_id = a.product_id
             where a.branch_id = :bid
               and a.status = 'disbursed'
             """),
        {"bid": branch_id},
    ).mappings().first()

    collected = db.execute(
        text("""
             select coalesce(sum(coalesce(p.actual_amount, p.expected_amount)), 0) as collected
             from daily_payments p
             where p.branch_id = :bid
               and p.is_paid = :paid
             """),
        {"bid": branch_id, "paid": True},
    ).scalar()

    return {
        "branch_id": branch_id,
        "active_loans": int(row["active_loans"]),
        "total_portfolio": float(row["total_portfolio"]),
        "total_collected": float(collected or 0),
        "outstanding": float(row["total_repayable"]) - float(collected or 0),
    }


@router.get("/collections/daily")
def daily_collections(
        on: date,
        branch_id: Optional[int] = None,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.APPROVERS)),
):
    """Per-agent collection sheet for one day."""
    branch_id = _branch_scope(identity, branch_id)
    rows = db.execute(
        text("""
             select p.agent_id,
                    u.first_name || ' ' || u.last_name as agent_name,
                    count(*) as scheduled,
                    sum(case when p.is_paid = :paid then 1 else 0 end) as collected_count,
                    coalesce(sum(case when p.is_paid = :paid
                                      then coalesce(p.actual_amount, p.expected_amount) else 0 end), 0) as collected,
                    coalesce(sum(p.expected_amount), 0) as expected
             from daily_payments p
                      join users u on u.user_id = p.agent_id
             where p.payment_date = :on
               and (:bid is null or p.branch_id = :bid)
             group by p.agent_id, u.first_name, u.last_name
             order by agent_name asc
             """),
        {"on": on, "bid": branch_id, "paid": True},
    ).mappings().all()

    return [
        {
            "agent_id": r["agent_id"],
            "agent_name": r["agent_name"],
            "scheduled": int(r["scheduled"]),
            "collected_count": int(r["collected_count"] or 0),
            "collected": float(r["collected"]),
            "expected": float(r["expected"]),
        }
        for r in rows
    ]
