import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backoffice.core.guards import Roles, ensure_in_scope, require_roles, scoped_filters
from backoffice.models.user_model import User
from backoffice.schemas import (
    ApproveRequest,
    DailyPaymentOut,
    DisbursementResult,
    DisburseRequest,
    LoanApplicationCreate,
    LoanApplicationOut,
    RejectRequest,
    ScheduleRepairOut,
)
from backoffice.services import loan_service, payment_service
from backoffice.utils.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/loan-applications", tags=["Loan Applications"])


def _get_in_scope(db: Session, application_id: int, identity: User):
    app = loan_service.get_loan_application(db, application_id)
    if not app:
        raise HTTPException(404, "Loan application not found")
    ensure_in_scope(identity, app.branch_id, app.agent_id)
    return app


# =================================================
# 🔹 CREATE / READ
# =================================================
@router.post("/", response_model=LoanApplicationOut, status_code=201)
def create_application(
        payload: LoanApplicationCreate,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    agent_id, branch_id = payload.agent_id, payload.branch_id

    if identity.role == Roles.AGENT:
        agent_id, branch_id = identity.user_id, identity.branch_id
    elif identity.role == Roles.SUB_ADMIN:
        branch_id = identity.branch_id

    return loan_service.create_loan_application(
        db,
        customer_id=payload.customer_id,
        product_id=payload.product_id,
        agent_id=agent_id,
        branch_id=branch_id,
        purpose=payload.purpose,
    )


@router.get("/", response_model=list[LoanApplicationOut])
def list_applications(
        status: Optional[str] = Query(None, description="pending | approved | rejected | disbursed"),
        branch_id: Optional[int] = Query(None),
        agent_id: Optional[int] = Query(None),
        customer_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    branch_id, agent_id = scoped_filters(identity, branch_id, agent_id)
    return loan_service.get_loan_applications(
        db,
        branch_id=branch_id,
        agent_id=agent_id,
        status=status,
        customer_id=customer_id,
    )


@router.get("/{application_id}", response_model=LoanApplicationOut)
def get_application(
        application_id: int,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    return _get_in_scope(db, application_id, identity)


# =================================================
# ✅ DECISIONS
# =================================================
@router.post("/{application_id}/approve", response_model=LoanApplicationOut)
def approve_application(
        application_id: int,
        payload: ApproveRequest,
        db: Session = Depends(get_db),
        approver: User = Depends(require_roles(*Roles.APPROVERS)),
):
    return loan_service.approve_loan(db, application_id, approver, notes=payload.notes)


@router.post("/{application_id}/reject", response_model=LoanApplicationOut)
def reject_application(
        application_id: int,
        payload: RejectRequest,
        db: Session = Depends(get_db),
        approver: User = Depends(require_roles(*Roles.APPROVERS)),
):
    try:
        return loan_service.reject_loan(db, application_id, approver, payload.reason)
    except ValueError as e:
        raise HTTPException(422, str(e))


@router.post("/{application_id}/disburse", response_model=DisbursementResult)
def disburse_application(
        application_id: int,
        payload: DisburseRequest,
        db: Session = Depends(get_db),
        approver: User = Depends(require_roles(*Roles.APPROVERS)),
):
    app, scheduled, txn = loan_service.disburse_loan(
        db,
        application_id,
        disbursement_date=payload.disbursement_date,
        start_date=payload.start_date,
        end_date=payload.end_date,
        notes=payload.notes,
        approver=approver,
    )

    return {
        "application": app,
        "scheduled_days": len(scheduled),
        "transaction_id": txn.transaction_id,
    }


# =================================================
# 🔹 SCHEDULE
# =================================================
@router.get("/{application_id}/payments", response_model=list[DailyPaymentOut])
def list_application_payments(
        application_id: int,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    _get_in_scope(db, application_id, identity)
    return payment_service.get_loan_payments(db, application_id)


@router.post("/{application_id}/schedule/repair", response_model=ScheduleRepairOut)
def repair_schedule(
        application_id: int,
        db: Session = Depends(get_db),
        approver: User = Depends(require_roles(*Roles.APPROVERS)),
):
    created, scheduled = loan_service.repair_payment_schedule(db, application_id, approver=approver)
    return {
        "application_id": application_id,
        "created_days": created,
        "scheduled_dates": scheduled,
    }
