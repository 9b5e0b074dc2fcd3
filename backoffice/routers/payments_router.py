from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backoffice.core.guards import Roles, ensure_in_scope, require_roles, scoped_filters
from backoffice.models.user_model import User
from backoffice.schemas import (
    DailyPaymentOut,
    PaymentRecordIn,
    PaymentRecordResult,
    WeeklyTrackingIn,
    WeeklyTrackingOut,
)
from backoffice.services import payment_service
from backoffice.utils.database import get_db
from backoffice.utils.loan_calculations import day_name, week_start_of

router = APIRouter(prefix="/payments", tags=["Payments"])


# =================================================
# ✅ RECORD A DAILY COLLECTION
# =================================================
@router.post("/record", response_model=PaymentRecordResult)
def record_payment(
        payload: PaymentRecordIn,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    ensure_in_scope(identity, payload.branch_id, payload.agent_id)

    data = payload.model_dump(exclude={"expected_version", "sync_weekly"})
    row, txn = payment_service.record_payment(db, data, expected_version=payload.expected_version)

    weekly = None
    # Sunday has no roster column
    if payload.sync_weekly and payload.payment_date.weekday() != 6:
        amount = row.actual_amount if row.actual_amount is not None else row.expected_amount
        weekly = payment_service.update_weekly_tracking(
            db,
            application_id=row.application_id,
            customer_id=row.customer_id,
            agent_id=row.agent_id,
            branch_id=row.branch_id,
            week_start=week_start_of(row.payment_date),
            day=day_name(row.payment_date),
            amount=amount,
            is_paid=True,
        )

    return {"payment": row, "transaction_id": txn.transaction_id, "weekly": weekly}


# =================================================
# 🔹 WEEKLY ROSTER
# =================================================
@router.post("/weekly", response_model=WeeklyTrackingOut)
def update_weekly(
        payload: WeeklyTrackingIn,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    ensure_in_scope(identity, payload.branch_id, payload.agent_id)
    return payment_service.update_weekly_tracking(db, **payload.model_dump())


@router.get("/weekly", response_model=list[WeeklyTrackingOut])
def list_weekly(
        week_start: date = Query(..., description="Any date of the week; rows are keyed by Monday"),
        agent_id: Optional[int] = Query(None),
        branch_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    branch_id, agent_id = scoped_filters(identity, branch_id, agent_id)
    return payment_service.get_weekly_payment_tracking(db, week_start, agent_id=agent_id, branch_id=branch_id)


# =================================================
# 🔹 DAILY ROSTER
# =================================================
@router.get("/schedule", response_model=list[DailyPaymentOut])
def agent_schedule(
        payment_date: Optional[date] = Query(None, description="Defaults to today"),
        agent_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    if identity.role == Roles.AGENT:
        agent_id = identity.user_id
    if agent_id is None:
        raise HTTPException(400, "agent_id is required")

    agent = db.query(User).filter(User.user_id == agent_id).first()
    if not agent:
        raise HTTPException(404, "Agent not found")
    ensure_in_scope(identity, agent.branch_id, agent.user_id)

    return payment_service.get_agent_payment_schedule(db, agent_id, payment_date or date.today())
