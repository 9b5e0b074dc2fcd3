"""
Loan application lifecycle.

    pending --approve--> approved --disburse--> disbursed
       \
        --reject--> rejected

Statuses only move forward along these edges; anything else is a 409.
Disbursement, payment-schedule generation and the loan_disbursement ledger
entry share one database transaction: if any of them fails the status
change is rolled back and the application stays approved.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload
from starlette import status

from backoffice.core.guards import Roles
from backoffice.models.branches_model import Branch
from backoffice.models.customer_model import Customer
from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.loan_product_model import LoanProduct
from backoffice.models.payment_model import DailyPayment
from backoffice.models.user_model import User
from backoffice.services import payment_service
from backoffice.services.schedule_service import create_weekly_payment_schedule

logger = logging.getLogger(__name__)


class LoanStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"


# from-state -> reachable states
TRANSITIONS = {
    LoanStatus.PENDING: (LoanStatus.APPROVED, LoanStatus.REJECTED),
    LoanStatus.APPROVED: (LoanStatus.DISBURSED,),
    LoanStatus.REJECTED: (),
    LoanStatus.DISBURSED: (),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


# -------------------------------------------------
# Helpers
# -------------------------------------------------
def _with_relations(q):
    return q.options(
        joinedload(LoanApplication.customer),
        joinedload(LoanApplication.agent),
        joinedload(LoanApplication.loan_product),
        joinedload(LoanApplication.branch),
    )


def get_loan_application(db: Session, application_id: int) -> Optional[LoanApplication]:
    return (
        _with_relations(db.query(LoanApplication))
        .filter(LoanApplication.application_id == application_id)
        .first()
    )


def _get_or_404(db: Session, application_id: int) -> LoanApplication:
    app = get_loan_application(db, application_id)
    if not app:
        raise HTTPException(404, "Loan application not found")
    return app


def _check_transition(app: LoanApplication, target: str):
    if not can_transition(app.status, target):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move loan application from '{app.status}' to '{target}'",
        )


def _check_approver_scope(app: LoanApplication, approver: User):
    if approver.role == Roles.ADMIN:
        return
    if approver.role == Roles.SUB_ADMIN and approver.branch_id == app.branch_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You can only act on loan applications from your own branch",
    )


# =================================================
# 🔹 CREATE / LIST
# =================================================
def create_loan_application(
        db: Session,
        customer_id: int,
        product_id: int,
        agent_id: int,
        branch_id: int,
        purpose: Optional[str] = None,
) -> LoanApplication:
    if not all([customer_id, product_id, agent_id, branch_id]):
        raise HTTPException(400, "customer_id, product_id, agent_id and branch_id are required")

    customer = db.query(Customer).filter(Customer.customer_id == customer_id).first()
    if not customer or not customer.is_active:
        raise HTTPException(404, "Customer not found / inactive")

    product = db.query(LoanProduct).filter(LoanProduct.product_id == product_id).first()
    if not product or not product.is_active:
        raise HTTPException(404, "Loan product not found / inactive")

    agent = db.query(User).filter(User.user_id == agent_id).first()
    if not agent or not agent.is_active:
        raise HTTPException(404, "Agent not found / inactive")

    branch = db.query(Branch).filter(Branch.branch_id == branch_id).first()
    if not branch:
        raise HTTPException(404, "Branch not found")

    if customer.branch_id != branch_id:
        raise HTTPException(400, "Customer is registered with a different branch")

    app = LoanApplication(
        customer_id=customer_id,
        product_id=product_id,
        agent_id=agent_id,
        branch_id=branch_id,
        purpose=purpose,
        status=LoanStatus.PENDING,
        application_date=date.today(),
    )

    try:
        db.add(app)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Create loan application failed for customer %s", customer_id)
        raise

    logger.info("Loan application %s created for customer %s", app.application_id, customer_id)
    return get_loan_application(db, app.application_id)


def get_loan_applications(
        db: Session,
        branch_id: Optional[int] = None,
        agent_id: Optional[int] = None,
        status: Optional[str] = None,
        customer_id: Optional[int] = None,
):
    q = _with_relations(db.query(LoanApplication))

    if branch_id is not None:
        q = q.filter(LoanApplication.branch_id == branch_id)
    if agent_id is not None:
        q = q.filter(LoanApplication.agent_id == agent_id)
    if status:
        q = q.filter(LoanApplication.status == status)
    if customer_id is not None:
        q = q.filter(LoanApplication.customer_id == customer_id)

    return q.order_by(LoanApplication.created_at.desc(), LoanApplication.application_id.desc()).all()


def get_loan_products(db: Session):
    return (
        db.query(LoanProduct)
        .filter(LoanProduct.is_active.is_(True))
        .order_by(LoanProduct.principal_amount.asc())
        .all()
    )


# =================================================
# 🔹 TRANSITIONS
# =================================================
def approve_loan(db: Session, application_id: int, approver: User, notes: Optional[str] = None) -> LoanApplication:
    app = _get_or_404(db, application_id)
    _check_approver_scope(app, approver)
    _check_transition(app, LoanStatus.APPROVED)

    app.status = LoanStatus.APPROVED
    app.approved_by = approver.user_id
    app.approval_date = date.today()
    if notes is not None:
        app.notes = notes

    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Approve loan %s failed", application_id)
        raise

    logger.info("Loan application %s approved by user %s", application_id, approver.user_id)
    return get_loan_application(db, application_id)


def reject_loan(db: Session, application_id: int, approver: User, reason: str) -> LoanApplication:
    # checked before touching the database
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("A rejection reason is required")

    app = _get_or_404(db, application_id)
    _check_approver_scope(app, approver)
    _check_transition(app, LoanStatus.REJECTED)

    app.status = LoanStatus.REJECTED
    app.rejection_reason = reason
    app.approved_by = approver.user_id
    app.approval_date = date.today()

    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Reject loan %s failed", application_id)
        raise

    logger.info("Loan application %s rejected by user %s", application_id, approver.user_id)
    return get_loan_application(db, application_id)


def disburse_loan(
        db: Session,
        application_id: int,
        disbursement_date: date,
        start_date: date,
        end_date: Optional[date] = None,
        notes: Optional[str] = None,
        approver: Optional[User] = None,
):
    """
    approved -> disbursed, plus the payment schedule and the
    loan_disbursement ledger entry for the principal, as one unit.

    Returns (application, scheduled_dates, transaction).
    """
    app = _get_or_404(db, application_id)
    if approver is not None:
        _check_approver_scope(app, approver)
    _check_transition(app, LoanStatus.DISBURSED)

    duration_days = app.loan_product.duration_days

    app.status = LoanStatus.DISBURSED
    app.disbursement_date = disbursement_date
    app.start_date = start_date
    app.end_date = end_date
    if notes is not None:
        app.notes = notes

    try:
        db.flush()
    except Exception:
        db.rollback()
        logger.exception("Disburse loan %s failed", application_id)
        raise

    try:
        scheduled = create_weekly_payment_schedule(
            db,
            application_id=app.application_id,
            customer_id=app.customer_id,
            agent_id=app.agent_id,
            branch_id=app.branch_id,
            start_date=app.start_date,
            duration_days=duration_days,
        )
        if app.end_date is None:
            app.end_date = scheduled[-1]
    except Exception:
        # compensating action: the status change goes with the failed schedule
        db.rollback()
        logger.exception("Payment schedule generation failed; disbursement of %s rolled back", application_id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Loan disbursement failed: the payment schedule could not be generated. "
                   "The application is still approved; please retry.",
        )

    product = app.loan_product
    try:
        txn = payment_service.create_transaction(
            db,
            application_id=app.application_id,
            customer_id=app.customer_id,
            agent_id=app.agent_id,
            branch_id=app.branch_id,
            transaction_type="loan_disbursement",
            amount=product.principal_amount,
            payment_method="Cash",
            description=f"Disbursement of {product.product_name} to customer {app.customer_id}",
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Disbursement ledger entry failed; disbursement of %s rolled back", application_id)
        raise

    db.refresh(txn)
    logger.info(
        "Loan application %s disbursed on %s, %s collection day(s) from %s, ledger %s",
        application_id, disbursement_date, len(scheduled), start_date, txn.transaction_id,
    )
    return get_loan_application(db, application_id), scheduled, txn


def repair_payment_schedule(db: Session, application_id: int, approver: Optional[User] = None):
    """
    Operator repair: fills the missing days of a disbursed application's
    schedule. Returns (created_count, scheduled_dates).
    """
    app = _get_or_404(db, application_id)
    if approver is not None:
        _check_approver_scope(app, approver)

    if app.status != LoanStatus.DISBURSED or app.start_date is None:
        raise HTTPException(409, "Only disbursed applications have a payment schedule")

    before = db.query(DailyPayment).filter(DailyPayment.application_id == application_id).count()

    try:
        scheduled = create_weekly_payment_schedule(
            db,
            application_id=app.application_id,
            customer_id=app.customer_id,
            agent_id=app.agent_id,
            branch_id=app.branch_id,
            start_date=app.start_date,
            duration_days=app.loan_product.duration_days,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Payment schedule repair failed for %s", application_id)
        raise

    after = db.query(DailyPayment).filter(DailyPayment.application_id == application_id).count()
    logger.info("Repaired schedule of %s: %s day(s) added", application_id, after - before)
    return after - before, scheduled
