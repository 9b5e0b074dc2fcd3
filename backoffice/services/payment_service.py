import logging
import time
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from starlette import status

from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.payment_model import DailyPayment, WeeklyPaymentTracking
from backoffice.models.transaction_model import Transaction
from backoffice.utils.loan_calculations import money, normalize_day, week_start_of

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("loan_disbursement", "daily_payment", "penalty", "refund")


def default_reference_number() -> str:
    return f"TXN-{int(time.time() * 1000)}"


def _check_identity_tuple(db: Session, application_id, customer_id, agent_id, branch_id) -> LoanApplication:
    app = db.query(LoanApplication).filter(LoanApplication.application_id == application_id).first()
    if not app:
        raise HTTPException(404, "Loan application not found")

    if (app.customer_id, app.agent_id, app.branch_id) != (customer_id, agent_id, branch_id):
        raise HTTPException(400, "customer_id / agent_id / branch_id do not match the loan application")
    return app


# =================================================
# ✅ LEDGER
# =================================================
def create_transaction(
        db: Session,
        customer_id: int,
        agent_id: int,
        branch_id: int,
        transaction_type: str,
        amount,
        application_id: Optional[int] = None,
        payment_method: Optional[str] = None,
        reference_number: Optional[str] = None,
        description: Optional[str] = None,
        commit: bool = True,
) -> Transaction:
    """Append-only insert."""
    if transaction_type not in TRANSACTION_TYPES:
        raise HTTPException(400, f"Unknown transaction type: {transaction_type}")

    amount = money(amount)
    if amount <= 0:
        raise HTTPException(400, "Transaction amount must be > 0")

    row = Transaction(
        application_id=application_id,
        customer_id=customer_id,
        agent_id=agent_id,
        branch_id=branch_id,
        transaction_type=transaction_type,
        amount=amount,
        payment_method=payment_method,
        reference_number=reference_number or default_reference_number(),
        description=description,
        transaction_date=datetime.now(),
    )

    try:
        db.add(row)
        if commit:
            db.commit()
            db.refresh(row)
        else:
            db.flush()
    except Exception:
        db.rollback()
        logger.exception("Create transaction failed (%s, customer %s)", transaction_type, customer_id)
        raise

    logger.info("Ledger %s: %s %s ref=%s", row.transaction_id, transaction_type, amount, row.reference_number)
    return row


def get_transactions(
        db: Session,
        branch_id: Optional[int] = None,
        agent_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        transaction_type: Optional[str] = None,
):
    q = db.query(Transaction).options(
        joinedload(Transaction.customer),
        joinedload(Transaction.agent),
        joinedload(Transaction.branch),
    )

    if branch_id is not None:
        q = q.filter(Transaction.branch_id == branch_id)
    if agent_id is not None:
        q = q.filter(Transaction.agent_id == agent_id)
    if customer_id is not None:
        q = q.filter(Transaction.customer_id == customer_id)
    if transaction_type:
        q = q.filter(Transaction.transaction_type == transaction_type)
    if start_date:
        q = q.filter(Transaction.transaction_date >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        q = q.filter(Transaction.transaction_date <= datetime.combine(end_date, datetime.max.time()))

    return q.order_by(Transaction.created_at.desc(), Transaction.transaction_id.desc()).all()


# =================================================
# ✅ DAILY COLLECTIONS
# =================================================
def _find_payment(db: Session, application_id: int, payment_date: date) -> Optional[DailyPayment]:
    return (
        db.query(DailyPayment)
        .filter(
            DailyPayment.application_id == application_id,
            DailyPayment.payment_date == payment_date,
        )
        .first()
    )


def _write_payment(db: Session, payment: dict, expected_version: Optional[int]) -> DailyPayment:
    row = _find_payment(db, payment["application_id"], payment["payment_date"])

    if row is None:
        row = DailyPayment(version=0, **payment)
        db.add(row)
    elif expected_version is not None and row.version != expected_version:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Payment for {payment['payment_date']} was changed by another session "
                   f"(version {row.version}, expected {expected_version})",
        )
    else:
        for key, value in payment.items():
            setattr(row, key, value)

    row.is_paid = True
    row.payment_time = datetime.now()
    row.version = (row.version or 0) + 1
    db.flush()
    return row


def record_payment(db: Session, payment: dict, expected_version: Optional[int] = None):
    """
    Upsert of the (application, date) collection + a `daily_payment` ledger
    entry. Recording the same day twice overwrites the collection but appends
    a second ledger entry.

    Returns (daily_payment, transaction).
    """
    app = _check_identity_tuple(
        db,
        payment["application_id"],
        payment["customer_id"],
        payment["agent_id"],
        payment["branch_id"],
    )
    if app.status != "disbursed":
        raise HTTPException(409, f"Loan application is not disbursed (status: {app.status})")

    payment = dict(payment)
    payment["expected_amount"] = money(payment["expected_amount"])
    if payment.get("actual_amount") is not None:
        payment["actual_amount"] = money(payment["actual_amount"])

    try:
        try:
            row = _write_payment(db, payment, expected_version)
        except IntegrityError:
            # lost the insert race for this day; the other row wins, overwrite it
            db.rollback()
            logger.warning(
                "Concurrent insert for application %s on %s, retrying as update",
                payment["application_id"], payment["payment_date"],
            )
            row = _write_payment(db, payment, expected_version)

        collected = payment.get("actual_amount")
        if collected is None:
            collected = payment["expected_amount"]

        txn = create_transaction(
            db,
            application_id=payment["application_id"],
            customer_id=payment["customer_id"],
            agent_id=payment["agent_id"],
            branch_id=payment["branch_id"],
            transaction_type="daily_payment",
            amount=collected,
            payment_method=payment.get("payment_method"),
            description=f"Daily payment for loan application {payment['application_id']}",
            commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Record payment failed for application %s", payment["application_id"])
        raise

    db.refresh(row)
    db.refresh(txn)
    return row, txn


def update_weekly_tracking(
        db: Session,
        application_id: int,
        customer_id: int,
        agent_id: int,
        branch_id: int,
        week_start: date,
        day: str,
        amount,
        is_paid: bool,
) -> WeeklyPaymentTracking:
    """Upserts one day's (paid, amount) pair on the week's roster row."""
    try:
        day_key = normalize_day(day)
    except ValueError as e:
        raise HTTPException(422, str(e))

    _check_identity_tuple(db, application_id, customer_id, agent_id, branch_id)

    # rows are keyed by Monday
    week_start = week_start_of(week_start)

    row = (
        db.query(WeeklyPaymentTracking)
        .filter(
            WeeklyPaymentTracking.application_id == application_id,
            WeeklyPaymentTracking.week_start == week_start,
        )
        .first()
    )

    try:
        if row is None:
            row = WeeklyPaymentTracking(
                application_id=application_id,
                customer_id=customer_id,
                agent_id=agent_id,
                branch_id=branch_id,
                week_start=week_start,
            )
            db.add(row)

        setattr(row, f"{day_key}_paid", bool(is_paid))
        setattr(row, f"{day_key}_amount", money(amount))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Update weekly tracking failed for application %s week %s", application_id, week_start)
        raise

    db.refresh(row)
    return row


# =================================================
# 🔹 ROSTERS
# =================================================
def get_agent_payment_schedule(db: Session, agent_id: int, payment_date: date):
    return (
        db.query(DailyPayment)
        .options(
            joinedload(DailyPayment.customer),
            joinedload(DailyPayment.loan_application).joinedload(LoanApplication.loan_product),
        )
        .filter(DailyPayment.agent_id == agent_id, DailyPayment.payment_date == payment_date)
        .order_by(DailyPayment.customer_id.asc())
        .all()
    )


def get_weekly_payment_tracking(
        db: Session,
        week_start: date,
        agent_id: Optional[int] = None,
        branch_id: Optional[int] = None,
):
    q = (
        db.query(WeeklyPaymentTracking)
        .options(
            joinedload(WeeklyPaymentTracking.customer),
            joinedload(WeeklyPaymentTracking.loan_application).joinedload(LoanApplication.loan_product),
        )
        .filter(WeeklyPaymentTracking.week_start == week_start_of(week_start))
    )

    if agent_id is not None:
        q = q.filter(WeeklyPaymentTracking.agent_id == agent_id)
    if branch_id is not None:
        q = q.filter(WeeklyPaymentTracking.branch_id == branch_id)

    return q.order_by(WeeklyPaymentTracking.customer_id.asc()).all()


def get_loan_payments(db: Session, application_id: int):
    return (
        db.query(DailyPayment)
        .filter(DailyPayment.application_id == application_id)
        .order_by(DailyPayment.payment_date.asc())
        .all()
    )


def get_payments_between(
        db: Session,
        start: date,
        end: date,
        branch_id: Optional[int] = None,
        agent_id: Optional[int] = None,
):
    q = db.query(DailyPayment).filter(
        DailyPayment.payment_date >= start,
        DailyPayment.payment_date <= end,
    )
    if branch_id is not None:
        q = q.filter(DailyPayment.branch_id == branch_id)
    if agent_id is not None:
        q = q.filter(DailyPayment.agent_id == agent_id)
    return q.all()
