"""
Dashboard metrics.

Each dashboard is assembled from independent read-only fetches. They run
concurrently in the threadpool, every fetch on its own session, and the
dashboard is built once all of them are back.
"""

import asyncio
import logging
from datetime import date
from functools import partial
from typing import Optional

from sqlalchemy import and_, case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from starlette.concurrency import run_in_threadpool

from backoffice.core.guards import Roles
from backoffice.models.branches_model import Branch
from backoffice.models.customer_model import Customer
from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.loan_product_model import LoanProduct
from backoffice.models.payment_model import DailyPayment
from backoffice.models.user_model import User
from backoffice.schemas.branch_schemas import BranchOut
from backoffice.schemas.dashboard_schemas import (
    AdminDashboardOut,
    AgentDashboardOut,
    BranchPerformanceOut,
    LandingOut,
    LiveMetricsOut,
    SubAdminDashboardOut,
)
from backoffice.schemas.payment_schemas import DailyPaymentOut
from backoffice.utils import database
from backoffice.utils.loan_calculations import week_start_of
from backoffice.utils.settings import get_setting

logger = logging.getLogger(__name__)

COLLECTED = func.coalesce(DailyPayment.actual_amount, DailyPayment.expected_amount)


def _run_fetch(fetch):
    db = database.SessionLocal()
    try:
        return fetch(db)
    finally:
        db.close()


async def gather_fetches(*fetches):
    """Runs `fetch(db)` callables concurrently; results come back in order."""
    return await asyncio.gather(*(run_in_threadpool(_run_fetch, f) for f in fetches))


def _percent(part, whole) -> float:
    if not whole:
        return 0.0
    return round(float(part) * 100.0 / float(whole), 2)


def _scope(q, model, branch_id: Optional[int], agent_id: Optional[int]):
    if branch_id is not None:
        q = q.filter(model.branch_id == branch_id)
    if agent_id is not None:
        q = q.filter(model.agent_id == agent_id)
    return q


# =================================================
# 🔹 FETCHES
# =================================================
def count_customers(db: Session, branch_id=None, agent_id=None) -> int:
    q = db.query(func.count(Customer.customer_id)).filter(Customer.is_active.is_(True))
    return _scope(q, Customer, branch_id, agent_id).scalar() or 0


def loan_summary(db: Session, branch_id=None, agent_id=None) -> dict:
    q = (
        db.query(
            func.count(LoanApplication.application_id),
            func.sum(case((LoanApplication.status == "pending", 1), else_=0)),
            func.sum(case((LoanApplication.status == "disbursed", 1), else_=0)),
            func.sum(case((LoanApplication.status == "disbursed", LoanProduct.principal_amount), else_=0)),
        )
        .join(LoanProduct, LoanProduct.product_id == LoanApplication.product_id)
    )
    total, pending, disbursed, disbursed_amount = _scope(q, LoanApplication, branch_id, agent_id).one()
    return {
        "total_loans": total or 0,
        "pending_approvals": int(pending or 0),
        "disbursed_loans": int(disbursed or 0),
        "total_disbursed": float(disbursed_amount or 0),
    }


def collection_summary(db: Session, branch_id=None, agent_id=None, as_of: Optional[date] = None) -> dict:
    """Paid vs due over collection days up to `as_of`; unpaid days before it are overdue."""
    as_of = as_of or date.today()
    q = db.query(
        func.count(DailyPayment.payment_id),
        func.sum(case((DailyPayment.is_paid.is_(True), 1), else_=0)),
        func.sum(case((and_(DailyPayment.payment_date < as_of, DailyPayment.is_paid.is_(False)), 1), else_=0)),
    ).filter(DailyPayment.payment_date <= as_of)
    due, paid, overdue = _scope(q, DailyPayment, branch_id, agent_id).one()

    collected = _scope(
        db.query(func.sum(COLLECTED)).filter(DailyPayment.is_paid.is_(True)),
        DailyPayment, branch_id, agent_id,
    ).scalar()

    return {
        "total_collected": float(collected or 0),
        "collection_rate": _percent(paid or 0, due or 0),
        "overdue_payments": int(overdue or 0),
    }


def count_active_agents(db: Session, branch_id=None) -> int:
    q = db.query(func.count(User.user_id)).filter(User.role == Roles.AGENT, User.is_active.is_(True))
    if branch_id is not None:
        q = q.filter(User.branch_id == branch_id)
    return q.scalar() or 0


def branch_performance(db: Session):
    disbursed = (
        db.query(
            LoanApplication.branch_id,
            func.count(LoanApplication.application_id),
            func.coalesce(func.sum(LoanProduct.principal_amount), 0),
        )
        .join(LoanProduct, LoanProduct.product_id == LoanApplication.product_id)
        .filter(LoanApplication.status == "disbursed")
        .group_by(LoanApplication.branch_id)
        .all()
    )
    collected = dict(
        db.query(DailyPayment.branch_id, func.coalesce(func.sum(COLLECTED), 0))
        .filter(DailyPayment.is_paid.is_(True))
        .group_by(DailyPayment.branch_id)
        .all()
    )
    by_branch = {bid: (count, amount) for bid, count, amount in disbursed}

    return [
        BranchPerformanceOut(
            branch_id=b.branch_id,
            branch_name=b.branch_name,
            disbursed_loans=by_branch.get(b.branch_id, (0, 0))[0],
            total_disbursed=float(by_branch.get(b.branch_id, (0, 0))[1]),
            total_collected=float(collected.get(b.branch_id, 0)),
        )
        for b in db.query(Branch).order_by(Branch.branch_name.asc()).all()
    ]


def get_branch(db: Session, branch_id: int):
    b = db.query(Branch).filter(Branch.branch_id == branch_id).first()
    return BranchOut.model_validate(b) if b else None


def agent_collections(db: Session, agent_id: int, today: date) -> dict:
    rows = (
        db.query(DailyPayment)
        .options(joinedload(DailyPayment.customer))
        .filter(DailyPayment.agent_id == agent_id, DailyPayment.payment_date == today)
        .order_by(DailyPayment.customer_id.asc())
        .all()
    )
    week_collected = (
        db.query(func.sum(COLLECTED))
        .filter(
            DailyPayment.agent_id == agent_id,
            DailyPayment.is_paid.is_(True),
            DailyPayment.payment_date >= week_start_of(today),
            DailyPayment.payment_date <= today,
        )
        .scalar()
    )
    completed = [r for r in rows if r.is_paid]
    return {
        # converted here, before the session closes
        "today_payments": [DailyPaymentOut.model_validate(r) for r in rows],
        "today_collections": float(sum(float(r.expected_amount if r.actual_amount is None else r.actual_amount) for r in completed)),
        "completed_payments": len(completed),
        "pending_payments": len(rows) - len(completed),
        "weekly_collected": float(week_collected or 0),
    }


def count_active_loans(db: Session, agent_id: int) -> int:
    return (
        db.query(func.count(LoanApplication.application_id))
        .filter(LoanApplication.agent_id == agent_id, LoanApplication.status == "disbursed")
        .scalar()
        or 0
    )


def weekly_target(db: Session) -> float:
    raw = get_setting(db, "WEEKLY_COLLECTION_TARGET", "50000")
    try:
        return float(raw)
    except ValueError:
        logger.warning("WEEKLY_COLLECTION_TARGET is not a number: %r", raw)
        return 0.0


# =================================================
# ✅ DASHBOARDS
# =================================================
async def admin_dashboard() -> AdminDashboardOut:
    customers, loans, collections, agents, branches = await gather_fetches(
        count_customers,
        loan_summary,
        collection_summary,
        count_active_agents,
        branch_performance,
    )
    return AdminDashboardOut(
        total_customers=customers,
        active_agents=agents,
        branch_performance=branches,
        **loans,
        **collections,
    )


async def subadmin_dashboard(branch_id: int) -> SubAdminDashboardOut:
    customers, loans, collections, agents, branch = await gather_fetches(
        partial(count_customers, branch_id=branch_id),
        partial(loan_summary, branch_id=branch_id),
        partial(collection_summary, branch_id=branch_id),
        partial(count_active_agents, branch_id=branch_id),
        partial(get_branch, branch_id=branch_id),
    )
    return SubAdminDashboardOut(
        total_customers=customers,
        active_agents=agents,
        branch=branch,
        **loans,
        **collections,
    )


async def agent_dashboard(agent_id: int, today: Optional[date] = None) -> AgentDashboardOut:
    today = today or date.today()
    customers, active_loans, collections, target = await gather_fetches(
        partial(count_customers, agent_id=agent_id),
        partial(count_active_loans, agent_id=agent_id),
        partial(agent_collections, agent_id=agent_id, today=today),
        weekly_target,
    )
    scheduled_today = collections["completed_payments"] + collections["pending_payments"]
    return AgentDashboardOut(
        total_customers=customers,
        active_loans=active_loans,
        weekly_target=target,
        weekly_progress=min(100.0, _percent(collections["weekly_collected"], target)),
        completion_rate=_percent(collections["completed_payments"], scheduled_today),
        **collections,
    )


async def live_metrics() -> LiveMetricsOut:
    """Landing page figures; best effort, zeros when the database is unavailable."""
    try:
        loans, customers, collections = await gather_fetches(
            loan_summary,
            count_customers,
            collection_summary,
        )
    except SQLAlchemyError:
        logger.exception("Live metrics unavailable")
        return LiveMetricsOut()

    return LiveMetricsOut(
        total_loans=loans["total_loans"],
        active_customers=customers,
        total_disbursed=loans["total_disbursed"],
        collection_rate=collections["collection_rate"],
    )


def list_branches(db: Session):
    return [BranchOut.model_validate(b) for b in db.query(Branch).order_by(Branch.branch_name.asc()).all()]


async def landing() -> LandingOut:
    metrics = await live_metrics()
    try:
        (branches,) = await gather_fetches(list_branches)
    except SQLAlchemyError:
        logger.exception("Branch list unavailable for the landing page")
        branches = []

    return LandingOut(
        message="Microfinance back office is running",
        branches=branches,
        metrics=metrics,
    )
