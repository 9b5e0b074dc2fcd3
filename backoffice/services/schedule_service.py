"""
create_weekly_payment_schedule: builds the collection roster of a disbursed
loan.

One unpaid daily-payment record per collection day (Monday..Saturday),
starting at the confirmed start date, until `duration_days` collection days
exist, plus one empty weekly tracking row per covered week. Dates that
already have a record are left untouched, so re-running the procedure only
fills gaps.
"""

import logging
from datetime import date
from typing import List

from sqlalchemy.orm import Session

from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.payment_model import DailyPayment, WeeklyPaymentTracking
from backoffice.utils.loan_calculations import collection_dates, money, week_start_of

logger = logging.getLogger(__name__)


def create_weekly_payment_schedule(
        db: Session,
        application_id: int,
        customer_id: int,
        agent_id: int,
        branch_id: int,
        start_date: date,
        duration_days: int,
) -> List[date]:
    """Flushes, never commits. Returns every scheduled collection date."""
    app = db.query(LoanApplication).filter(LoanApplication.application_id == application_id).first()
    if not app:
        raise ValueError(f"Loan application {application_id} not found")

    expected = money(app.loan_product.daily_payment)
    dates = collection_dates(start_date, duration_days)

    existing_days = {
        d for (d,) in db.query(DailyPayment.payment_date)
        .filter(DailyPayment.application_id == application_id)
        .all()
    }
    existing_weeks = {
        w for (w,) in db.query(WeeklyPaymentTracking.week_start)
        .filter(WeeklyPaymentTracking.application_id == application_id)
        .all()
    }

    created = 0
    for d in dates:
        if d not in existing_days:
            db.add(
                DailyPayment(
                    application_id=application_id,
                    customer_id=customer_id,
                    agent_id=agent_id,
                    branch_id=branch_id,
                    payment_date=d,
                    expected_amount=expected,
                    is_paid=False,
                    version=1,
                )
            )
            created += 1

        week = week_start_of(d)
        if week not in existing_weeks:
            db.add(
                WeeklyPaymentTracking(
                    application_id=application_id,
                    customer_id=customer_id,
                    agent_id=agent_id,
                    branch_id=branch_id,
                    week_start=week,
                )
            )
            existing_weeks.add(week)

    db.flush()
    logger.info(
        "Scheduled %s collection day(s) for application %s (%s new) from %s to %s",
        len(dates), application_id, created, dates[0], dates[-1],
    )
    return dates
