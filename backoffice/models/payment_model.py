from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Numeric,
    Boolean,
    Text,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from backoffice.utils.database import Base


class DailyPayment(Base):
    __tablename__ = "daily_payments"
    __table_args__ = (
        UniqueConstraint("application_id", "payment_date", name="uq_daily_payment_app_date"),
        Index("ix_daily_payments_agent_date", "agent_id", "payment_date"),
    )

    payment_id = Column(Integer, primary_key=True, index=True)
    application_id = Column(Integer, ForeignKey("loan_applications.application_id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.customer_id"), nullable=False)
    agent_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.branch_id"), nullable=False)

    payment_date = Column(Date, nullable=False)
    expected_amount = Column(Numeric(12, 2), nullable=False)
    actual_amount = Column(Numeric(12, 2), nullable=True)

    payment_method = Column(String(30), nullable=True)
    is_paid = Column(Boolean, nullable=False, default=False)
    payment_time = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    # bumped on every write, used for optimistic checks
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer")
    loan_application = relationship("LoanApplication")


class WeeklyPaymentTracking(Base):
    __tablename__ = "weekly_payment_tracking"
    __table_args__ = (
        UniqueConstraint("application_id", "week_start", name="uq_weekly_tracking_app_week"),
    )

    tracking_id = Column(Integer, primary_key=True, index=True)
    application_id = Column(Integer, ForeignKey("loan_applications.application_id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.customer_id"), nullable=False)
    agent_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.branch_id"), nullable=False)

    # always a Monday
    week_start = Column(Date, nullable=False, index=True)

    monday_paid = Column(Boolean, nullable=False, default=False)
    monday_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tuesday_paid = Column(Boolean, nullable=False, default=False)
    tuesday_amount = Column(Numeric(12, 2), nullable=False, default=0)
    wednesday_paid = Column(Boolean, nullable=False, default=False)
    wednesday_amount = Column(Numeric(12, 2), nullable=False, default=0)
    thursday_paid = Column(Boolean, nullable=False, default=False)
    thursday_amount = Column(Numeric(12, 2), nullable=False, default=0)
    friday_paid = Column(Boolean, nullable=False, default=False)
    friday_amount = Column(Numeric(12, 2), nullable=False, default=0)
    saturday_paid = Column(Boolean, nullable=False, default=False)
    saturday_amount = Column(Numeric(12, 2), nullable=False, default=0)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer")
    loan_application = relationship("LoanApplication")
