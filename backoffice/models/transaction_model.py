from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Text, ForeignKey, Index
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from backoffice.utils.database import Base


class Transaction(Base):
    """Append-only money ledger. Rows are never updated or deleted."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_branch_date", "branch_id", "transaction_date"),
    )

    transaction_id = Column(Integer, primary_key=True, index=True)
    application_id = Column(Integer, ForeignKey("loan_applications.application_id"), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.customer_id"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.branch_id"), nullable=False)

    # loan_disbursement / daily_payment / penalty / refund
    transaction_type = Column(String(30), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=True)

    # advisory, not unique
    reference_number = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)

    transaction_date = Column(DateTime, server_default=func.now(), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    customer = relationship("Customer")
    agent = relationship("User")
    branch = relationship("Branch")
    loan_application = relationship("LoanApplication")
