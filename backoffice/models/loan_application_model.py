# backoffice/models/loan_application_model.py

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Text,
    ForeignKey,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from backoffice.utils.database import Base


class LoanApplication(Base):
    __tablename__ = "loan_applications"

    __table_args__ = (
        Index("ix_loan_apps_status", "status"),
        Index("ix_loan_apps_branch_status", "branch_id", "status"),
        Index("ix_loan_apps_agent_status", "agent_id", "status"),
        Index("ix_loan_apps_customer", "customer_id"),
    )

    application_id = Column(Integer, primary_key=True, index=True)

    # owner tuple, fixed at creation
    customer_id = Column(Integer, ForeignKey("customers.customer_id", ondelete="RESTRICT"), nullable=False)
    product_id = Column(Integer, ForeignKey("loan_products.product_id", ondelete="RESTRICT"), nullable=False)
    agent_id = Column(Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)
    branch_id = Column(Integer, ForeignKey("branches.branch_id", ondelete="RESTRICT"), nullable=False)

    purpose = Column(Text, nullable=True)

    # pending / approved / rejected / disbursed
    status = Column(String(20), nullable=False, server_default="pending")
    application_date = Column(Date, nullable=False)

    approved_by = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    approval_date = Column(Date, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    disbursement_date = Column(Date, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="loan_applications")
    loan_product = relationship("LoanProduct")
    agent = relationship("User", foreign_keys=[agent_id])
    approver = relationship("User", foreign_keys=[approved_by])
    branch = relationship("Branch")
