# backoffice/models/customer_model.py
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
    Index,
    func,
)
from sqlalchemy.orm import relationship
from backoffice.utils.database import Base


class Customer(Base):
    __tablename__ = "customers"

    __table_args__ = (
        Index("ix_customers_branch_active", "branch_id", "is_active"),
        Index("ix_customers_agent_active", "agent_id", "is_active"),
    )

    customer_id = Column(Integer, primary_key=True, index=True)

    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    phone = Column(String(40), nullable=False)
    email = Column(String(180), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    address = Column(Text, nullable=False)

    occupation = Column(String(120), nullable=True)
    monthly_income = Column(Numeric(12, 2), nullable=True)
    bank_name = Column(String(120), nullable=True)
    bank_account = Column(String(40), nullable=True)

    emergency_contact_name = Column(String(160), nullable=True)
    emergency_contact_phone = Column(String(40), nullable=True)

    branch_id = Column(Integer, ForeignKey("branches.branch_id", ondelete="RESTRICT"), nullable=False)
    # staff user who registered the customer
    agent_id = Column(Integer, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)

    # soft delete only
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    branch = relationship("Branch")
    agent = relationship("User")
    guarantors = relationship(
        "Guarantor",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="Guarantor.guarantor_type",
    )
    loan_applications = relationship(
        "LoanApplication",
        back_populates="customer",
        order_by="LoanApplication.application_id.desc()",
    )


class Guarantor(Base):
    __tablename__ = "guarantors"

    guarantor_id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.customer_id", ondelete="CASCADE"), nullable=False, index=True)

    # primary / secondary ("primary" sorts first)
    guarantor_type = Column(String(20), nullable=False, default="primary")

    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    phone = Column(String(40), nullable=False)
    address = Column(Text, nullable=False)

    occupation = Column(String(120), nullable=True)
    monthly_income = Column(Numeric(12, 2), nullable=True)
    relationship_to_customer = Column(String(80), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="guarantors")
