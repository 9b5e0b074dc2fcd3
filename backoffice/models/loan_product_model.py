from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from backoffice.utils.database import Base


class LoanProduct(Base):
    __tablename__ = "loan_products"

    product_id = Column(Integer, primary_key=True, index=True)
    product_name = Column(String(100), unique=True, nullable=False)

    principal_amount = Column(Numeric(12, 2), nullable=False)
    daily_payment = Column(Numeric(12, 2), nullable=False)
    # number of collection days in the schedule
    duration_days = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)
    created_on = Column(DateTime, server_default=func.now())
