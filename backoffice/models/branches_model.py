# backoffice/models/branches_model.py
from sqlalchemy import Column, Integer, String, Text, DateTime, func
from sqlalchemy.orm import relationship
from backoffice.utils.database import Base


class Branch(Base):
    __tablename__ = "branches"

    branch_id = Column(Integer, primary_key=True, index=True)
    branch_name = Column(String(100), unique=True, nullable=False)
    branch_code = Column(String(10), unique=True, nullable=False)

    address = Column(Text, nullable=True)
    phone = Column(String(40), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    users = relationship("User", back_populates="branch")
