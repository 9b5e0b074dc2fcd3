# backoffice/models/user_model.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Index,
    func,
)
from sqlalchemy.orm import relationship
from backoffice.utils.database import Base


class AuthIdentity(Base):
    """Login identity (email + password). The staff profile lives in `users`."""

    __tablename__ = "auth_users"

    auth_id = Column(String(36), primary_key=True)
    email = Column(String(180), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    email_confirmed_at = Column(DateTime, nullable=True)
    confirmation_token = Column(String(64), nullable=True, index=True)
    confirmation_sent_at = Column(DateTime, nullable=True)

    # role / branch / names captured at sign-up, used to provision the profile
    user_metadata = Column(JSON, nullable=False, default=dict)

    last_sign_in_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    sessions = relationship("AuthSession", back_populates="identity", cascade="all, delete-orphan")


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    __table_args__ = (
        Index("ix_auth_sessions_auth_revoked", "auth_id", "revoked_at"),
    )

    session_id = Column(String(36), primary_key=True)
    auth_id = Column(String(36), ForeignKey("auth_users.auth_id", ondelete="CASCADE"), nullable=False)

    issued_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    # SIGNED_IN / SIGNED_OUT / USER_UPDATED
    last_event = Column(String(20), nullable=False, default="SIGNED_IN")

    identity = relationship("AuthIdentity", back_populates="sessions")


class User(Base):
    """Staff profile: admin / sub_admin / agent."""

    __tablename__ = "users"

    __table_args__ = (
        Index("ix_users_role_branch", "role", "branch_id"),
    )

    user_id = Column(Integer, primary_key=True, index=True)
    auth_id = Column(String(36), ForeignKey("auth_users.auth_id", ondelete="SET NULL"), unique=True, nullable=True)

    email = Column(String(180), nullable=False)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    phone = Column(String(40), nullable=True)

    role = Column(String(20), nullable=False)
    # required for sub_admin / agent, NULL for admin
    branch_id = Column(Integer, ForeignKey("branches.branch_id", ondelete="RESTRICT"), nullable=True, index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)

    created_by = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    branch = relationship("Branch", back_populates="users")
