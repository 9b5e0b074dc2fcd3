"""
Staff authentication.

Identities (email + password) live in `auth_users`; the staff profile with
role and branch lives in `users` and is provisioned from the sign-up
metadata. Session changes always go through core.session.apply_auth_event.
"""

import logging
import secrets
import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette import status

from backoffice.core.config import SITE_URL
from backoffice.core.security import create_access_token, hash_password, verify_password
from backoffice.core.session import (
    AuthEvent,
    AuthNotification,
    apply_auth_event,
    load_profile,
    resolve_identity,
)
from backoffice.models.branches_model import Branch
from backoffice.models.user_model import AuthIdentity, AuthSession, User
from backoffice.utils.settings import get_flag

logger = logging.getLogger(__name__)

EMAIL_NOT_CONFIRMED = (
    "Your email address has not been confirmed. "
    "Please check your inbox for a verification link."
)
INVALID_CREDENTIALS = "Invalid email or password. Please try again."
PROFILE_NOT_FOUND = "Your user profile could not be found. Please sign up again or contact support."


def _send_verification(identity: AuthIdentity):
    identity.confirmation_token = secrets.token_urlsafe(32)
    identity.confirmation_sent_at = datetime.now()
    # no mail transport; the link goes to the log
    logger.info(
        "Verification link for %s: %s/auth/verify?token=%s",
        identity.email, SITE_URL, identity.confirmation_token,
    )


def _open_session(db: Session, identity: AuthIdentity) -> str:
    sess = apply_auth_event(db, AuthNotification(AuthEvent.SIGNED_IN, identity.auth_id))
    identity.last_sign_in_at = sess.issued_at
    return create_access_token(identity.auth_id, sess.session_id)


def provision_profile(db: Session, identity: AuthIdentity, created_by: Optional[int] = None) -> User:
    """Materializes the staff profile from the sign-up metadata (flush only)."""
    existing = db.query(User).filter(User.auth_id == identity.auth_id).first()
    if existing:
        return existing

    meta = identity.user_metadata or {}
    profile = User(
        auth_id=identity.auth_id,
        email=identity.email,
        first_name=meta.get("first_name") or "",
        last_name=meta.get("last_name") or "",
        phone=meta.get("phone"),
        role=meta.get("role") or "agent",
        branch_id=meta.get("branch_id"),
        is_active=True,
        email_verified=identity.email_confirmed_at is not None,
        created_by=created_by,
    )
    db.add(profile)
    db.flush()
    logger.info("Provisioned %s profile %s for %s", profile.role, profile.user_id, identity.email)
    return profile


def placeholder_profile(identity: AuthIdentity) -> dict:
    """Stand-in returned while the profile row has not materialized."""
    meta = identity.user_metadata or {}
    return {
        "user_id": None,
        "auth_id": identity.auth_id,
        "email": identity.email,
        "first_name": meta.get("first_name") or "",
        "last_name": meta.get("last_name") or "",
        "phone": meta.get("phone"),
        "role": meta.get("role") or "agent",
        "branch_id": meta.get("branch_id"),
        "is_active": True,
        "email_verified": identity.email_confirmed_at is not None,
        "branch": None,
    }


# =================================================
# 🔹 SIGN UP
# =================================================
def _admin_exists(db: Session) -> bool:
    if db.query(User).filter(User.role == "admin").first():
        return True
    # identities whose profile is not provisioned yet
    return any(
        (i.user_metadata or {}).get("role") == "admin"
        for i in db.query(AuthIdentity)
        .filter(~AuthIdentity.auth_id.in_(select(User.auth_id).where(User.auth_id.isnot(None))))
        .all()
    )


def sign_up(db: Session, data, requested_by: Optional[User] = None) -> dict:
    """
    Self-service sign-up for branch staff. The first admin bootstraps the
    system; later admin accounts can only be created by a signed-in admin.
    """
    if data.role == "admin" and _admin_exists(db):
        if requested_by is None or requested_by.role != "admin":
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Only an admin can create admin accounts")

    if db.query(AuthIdentity).filter(AuthIdentity.email == data.email).first():
        raise HTTPException(400, "User already registered")

    if data.branch_id is not None:
        if not db.query(Branch).filter(Branch.branch_id == data.branch_id).first():
            raise HTTPException(400, "Invalid branch_id")

    require_confirmation = get_flag(db, "REQUIRE_EMAIL_CONFIRMATION")
    auto_provision = get_flag(db, "AUTO_PROVISION_PROFILES")

    identity = AuthIdentity(
        auth_id=str(uuid.uuid4()),
        email=data.email,
        password_hash=hash_password(data.password),
        user_metadata={
            "first_name": data.first_name,
            "last_name": data.last_name,
            "phone": data.phone,
            "role": data.role,
            "branch_id": data.branch_id,
        },
    )

    access_token = None
    try:
        db.add(identity)
        if require_confirmation:
            _send_verification(identity)
        else:
            identity.email_confirmed_at = datetime.now()
        db.flush()

        if auto_provision:
            provision_profile(db, identity)

        if not require_confirmation:
            access_token = _open_session(db, identity)

        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent sign up for %s", data.email)
        raise HTTPException(400, "User already registered")
    except Exception:
        db.rollback()
        logger.exception("Sign up error for %s", data.email)
        raise

    profile = load_profile(db, identity.auth_id)
    if profile is None:
        logger.info("Profile for %s not materialized yet; returning placeholder", identity.email)

    return {
        "user": profile if profile is not None else placeholder_profile(identity),
        "auth_user": identity,
        "access_token": access_token,
        "email_confirmation_required": require_confirmation,
    }


# =================================================
# 🔹 SIGN IN / OUT
# =================================================
def sign_in(db: Session, email: str, password: str) -> dict:
    identity = db.query(AuthIdentity).filter(AuthIdentity.email == email).first()
    if not identity or not verify_password(password, identity.password_hash):
        logger.warning("Failed sign-in for %s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
        )

    if identity.email_confirmed_at is None and get_flag(db, "REQUIRE_EMAIL_CONFIRMATION"):
        logger.info("Sign-in refused for unconfirmed email %s", email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=EMAIL_NOT_CONFIRMED,
        )

    try:
        access_token = _open_session(db, identity)
        profile = load_profile(db, identity.auth_id)

        if profile is None:
            # authenticated but profile-less: do not let the session live
            logger.error("Profile not found for authenticated user: %s", identity.auth_id)
            apply_auth_event(db, AuthNotification(AuthEvent.SIGNED_OUT, identity.auth_id))
            db.commit()
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=PROFILE_NOT_FOUND)

        if not profile.is_active:
            apply_auth_event(db, AuthNotification(AuthEvent.SIGNED_OUT, identity.auth_id))
            db.commit()
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Your account has been deactivated. Please contact your administrator.",
            )

        db.commit()
    except HTTPException:
        raise
    except Exception:
        db.rollback()
        logger.exception("Sign in error for %s", email)
        raise

    return {
        "user": load_profile(db, identity.auth_id),
        "auth_user": identity,
        "access_token": access_token,
        "email_confirmation_required": False,
    }


def sign_out(db: Session, session: AuthSession):
    try:
        apply_auth_event(
            db,
            AuthNotification(AuthEvent.SIGNED_OUT, session.auth_id, session_id=session.session_id),
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Sign out error for session %s", session.session_id)
        raise


def sign_out_everywhere(db: Session, auth_id: str, occurred_at: Optional[datetime] = None):
    """Outside notification (e.g. deactivation): revokes every session up to now."""
    apply_auth_event(
        db,
        AuthNotification(AuthEvent.SIGNED_OUT, auth_id, occurred_at=occurred_at or datetime.now()),
    )


# =================================================
# 🔹 PROFILE / VERIFICATION
# =================================================
def update_profile(db: Session, identity: User, updates: dict) -> User:
    profile = db.query(User).filter(User.user_id == identity.user_id).first()
    if not profile:
        raise HTTPException(404, PROFILE_NOT_FOUND)

    for key, value in updates.items():
        setattr(profile, key, value)

    try:
        if profile.auth_id:
            apply_auth_event(db, AuthNotification(AuthEvent.USER_UPDATED, profile.auth_id))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Update profile error for user %s", identity.user_id)
        raise

    return load_profile(db, profile.auth_id) if profile.auth_id else profile


def verify_email(db: Session, token: str) -> User:
    identity = (
        db.query(AuthIdentity)
        .filter(AuthIdentity.confirmation_token == token)
        .first()
    ) if token else None
    if not identity:
        raise HTTPException(400, "Verification link is invalid or has already been used")

    try:
        identity.email_confirmed_at = datetime.now()
        identity.confirmation_token = None

        profile = db.query(User).filter(User.auth_id == identity.auth_id).first()
        if profile is None and get_flag(db, "AUTO_PROVISION_PROFILES"):
            profile = provision_profile(db, identity)
        if profile is not None:
            profile.email_verified = True

        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Email verification failed for %s", identity.email)
        raise

    logger.info("Email confirmed for %s", identity.email)
    return identity


def resend_verification(db: Session, email: str):
    identity = db.query(AuthIdentity).filter(AuthIdentity.email == email).first()
    # same answer whether or not the address exists
    if not identity or identity.email_confirmed_at is not None:
        return

    try:
        _send_verification(identity)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Resend verification failed for %s", email)
        raise


def get_current_user(db: Session, token: Optional[str]) -> Optional[User]:
    """Token -> active staff profile, or None."""
    profile = resolve_identity(db, token)
    if profile is None or not profile.is_active:
        return None
    return profile
