"""
Session state for authenticated staff.

Every change to session state goes through `apply_auth_event`, whether it is
triggered by a direct call (sign in / sign out / profile update) or by an
outside notification (an admin deactivating a user). Notifications carry the
instant they describe; a SIGNED_OUT only revokes sessions issued at or
before that instant, so a late, stale sign-out never clears a newer sign-in.

Callers own the transaction: apply_auth_event flushes but does not commit.
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from backoffice.core.security import decode_access_token
from backoffice.models.user_model import AuthSession, User

logger = logging.getLogger(__name__)


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"


@dataclass
class AuthNotification:
    event: AuthEvent
    auth_id: str
    # None on SIGNED_OUT means "every session of this identity"
    session_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=datetime.now)


def apply_auth_event(db: Session, note: AuthNotification) -> Optional[AuthSession]:
    """
    Single write path for session state.

    SIGNED_IN     -> opens and returns a new session
    SIGNED_OUT    -> revokes matching sessions issued at or before occurred_at
    USER_UPDATED  -> marks the identity's live sessions, returns None
    """
    if note.event == AuthEvent.SIGNED_IN:
        sess = AuthSession(
            session_id=note.session_id or str(uuid.uuid4()),
            auth_id=note.auth_id,
            issued_at=note.occurred_at,
            last_event=AuthEvent.SIGNED_IN.value,
        )
        db.add(sess)
        db.flush()
        logger.info("Session %s opened for %s", sess.session_id, note.auth_id)
        return sess

    q = db.query(AuthSession).filter(
        AuthSession.auth_id == note.auth_id,
        AuthSession.revoked_at.is_(None),
    )
    if note.session_id:
        q = q.filter(AuthSession.session_id == note.session_id)

    if note.event == AuthEvent.SIGNED_OUT:
        revoked = 0
        for sess in q.all():
            if sess.issued_at > note.occurred_at:
                logger.info(
                    "Ignoring stale sign-out for session %s (issued %s, event %s)",
                    sess.session_id, sess.issued_at, note.occurred_at,
                )
                continue
            sess.revoked_at = note.occurred_at
            sess.last_event = AuthEvent.SIGNED_OUT.value
            revoked += 1
        db.flush()
        logger.info("Revoked %s session(s) for %s", revoked, note.auth_id)
        return None

    if note.event == AuthEvent.USER_UPDATED:
        for sess in q.all():
            sess.last_event = AuthEvent.USER_UPDATED.value
        db.flush()
        return None

    raise ValueError(f"Unknown auth event {note.event!r}")


def get_live_session(db: Session, session_id: str, auth_id: str) -> Optional[AuthSession]:
    return (
        db.query(AuthSession)
        .filter(
            AuthSession.session_id == session_id,
            AuthSession.auth_id == auth_id,
            AuthSession.revoked_at.is_(None),
        )
        .first()
    )


def load_profile(db: Session, auth_id: str) -> Optional[User]:
    return (
        db.query(User)
        .options(joinedload(User.branch))
        .filter(User.auth_id == auth_id)
        .first()
    )


def resolve_session(db: Session, token: Optional[str]) -> Optional[AuthSession]:
    if not token:
        return None
    claims = decode_access_token(token)
    if not claims:
        return None
    return get_live_session(db, claims["sid"], claims["sub"])


def resolve_identity(db: Session, token: Optional[str]) -> Optional[User]:
    """
    token -> live session -> staff profile (with branch).

    A live session without a profile resolves to None; the session itself is
    left alone here.
    """
    sess = resolve_session(db, token)
    if not sess:
        return None

    profile = load_profile(db, sess.auth_id)
    if not profile:
        logger.warning("No profile found for active session identity %s", sess.auth_id)
        return None
    return profile
