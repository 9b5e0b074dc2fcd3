from datetime import datetime, timedelta

import pytest

from backoffice.core.security import create_access_token, decode_access_token, hash_password
from backoffice.core.session import (
    AuthEvent,
    AuthNotification,
    apply_auth_event,
    resolve_identity,
    resolve_session,
)
from backoffice.models.user_model import AuthIdentity, AuthSession, User


@pytest.fixture
def identity(db, branches):
    ident = AuthIdentity(
        auth_id="0b7c6a0e-5c43-4d1c-9a57-1a4b5f0e0001",
        email="ops@example.com",
        password_hash=hash_password("secret123"),
        email_confirmed_at=datetime.now(),
        user_metadata={},
    )
    db.add(ident)
    db.add(
        User(
            auth_id=ident.auth_id,
            email=ident.email,
            first_name="Ope",
            last_name="Sanni",
            role="agent",
            branch_id=branches["IGD"],
        )
    )
    db.commit()
    return ident


def sign_in(db, auth_id, at):
    sess = apply_auth_event(db, AuthNotification(AuthEvent.SIGNED_IN, auth_id, occurred_at=at))
    db.commit()
    return sess


def test_sign_in_opens_a_live_session(db, identity):
    sess = sign_in(db, identity.auth_id, datetime.now())
    token = create_access_token(identity.auth_id, sess.session_id)

    assert resolve_session(db, token).session_id == sess.session_id
    assert resolve_identity(db, token).email == "ops@example.com"


def test_stale_sign_out_does_not_clear_newer_sign_in(db, identity):
    now = datetime.now()
    newer = sign_in(db, identity.auth_id, now)

    # notification about a sign-out that happened before the newer sign-in
    apply_auth_event(
        db,
        AuthNotification(AuthEvent.SIGNED_OUT, identity.auth_id, occurred_at=now - timedelta(seconds=5)),
    )
    db.commit()

    db.refresh(newer)
    assert newer.revoked_at is None


def test_sign_out_revokes_only_older_sessions(db, identity):
    now = datetime.now()
    old = sign_in(db, identity.auth_id, now - timedelta(minutes=10))
    new = sign_in(db, identity.auth_id, now + timedelta(minutes=1))

    apply_auth_event(db, AuthNotification(AuthEvent.SIGNED_OUT, identity.auth_id, occurred_at=now))
    db.commit()

    db.refresh(old)
    db.refresh(new)
    assert old.revoked_at == now
    assert new.revoked_at is None


def test_revoked_session_no_longer_resolves(db, identity):
    sess = sign_in(db, identity.auth_id, datetime.now() - timedelta(seconds=1))
    token = create_access_token(identity.auth_id, sess.session_id)

    apply_auth_event(
        db,
        AuthNotification(AuthEvent.SIGNED_OUT, identity.auth_id, session_id=sess.session_id),
    )
    db.commit()

    assert resolve_session(db, token) is None
    assert resolve_identity(db, token) is None


def test_user_updated_marks_live_sessions(db, identity):
    sess = sign_in(db, identity.auth_id, datetime.now())
    apply_auth_event(db, AuthNotification(AuthEvent.USER_UPDATED, identity.auth_id))
    db.commit()

    assert db.get(AuthSession, sess.session_id).last_event == "USER_UPDATED"


def test_garbage_tokens_resolve_to_nothing(db):
    assert decode_access_token("not-a-token") is None
    assert resolve_identity(db, None) is None
    assert resolve_identity(db, "not-a-token") is None
