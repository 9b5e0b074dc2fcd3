from backoffice.models.system_settings_model import SystemSetting
from backoffice.models.user_model import AuthIdentity, User
from backoffice.services.auth_service import EMAIL_NOT_CONFIRMED, INVALID_CREDENTIALS, PROFILE_NOT_FOUND
from tests.conftest import PASSWORD, confirm_email, make_staff, sign_up


def set_setting(db, key, value):
    db.query(SystemSetting).filter(SystemSetting.key == key).first().value = value
    db.commit()


def test_signup_requires_confirmation_by_default(client, branches):
    body = sign_up(client, "new.agent@example.com", "agent", branches["IGD"])

    assert body["email_confirmation_required"] is True
    assert body["access_token"] is None
    assert body["user"]["role"] == "agent"
    assert body["user"]["branch_id"] == branches["IGD"]
    assert body["user"]["email_verified"] is False


def test_unconfirmed_sign_in_is_distinguished_from_bad_password(client, branches):
    sign_up(client, "pending@example.com", "agent", branches["IGD"])

    unconfirmed = client.post("/auth/login", json={"email": "pending@example.com", "password": PASSWORD})
    assert unconfirmed.status_code == 403
    assert unconfirmed.json()["detail"] == EMAIL_NOT_CONFIRMED

    wrong = client.post("/auth/login", json={"email": "pending@example.com", "password": "nope-nope"})
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == INVALID_CREDENTIALS


def test_verified_user_signs_in_with_profile_and_branch(client, branches):
    user, headers = make_staff(client, "Agent.Case@Example.com", "agent", branches["AEB"])

    assert user["email"] == "agent.case@example.com"
    assert user["email_verified"] is True
    assert user["branch"]["branch_code"] == "AEB"

    me = client.get("/auth/me", headers=headers).json()
    assert me["user"]["user_id"] == user["user_id"]


def test_duplicate_signup_rejected(client, branches):
    sign_up(client, "dup@example.com", "agent", branches["IGD"])
    res = client.post(
        "/auth/signup",
        json={
            "email": "dup@example.com",
            "password": PASSWORD,
            "first_name": "A",
            "last_name": "B",
            "role": "agent",
            "branch_id": branches["IGD"],
        },
    )
    assert res.status_code == 400


def test_only_an_admin_can_add_admins(client, admin):
    _, admin_headers = admin
    body = {
        "email": "second-admin@example.com",
        "password": PASSWORD,
        "first_name": "A",
        "last_name": "B",
        "role": "admin",
    }

    res = client.post("/auth/signup", json=body)
    assert res.status_code == 403

    res = client.post("/auth/signup", json=body, headers=admin_headers)
    assert res.status_code == 201, res.text
    assert res.json()["user"]["role"] == "admin"


def test_scoped_roles_need_a_branch(client):
    res = client.post(
        "/auth/signup",
        json={"email": "x@example.com", "password": PASSWORD, "first_name": "A", "last_name": "B", "role": "agent"},
    )
    assert res.status_code == 422


def test_signup_without_confirmation_returns_session(client, db, branches):
    set_setting(db, "REQUIRE_EMAIL_CONFIRMATION", "false")

    body = sign_up(client, "instant@example.com", "sub_admin", branches["IGD"])
    assert body["email_confirmation_required"] is False
    assert body["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}).json()
    assert me["user"]["role"] == "sub_admin"


def test_placeholder_profile_when_provisioning_is_deferred(client, db, branches):
    set_setting(db, "AUTO_PROVISION_PROFILES", "false")

    body = sign_up(client, "late@example.com", "agent", branches["IGD"], first_name="Late")
    assert body["user"]["user_id"] is None
    assert body["user"]["first_name"] == "Late"
    assert body["user"]["role"] == "agent"
    assert db.query(User).filter(User.email == "late@example.com").count() == 0


def test_profile_less_sign_in_is_signed_out(client, db, branches):
    set_setting(db, "AUTO_PROVISION_PROFILES", "false")
    sign_up(client, "ghost@example.com", "agent", branches["IGD"])

    identity = db.query(AuthIdentity).filter(AuthIdentity.email == "ghost@example.com").first()
    identity.email_confirmed_at = identity.created_at
    db.commit()

    res = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert res.status_code == 404
    assert res.json()["detail"] == PROFILE_NOT_FOUND

    db.expire_all()
    sessions = db.query(AuthIdentity).filter(AuthIdentity.email == "ghost@example.com").first().sessions
    assert sessions and all(s.revoked_at is not None for s in sessions)


def test_verification_provisions_missing_profile(client, db, branches):
    set_setting(db, "AUTO_PROVISION_PROFILES", "false")
    sign_up(client, "deferred@example.com", "agent", branches["IGD"])
    set_setting(db, "AUTO_PROVISION_PROFILES", "true")

    token = confirm_email("deferred@example.com")
    assert client.get("/auth/verify", params={"token": token}).status_code == 200

    db.expire_all()
    profile = db.query(User).filter(User.email == "deferred@example.com").first()
    assert profile is not None
    assert profile.email_verified is True


def test_verification_token_is_single_use(client, branches):
    sign_up(client, "once@example.com", "agent", branches["IGD"])
    token = confirm_email("once@example.com")

    assert client.get("/auth/verify", params={"token": token}).status_code == 200
    assert client.get("/auth/verify", params={"token": token}).status_code == 400


def test_logout_ends_the_session(client, branches):
    _, headers = make_staff(client, "bye@example.com", "agent", branches["IGD"])

    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/me", headers=headers).json()["user"] is None
    assert client.get("/agent/dashboard", headers=headers).status_code == 401


def test_profile_update(client, branches):
    _, headers = make_staff(client, "edit@example.com", "agent", branches["IGD"])

    res = client.patch("/auth/me", json={"first_name": "Edited", "phone": " "}, headers=headers)
    assert res.status_code == 200
    assert res.json()["first_name"] == "Edited"
    assert res.json()["phone"] is None


def test_profile_update_rejects_null_names(client, branches):
    _, headers = make_staff(client, "nulls@example.com", "agent", branches["IGD"])

    res = client.patch("/auth/me", json={"first_name": None}, headers=headers)
    assert res.status_code == 422
    assert client.get("/auth/me", headers=headers).json()["user"]["first_name"]


def test_deactivation_signs_user_out(client, admin, branches):
    _, admin_headers = admin
    user, headers = make_staff(client, "leaving@example.com", "agent", branches["IGD"])

    res = client.patch(f"/users/{user['user_id']}", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 200
    assert client.get("/auth/me", headers=headers).json()["user"] is None

    relogin = client.post("/auth/login", json={"email": "leaving@example.com", "password": PASSWORD})
    assert relogin.status_code == 403


def test_admin_update_rejects_null_role_or_activation(client, admin, branches):
    _, admin_headers = admin
    user, _ = make_staff(client, "steady@example.com", "agent", branches["IGD"])

    for body in ({"role": None}, {"is_active": None}):
        res = client.patch(f"/users/{user['user_id']}", json=body, headers=admin_headers)
        assert res.status_code == 422
