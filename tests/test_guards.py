from types import SimpleNamespace

from backoffice.core.guards import (
    SIGN_IN_PATH,
    public_only_policy,
    require_identity_policy,
    require_roles_policy,
    role_home,
)
from tests.conftest import make_staff, register_customer


def staff(role, branch_id=1, user_id=1):
    return SimpleNamespace(role=role, branch_id=branch_id, user_id=user_id)


# ---------- policies ----------

def test_loading_identity_neither_allows_nor_redirects():
    decision = require_roles_policy(None, True, ["admin"])
    assert not decision.allowed
    assert decision.redirect_to is None
    assert decision.pending


def test_missing_identity_goes_to_sign_in():
    assert require_identity_policy(None).redirect_to == SIGN_IN_PATH
    assert require_roles_policy(None, False, ["agent"]).redirect_to == SIGN_IN_PATH


def test_wrong_role_goes_to_own_home():
    decision = require_roles_policy(staff("agent"), False, ["admin"])
    assert not decision.allowed
    assert decision.redirect_to == "/agent"


def test_allowed_role_passes():
    assert require_roles_policy(staff("sub_admin"), False, ["admin", "sub_admin"]).allowed
    assert require_roles_policy(staff("agent"), False, []).allowed


def test_public_only_redirects_signed_in_staff():
    assert public_only_policy(None).allowed
    assert public_only_policy(staff("admin"), loading=True).allowed
    assert public_only_policy(staff("sub_admin")).redirect_to == "/subadmin"


def test_role_home_defaults_to_sign_in():
    assert role_home("admin") == "/admin"
    assert role_home("unknown") == SIGN_IN_PATH


# ---------- over HTTP ----------

def test_anonymous_request_gets_401_with_sign_in_location(client):
    res = client.get("/admin/dashboard")
    assert res.status_code == 401
    assert res.headers["location"] == SIGN_IN_PATH


def test_agent_on_admin_page_gets_403_with_home_location(client, agent):
    _, headers = agent
    res = client.get("/admin/dashboard", headers=headers)
    assert res.status_code == 403
    assert res.headers["location"] == "/agent"


def test_dashboard_redirects_to_role_home(client, sub_admin):
    _, headers = sub_admin
    res = client.get("/dashboard", headers=headers, follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/subadmin"


def test_login_page_redirects_signed_in_staff(client, branches):
    _, headers = make_staff(client, "boss@example.com", "admin")
    res = client.get("/auth/login", headers=headers, follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/admin"


def test_login_page_shows_selected_branch_from_cookie(client, branches):
    client.post("/branches/select", json={"branch_id": branches["AEB"]})
    res = client.get("/auth/login")
    assert res.status_code == 200
    body = res.json()
    assert body["selected_branch"]["branch_code"] == "AEB"
    assert {b["branch_code"] for b in body["branches"]} == {"AEB", "IGD"}


def test_sub_admin_cannot_see_other_branch_records(client, branches):
    _, other_headers = make_staff(client, "sub2@example.com", "sub_admin", branches["AEB"])
    _, agent_headers = make_staff(client, "agent2@example.com", "agent", branches["IGD"])

    customer = register_customer(client, agent_headers).json()

    res = client.get(f"/customers/{customer['customer_id']}", headers=other_headers)
    assert res.status_code == 403

    listed = client.get("/customers/", headers=other_headers).json()
    assert listed == []
