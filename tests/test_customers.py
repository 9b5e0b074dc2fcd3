from backoffice.models.customer_model import Customer, Guarantor
from tests.conftest import guarantor, make_staff, register_customer


def test_registration_needs_a_guarantor(client, agent, db):
    _, headers = agent
    res = register_customer(client, headers, guarantors=[])

    assert res.status_code == 422
    assert "At least one guarantor is required." in res.text
    assert db.query(Customer).count() == 0


def test_more_than_two_guarantors_rejected(client, agent):
    _, headers = agent
    res = register_customer(client, headers, guarantors=[guarantor("A"), guarantor("B"), guarantor("C")])
    assert res.status_code == 422


def test_guarantor_types_default_by_position(client, agent):
    _, headers = agent
    res = register_customer(client, headers, guarantors=[guarantor("First"), guarantor("Second")])
    assert res.status_code == 201, res.text

    types = {g["first_name"]: g["guarantor_type"] for g in res.json()["guarantors"]}
    assert types == {"First": "primary", "Second": "secondary"}


def test_two_primaries_rejected(client, agent):
    _, headers = agent
    res = register_customer(
        client,
        headers,
        guarantors=[guarantor("A", guarantor_type="primary"), guarantor("B", guarantor_type="primary")],
    )
    assert res.status_code == 422


def test_agent_registration_is_stamped_with_agent_and_branch(client, agent, branches):
    user, headers = agent
    res = register_customer(client, headers, branch_id=branches["AEB"], agent_id=999)
    assert res.status_code == 201, res.text

    body = res.json()
    assert body["agent_id"] == user["user_id"]
    assert body["branch_id"] == branches["IGD"]
    assert body["agent"]["user_id"] == user["user_id"]


def test_admin_must_name_an_agent_of_the_branch(client, admin, agent, branches):
    _, admin_headers = admin
    user, _ = agent

    wrong_branch = register_customer(client, admin_headers, branch_id=branches["AEB"], agent_id=user["user_id"])
    assert wrong_branch.status_code == 400

    ok = register_customer(client, admin_headers, branch_id=branches["IGD"], agent_id=user["user_id"])
    assert ok.status_code == 201


def test_agent_only_sees_own_customers(client, agent, branches):
    _, headers = agent
    _, other_headers = make_staff(client, "agent.b@example.com", "agent", branches["IGD"])

    register_customer(client, headers, first_name="Mine")
    register_customer(client, other_headers, first_name="Theirs")

    names = [c["first_name"] for c in client.get("/customers/", headers=headers).json()]
    assert names == ["Mine"]


def test_add_second_guarantor_then_cap(client, agent, db):
    _, headers = agent
    customer = register_customer(client, headers).json()
    cid = customer["customer_id"]

    second = client.post(f"/customers/{cid}/guarantors", json=guarantor("Late"), headers=headers)
    assert second.status_code == 201
    assert second.json()["guarantor_type"] == "secondary"

    third = client.post(f"/customers/{cid}/guarantors", json=guarantor("Extra"), headers=headers)
    assert third.status_code == 409
    assert db.query(Guarantor).filter(Guarantor.customer_id == cid).count() == 2


def test_update_and_soft_delete(client, agent, sub_admin):
    _, headers = agent
    _, sub_headers = sub_admin
    cid = register_customer(client, headers).json()["customer_id"]

    res = client.patch(f"/customers/{cid}", json={"occupation": "Trader"}, headers=headers)
    assert res.json()["occupation"] == "Trader"

    # agents cannot delete
    assert client.delete(f"/customers/{cid}", headers=headers).status_code == 403
    assert client.delete(f"/customers/{cid}", headers=sub_headers).status_code == 200

    inactive = client.get("/customers/", params={"is_active": False}, headers=sub_headers).json()
    assert [c["customer_id"] for c in inactive] == [cid]


def test_null_for_required_field_is_rejected(client, agent):
    _, headers = agent
    cid = register_customer(client, headers).json()["customer_id"]

    assert client.patch(f"/customers/{cid}", json={"is_active": None}, headers=headers).status_code == 422
    assert client.patch(f"/customers/{cid}", json={"first_name": None}, headers=headers).status_code == 422

    # nullable columns may still be cleared
    res = client.patch(f"/customers/{cid}", json={"occupation": None}, headers=headers)
    assert res.status_code == 200
    assert res.json()["occupation"] is None
    assert res.json()["is_active"] is True
