from datetime import date, timedelta

from sqlalchemy.exc import OperationalError

from backoffice.models.payment_model import DailyPayment
from backoffice.services import dashboard_service


def backdate_schedule(db, application_id, days):
    """Moves the schedule into the past so collections are due."""
    for p in db.query(DailyPayment).filter(DailyPayment.application_id == application_id).all():
        p.payment_date = p.payment_date - timedelta(days=days)
    db.commit()


def test_landing_is_public_and_lists_branches(client):
    res = client.get("/")
    assert res.status_code == 200

    body = res.json()
    assert {b["branch_code"] for b in body["branches"]} == {"IGD", "AEB"}
    assert body["metrics"]["total_loans"] == 0


def test_landing_redirects_signed_in_staff(client, agent):
    _, headers = agent
    res = client.get("/", headers=headers, follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/agent"


def test_live_metrics_fall_back_to_zeros(client, monkeypatch):
    async def broken(*fetches):
        raise OperationalError("select 1", {}, Exception("database is down"))

    monkeypatch.setattr(dashboard_service, "gather_fetches", broken)

    res = client.get("/")
    assert res.status_code == 200
    assert res.json()["metrics"] == {
        "total_loans": 0,
        "active_customers": 0,
        "total_disbursed": 0.0,
        "collection_rate": 0.0,
    }
    assert res.json()["branches"] == []


def test_admin_dashboard_counts(client, admin, disbursed_loan, db):
    _, headers = admin
    res = client.get("/admin/dashboard", headers=headers)
    assert res.status_code == 200

    body = res.json()
    assert body["total_customers"] == 1
    assert body["total_loans"] == 1
    assert body["disbursed_loans"] == 1
    assert body["total_disbursed"] == 30000.0
    assert body["active_agents"] == 1

    igando = next(b for b in body["branch_performance"] if b["branch_name"] == "Igando")
    assert igando["disbursed_loans"] == 1


def test_collection_rate_and_overdue(client, sub_admin, agent, disbursed_loan, db):
    _, sub_headers = sub_admin
    _, agent_headers = agent
    aid = disbursed_loan["application_id"]

    # start the schedule 13 days ago so part of it is due
    start = date.fromisoformat(disbursed_loan["start_date"])
    backdate_schedule(db, aid, (start - date.today()).days + 13)

    due = db.query(DailyPayment).filter(DailyPayment.application_id == aid, DailyPayment.payment_date <= date.today()).all()
    paid_day = min(p.payment_date for p in due)
    client.post(
        "/payments/record",
        json={
            "application_id": aid,
            "customer_id": disbursed_loan["customer_id"],
            "agent_id": disbursed_loan["agent_id"],
            "branch_id": disbursed_loan["branch_id"],
            "payment_date": str(paid_day),
            "expected_amount": 1500,
            "actual_amount": 1500,
        },
        headers=agent_headers,
    )

    body = client.get("/subadmin/dashboard", headers=sub_headers).json()
    assert body["branch"]["branch_code"] == "IGD"
    assert body["total_collected"] == 1500.0
    assert body["collection_rate"] == round(100.0 / len(due), 2)
    unpaid_past = [p for p in due if p.payment_date < date.today() and p.payment_date != paid_day]
    assert body["overdue_payments"] == len(unpaid_past)


def test_agent_dashboard_uses_weekly_target(client, agent, disbursed_loan):
    _, headers = agent
    body = client.get("/agent/dashboard", headers=headers).json()

    assert body["total_customers"] == 1
    assert body["active_loans"] == 1
    assert body["weekly_target"] == 50000.0
    assert body["weekly_progress"] == 0.0


def test_sub_admin_cannot_open_agent_dashboard(client, sub_admin):
    _, headers = sub_admin
    res = client.get("/agent/dashboard", headers=headers)
    assert res.status_code == 403
    assert res.headers["location"] == "/subadmin"


def test_reports_are_branch_scoped(client, sub_admin, disbursed_loan, db):
    _, headers = sub_admin
    start = date.fromisoformat(disbursed_loan["start_date"])
    backdate_schedule(db, disbursed_loan["application_id"], (start - date.today()).days + 8)

    overdue = client.get("/reports/overdue", params={"as_on": str(date.today())}, headers=headers).json()
    assert overdue
    assert all(r["branch_id"] == disbursed_loan["branch_id"] for r in overdue)

    portfolio = client.get("/reports/portfolio/branch", headers=headers).json()
    assert portfolio["active_loans"] == 1
    assert portfolio["total_portfolio"] == 30000.0
    assert portfolio["outstanding"] == 45000.0


def test_settings_are_admin_only(client, admin, agent):
    admin_user, admin_headers = admin
    _, agent_headers = agent

    assert client.get("/settings", headers=agent_headers).status_code == 403

    res = client.patch(
        "/settings",
        json={"key": "WEEKLY_COLLECTION_TARGET", "value": "75000"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["value"] == "75000"
    assert res.json()["updated_by"] == admin_user["user_id"]

    keys = {s["key"] for s in client.get("/settings", headers=admin_headers).json()}
    assert {"REQUIRE_EMAIL_CONFIRMATION", "AUTO_PROVISION_PROFILES", "WEEKLY_COLLECTION_TARGET"} <= keys
