from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.payment_model import DailyPayment, WeeklyPaymentTracking
from backoffice.models.transaction_model import Transaction
from backoffice.services import loan_service, payment_service
from backoffice.services.loan_service import can_transition
from tests.conftest import make_staff, next_monday, register_customer


@pytest.fixture
def application(client, agent, product):
    _, headers = agent
    customer = register_customer(client, headers).json()
    res = client.post(
        "/loan-applications/",
        json={"customer_id": customer["customer_id"], "product_id": product.product_id, "purpose": "Stock"},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


def disburse(client, headers, application_id, start):
    return client.post(
        f"/loan-applications/{application_id}/disburse",
        json={"disbursement_date": str(start - timedelta(days=1)), "start_date": str(start)},
        headers=headers,
    )


def test_transition_table():
    assert can_transition("pending", "approved")
    assert can_transition("pending", "rejected")
    assert can_transition("approved", "disbursed")
    assert not can_transition("pending", "disbursed")
    assert not can_transition("rejected", "approved")
    assert not can_transition("disbursed", "pending")


def test_new_application_is_pending_for_the_agent(application, agent):
    user, _ = agent
    assert application["status"] == "pending"
    assert application["agent_id"] == user["user_id"]
    assert application["loan_product"]["product_name"] == "30K Loan"


def test_approve_stamps_approver(client, application, sub_admin):
    user, headers = sub_admin
    res = client.post(f"/loan-applications/{application['application_id']}/approve", json={}, headers=headers)

    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "approved"
    assert body["approved_by"] == user["user_id"]
    assert body["approval_date"]


def test_agent_cannot_approve(client, application, agent):
    _, headers = agent
    res = client.post(f"/loan-applications/{application['application_id']}/approve", json={}, headers=headers)
    assert res.status_code == 403


def test_sub_admin_of_other_branch_cannot_approve(client, application, branches):
    _, headers = make_staff(client, "far@example.com", "sub_admin", branches["AEB"])
    res = client.post(f"/loan-applications/{application['application_id']}/approve", json={}, headers=headers)
    assert res.status_code == 403


def test_reject_requires_reason(client, application, sub_admin, db):
    _, headers = sub_admin
    res = client.post(
        f"/loan-applications/{application['application_id']}/reject",
        json={"reason": "   "},
        headers=headers,
    )
    assert res.status_code == 422
    assert db.get(LoanApplication, application["application_id"]).status == "pending"


def test_blank_reason_never_reaches_the_database():
    db = MagicMock()
    approver = SimpleNamespace(role="admin", user_id=1, branch_id=None)

    with pytest.raises(ValueError):
        loan_service.reject_loan(db, 1, approver, "  ")
    db.query.assert_not_called()
    db.commit.assert_not_called()


def test_reject_records_reason(client, application, sub_admin):
    _, headers = sub_admin
    res = client.post(
        f"/loan-applications/{application['application_id']}/reject",
        json={"reason": "Insufficient guarantor income"},
        headers=headers,
    )
    assert res.status_code == 200
    assert res.json()["status"] == "rejected"
    assert res.json()["rejection_reason"] == "Insufficient guarantor income"

    again = client.post(f"/loan-applications/{application['application_id']}/approve", json={}, headers=headers)
    assert again.status_code == 409


def test_pending_cannot_be_disbursed(client, application, sub_admin):
    _, headers = sub_admin
    res = disburse(client, headers, application["application_id"], next_monday())
    assert res.status_code == 409


def test_disburse_invokes_schedule_once_with_application_data(client, application, sub_admin, monkeypatch):
    _, headers = sub_admin
    aid = application["application_id"]
    client.post(f"/loan-applications/{aid}/approve", json={}, headers=headers)

    calls = []

    def fake_schedule(db, **kwargs):
        calls.append(kwargs)
        return [kwargs["start_date"] + timedelta(days=i) for i in range(3)]

    monkeypatch.setattr(loan_service, "create_weekly_payment_schedule", fake_schedule)

    start = next_monday()
    res = disburse(client, headers, aid, start)
    assert res.status_code == 200, res.text

    assert calls == [
        {
            "application_id": aid,
            "customer_id": application["customer_id"],
            "agent_id": application["agent_id"],
            "branch_id": application["branch_id"],
            "start_date": start,
            "duration_days": 30,
        }
    ]
    assert res.json()["application"]["status"] == "disbursed"


def test_failed_schedule_keeps_application_approved(client, application, sub_admin, monkeypatch, db):
    _, headers = sub_admin
    aid = application["application_id"]
    client.post(f"/loan-applications/{aid}/approve", json={}, headers=headers)

    def broken_schedule(db, **kwargs):
        raise RuntimeError("procedure unavailable")

    monkeypatch.setattr(loan_service, "create_weekly_payment_schedule", broken_schedule)

    res = disburse(client, headers, aid, next_monday())
    assert res.status_code == 502

    assert db.get(LoanApplication, aid).status == "approved"
    assert db.query(Transaction).filter(Transaction.application_id == aid).count() == 0


def test_failed_ledger_entry_keeps_application_approved(client, application, sub_admin, monkeypatch, db):
    _, headers = sub_admin
    aid = application["application_id"]
    client.post(f"/loan-applications/{aid}/approve", json={}, headers=headers)

    def broken_ledger(db, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(payment_service, "create_transaction", broken_ledger)

    with pytest.raises(RuntimeError):
        disburse(client, headers, aid, next_monday())

    db.expire_all()
    assert db.get(LoanApplication, aid).status == "approved"
    assert db.query(DailyPayment).filter(DailyPayment.application_id == aid).count() == 0
    assert db.query(Transaction).filter(Transaction.application_id == aid).count() == 0


def test_disbursement_generates_schedule_and_ledger_entry(client, application, sub_admin, db):
    _, headers = sub_admin
    aid = application["application_id"]
    client.post(f"/loan-applications/{aid}/approve", json={}, headers=headers)

    start = next_monday()
    res = disburse(client, headers, aid, start)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["scheduled_days"] == 30

    payments = (
        db.query(DailyPayment)
        .filter(DailyPayment.application_id == aid)
        .order_by(DailyPayment.payment_date.asc())
        .all()
    )
    assert len(payments) == 30
    assert payments[0].payment_date == start
    assert all(p.payment_date.weekday() != 6 for p in payments)
    assert all(float(p.expected_amount) == 1500 and not p.is_paid for p in payments)
    assert payments[-1].payment_date == start + timedelta(days=33)

    assert body["application"]["end_date"] == str(start + timedelta(days=33))
    assert db.query(WeeklyPaymentTracking).filter(WeeklyPaymentTracking.application_id == aid).count() == 5

    ledger = db.query(Transaction).filter(Transaction.transaction_id == body["transaction_id"]).one()
    assert ledger.transaction_type == "loan_disbursement"
    assert float(ledger.amount) == 30000
    assert ledger.reference_number.startswith("TXN-")


def test_schedule_repair_is_idempotent(client, disbursed_loan, sub_admin, db):
    _, headers = sub_admin
    aid = disbursed_loan["application_id"]

    first_day = db.query(DailyPayment).filter(DailyPayment.application_id == aid).order_by(DailyPayment.payment_date).first()
    db.delete(first_day)
    db.commit()

    res = client.post(f"/loan-applications/{aid}/schedule/repair", headers=headers)
    assert res.status_code == 200
    assert res.json()["created_days"] == 1

    again = client.post(f"/loan-applications/{aid}/schedule/repair", headers=headers)
    assert again.json()["created_days"] == 0
    assert db.query(DailyPayment).filter(DailyPayment.application_id == aid).count() == 30


def test_status_filter_and_scope(client, application, sub_admin, agent):
    _, sub_headers = sub_admin
    _, agent_headers = agent

    pending = client.get("/loan-applications/", params={"status": "pending"}, headers=sub_headers).json()
    assert [a["application_id"] for a in pending] == [application["application_id"]]
    assert client.get("/loan-applications/", params={"status": "approved"}, headers=agent_headers).json() == []
