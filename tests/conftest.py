import os
import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="backoffice-tests-")

# config is read at import time
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["JWT_SECRET"] = "test-secret-for-the-backoffice-suite-0123456789abcdef"
os.environ.setdefault("SITE_URL", "http://testserver")

from fastapi.testclient import TestClient  # noqa: E402

import backoffice.models  # noqa: E402,F401
from backoffice.initial_data import init_seed  # noqa: E402
from backoffice.models.branches_model import Branch  # noqa: E402
from backoffice.models.loan_product_model import LoanProduct  # noqa: E402
from backoffice.models.user_model import AuthIdentity  # noqa: E402
from backoffice.utils.database import Base, SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    init_seed()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def branches(db):
    rows = db.query(Branch).order_by(Branch.branch_code.asc()).all()
    # AEB, IGD
    return {b.branch_code: b.branch_id for b in rows}


@pytest.fixture
def product(db):
    return db.query(LoanProduct).filter(LoanProduct.product_name == "30K Loan").first()


def sign_up(client, email, role, branch_id=None, first_name="Test", last_name="User"):
    res = client.post(
        "/auth/signup",
        json={
            "email": email,
            "password": PASSWORD,
            "first_name": first_name,
            "last_name": last_name,
            "phone": "08030000000",
            "role": role,
            "branch_id": branch_id,
        },
    )
    assert res.status_code == 201, res.text
    return res.json()


def confirm_email(email):
    session = SessionLocal()
    try:
        token = session.query(AuthIdentity).filter(AuthIdentity.email == email.strip().lower()).first().confirmation_token
    finally:
        session.close()
    return token


def login(client, email, password=PASSWORD):
    res = client.post("/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()


def make_staff(client, email, role, branch_id=None):
    """Signs up, confirms and signs in; returns (profile, auth headers)."""
    sign_up(client, email, role, branch_id)
    token = confirm_email(email)
    assert client.get("/auth/verify", params={"token": token}).status_code == 200

    result = login(client, email)
    return result["user"], {"Authorization": f"Bearer {result['access_token']}"}


@pytest.fixture
def admin(client):
    return make_staff(client, "admin@example.com", "admin")


@pytest.fixture
def sub_admin(client, branches):
    return make_staff(client, "sub@example.com", "sub_admin", branches["IGD"])


@pytest.fixture
def agent(client, branches):
    return make_staff(client, "agent@example.com", "agent", branches["IGD"])


def guarantor(first_name="Grace", **extra):
    return {
        "first_name": first_name,
        "last_name": "Ade",
        "phone": "08031111111",
        "address": "4 Market Road",
        **extra,
    }


def register_customer(client, headers, guarantors=None, **customer):
    body = {
        "customer": {
            "first_name": "Bola",
            "last_name": "Okoro",
            "phone": "08032222222",
            "address": "12 Igando Road",
            **customer,
        },
        "guarantors": guarantors if guarantors is not None else [guarantor()],
    }
    return client.post("/customers/", json=body, headers=headers)


def next_monday(today=None):
    today = today or date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


@pytest.fixture
def disbursed_loan(client, agent, sub_admin, product):
    """A 30K loan registered by the agent, approved and disbursed by the sub-admin."""
    _, agent_headers = agent
    _, sub_headers = sub_admin

    customer = register_customer(client, agent_headers).json()
    app_res = client.post(
        "/loan-applications/",
        json={"customer_id": customer["customer_id"], "product_id": product.product_id},
        headers=agent_headers,
    )
    application = app_res.json()
    client.post(f"/loan-applications/{application['application_id']}/approve", json={}, headers=sub_headers)

    start = next_monday()
    res = client.post(
        f"/loan-applications/{application['application_id']}/disburse",
        json={"disbursement_date": str(start - timedelta(days=1)), "start_date": str(start)},
        headers=sub_headers,
    )
    assert res.status_code == 200, res.text
    return res.json()["application"]
