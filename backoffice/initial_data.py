import logging

from sqlalchemy.orm import Session

from backoffice.models.branches_model import Branch
from backoffice.models.loan_product_model import LoanProduct
from backoffice.models.system_settings_model import SystemSetting
from backoffice.utils import database
from backoffice.utils.loan_calculations import money
from backoffice.utils.settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

BRANCHES = [
    {"branch_name": "Igando", "branch_code": "IGD"},
    {"branch_name": "Abule-Egba", "branch_code": "AEB"},
]

# name, principal, daily payment, collection days, total repayable
LOAN_PRODUCTS = [
    ("30K Loan", 30000, 1500, 30, 45000),
    ("40K Loan", 40000, 2000, 25, 50000),
    ("50K Loan", 50000, 2500, 25, 62500),
    ("60K Loan", 60000, 3000, 25, 75000),
    ("80K Loan", 80000, 4000, 25, 100000),
    ("100K Loan", 100000, 5000, 25, 125000),
    ("150K Loan", 150000, 7500, 25, 187500),
    ("200K Loan", 200000, 10000, 25, 250000),
]


def seed_branches(db: Session) -> int:
    added = 0
    for b in BRANCHES:
        if not db.query(Branch).filter(Branch.branch_code == b["branch_code"]).first():
            db.add(Branch(**b))
            added += 1
    return added


def seed_loan_products(db: Session) -> int:
    added = 0
    for name, principal, daily, days, total in LOAN_PRODUCTS:
        if not db.query(LoanProduct).filter(LoanProduct.product_name == name).first():
            db.add(
                LoanProduct(
                    product_name=name,
                    principal_amount=money(principal),
                    daily_payment=money(daily),
                    duration_days=days,
                    total_amount=money(total),
                    is_active=True,
                )
            )
            added += 1
    return added


def seed_settings(db: Session) -> int:
    added = 0
    for key, (value, description) in DEFAULT_SETTINGS.items():
        if not db.query(SystemSetting).filter(SystemSetting.key == key).first():
            db.add(SystemSetting(key=key, value=value, description=description))
            added += 1
    return added


def init_seed(db: Session = None):
    """Idempotent: only rows that are missing get inserted."""
    own_session = db is None
    if own_session:
        db = database.SessionLocal()

    try:
        branches = seed_branches(db)
        products = seed_loan_products(db)
        settings = seed_settings(db)
        db.commit()
        logger.info(
            "Seeded %s branch(es), %s loan product(s), %s setting(s)",
            branches, products, settings,
        )
    except Exception:
        db.rollback()
        logger.exception("Initial seeding failed")
        raise
    finally:
        if own_session:
            db.close()
