from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backoffice.core.guards import Roles, require_identity, require_roles
from backoffice.models.loan_product_model import LoanProduct
from backoffice.schemas import LoanProductCreate, LoanProductOut, LoanProductUpdate
from backoffice.services import loan_service
from backoffice.utils.database import get_db
from backoffice.utils.loan_calculations import expected_total, money

router = APIRouter(prefix="/loan-products", tags=["Loan Products"])


@router.get("/", response_model=list[LoanProductOut])
def list_products(
        include_inactive: bool = Query(False),
        db: Session = Depends(get_db),
        _identity=Depends(require_identity),
):
    if include_inactive:
        return db.query(LoanProduct).order_by(LoanProduct.principal_amount.asc()).all()
    return loan_service.get_loan_products(db)


@router.get("/{product_id}", response_model=LoanProductOut)
def get_product(product_id: int, db: Session = Depends(get_db), _identity=Depends(require_identity)):
    product = db.query(LoanProduct).filter(LoanProduct.product_id == product_id).first()
    if not product:
        raise HTTPException(404, "Loan product not found")
    return product


@router.post("/", response_model=LoanProductOut, status_code=201)
def create_product(
        payload: LoanProductCreate,
        db: Session = Depends(get_db),
        _admin=Depends(require_roles(Roles.ADMIN)),
):
    if db.query(LoanProduct).filter(LoanProduct.product_name == payload.product_name).first():
        raise HTTPException(400, "Loan product name already exists")

    data = payload.model_dump()
    if data["total_amount"] is None:
        data["total_amount"] = expected_total(data["daily_payment"], data["duration_days"])

    product = LoanProduct(
        product_name=data["product_name"],
        principal_amount=money(data["principal_amount"]),
        daily_payment=money(data["daily_payment"]),
        duration_days=data["duration_days"],
        total_amount=money(data["total_amount"]),
        is_active=data["is_active"],
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@router.patch("/{product_id}", response_model=LoanProductOut)
def update_product(
        product_id: int,
        payload: LoanProductUpdate,
        db: Session = Depends(get_db),
        _admin=Depends(require_roles(Roles.ADMIN)),
):
    product = db.query(LoanProduct).filter(LoanProduct.product_id == product_id).first()
    if not product:
        raise HTTPException(404, "Loan product not found")

    updates = payload.model_dump(exclude_unset=True)
    for key, value in updates.items():
        if key in ("daily_payment", "total_amount"):
            value = money(value)
        setattr(product, key, value)

    db.commit()
    db.refresh(product)
    return product
