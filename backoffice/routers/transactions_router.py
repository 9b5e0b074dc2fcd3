from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from backoffice.core.guards import Roles, ensure_in_scope, require_roles, scoped_filters
from backoffice.models.customer_model import Customer
from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.user_model import User
from backoffice.schemas import TransactionCreate, TransactionOut
from backoffice.services import payment_service
from backoffice.utils.database import get_db

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("/", response_model=list[TransactionOut])
def list_transactions(
        branch_id: Optional[int] = Query(None),
        agent_id: Optional[int] = Query(None),
        customer_id: Optional[int] = Query(None),
        transaction_type: Optional[str] = Query(None),
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.ALL)),
):
    branch_id, agent_id = scoped_filters(identity, branch_id, agent_id)
    return payment_service.get_transactions(
        db,
        branch_id=branch_id,
        agent_id=agent_id,
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        transaction_type=transaction_type,
    )


# penalties / refunds; the ledger is append-only, there is no update or delete
@router.post("/", response_model=TransactionOut, status_code=201)
def create_transaction(
        payload: TransactionCreate,
        db: Session = Depends(get_db),
        identity: User = Depends(require_roles(*Roles.APPROVERS)),
):
    customer = db.query(Customer).filter(Customer.customer_id == payload.customer_id).first()
    if not customer:
        raise HTTPException(404, "Customer not found")
    ensure_in_scope(identity, customer.branch_id, customer.agent_id)

    if payload.application_id is not None:
        app = db.query(LoanApplication).filter(LoanApplication.application_id == payload.application_id).first()
        if not app or app.customer_id != customer.customer_id:
            raise HTTPException(400, "Loan application does not belong to this customer")

    return payment_service.create_transaction(
        db,
        application_id=payload.application_id,
        customer_id=customer.customer_id,
        agent_id=customer.agent_id,
        branch_id=customer.branch_id,
        transaction_type=payload.transaction_type,
        amount=payload.amount,
        payment_method=payload.payment_method,
        reference_number=payload.reference_number,
        description=payload.description,
    )
