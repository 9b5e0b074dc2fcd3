from backoffice.schemas.branch_schemas import BranchCreate, BranchOut, BranchSelect
from backoffice.schemas.user_schemas import UserOut, UserMiniOut, ProfileUpdate, UserAdminUpdate
from backoffice.schemas.auth_schemas import (
    SignUpRequest,
    SignInRequest,
    ResendRequest,
    AuthResult,
    AuthUserOut,
    CurrentUserOut,
    LoginContextOut,
)
from backoffice.schemas.customer_schemas import (
    CustomerCreate,
    CustomerUpdate,
    CustomerOut,
    CustomerMiniOut,
    CustomerRegistration,
    GuarantorIn,
    GuarantorOut,
)
from backoffice.schemas.loan_product_schemas import LoanProductCreate, LoanProductUpdate, LoanProductOut
from backoffice.schemas.loan_schema import (
    LoanApplicationCreate,
    LoanApplicationOut,
    ApproveRequest,
    RejectRequest,
    DisburseRequest,
    DisbursementResult,
    ScheduleRepairOut,
)
from backoffice.schemas.payment_schemas import (
    PaymentRecordIn,
    PaymentRecordResult,
    DailyPaymentOut,
    WeeklyTrackingIn,
    WeeklyTrackingOut,
    TransactionCreate,
    TransactionOut,
)
