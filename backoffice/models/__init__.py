# Automatically load all models so metadata knows them
from backoffice.models.branches_model import Branch
from backoffice.models.customer_model import Customer, Guarantor
from backoffice.models.loan_application_model import LoanApplication
from backoffice.models.loan_product_model import LoanProduct
from backoffice.models.payment_model import DailyPayment, WeeklyPaymentTracking
from backoffice.models.system_settings_model import SystemSetting
from backoffice.models.transaction_model import Transaction
from backoffice.models.user_model import AuthIdentity, AuthSession, User
