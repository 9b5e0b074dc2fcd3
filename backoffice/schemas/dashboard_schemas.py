from typing import List, Optional

from pydantic import BaseModel

from backoffice.schemas.branch_schemas import BranchOut
from backoffice.schemas.payment_schemas import DailyPaymentOut


class PortfolioMetrics(BaseModel):
    total_customers: int = 0
    total_loans: int = 0
    pending_approvals: int = 0
    disbursed_loans: int = 0
    total_disbursed: float = 0.0
    total_collected: float = 0.0
    # paid / due for collection days up to today, in percent
    collection_rate: float = 0.0
    overdue_payments: int = 0
    active_agents: int = 0


class AdminDashboardOut(PortfolioMetrics):
    branch_performance: List["BranchPerformanceOut"] = []


class BranchPerformanceOut(BaseModel):
    branch_id: int
    branch_name: str
    disbursed_loans: int
    total_disbursed: float
    total_collected: float


class SubAdminDashboardOut(PortfolioMetrics):
    branch: Optional[BranchOut] = None


class AgentDashboardOut(BaseModel):
    total_customers: int = 0
    active_loans: int = 0
    today_collections: float = 0.0
    weekly_target: float = 0.0
    weekly_collected: float = 0.0
    weekly_progress: float = 0.0
    pending_payments: int = 0
    completed_payments: int = 0
    completion_rate: float = 0.0
    today_payments: List[DailyPaymentOut] = []


class LiveMetricsOut(BaseModel):
    total_loans: int = 0
    active_customers: int = 0
    total_disbursed: float = 0.0
    collection_rate: float = 0.0


class LandingOut(BaseModel):
    message: str
    branches: List[BranchOut] = []
    metrics: LiveMetricsOut


AdminDashboardOut.model_rebuild()
