from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from backoffice.core.guards import (
    Roles,
    get_current_identity,
    public_only_policy,
    require_identity,
    require_roles,
    role_home,
)
from backoffice.models.user_model import User
from backoffice.schemas.dashboard_schemas import (
    AdminDashboardOut,
    AgentDashboardOut,
    LandingOut,
    SubAdminDashboardOut,
)
from backoffice.services import dashboard_service

router = APIRouter(tags=["Dashboards"])


@router.get("/", response_model=LandingOut)
async def landing(identity: Optional[User] = Depends(get_current_identity)):
    decision = public_only_policy(identity)
    if not decision.allowed:
        return RedirectResponse(decision.redirect_to, status_code=303)

    return await dashboard_service.landing()


@router.get("/dashboard")
def dashboard(identity: User = Depends(require_identity)):
    return RedirectResponse(role_home(identity.role), status_code=303)


@router.get("/admin", response_model=AdminDashboardOut)
@router.get("/admin/dashboard", response_model=AdminDashboardOut)
async def admin_dashboard(_admin: User = Depends(require_roles(Roles.ADMIN))):
    return await dashboard_service.admin_dashboard()


@router.get("/subadmin", response_model=SubAdminDashboardOut)
@router.get("/subadmin/dashboard", response_model=SubAdminDashboardOut)
async def subadmin_dashboard(identity: User = Depends(require_roles(Roles.SUB_ADMIN))):
    return await dashboard_service.subadmin_dashboard(identity.branch_id)


@router.get("/agent", response_model=AgentDashboardOut)
@router.get("/agent/dashboard", response_model=AgentDashboardOut)
async def agent_dashboard(identity: User = Depends(require_roles(Roles.AGENT))):
    return await dashboard_service.agent_dashboard(identity.user_id)
