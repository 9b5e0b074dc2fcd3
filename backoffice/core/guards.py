"""
Route guards.

The policies are pure functions of (identity, loading) and return a
GuardDecision; the FastAPI dependencies below turn a denial into an HTTP
error carrying the redirect target in the Location header.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backoffice.core.session import resolve_identity, resolve_session
from backoffice.models.user_model import AuthSession, User
from backoffice.utils.database import get_db


class Roles:
    ADMIN = "admin"
    SUB_ADMIN = "sub_admin"
    AGENT = "agent"

    ALL = (ADMIN, SUB_ADMIN, AGENT)
    APPROVERS = (ADMIN, SUB_ADMIN)
    # scoped to exactly one branch
    BRANCH_SCOPED = (SUB_ADMIN, AGENT)


SIGN_IN_PATH = "/auth/login"

ROLE_HOMES = {
    Roles.ADMIN: "/admin",
    Roles.SUB_ADMIN: "/subadmin",
    Roles.AGENT: "/agent",
}


def role_home(role: Optional[str]) -> str:
    return ROLE_HOMES.get(role, SIGN_IN_PATH)


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    redirect_to: Optional[str] = None

    @property
    def pending(self) -> bool:
        """Identity still resolving: neither allow nor redirect yet."""
        return not self.allowed and self.redirect_to is None


ALLOW = GuardDecision(True)
WAIT = GuardDecision(False)


# =================================================
# 🔹 POLICIES
# =================================================
def require_identity_policy(identity, loading: bool = False) -> GuardDecision:
    if loading:
        return WAIT
    if identity is None:
        return GuardDecision(False, SIGN_IN_PATH)
    return ALLOW


def require_roles_policy(identity, loading: bool, roles: Iterable[str]) -> GuardDecision:
    decision = require_identity_policy(identity, loading)
    if not decision.allowed:
        return decision

    allowed_roles = set(roles)
    if allowed_roles and identity.role not in allowed_roles:
        return GuardDecision(False, role_home(identity.role))
    return ALLOW


def public_only_policy(identity, loading: bool = False) -> GuardDecision:
    """Landing / login / signup: signed-in staff go to their dashboard."""
    if loading or identity is None:
        return ALLOW
    return GuardDecision(False, role_home(identity.role))


# =================================================
# 🔹 DEPENDENCIES
# =================================================
bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    # websocket / browser fallback
    return request.query_params.get("token")


def get_current_session(
        token: Optional[str] = Depends(get_bearer_token),
        db: Session = Depends(get_db),
) -> Optional[AuthSession]:
    return resolve_session(db, token)


def get_current_identity(
        token: Optional[str] = Depends(get_bearer_token),
        db: Session = Depends(get_db),
) -> Optional[User]:
    return resolve_identity(db, token)


def _deny(decision: GuardDecision, identity: Optional[User]):
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer", "Location": decision.redirect_to or SIGN_IN_PATH},
        )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You do not have access to this resource",
        headers={"Location": decision.redirect_to or role_home(identity.role)},
    )


def require_identity(identity: Optional[User] = Depends(get_current_identity)) -> User:
    decision = require_identity_policy(identity)
    if not decision.allowed:
        _deny(decision, identity)
    return identity


def require_roles(*roles: str):
    def _dependency(identity: Optional[User] = Depends(get_current_identity)) -> User:
        decision = require_roles_policy(identity, False, roles)
        if not decision.allowed:
            _deny(decision, identity)
        return identity

    return _dependency


# =================================================
# 🔹 BRANCH / AGENT SCOPING
# =================================================
def scoped_filters(identity: User, branch_id: Optional[int] = None, agent_id: Optional[int] = None):
    """
    Narrows list filters to what the caller may see.
      admin     -> filters as given
      sub_admin -> own branch
      agent     -> own records (and own branch)
    """
    if identity.role == Roles.SUB_ADMIN:
        branch_id = identity.branch_id
    elif identity.role == Roles.AGENT:
        branch_id = identity.branch_id
        agent_id = identity.user_id
    return branch_id, agent_id


def ensure_in_scope(identity: User, branch_id: Optional[int], agent_id: Optional[int] = None):
    if identity.role == Roles.ADMIN:
        return
    if identity.role == Roles.SUB_ADMIN and branch_id == identity.branch_id:
        return
    if identity.role == Roles.AGENT and agent_id == identity.user_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="This record belongs to another branch or agent",
    )
