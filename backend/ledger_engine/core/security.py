"""
Security Module - Identity & Capability Checks

Tokens are issued by the external identity provider; this module only
decodes them into a tenant/user identity and turns the tenant's enabled
modules plus the caller's role into an ``AccessContext``. Business services
receive that context as a passed-in authorization decision.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ledger_engine.core.config import settings
from ledger_engine.core.database import get_db
from ledger_engine.core.exceptions import AuthzError

# Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)

MODULES = ("accounting", "inventory", "invoicing", "reports")
ACTIONS = ("read", "write", "delete")

# Module -> allowed actions, per role
ROLE_GRANTS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "admin": {module: frozenset(ACTIONS) for module in MODULES},
    "manager": {module: frozenset({"read", "write"}) for module in MODULES},
    "accountant": {
        "accounting": frozenset({"read", "write"}),
        "invoicing": frozenset({"read", "write"}),
        "reports": frozenset({"read", "write"}),
        "inventory": frozenset({"read"}),
    },
    "viewer": {module: frozenset({"read"}) for module in MODULES},
}


@dataclass(frozen=True)
class AccessContext:
    """Authenticated caller plus the capabilities granted to it"""
    tenant_id: int
    user_id: int
    role: str = "viewer"
    modules: FrozenSet[str] = field(default_factory=lambda: frozenset(MODULES))

    def can(self, module: str, action: str) -> bool:
        if module not in self.modules:
            return False
        return action in ROLE_GRANTS.get(self.role, {}).get(module, frozenset())

    def require(self, module: str, action: str) -> None:
        if module not in self.modules:
            raise AuthzError(f"Module '{module}' is disabled", {"module": module})
        if not self.can(module, action):
            raise AuthzError(
                f"Permission denied for {action} on '{module}'",
                {"module": module, "action": action, "role": self.role},
            )


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        return None


async def get_access_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> AccessContext:
    """
    Dependency to resolve the caller's identity from the bearer token.
    Supports both Authorization header and cookies.
    """
    from ledger_engine.services.tenant_service import TenantService

    token = None

    if credentials:
        token = credentials.credentials

    if not token:
        token = request.cookies.get("access_token")

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = int(payload.get("sub"))
        tenant_id = int(payload.get("tenant_id"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tenant = TenantService(db).get_by_id(tenant_id)
    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Tenant not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AccessContext(
        tenant_id=tenant.id,
        user_id=user_id,
        role=payload.get("role") or "viewer",
        modules=tenant.module_set,
    )


class ModulePermission:
    """Dependency for checking module enablement and role permissions"""

    def __init__(self, module: str, action: str = "read"):
        self.module = module
        self.action = action

    def __call__(self, context: AccessContext = Depends(get_access_context)) -> AccessContext:
        context.require(self.module, self.action)
        return context
