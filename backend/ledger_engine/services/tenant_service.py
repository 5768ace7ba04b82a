"""
Tenant Service - tenants and module enablement
"""
from typing import Iterable, Optional
from sqlalchemy.orm import Session
import logging

from ledger_engine.core.database import transaction
from ledger_engine.core.exceptions import ReferenceNotFoundError, ValidationError
from ledger_engine.core.security import MODULES
from ledger_engine.models import Tenant, DEFAULT_MODULES

logger = logging.getLogger(__name__)


class TenantService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        return self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

    def get_or_raise(self, tenant_id: int) -> Tenant:
        tenant = self.get_by_id(tenant_id)
        if not tenant:
            raise ReferenceNotFoundError(f"Tenant not found: {tenant_id}")
        return tenant

    def create(self, name: str, modules: Optional[Iterable[str]] = None) -> Tenant:
        """Create a tenant with the given (or all) modules enabled"""
        enabled = self._normalize_modules(modules) if modules is not None else DEFAULT_MODULES
        with transaction(self.db):
            tenant = Tenant(name=name, enabled_modules=enabled)
            self.db.add(tenant)
            self.db.flush()
        logger.info(f"Tenant {tenant.id} created with modules [{enabled}]")
        return tenant

    def set_modules(self, tenant_id: int, modules: Iterable[str]) -> Tenant:
        tenant = self.get_or_raise(tenant_id)
        with transaction(self.db):
            tenant.enabled_modules = self._normalize_modules(modules)
        return tenant

    def _normalize_modules(self, modules: Iterable[str]) -> str:
        cleaned = []
        for module in modules:
            module = module.strip().lower()
            if module not in MODULES:
                raise ValidationError(f"Unknown module: {module}", {"allowed": list(MODULES)})
            if module not in cleaned:
                cleaned.append(module)
        return ",".join(cleaned)
