"""
Activity Log Service
Records the activity trail inside the caller's transaction
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, List, Dict, Any
import json
import logging

from ledger_engine.models import ActivityLog

logger = logging.getLogger(__name__)


class ActivityAction:
    """Constants for activity log actions"""
    JOURNAL_ENTRY_CREATED = "journal_entry_created"
    INVOICE_CREATED = "invoice_created"
    STOCK_MOVE_CREATED = "stock_move_created"
    ACCOUNT_DELETED = "account_deleted"


class ActivityLogService:
    """Service for recording and retrieving activity logs"""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        tenant_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        user_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ActivityLog:
        """
        Add an activity log row to the current unit of work.

        The row is flushed but not committed: it becomes visible together with
        the change it describes, or not at all.
        """
        activity = ActivityLog(
            tenant_id=tenant_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=json.dumps(details, default=str) if details else None,
        )
        self.db.add(activity)
        self.db.flush()

        logger.info(
            f"Activity: {action} {entity_type}(id={entity_id}) by user={user_id} tenant={tenant_id}"
        )
        return activity

    def get_by_entity(self, tenant_id: int, entity_type: str, entity_id: int) -> List[ActivityLog]:
        return self.db.query(ActivityLog).filter(
            ActivityLog.tenant_id == tenant_id,
            ActivityLog.entity_type == entity_type,
            ActivityLog.entity_id == entity_id
        ).order_by(desc(ActivityLog.created_at), desc(ActivityLog.id)).all()

    def get_by_tenant(self, tenant_id: int, action: Optional[str] = None, limit: int = 100) -> List[ActivityLog]:
        query = self.db.query(ActivityLog).filter(ActivityLog.tenant_id == tenant_id)
        if action:
            query = query.filter(ActivityLog.action == action)
        return query.order_by(desc(ActivityLog.id)).limit(limit).all()
