# backend/mlcatalog/services/audit_service.py
import logging
from typing import Iterable, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from mlcatalog.models.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Hands audit records to the task queue; also reads them back."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: AuditAction,
        resource_type: str,
        resource_ids: Iterable[str],
        actor: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> bool:
        """
        Enqueue an audit write for a completed mutation.

        The mutation has already committed, so an enqueue failure is logged
        and reported through the return value rather than raised.
        """
        from mlcatalog.tasks.audit import write_audit_logs_task

        resource_ids = list(resource_ids)
        if not resource_ids:
            return True
        try:
            write_audit_logs_task.send(action.value, resource_type, resource_ids, actor, metadata)
            return True
        except Exception as e:
            logger.error(f"Failed to enqueue {action.value} audit for {resource_type} {resource_ids}: {e}")
            return False

    def get_logs(
        self,
        resource_type: str,
        resource_id: str,
        limit: int = 100,
        offset: int = 0,
        actions: Optional[List[AuditAction]] = None,
    ) -> tuple[List[AuditLog], int]:
        query = self.db.query(AuditLog).filter(
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == resource_id,
        )

        if actions:
            query = query.filter(AuditLog.action.in_(actions))

        total = query.count()
        logs = query.order_by(desc(AuditLog.created_at)).offset(offset).limit(limit).all()

        return logs, total
