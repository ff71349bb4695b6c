# mlcatalog/tasks/audit.py
"""Async audit log writes using Dramatiq."""
import json
import logging
from typing import List, Optional

import dramatiq

from mlcatalog.database import get_session_local
from mlcatalog.models.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)


@dramatiq.actor(max_retries=3, min_backoff=1000)
def write_audit_logs_task(
    action: str,
    resource_type: str,
    resource_ids: List[str],
    actor: Optional[str] = None,
    metadata: Optional[dict] = None,
):
    """
    Persist one audit row per resource id.
    Runs outside the request so a slow audit store never delays callers.
    """
    db = get_session_local()()
    try:
        metadata_json = json.dumps(metadata, sort_keys=True) if metadata else None
        for resource_id in resource_ids:
            db.add(AuditLog(
                action=AuditAction(action),
                resource_type=resource_type,
                resource_id=resource_id,
                actor=actor,
                metadata_json=metadata_json,
            ))
        db.commit()
        logger.info(f"Recorded {action} audit for {len(resource_ids)} {resource_type} resource(s)")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to write audit logs for {resource_type} {resource_ids}: {e}")
        raise
    finally:
        db.close()
