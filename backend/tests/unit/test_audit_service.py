# backend/tests/unit/test_audit_service.py
import json
import pytest
from unittest.mock import patch

from mlcatalog.models.audit_log import AuditAction, AuditLog
from mlcatalog.services.audit_service import AuditService
from mlcatalog.tasks import broker
from mlcatalog.tasks.audit import write_audit_logs_task


@pytest.fixture(autouse=True)
def empty_queue():
    broker.flush_all()
    yield
    broker.flush_all()


def test_record_enqueues_message(db_session):
    service = AuditService(db_session)

    assert service.record(AuditAction.UPDATE, "project", ["p1", "p2"], "alice", {"field": "name"})

    messages = list(broker.queues[write_audit_logs_task.queue_name].queue)
    assert len(messages) == 1


def test_record_with_no_ids_does_not_enqueue(db_session):
    assert AuditService(db_session).record(AuditAction.DELETE, "project", [], "alice")
    assert broker.queues[write_audit_logs_task.queue_name].qsize() == 0


def test_enqueue_failure_is_logged_not_raised(db_session, caplog):
    service = AuditService(db_session)

    with patch.object(write_audit_logs_task, "send", side_effect=ConnectionError("redis down")):
        assert service.record(AuditAction.CREATE, "dataset", ["d1"], "alice") is False

    assert "Failed to enqueue create audit" in caplog.text


def test_task_writes_one_row_per_resource(db_session):
    with patch("mlcatalog.tasks.audit.get_session_local", return_value=lambda: db_session):
        write_audit_logs_task.fn("delete", "project", ["p1", "p2"], "alice", {"reason": "cleanup"})

    logs = db_session.query(AuditLog).order_by(AuditLog.resource_id).all()
    assert [(log.action, log.resource_id, log.actor) for log in logs] == [
        (AuditAction.DELETE, "p1", "alice"),
        (AuditAction.DELETE, "p2", "alice"),
    ]
    assert json.loads(logs[0].metadata_json) == {"reason": "cleanup"}


def test_get_logs(db_session):
    for action in (AuditAction.CREATE, AuditAction.UPDATE, AuditAction.UPDATE):
        db_session.add(AuditLog(action=action, resource_type="project", resource_id="p1", actor="alice"))
    db_session.add(AuditLog(action=AuditAction.CREATE, resource_type="project", resource_id="p2"))
    db_session.commit()

    logs, total = AuditService(db_session).get_logs("project", "p1", actions=[AuditAction.UPDATE])

    assert total == 2
    assert all(log.action == AuditAction.UPDATE for log in logs)
