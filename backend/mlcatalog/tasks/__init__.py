# mlcatalog/tasks/__init__.py
"""Dramatiq task definitions for async operations."""
import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from mlcatalog.config import get_settings

settings = get_settings()

# Configure broker; 'stub' keeps messages in memory for tests and local runs
if settings.task_broker == "stub":
    broker = StubBroker()
    broker.emit_after("process_boot")
else:
    broker = RedisBroker(url=settings.redis_url)
dramatiq.set_broker(broker)

from .audit import write_audit_logs_task

__all__ = [
    'broker',
    'write_audit_logs_task',
]
