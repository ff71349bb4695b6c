# backend/mlcatalog/database.py
import logging
from typing import Callable, Generator, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import sessionmaker, Session

from mlcatalog.config import get_settings
from mlcatalog.errors import StaleResourceError, Unavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_engine = None
_SessionLocal = None


def get_engine():
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(settings.database_url, pool_pre_ping=True)
    return _engine


def get_session_local():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, StaleResourceError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def run_with_retry(db: Session, operation: Callable[[], T], attempts: Optional[int] = None) -> T:
    """
    Run ``operation`` as one unit of work, retrying transient store failures.

    Only connection resets, deadlocks (surfaced as OperationalError) and lost
    compare-and-swap checks are retried. Anything else, including every
    CatalogError, propagates on the first failure. Never wrap non-idempotent
    creates with this.
    """
    if attempts is None:
        attempts = get_settings().store_retry_attempts
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as e:
            db.rollback()
            if not _is_transient(e):
                raise
            if attempt == attempts:
                logger.error(f"Store operation failed after {attempts} attempts: {e}")
                raise Unavailable("Store is temporarily unavailable, please retry") from e
            logger.warning(f"Transient store failure (attempt {attempt}/{attempts}): {e}")
