# backend/mlcatalog/models/base.py
import time
from datetime import datetime
from uuid import uuid4

from sqlalchemy import BigInteger, Boolean, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def now_millis() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UUIDMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class CatalogTimestampMixin:
    """Epoch-millisecond creation and last-update times."""
    date_created: Mapped[int] = mapped_column(BigInteger, default=now_millis)
    date_updated: Mapped[int] = mapped_column(BigInteger, default=now_millis, index=True)


class SoftDeleteMixin:
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
