# backend/mlcatalog/models/resource_attribute.py
"""Typed key/value attributes attached to any catalog resource."""
import json
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Float, String, Text, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from mlcatalog.models.base import Base, TimestampMixin, UUIDMixin


class ValueType(str, Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    BLOB = "BLOB"


def encode_blob(value: Any) -> str:
    """Canonical JSON text for a blob so equal blobs compare equal in SQL."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


class ResourceAttribute(Base, UUIDMixin, TimestampMixin):
    """
    One attribute on one resource.

    The value is a tagged variant: ``value_type`` names which of the three
    value columns is populated. Blobs are stored as canonical JSON text.
    """
    __tablename__ = "resource_attributes"

    resource_type: Mapped[str] = mapped_column(String(50))
    resource_id: Mapped[str] = mapped_column(String(36))
    key: Mapped[str] = mapped_column(String(255))
    value_type: Mapped[ValueType] = mapped_column()
    value_number: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    value_string: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value_blob: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('resource_type', 'resource_id', 'key', name='uq_resource_attribute'),
        Index('ix_resource_attributes_lookup', 'resource_type', 'resource_id'),
        Index('ix_resource_attributes_by_key', 'resource_type', 'key'),
    )

    @property
    def value(self) -> Any:
        if self.value_type == ValueType.NUMBER:
            return self.value_number
        if self.value_type == ValueType.STRING:
            return self.value_string
        return json.loads(self.value_blob) if self.value_blob is not None else None

    def set_value(self, value_type: ValueType, value: Any) -> None:
        self.value_type = value_type
        self.value_number = float(value) if value_type == ValueType.NUMBER else None
        self.value_string = value if value_type == ValueType.STRING else None
        self.value_blob = encode_blob(value) if value_type == ValueType.BLOB else None

    def has_value(self, value_type: ValueType, value: Any) -> bool:
        if self.value_type != value_type:
            return False
        if value_type == ValueType.NUMBER:
            return self.value_number == float(value)
        if value_type == ValueType.STRING:
            return self.value_string == value
        return self.value_blob == encode_blob(value)
