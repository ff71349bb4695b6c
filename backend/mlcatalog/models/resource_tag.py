# backend/mlcatalog/models/resource_tag.py
"""Tags attached to any catalog resource."""
from sqlalchemy import Integer, String, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from mlcatalog.models.base import Base, TimestampMixin, UUIDMixin


class ResourceTag(Base, UUIDMixin, TimestampMixin):
    """
    One tag on one resource.

    A resource's tags form an ordered set: ``position`` records insertion
    order and the unique constraint keeps each tag once per resource. Tags are
    case-sensitive.
    """
    __tablename__ = "resource_tags"

    resource_type: Mapped[str] = mapped_column(String(50))  # 'project', 'dataset', 'experiment', ...
    resource_id: Mapped[str] = mapped_column(String(36))
    tag: Mapped[str] = mapped_column(String(255))
    position: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint('resource_type', 'resource_id', 'tag', name='uq_resource_tag'),
        Index('ix_resource_tags_lookup', 'resource_type', 'resource_id'),
        Index('ix_resource_tags_by_tag', 'resource_type', 'tag'),
    )
