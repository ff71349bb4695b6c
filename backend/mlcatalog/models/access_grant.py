# backend/mlcatalog/models/access_grant.py
"""Collaborator grants backing the database authorization client."""
from sqlalchemy import String, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from mlcatalog.models.base import Base, TimestampMixin, UUIDMixin


class AccessGrant(Base, UUIDMixin, TimestampMixin):
    """
    Grants ``principal`` permission to perform ``action`` on one resource.

    Owners never need a grant; they always retain access to what they own.
    """
    __tablename__ = "access_grants"

    resource_type: Mapped[str] = mapped_column(String(50))
    resource_id: Mapped[str] = mapped_column(String(36))
    principal: Mapped[str] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(20))  # 'read', 'update', 'delete'

    __table_args__ = (
        UniqueConstraint('resource_type', 'resource_id', 'principal', 'action', name='uq_access_grant'),
        Index('ix_access_grants_principal', 'principal', 'resource_type', 'action'),
    )
