# backend/mlcatalog/services/snapshots.py
"""Builds response snapshots (columns + tags + attributes) for resources."""
from typing import Dict, List, Sequence

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from mlcatalog.models.resource_attribute import ResourceAttribute
from mlcatalog.models.resource_tag import ResourceTag
from mlcatalog.schemas.resource import AttributeValue


def load_tags(db: Session, resource_type: str, resource_ids: Sequence[str]) -> Dict[str, List[str]]:
    tags: Dict[str, List[str]] = {rid: [] for rid in resource_ids}
    if not resource_ids:
        return tags
    rows = db.query(ResourceTag.resource_id, ResourceTag.tag).filter(
        ResourceTag.resource_type == resource_type,
        ResourceTag.resource_id.in_(list(resource_ids)),
    ).order_by(ResourceTag.resource_id, ResourceTag.position, ResourceTag.tag).all()
    for resource_id, tag in rows:
        tags[resource_id].append(tag)
    return tags


def load_attributes(
    db: Session, resource_type: str, resource_ids: Sequence[str]
) -> Dict[str, List[AttributeValue]]:
    attributes: Dict[str, List[AttributeValue]] = {rid: [] for rid in resource_ids}
    if not resource_ids:
        return attributes
    rows = db.query(ResourceAttribute).filter(
        ResourceAttribute.resource_type == resource_type,
        ResourceAttribute.resource_id.in_(list(resource_ids)),
    ).order_by(ResourceAttribute.resource_id, ResourceAttribute.key).all()
    for row in rows:
        attributes[row.resource_id].append(
            AttributeValue(key=row.key, value_type=row.value_type, value=row.value)
        )
    return attributes


def _columns(resource) -> dict:
    return {c.key: getattr(resource, c.key) for c in inspect(resource).mapper.column_attrs}


def to_responses(db: Session, resources: Sequence, resource_type: str, schema) -> list:
    """Two batched lookups for the whole page rather than one per resource."""
    ids = [r.id for r in resources]
    tags = load_tags(db, resource_type, ids)
    attributes = load_attributes(db, resource_type, ids)
    return [
        schema.model_validate({
            **_columns(r),
            "resource_type": resource_type,
            "tags": tags[r.id],
            "attributes": attributes[r.id],
        })
        for r in resources
    ]


def to_response(db: Session, resource, resource_type: str, schema):
    return to_responses(db, [resource], resource_type, schema)[0]
