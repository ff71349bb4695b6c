# backend/mlcatalog/services/mutations.py
"""
Tag and attribute mutations shared by every resource accessor.

Each operation is one unit of work: lock the resource row, read-modify-write
its tags or attributes, compare-and-swap ``date_updated``, commit, and return
the read-after-write snapshot. Transient store failures are retried through
``run_with_retry``; logical errors are not.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from mlcatalog.database import run_with_retry
from mlcatalog.errors import AlreadyExists, InvalidArgument, NotFound, StaleResourceError
from mlcatalog.models.base import now_millis
from mlcatalog.models.resource_attribute import ResourceAttribute
from mlcatalog.models.resource_tag import ResourceTag
from mlcatalog.schemas.resource import AttributeValue
from mlcatalog.services.predicate_compiler import validate_attribute_key, validate_tags
from mlcatalog.services.snapshots import load_attributes, load_tags, to_response

logger = logging.getLogger(__name__)


def as_attribute_value(raw: Union[AttributeValue, Dict[str, Any]]) -> AttributeValue:
    if isinstance(raw, AttributeValue):
        return raw
    try:
        return AttributeValue.model_validate(raw)
    except ValidationError as e:
        raise InvalidArgument(f"Malformed attribute: {e.errors()[0]['msg']}") from e


class MutationAccessor:
    def __init__(self, db: Session, model, resource_type: str, schema):
        self.db = db
        self.model = model
        self.resource_type = resource_type
        self.schema = schema

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def load_live(self, resource_id: str, lock: bool = True):
        query = self.db.query(self.model).filter(
            self.model.id == resource_id,
            self.model.deleted.is_(False),
        )
        if lock:
            query = query.with_for_update()
        resource = query.first()
        if resource is None:
            raise NotFound(f"{self.resource_type.capitalize()} not found")
        return resource

    def touch(self, resource) -> None:
        """Compare-and-swap date_updated; the new value is always strictly greater."""
        expected = resource.date_updated
        new_value = max(now_millis(), (expected or 0) + 1)
        updated = self.db.query(self.model).filter(
            self.model.id == resource.id,
            self.model.date_updated == expected,
        ).update({self.model.date_updated: new_value}, synchronize_session=False)
        if updated == 0:
            raise StaleResourceError(f"{self.resource_type} {resource.id} changed concurrently")
        set_committed_value(resource, "date_updated", new_value)

    def _snapshot(self, resource):
        return to_response(self.db, resource, self.resource_type, self.schema)

    def _tag_query(self, resource_id: str):
        return self.db.query(ResourceTag).filter(
            ResourceTag.resource_type == self.resource_type,
            ResourceTag.resource_id == resource_id,
        )

    def _attribute_query(self, resource_id: str):
        return self.db.query(ResourceAttribute).filter(
            ResourceAttribute.resource_type == self.resource_type,
            ResourceAttribute.resource_id == resource_id,
        )

    # ------------------------------------------------------------------
    # tags
    # ------------------------------------------------------------------

    def add_tags(self, resource_id: str, tags: Iterable[str]):
        tags = validate_tags(tags)
        if not tags:
            raise InvalidArgument("Tags not found in request")

        def operation():
            resource = self.load_live(resource_id)
            existing = self._tag_query(resource_id).all()
            present = {t.tag for t in existing}
            position = max((t.position for t in existing), default=-1)
            for tag in tags:
                if tag in present:
                    continue
                position += 1
                self.db.add(ResourceTag(
                    resource_type=self.resource_type,
                    resource_id=resource_id,
                    tag=tag,
                    position=position,
                ))
                present.add(tag)
            self.touch(resource)
            self.db.commit()
            return self._snapshot(resource)

        return run_with_retry(self.db, operation)

    def delete_tags(self, resource_id: str, tags: Optional[Iterable[str]] = None, delete_all: bool = False):
        """Remove the listed tags, or every tag when ``delete_all`` is set (it wins over the list)."""
        tags = list(tags or [])
        if not delete_all and not tags:
            raise InvalidArgument("Tags not found in request")

        def operation():
            resource = self.load_live(resource_id)
            query = self._tag_query(resource_id)
            if not delete_all:
                query = query.filter(ResourceTag.tag.in_(tags))
            removed = query.delete(synchronize_session=False)
            logger.debug(f"Removed {removed} tags from {self.resource_type} {resource_id}")
            self.touch(resource)
            self.db.commit()
            return self._snapshot(resource)

        return run_with_retry(self.db, operation)

    def get_tags(self, resource_id: str) -> List[str]:
        self.load_live(resource_id, lock=False)
        return load_tags(self.db, self.resource_type, [resource_id])[resource_id]

    # ------------------------------------------------------------------
    # attributes
    # ------------------------------------------------------------------

    def add_attributes(self, resource_id: str, attributes: Iterable[Union[AttributeValue, Dict[str, Any]]]):
        """Create-once: fails with AlreadyExists if any key is already present."""
        attributes = [as_attribute_value(a) for a in attributes]
        if not attributes:
            raise InvalidArgument("Attribute list not found in request")
        keys = [validate_attribute_key(a.key) for a in attributes]
        if len(set(keys)) != len(keys):
            raise InvalidArgument("Duplicate attribute keys in request")

        def operation():
            resource = self.load_live(resource_id)
            existing = self._attribute_query(resource_id).filter(ResourceAttribute.key.in_(keys)).all()
            if existing:
                raise AlreadyExists(
                    f"Attribute keys already exist: {', '.join(sorted(a.key for a in existing))}"
                )
            for attribute in attributes:
                row = ResourceAttribute(
                    resource_type=self.resource_type,
                    resource_id=resource_id,
                    key=attribute.key,
                )
                row.set_value(attribute.value_type, attribute.value)
                self.db.add(row)
            self.touch(resource)
            self.db.commit()
            return self._snapshot(resource)

        return run_with_retry(self.db, operation)

    def update_attribute(
        self, resource_id: str, attribute: Union[AttributeValue, Dict[str, Any]]
    ) -> Tuple[Any, int]:
        """
        Upsert one attribute.

        Returns:
            Tuple of (snapshot, rows_affected). Writing the value already
            stored affects 0 rows and leaves date_updated alone.
        """
        attribute = as_attribute_value(attribute)
        validate_attribute_key(attribute.key)

        def operation():
            resource = self.load_live(resource_id)
            row = self._attribute_query(resource_id).filter(ResourceAttribute.key == attribute.key).first()
            if row is not None and row.has_value(attribute.value_type, attribute.value):
                self.db.commit()
                return self._snapshot(resource), 0
            if row is None:
                row = ResourceAttribute(
                    resource_type=self.resource_type,
                    resource_id=resource_id,
                    key=attribute.key,
                )
                self.db.add(row)
            row.set_value(attribute.value_type, attribute.value)
            self.touch(resource)
            self.db.commit()
            return self._snapshot(resource), 1

        return run_with_retry(self.db, operation)

    def get_attributes(
        self, resource_id: str, keys: Optional[Iterable[str]] = None, get_all: bool = False
    ) -> List[AttributeValue]:
        keys = list(keys or [])
        if not get_all and not keys:
            raise InvalidArgument("Attribute keys not found in request")
        self.load_live(resource_id, lock=False)
        attributes = load_attributes(self.db, self.resource_type, [resource_id])[resource_id]
        if get_all:
            return attributes
        wanted = set(keys)
        return [a for a in attributes if a.key in wanted]

    def delete_attributes(
        self, resource_id: str, keys: Optional[Iterable[str]] = None, delete_all: bool = False
    ):
        keys = list(keys or [])
        if not delete_all and not keys:
            raise InvalidArgument("Attribute keys not found in request")

        def operation():
            resource = self.load_live(resource_id)
            query = self._attribute_query(resource_id)
            if not delete_all:
                query = query.filter(ResourceAttribute.key.in_(keys))
            query.delete(synchronize_session=False)
            self.touch(resource)
            self.db.commit()
            return self._snapshot(resource)

        return run_with_retry(self.db, operation)

    # ------------------------------------------------------------------
    # scalar fields
    # ------------------------------------------------------------------

    def update_fields(self, resource_id: str, **values):
        def operation():
            resource = self.load_live(resource_id)
            for field, value in values.items():
                setattr(resource, field, value)
            self.db.flush()
            self.touch(resource)
            self.db.commit()
            return self._snapshot(resource)

        return run_with_retry(self.db, operation)
