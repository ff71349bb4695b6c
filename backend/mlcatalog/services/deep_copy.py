# backend/mlcatalog/services/deep_copy.py
"""
Deep copy of a resource tree for a new owner.

The root and every live child are cloned with fresh ids; child parent
references are rewritten through an old->new id map built as each level is
copied. Rows are committed in chunks so large trees never sit in one
transaction, which means a failure part-way has already committed some rows.
Those are removed by a compensating delete before the error surfaces.
"""
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from mlcatalog.config import Settings, get_settings
from mlcatalog.errors import CatalogError, InternalError, NotFound
from mlcatalog.models.base import new_id, now_millis
from mlcatalog.models.resource import ResourceVisibility
from mlcatalog.models.resource_attribute import ResourceAttribute
from mlcatalog.models.resource_tag import ResourceTag

logger = logging.getLogger(__name__)

# Identity and lifecycle columns are regenerated, never copied
_REGENERATED_COLUMNS = {"id", "date_created", "date_updated", "deleted"}


class ChildSpec(NamedTuple):
    """One level of a resource tree.

    ``parent_refs`` maps each foreign-key column on ``model`` to the
    resource_type whose id map supplies its new value. The first entry must
    point at the root.
    """
    resource_type: str
    model: type
    parent_refs: Dict[str, str]


class DeepCopyOperator:
    def __init__(
        self,
        db: Session,
        model,
        resource_type: str,
        children: Sequence[ChildSpec] = (),
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.model = model
        self.resource_type = resource_type
        self.children = list(children)
        self.settings = settings or get_settings()

    def _clone(self, row, stamp: int, **overrides):
        model = type(row)
        values = {
            c.key: getattr(row, c.key)
            for c in inspect(model).column_attrs
            if c.key not in _REGENERATED_COLUMNS
        }
        values.update(overrides)
        return model(id=new_id(), date_created=stamp, date_updated=stamp, deleted=False, **values)

    def _unique_name(self, name: str, owner: str, workspace: str) -> str:
        taken = {
            r[0] for r in self.db.query(self.model.name).filter(
                self.model.owner == owner,
                self.model.workspace == workspace,
                self.model.deleted.is_(False),
                self.model.name.startswith(name, autoescape=True),
            ).all()
        }
        if name not in taken:
            return name
        candidate = f"{name} (Copy)"
        counter = 2
        while candidate in taken:
            candidate = f"{name} (Copy {counter})"
            counter += 1
        return candidate

    def _copy_tags_and_attributes(self, resource_type: str, old_id: str, new_resource_id: str) -> None:
        tags = self.db.query(ResourceTag).filter(
            ResourceTag.resource_type == resource_type,
            ResourceTag.resource_id == old_id,
        ).all()
        for tag in tags:
            self.db.add(ResourceTag(
                resource_type=resource_type,
                resource_id=new_resource_id,
                tag=tag.tag,
                position=tag.position,
            ))

        attributes = self.db.query(ResourceAttribute).filter(
            ResourceAttribute.resource_type == resource_type,
            ResourceAttribute.resource_id == old_id,
        ).all()
        for attr in attributes:
            self.db.add(ResourceAttribute(
                resource_type=resource_type,
                resource_id=new_resource_id,
                key=attr.key,
                value_type=attr.value_type,
                value_number=attr.value_number,
                value_string=attr.value_string,
                value_blob=attr.value_blob,
            ))

    def _live_children(self, child: ChildSpec, source_id: str) -> List:
        root_column = next(iter(child.parent_refs))
        model = child.model
        return self.db.query(model).filter(
            getattr(model, root_column) == source_id,
            model.deleted.is_(False),
        ).order_by(model.date_created, model.id).all()

    def _compensate(self, created: List[Tuple[str, type, str]]) -> None:
        """Delete every row created by a failed copy, children before parents."""
        if not created:
            return
        logger.warning(f"Deep copy of {self.resource_type} failed, removing {len(created)} copied rows")
        try:
            for resource_type, model, resource_id in reversed(created):
                self.db.query(ResourceTag).filter(
                    ResourceTag.resource_type == resource_type,
                    ResourceTag.resource_id == resource_id,
                ).delete(synchronize_session=False)
                self.db.query(ResourceAttribute).filter(
                    ResourceAttribute.resource_type == resource_type,
                    ResourceAttribute.resource_id == resource_id,
                ).delete(synchronize_session=False)
                self.db.query(model).filter(model.id == resource_id).delete(synchronize_session=False)
            self.db.commit()
        except Exception as cleanup_error:
            self.db.rollback()
            logger.error(f"Compensating delete after failed deep copy did not complete: {cleanup_error}")

    def deep_copy(
        self,
        source_id: str,
        new_owner: str,
        workspace: Optional[str] = None,
        root_overrides: Optional[Dict[str, Any]] = None,
    ):
        """
        Copy a live resource and its children to ``new_owner``.

        The copy lands in ``workspace`` (the new owner's default workspace
        when omitted) with PRIVATE visibility. Returns the new root row.
        ``root_overrides`` replaces further columns on the new root only.

        Children get strictly increasing creation stamps in the order they
        are copied, so listings ordered by ``date_created`` keep the
        source's order.
        """
        source = self.db.query(self.model).filter(
            self.model.id == source_id,
            self.model.deleted.is_(False),
        ).first()
        if source is None:
            raise NotFound(f"{self.resource_type.capitalize()} not found")

        workspace = workspace or new_owner
        chunk_size = max(1, self.settings.copy_chunk_size)
        created: List[Tuple[str, type, str]] = []
        id_map: Dict[str, Dict[str, str]] = {}
        now = now_millis()
        ordinal = 0

        try:
            root = self._clone(
                source,
                now,
                owner=new_owner,
                workspace=workspace,
                name=self._unique_name(source.name, new_owner, workspace),
                visibility=ResourceVisibility.PRIVATE,
                **(root_overrides or {}),
            )
            self.db.add(root)
            created.append((self.resource_type, self.model, root.id))
            id_map[self.resource_type] = {source.id: root.id}
            self._copy_tags_and_attributes(self.resource_type, source.id, root.id)
            self.db.commit()

            pending = 0
            for child in self.children:
                level_map = id_map.setdefault(child.resource_type, {})
                for row in self._live_children(child, source.id):
                    refs = {}
                    for column, ref_type in child.parent_refs.items():
                        refs[column] = id_map.get(ref_type, {}).get(getattr(row, column))
                    if any(value is None for value in refs.values()):
                        # parent was deleted, so this child is not part of the live tree
                        logger.debug(f"Skipping orphaned {child.resource_type} {row.id}")
                        continue

                    ordinal += 1
                    clone = self._clone(row, now + ordinal, owner=new_owner, **refs)
                    self.db.add(clone)
                    created.append((child.resource_type, child.model, clone.id))
                    level_map[row.id] = clone.id
                    self._copy_tags_and_attributes(child.resource_type, row.id, clone.id)

                    pending += 1
                    if pending >= chunk_size:
                        self.db.commit()
                        pending = 0
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            self._compensate(created)
            if isinstance(e, CatalogError):
                raise
            raise InternalError(f"Failed to copy {self.resource_type} {source_id}") from e

        copied = sum(len(m) for m in id_map.values())
        logger.info(f"Copied {self.resource_type} {source_id} to {root.id} for {new_owner} ({copied} rows)")
        self.db.refresh(root)
        return root
