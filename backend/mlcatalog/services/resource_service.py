# backend/mlcatalog/services/resource_service.py
"""
Shared accessor for top-level catalog resources.

Subclasses name their model, resource_type, response schema and child
levels; everything else (create, find, delete cascade, copy, scalar
updates) is generic. Permission checks happen before these methods are
called, except ``find`` which resolves its own scope.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from mlcatalog.config import Settings, get_settings
from mlcatalog.database import run_with_retry
from mlcatalog.errors import AlreadyExists, InvalidArgument, NotFound
from mlcatalog.models.base import now_millis
from mlcatalog.models.resource import ResourceAction, ResourceVisibility
from mlcatalog.models.resource_attribute import ResourceAttribute, ValueType
from mlcatalog.models.resource_tag import ResourceTag
from mlcatalog.schemas.caller import Caller
from mlcatalog.schemas.resource import FilterClause, FilterOperator, FindRequest
from mlcatalog.services.authorization import ScopeResolver
from mlcatalog.services.deep_copy import ChildSpec, DeepCopyOperator
from mlcatalog.services.mutations import MutationAccessor, as_attribute_value
from mlcatalog.services.predicate_compiler import (
    compile_predicates, validate_attribute_key, validate_tags,
)
from mlcatalog.services.query_executor import PaginatedQueryExecutor
from mlcatalog.services.snapshots import to_response, to_responses

logger = logging.getLogger(__name__)


def unique_in_order(values: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class ResourceAccessor:
    model = None
    resource_type: str = ""
    response_schema = None
    children: List[ChildSpec] = []

    def __init__(self, db: Session, resolver: ScopeResolver, settings: Optional[Settings] = None):
        self.db = db
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.mutations = MutationAccessor(db, self.model, self.resource_type, self.response_schema)
        self.executor = PaginatedQueryExecutor(db)

    @property
    def label(self) -> str:
        return self.resource_type.replace("_", " ").capitalize()

    def _snapshot(self, resource):
        return to_response(self.db, resource, self.resource_type, self.response_schema)

    def _live(self, resource_id: str):
        resource = self.db.query(self.model).filter(
            self.model.id == resource_id,
            self.model.deleted.is_(False),
        ).first()
        if resource is None:
            raise NotFound(f"{self.label} not found")
        return resource

    def _check_name_available(
        self, name: str, owner: str, workspace: str, exclude_id: Optional[str] = None
    ) -> None:
        query = self.db.query(self.model.id).filter(
            self.model.name == name,
            self.model.owner == owner,
            self.model.workspace == workspace,
            self.model.deleted.is_(False),
        )
        if exclude_id:
            query = query.filter(self.model.id != exclude_id)
        if query.first():
            raise AlreadyExists(f"{self.label} with name '{name}' already exists in workspace '{workspace}'")

    def _extra_fields(self, payload) -> Dict[str, Any]:
        """Type-specific columns taken from a create payload."""
        return {}

    def _copy_overrides(self) -> Dict[str, Any]:
        """Columns reset on the root of a deep copy."""
        return {}

    # ------------------------------------------------------------------
    # create / read
    # ------------------------------------------------------------------

    def insert(self, caller: Caller, payload):
        name = (payload.name or "").strip()
        if not name:
            raise InvalidArgument(f"{self.label} name not found in request")
        tags = unique_in_order(validate_tags(payload.tags, self.settings.tag_max_length))
        attributes = [as_attribute_value(a) for a in payload.attributes]
        keys = [validate_attribute_key(a.key, self.settings.attribute_key_max_length) for a in attributes]
        if len(set(keys)) != len(keys):
            raise InvalidArgument("Duplicate attribute keys in request")

        workspace = payload.workspace or caller.default_workspace
        self._check_name_available(name, caller.id, workspace)

        now = now_millis()
        resource = self.model(
            owner=caller.id,
            name=name,
            description=payload.description or "",
            visibility=payload.visibility,
            workspace=workspace,
            date_created=now,
            date_updated=now,
            **self._extra_fields(payload),
        )
        self.db.add(resource)
        self.db.flush()

        for position, tag in enumerate(tags):
            self.db.add(ResourceTag(
                resource_type=self.resource_type,
                resource_id=resource.id,
                tag=tag,
                position=position,
            ))
        for attribute in attributes:
            row = ResourceAttribute(
                resource_type=self.resource_type,
                resource_id=resource.id,
                key=attribute.key,
            )
            row.set_value(attribute.value_type, attribute.value)
            self.db.add(row)
        self.db.commit()
        self.db.refresh(resource)

        logger.info(f"Created {self.resource_type} {resource.id} '{name}' for {caller.id} in {workspace}")
        return self._snapshot(resource)

    def get_by_id(self, resource_id: str):
        return self._snapshot(self._live(resource_id))

    def find(self, caller: Optional[Caller], request: FindRequest) -> Tuple[List, int]:
        """
        Run a find request: compile filters, resolve the READ scope, execute.

        Returns:
            Tuple of (snapshots for the requested page, total matching records)
        """
        clauses = list(request.filters)
        if request.workspace:
            clauses.append(FilterClause(
                key="workspace",
                operator=FilterOperator.EQ,
                value_type=ValueType.STRING,
                value=request.workspace,
            ))
        tree = compile_predicates(
            clauses,
            tag_max_length=self.settings.tag_max_length,
            attribute_key_max_length=self.settings.attribute_key_max_length,
        )
        scope = self.resolver.resolve(
            caller,
            ResourceAction.READ,
            self.resource_type,
            workspace=request.workspace,
            visibility=request.visibility,
            explicit_ids=request.ids or None,
        )
        rows, total = self.executor.execute(
            self.model,
            self.resource_type,
            tree,
            scope,
            sort_key=request.sort_key,
            ascending=request.ascending,
            page_number=request.page_number,
            page_limit=request.page_limit,
        )
        return to_responses(self.db, rows, self.resource_type, self.response_schema), total

    def get_by_name(self, caller: Caller, name: str, workspace: Optional[str] = None):
        """
        Look a name up across everything the caller can read.

        Returns:
            Tuple of (the caller's own resource or None, resources shared with the caller)
        """
        if not name:
            raise InvalidArgument(f"{self.label} name not found in request")
        items, _ = self.find(caller, FindRequest(
            filters=[FilterClause(key="name", value=name)],
            workspace=workspace,
        ))
        if not items:
            raise NotFound(f"{self.label} with name '{name}' not found")

        home = workspace or caller.default_workspace
        owned = [i for i in items if i.owner == caller.id]
        own = next((i for i in owned if i.workspace == home), owned[0] if owned else None)
        shared = [i for i in items if i.owner != caller.id]
        return own, shared

    def get_public(self, workspace: Optional[str] = None, page_number: int = 0, page_limit: int = 0):
        return self.find(None, FindRequest(
            workspace=workspace,
            visibility=[ResourceVisibility.PUBLIC],
            page_number=page_number,
            page_limit=page_limit,
        ))

    # ------------------------------------------------------------------
    # scalar updates
    # ------------------------------------------------------------------

    def update_name(self, resource_id: str, name: str):
        name = (name or "").strip()
        if not name:
            raise InvalidArgument(f"{self.label} name not found in request")
        resource = self._live(resource_id)
        if resource.name == name:
            return self._snapshot(resource)
        self._check_name_available(name, resource.owner, resource.workspace, exclude_id=resource_id)
        return self.mutations.update_fields(resource_id, name=name)

    def update_description(self, resource_id: str, description: Optional[str]):
        return self.mutations.update_fields(resource_id, description=description or "")

    def update_visibility(self, resource_id: str, visibility: ResourceVisibility):
        return self.mutations.update_fields(resource_id, visibility=visibility)

    # ------------------------------------------------------------------
    # delete / copy
    # ------------------------------------------------------------------

    def live_ids(self, resource_ids: Sequence[str]) -> List[str]:
        """The subset of ``resource_ids`` that exist and are not deleted."""
        if not resource_ids:
            return []
        rows = self.db.query(self.model.id).filter(
            self.model.id.in_(list(resource_ids)),
            self.model.deleted.is_(False),
        ).all()
        return sorted(r[0] for r in rows)

    def delete(self, resource_ids: Sequence[str]) -> List[str]:
        """
        Soft-delete resources and every child row under them.

        Already-deleted ids are no-ops; unknown ids raise NotFound before
        anything changes. Returns the ids that were live before the call.
        """
        resource_ids = unique_in_order(list(resource_ids))
        if not resource_ids:
            raise InvalidArgument(f"{self.label} ids not found in request")

        def operation():
            rows = self.db.query(self.model).filter(
                self.model.id.in_(resource_ids)
            ).with_for_update().all()
            missing = set(resource_ids) - {r.id for r in rows}
            if missing:
                raise NotFound(f"{self.label} not found: {', '.join(sorted(missing))}")

            live = [r for r in rows if not r.deleted]
            if not live:
                self.db.commit()
                return []

            now = now_millis()
            live_ids = [r.id for r in live]
            for resource in live:
                resource.deleted = True
                resource.date_updated = max(now, resource.date_updated or 0)
            for child in self.children:
                parent_column = getattr(child.model, next(iter(child.parent_refs)))
                self.db.query(child.model).filter(
                    parent_column.in_(live_ids),
                    child.model.deleted.is_(False),
                ).update({child.model.deleted: True, child.model.date_updated: now}, synchronize_session=False)
            self.db.commit()
            return live_ids

        deleted = run_with_retry(self.db, operation)
        logger.info(f"Deleted {len(deleted)} {self.resource_type}(s): {deleted}")
        return deleted

    def deep_copy(self, source_id: str, caller: Caller, workspace: Optional[str] = None):
        operator = DeepCopyOperator(
            self.db, self.model, self.resource_type, self.children, settings=self.settings
        )
        copy = operator.deep_copy(
            source_id, caller.id, workspace or caller.default_workspace,
            root_overrides=self._copy_overrides(),
        )
        return self._snapshot(copy)
