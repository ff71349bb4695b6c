# backend/mlcatalog/services/authorization.py
"""
Authorization scope resolution.

A scope is the set of resource ids a caller may act on for one action. It is
computed per request from three sources and never cached:

  1. ids the authorization collaborator says were shared with the caller
  2. ids the caller owns (owners always retain access, grant or not)
  3. publicly visible ids, when the request asks for PUBLIC visibility

Collaborator failures fail closed: the resolver raises Unavailable rather
than narrowing to owned-only or widening to unrestricted.
"""
import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, Optional, Set

import httpx
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from mlcatalog.config import Settings, get_settings
from mlcatalog.errors import CatalogError, InvalidArgument, NotFound, PermissionDenied, Unavailable
from mlcatalog.models import SCOPED_RESOURCE_TYPES
from mlcatalog.models.access_grant import AccessGrant
from mlcatalog.models.resource import ResourceAction, ResourceVisibility
from mlcatalog.schemas.caller import Caller

logger = logging.getLogger(__name__)

# A grant for the key action also satisfies every action in its list
IMPLIED_ACTIONS = {
    ResourceAction.READ: [ResourceAction.READ, ResourceAction.UPDATE, ResourceAction.DELETE],
    ResourceAction.UPDATE: [ResourceAction.UPDATE, ResourceAction.DELETE],
    ResourceAction.DELETE: [ResourceAction.DELETE],
}


class AuthorizationScope(BaseModel):
    """Result of one resolution. ``ids`` is None when unrestricted."""
    model_config = ConfigDict(frozen=True)

    action: ResourceAction
    ids: Optional[FrozenSet[str]] = None

    @classmethod
    def unrestricted(cls, action: ResourceAction) -> "AuthorizationScope":
        return cls(action=action, ids=None)

    @classmethod
    def restricted_to(cls, action: ResourceAction, ids: Iterable[str]) -> "AuthorizationScope":
        return cls(action=action, ids=frozenset(ids))

    @property
    def is_unrestricted(self) -> bool:
        return self.ids is None

    @property
    def is_empty(self) -> bool:
        return self.ids is not None and not self.ids


# ============================================================================
# Authorization collaborators
# ============================================================================

class AuthorizationClient(ABC):
    @abstractmethod
    def accessible_ids(self, caller: Caller, action: ResourceAction, resource_type: str) -> Set[str]: ...

    @abstractmethod
    def check_permission(
        self, caller: Caller, action: ResourceAction, resource_type: str, resource_id: str
    ) -> bool: ...


class HttpAuthorizationClient(AuthorizationClient):
    """Talks to a remote authorization service over HTTP with a hard timeout."""

    def __init__(self, base_url: str, timeout: float, client: Optional[httpx.Client] = None):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def _post(self, path: str, payload: dict) -> dict:
        try:
            resp = self._client.post(path, json=payload)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as e:
            logger.error(f"Authorization service timed out on {path}")
            raise Unavailable("Authorization service timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Authorization service call to {path} failed: {e}")
            raise Unavailable("Authorization service is unavailable") from e
        except ValueError as e:
            logger.error(f"Authorization service returned a malformed body for {path}")
            raise Unavailable("Authorization service returned a malformed response") from e

    def accessible_ids(self, caller: Caller, action: ResourceAction, resource_type: str) -> Set[str]:
        data = self._post("/v1/authz/accessible-resources", {
            "principal": caller.id,
            "roles": caller.roles,
            "action": action.value,
            "resource_type": resource_type,
        })
        return set(data.get("resource_ids", []))

    def check_permission(
        self, caller: Caller, action: ResourceAction, resource_type: str, resource_id: str
    ) -> bool:
        data = self._post("/v1/authz/check", {
            "principal": caller.id,
            "roles": caller.roles,
            "action": action.value,
            "resource_type": resource_type,
            "resource_id": resource_id,
        })
        return bool(data.get("allowed", False))

    def close(self) -> None:
        self._client.close()


class DatabaseAuthorizationClient(AuthorizationClient):
    """Answers from the access_grants table (collaborator sharing)."""

    def __init__(self, db: Session):
        self.db = db

    def accessible_ids(self, caller: Caller, action: ResourceAction, resource_type: str) -> Set[str]:
        rows = self.db.query(AccessGrant.resource_id).filter(
            AccessGrant.resource_type == resource_type,
            AccessGrant.principal == caller.id,
            AccessGrant.action.in_([a.value for a in IMPLIED_ACTIONS[action]]),
        ).distinct().all()
        return {r[0] for r in rows}

    def check_permission(
        self, caller: Caller, action: ResourceAction, resource_type: str, resource_id: str
    ) -> bool:
        grant = self.db.query(AccessGrant.id).filter(
            AccessGrant.resource_type == resource_type,
            AccessGrant.resource_id == resource_id,
            AccessGrant.principal == caller.id,
            AccessGrant.action.in_([a.value for a in IMPLIED_ACTIONS[action]]),
        ).first()
        return grant is not None

    def grant(self, resource_type: str, resource_id: str, principal: str, action: ResourceAction) -> None:
        existing = self.db.query(AccessGrant).filter(
            AccessGrant.resource_type == resource_type,
            AccessGrant.resource_id == resource_id,
            AccessGrant.principal == principal,
            AccessGrant.action == action.value,
        ).first()
        if existing:
            return
        self.db.add(AccessGrant(
            resource_type=resource_type,
            resource_id=resource_id,
            principal=principal,
            action=action.value,
        ))
        self.db.commit()

    def revoke(self, resource_type: str, resource_id: str, principal: str) -> int:
        count = self.db.query(AccessGrant).filter(
            AccessGrant.resource_type == resource_type,
            AccessGrant.resource_id == resource_id,
            AccessGrant.principal == principal,
        ).delete(synchronize_session=False)
        self.db.commit()
        return count


def get_authorization_client(db: Session, settings: Optional[Settings] = None) -> AuthorizationClient:
    settings = settings or get_settings()
    if settings.authz_backend == "http":
        return HttpAuthorizationClient(settings.authz_url, settings.authz_timeout_seconds)
    return DatabaseAuthorizationClient(db)


# ============================================================================
# Scope resolution
# ============================================================================

class ScopeResolver:
    def __init__(self, db: Session, client: AuthorizationClient, settings: Optional[Settings] = None):
        self.db = db
        self.client = client
        self.settings = settings or get_settings()

    def _model(self, resource_type: str):
        model = SCOPED_RESOURCE_TYPES.get(resource_type)
        if model is None:
            raise InvalidArgument(f"Unknown resource type '{resource_type}'")
        return model

    def _owned_ids(self, model, owner: str, workspace: Optional[str]) -> Set[str]:
        query = self.db.query(model.id).filter(model.owner == owner, model.deleted.is_(False))
        if workspace:
            query = query.filter(model.workspace == workspace)
        return {r[0] for r in query.all()}

    def _ids_with_visibility(self, model, visibility: ResourceVisibility, workspace: Optional[str]) -> Set[str]:
        query = self.db.query(model.id).filter(
            model.visibility == visibility,
            model.deleted.is_(False),
        )
        if workspace:
            query = query.filter(model.workspace == workspace)
        return {r[0] for r in query.all()}

    def _in_workspace(self, model, ids: Set[str], workspace: str) -> Set[str]:
        if not ids:
            return set()
        rows = self.db.query(model.id).filter(model.id.in_(sorted(ids)), model.workspace == workspace).all()
        return {r[0] for r in rows}

    def _call_collaborator(self, fn, *args):
        try:
            return fn(*args)
        except CatalogError:
            raise
        except Exception as e:
            logger.error(f"Authorization collaborator failed: {e}")
            raise Unavailable("Authorization service is unavailable") from e

    def resolve(
        self,
        caller: Optional[Caller],
        action: ResourceAction,
        resource_type: str,
        workspace: Optional[str] = None,
        visibility: Optional[Iterable[ResourceVisibility]] = None,
        explicit_ids: Optional[Iterable[str]] = None,
    ) -> AuthorizationScope:
        """
        Compute the ids ``caller`` may perform ``action`` on.

        Args:
            caller: None for anonymous requests
            workspace: restricts owned/public/shared ids to one workspace
            visibility: include PUBLIC to merge in publicly visible ids, and
                ORGANIZATION for ids shared within the caller's workspace
            explicit_ids: a narrowing hint, intersected with the merged set

        Returns:
            An unrestricted scope for admins, otherwise an explicit id set
        """
        model = self._model(resource_type)
        visibility = set(visibility or [ResourceVisibility.PRIVATE])
        hint = frozenset(explicit_ids) if explicit_ids is not None else None

        if caller is None:
            if resource_type not in self.settings.public_listable_resource_types:
                raise PermissionDenied(f"Anonymous listing of {resource_type} resources is not permitted")
            ids = self._ids_with_visibility(model, ResourceVisibility.PUBLIC, workspace)
            if hint is not None:
                ids &= hint
            return AuthorizationScope.restricted_to(action, ids)

        if caller.is_admin:
            if hint is not None:
                return AuthorizationScope.restricted_to(action, hint)
            return AuthorizationScope.unrestricted(action)

        granted = set(self._call_collaborator(self.client.accessible_ids, caller, action, resource_type))
        if hint is not None:
            granted &= hint
        if workspace:
            granted = self._in_workspace(model, granted, workspace)

        ids = granted | self._owned_ids(model, caller.id, workspace)
        if ResourceVisibility.PUBLIC in visibility:
            ids |= self._ids_with_visibility(model, ResourceVisibility.PUBLIC, workspace)
        if ResourceVisibility.ORGANIZATION in visibility and workspace in (None, caller.default_workspace):
            # ORGANIZATION resources are visible inside the caller's own workspace only
            ids |= self._ids_with_visibility(model, ResourceVisibility.ORGANIZATION, caller.default_workspace)
        if hint is not None:
            ids &= hint

        logger.debug(f"Resolved {action.value} scope for {caller.id} on {resource_type}: {len(ids)} ids")
        return AuthorizationScope.restricted_to(action, ids)

    def check_permission(
        self,
        caller: Optional[Caller],
        action: ResourceAction,
        resource_type: str,
        resource_id: str,
    ):
        """
        Check ``caller`` may perform ``action`` on one live resource.

        Access granted if:
        1. Caller is admin
        2. Caller is the owner
        3. Action is READ and the resource is PUBLIC
        4. Action is READ and the resource is ORGANIZATION in the caller's workspace
        5. The authorization collaborator allows it

        Returns the resource, raises NotFound or PermissionDenied otherwise.
        """
        model = self._model(resource_type)
        resource = self.db.query(model).filter(model.id == resource_id, model.deleted.is_(False)).first()
        if resource is None:
            raise NotFound(f"{resource_type.capitalize()} not found")

        if action == ResourceAction.READ and resource.visibility == ResourceVisibility.PUBLIC:
            return resource
        if caller is None:
            raise PermissionDenied("Authentication required")
        if caller.is_admin or resource.owner == caller.id:
            return resource
        if (
            action == ResourceAction.READ
            and resource.visibility == ResourceVisibility.ORGANIZATION
            and resource.workspace == caller.default_workspace
        ):
            return resource

        allowed = self._call_collaborator(
            self.client.check_permission, caller, action, resource_type, resource_id
        )
        if not allowed:
            raise PermissionDenied(f"You don't have {action.value} access to this {resource_type}")
        return resource
