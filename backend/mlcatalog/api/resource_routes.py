# backend/mlcatalog/api/resource_routes.py
"""Routes every top-level resource shares: reads, scalar updates, tags,
attributes, delete, copy, collaborators and audit history."""
from typing import Annotated, Callable, List

from fastapi import APIRouter, Depends, Query, status

from mlcatalog.api.deps import Audit, AuthzClient, CurrentCaller, OptionalCaller, Resolver
from mlcatalog.errors import InvalidArgument, PermissionDenied
from mlcatalog.models.audit_log import AuditAction
from mlcatalog.models.resource import ResourceAction
from mlcatalog.schemas.audit_log import AuditLogResponse, AuditLogsResponse
from mlcatalog.schemas.resource import (
    AttributesRequest, AttributeUpdateRequest, AttributeValue, CollaboratorGrant,
    DeepCopyRequest, DeleteAttributesRequest, DeleteResourcesRequest, DeleteResourcesResponse,
    DeleteTagsRequest, DescriptionUpdate, NameUpdate, TagsRequest, VisibilityUpdate,
)
from mlcatalog.services.authorization import DatabaseAuthorizationClient
from mlcatalog.services.resource_service import ResourceAccessor


def add_resource_routes(
    router: APIRouter,
    resource_type: str,
    accessor_dependency: Callable,
    response_model,
    attribute_result_model,
    result_field: str,
) -> None:
    """Register the shared routes on ``router``. Call after the type's own
    fixed-path routes so they win over ``/{resource_id}``."""
    Accessor = Annotated[ResourceAccessor, Depends(accessor_dependency)]

    # ========================================================================
    # Read / scalar updates
    # ========================================================================

    @router.get("/{resource_id}", response_model=response_model)
    def get_resource(resource_id: str, accessor: Accessor, resolver: Resolver, caller: OptionalCaller):
        resolver.check_permission(caller, ResourceAction.READ, resource_type, resource_id)
        return accessor.get_by_id(resource_id)

    @router.patch("/{resource_id}/name", response_model=response_model)
    def update_name(
        resource_id: str, data: NameUpdate, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        result = accessor.update_name(resource_id, data.name)
        audit.record(AuditAction.UPDATE, resource_type, [resource_id], caller.id, {"field": "name"})
        return result

    @router.patch("/{resource_id}/description", response_model=response_model)
    def update_description(
        resource_id: str, data: DescriptionUpdate, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        result = accessor.update_description(resource_id, data.description)
        audit.record(AuditAction.UPDATE, resource_type, [resource_id], caller.id, {"field": "description"})
        return result

    @router.patch("/{resource_id}/visibility", response_model=response_model)
    def update_visibility(
        resource_id: str, data: VisibilityUpdate, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        result = accessor.update_visibility(resource_id, data.visibility)
        audit.record(
            AuditAction.UPDATE, resource_type, [resource_id], caller.id,
            {"field": "visibility", "value": data.visibility.value},
        )
        return result

    # ========================================================================
    # Tags
    # ========================================================================

    @router.get("/{resource_id}/tags", response_model=List[str])
    def get_tags(resource_id: str, accessor: Accessor, resolver: Resolver, caller: OptionalCaller):
        resolver.check_permission(caller, ResourceAction.READ, resource_type, resource_id)
        return accessor.mutations.get_tags(resource_id)

    @router.post("/{resource_id}/tags", response_model=response_model)
    def add_tags(
        resource_id: str, data: TagsRequest, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        """Add tags; tags already present are left where they are."""
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        result = accessor.mutations.add_tags(resource_id, data.tags)
        audit.record(AuditAction.UPDATE, resource_type, [resource_id], caller.id, {"added_tags": data.tags})
        return result

    @router.post("/{resource_id}/tags/delete", response_model=response_model)
    def delete_tags(
        resource_id: str, data: DeleteTagsRequest, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        result = accessor.mutations.delete_tags(resource_id, data.tags, data.delete_all)
        audit.record(
            AuditAction.UPDATE, resource_type, [resource_id], caller.id,
            {"deleted_tags": data.tags, "delete_all": data.delete_all},
        )
        return result

    # ========================================================================
    # Attributes
    # ========================================================================

    @router.get("/{resource_id}/attributes", response_model=List[AttributeValue])
    def get_attributes(
        resource_id: str, accessor: Accessor, resolver: Resolver, caller: OptionalCaller,
        keys: Annotated[List[str], Query()] = [],
        get_all: bool = False,
    ):
        resolver.check_permission(caller, ResourceAction.READ, resource_type, resource_id)
        return accessor.mutations.get_attributes(resource_id, keys, get_all)

    @router.post("/{resource_id}/attributes", response_model=response_model)
    def add_attributes(
        resource_id: str, data: AttributesRequest, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        result = accessor.mutations.add_attributes(resource_id, data.attributes)
        audit.record(
            AuditAction.UPDATE, resource_type, [resource_id], caller.id,
            {"added_attributes": [a.key for a in data.attributes]},
        )
        return result

    @router.put("/{resource_id}/attributes", response_model=attribute_result_model)
    def update_attribute(
        resource_id: str, data: AttributeUpdateRequest, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        snapshot, rows_affected = accessor.mutations.update_attribute(resource_id, data.attribute)
        if rows_affected:
            audit.record(
                AuditAction.UPDATE, resource_type, [resource_id], caller.id,
                {"updated_attribute": data.attribute.key},
            )
        return attribute_result_model(**{result_field: snapshot, "rows_affected": rows_affected})

    @router.post("/{resource_id}/attributes/delete", response_model=response_model)
    def delete_attributes(
        resource_id: str, data: DeleteAttributesRequest, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        result = accessor.mutations.delete_attributes(resource_id, data.keys, data.delete_all)
        audit.record(
            AuditAction.UPDATE, resource_type, [resource_id], caller.id,
            {"deleted_attributes": data.keys, "delete_all": data.delete_all},
        )
        return result

    # ========================================================================
    # Delete / copy
    # ========================================================================

    def _delete(ids: List[str], accessor: ResourceAccessor, resolver, caller, audit) -> DeleteResourcesResponse:
        # Deleted ids are skipped here; accessor.delete treats them as no-ops
        for live_id in accessor.live_ids(ids):
            resolver.check_permission(caller, ResourceAction.DELETE, resource_type, live_id)
        deleted = accessor.delete(ids)
        audit.record(AuditAction.DELETE, resource_type, deleted, caller.id)
        return DeleteResourcesResponse(deleted=deleted)

    @router.post("/delete", response_model=DeleteResourcesResponse)
    def delete_resources(
        data: DeleteResourcesRequest, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        return _delete(data.ids, accessor, resolver, caller, audit)

    @router.delete("/{resource_id}", response_model=DeleteResourcesResponse)
    def delete_resource(
        resource_id: str, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        return _delete([resource_id], accessor, resolver, caller, audit)

    @router.post("/{resource_id}/copy", response_model=response_model, status_code=status.HTTP_201_CREATED)
    def deep_copy(
        resource_id: str, data: DeepCopyRequest, accessor: Accessor,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        """Copy a readable resource and its children into the caller's workspace."""
        resolver.check_permission(caller, ResourceAction.READ, resource_type, resource_id)
        copy = accessor.deep_copy(resource_id, caller, data.workspace)
        audit.record(AuditAction.CREATE, resource_type, [copy.id], caller.id, {"source_id": resource_id})
        return copy

    # ========================================================================
    # Collaborators / audit history
    # ========================================================================

    def _require_owner(resource_id: str, resolver, caller) -> None:
        resource = resolver.check_permission(caller, ResourceAction.UPDATE, resource_type, resource_id)
        if resource.owner != caller.id and not caller.is_admin:
            raise PermissionDenied("Only the owner or admin can manage collaborators")

    @router.post("/{resource_id}/collaborators", status_code=status.HTTP_201_CREATED)
    def add_collaborator(
        resource_id: str, data: CollaboratorGrant, client: AuthzClient,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        _require_owner(resource_id, resolver, caller)
        if not isinstance(client, DatabaseAuthorizationClient):
            raise InvalidArgument("Collaborators are managed by the external authorization service")
        client.grant(resource_type, resource_id, data.principal, data.action)
        audit.record(
            AuditAction.UPDATE, resource_type, [resource_id], caller.id,
            {"collaborator": data.principal, "action": data.action.value},
        )
        return {"message": f"Granted {data.action.value} on {resource_type} to '{data.principal}'"}

    @router.delete("/{resource_id}/collaborators/{principal}")
    def remove_collaborator(
        resource_id: str, principal: str, client: AuthzClient,
        resolver: Resolver, caller: CurrentCaller, audit: Audit,
    ):
        _require_owner(resource_id, resolver, caller)
        if not isinstance(client, DatabaseAuthorizationClient):
            raise InvalidArgument("Collaborators are managed by the external authorization service")
        removed = client.revoke(resource_type, resource_id, principal)
        audit.record(AuditAction.UPDATE, resource_type, [resource_id], caller.id, {"removed_collaborator": principal})
        return {"message": f"Removed {removed} grant(s) for '{principal}'"}

    @router.get("/{resource_id}/audit-logs", response_model=AuditLogsResponse)
    def get_audit_logs(
        resource_id: str, resolver: Resolver, caller: CurrentCaller, audit: Audit,
        limit: int = Query(100, ge=1, le=1000),
        offset: int = Query(0, ge=0),
    ):
        resolver.check_permission(caller, ResourceAction.READ, resource_type, resource_id)
        logs, total = audit.get_logs(resource_type, resource_id, limit=limit, offset=offset)
        return AuditLogsResponse(logs=[AuditLogResponse.model_validate(log) for log in logs], total=total)
