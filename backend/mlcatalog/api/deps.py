# backend/mlcatalog/api/deps.py
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from mlcatalog.database import get_db
from mlcatalog.schemas.caller import Caller
from mlcatalog.services.audit_service import AuditService
from mlcatalog.services.authorization import (
    AuthorizationClient, HttpAuthorizationClient, ScopeResolver, get_authorization_client,
)
from mlcatalog.services.dataset_service import DatasetAccessor
from mlcatalog.services.project_service import ProjectAccessor


def get_optional_caller(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_workspace: Annotated[Optional[str], Header()] = None,
    x_user_roles: Annotated[Optional[str], Header()] = None,
) -> Optional[Caller]:
    """
    Build the caller from gateway headers.

    Authentication happens upstream; the gateway forwards the verified
    identity. Missing ``X-User-Id`` means an anonymous request.
    """
    if not x_user_id:
        return None
    roles = [r.strip() for r in (x_user_roles or "").split(",") if r.strip()]
    return Caller(id=x_user_id, workspace=x_user_workspace or None, roles=roles)


def get_current_caller(
    caller: Annotated[Optional[Caller], Depends(get_optional_caller)],
) -> Caller:
    if caller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    return caller


def get_authz_client(
    db: Annotated[Session, Depends(get_db)],
) -> Generator[AuthorizationClient, None, None]:
    client = get_authorization_client(db)
    try:
        yield client
    finally:
        if isinstance(client, HttpAuthorizationClient):
            client.close()


def get_scope_resolver(
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[AuthorizationClient, Depends(get_authz_client)],
) -> ScopeResolver:
    return ScopeResolver(db, client)


def get_project_accessor(
    db: Annotated[Session, Depends(get_db)],
    resolver: Annotated[ScopeResolver, Depends(get_scope_resolver)],
) -> ProjectAccessor:
    return ProjectAccessor(db, resolver)


def get_dataset_accessor(
    db: Annotated[Session, Depends(get_db)],
    resolver: Annotated[ScopeResolver, Depends(get_scope_resolver)],
) -> DatasetAccessor:
    return DatasetAccessor(db, resolver)


def get_audit_service(db: Annotated[Session, Depends(get_db)]) -> AuditService:
    return AuditService(db)


# Type aliases for common dependencies
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
OptionalCaller = Annotated[Optional[Caller], Depends(get_optional_caller)]
AuthzClient = Annotated[AuthorizationClient, Depends(get_authz_client)]
Resolver = Annotated[ScopeResolver, Depends(get_scope_resolver)]
Projects = Annotated[ProjectAccessor, Depends(get_project_accessor)]
Datasets = Annotated[DatasetAccessor, Depends(get_dataset_accessor)]
Audit = Annotated[AuditService, Depends(get_audit_service)]
