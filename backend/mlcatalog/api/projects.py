# backend/mlcatalog/api/projects.py
from typing import List, Optional
import logging

from fastapi import APIRouter, status

from mlcatalog.api.deps import Audit, CurrentCaller, Projects, Resolver, get_project_accessor
from mlcatalog.api.resource_routes import add_resource_routes
from mlcatalog.models.audit_log import AuditAction
from mlcatalog.models.resource import ResourceAction
from mlcatalog.schemas.project import (
    ChildResponse, CodeVersion, ExperimentCreate, ExperimentRunCreate, ProjectAttributeUpdateResult,
    ProjectByNameResponse, ProjectCreate, ProjectPage, ProjectResponse, ProjectSummary,
    ReadmeUpdate, ShortNameResponse, ShortNameUpdate,
)
from mlcatalog.schemas.resource import FindRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(data: ProjectCreate, projects: Projects, caller: CurrentCaller, audit: Audit):
    project = projects.insert(caller, data)
    audit.record(AuditAction.CREATE, "project", [project.id], caller.id, {"name": project.name})
    return project


@router.post("/find", response_model=ProjectPage)
def find_projects(request: FindRequest, projects: Projects, caller: CurrentCaller):
    """
    Find projects visible to the caller.

    Visibility rules:
    - Admins see ALL projects
    - Users see projects they own
    - Users see projects shared with them by a collaborator grant
    - Users see PUBLIC projects when the request asks for PUBLIC visibility
    """
    items, total = projects.find(caller, request)
    return ProjectPage(items=items, total_records=total)


@router.get("/public", response_model=ProjectPage)
def list_public_projects(
    projects: Projects,
    workspace: Optional[str] = None,
    page_number: int = 0,
    page_limit: int = 0,
):
    items, total = projects.get_public(workspace, page_number, page_limit)
    return ProjectPage(items=items, total_records=total)


@router.get("/by-name", response_model=ProjectByNameResponse)
def get_project_by_name(name: str, projects: Projects, caller: CurrentCaller, workspace: Optional[str] = None):
    own, shared = projects.get_by_name(caller, name, workspace)
    return ProjectByNameResponse(project_by_user=own, shared_projects=shared)


@router.patch("/{project_id}/readme", response_model=ProjectResponse)
def set_readme(project_id: str, data: ReadmeUpdate, projects: Projects,
               resolver: Resolver, caller: CurrentCaller, audit: Audit):
    resolver.check_permission(caller, ResourceAction.UPDATE, "project", project_id)
    project = projects.set_readme(project_id, data.readme_text)
    audit.record(AuditAction.UPDATE, "project", [project_id], caller.id, {"field": "readme_text"})
    return project


@router.get("/{project_id}/summary", response_model=ProjectSummary)
def get_summary(project_id: str, projects: Projects, resolver: Resolver, caller: CurrentCaller):
    resolver.check_permission(caller, ResourceAction.READ, "project", project_id)
    return projects.summary(project_id)


@router.patch("/{project_id}/short-name", response_model=ProjectResponse)
def set_short_name(project_id: str, data: ShortNameUpdate, projects: Projects,
                   resolver: Resolver, caller: CurrentCaller, audit: Audit):
    resolver.check_permission(caller, ResourceAction.UPDATE, "project", project_id)
    project = projects.set_short_name(project_id, data.short_name)
    audit.record(AuditAction.UPDATE, "project", [project_id], caller.id, {"field": "short_name"})
    return project


@router.get("/{project_id}/short-name", response_model=ShortNameResponse)
def get_short_name(project_id: str, projects: Projects, resolver: Resolver, caller: CurrentCaller):
    resolver.check_permission(caller, ResourceAction.READ, "project", project_id)
    return ShortNameResponse(short_name=projects.get_short_name(project_id))


@router.post("/{project_id}/code-version", response_model=ProjectResponse)
def log_code_version(project_id: str, data: CodeVersion, projects: Projects,
                     resolver: Resolver, caller: CurrentCaller, audit: Audit):
    """Record the code version a project was built from. A project keeps the first one logged."""
    resolver.check_permission(caller, ResourceAction.UPDATE, "project", project_id)
    project = projects.log_code_version(project_id, data)
    audit.record(AuditAction.UPDATE, "project", [project_id], caller.id, {"field": "code_version"})
    return project


# ============================================================================
# Experiments / runs
# ============================================================================

@router.get("/{project_id}/experiments", response_model=List[ChildResponse])
def list_experiments(project_id: str, projects: Projects, resolver: Resolver, caller: CurrentCaller):
    resolver.check_permission(caller, ResourceAction.READ, "project", project_id)
    return projects.list_experiments(project_id)


@router.post("/{project_id}/experiments", response_model=ChildResponse, status_code=status.HTTP_201_CREATED)
def create_experiment(project_id: str, data: ExperimentCreate, projects: Projects,
                      resolver: Resolver, caller: CurrentCaller, audit: Audit):
    resolver.check_permission(caller, ResourceAction.UPDATE, "project", project_id)
    experiment = projects.add_experiment(project_id, caller, data)
    audit.record(AuditAction.CREATE, "experiment", [experiment.id], caller.id, {"project_id": project_id})
    return experiment


@router.get("/{project_id}/experiments/{experiment_id}/runs", response_model=List[ChildResponse])
def list_experiment_runs(project_id: str, experiment_id: str, projects: Projects,
                         resolver: Resolver, caller: CurrentCaller):
    resolver.check_permission(caller, ResourceAction.READ, "project", project_id)
    return projects.list_experiment_runs(project_id, experiment_id)


@router.post(
    "/{project_id}/experiments/{experiment_id}/runs",
    response_model=ChildResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_experiment_run(project_id: str, experiment_id: str, data: ExperimentRunCreate,
                          projects: Projects, resolver: Resolver, caller: CurrentCaller, audit: Audit):
    resolver.check_permission(caller, ResourceAction.UPDATE, "project", project_id)
    run = projects.add_experiment_run(project_id, experiment_id, caller, data)
    audit.record(
        AuditAction.CREATE, "experiment_run", [run.id], caller.id,
        {"project_id": project_id, "experiment_id": experiment_id},
    )
    return run


add_resource_routes(
    router,
    "project",
    get_project_accessor,
    ProjectResponse,
    ProjectAttributeUpdateResult,
    "project",
)
