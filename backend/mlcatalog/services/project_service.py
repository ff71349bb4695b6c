# backend/mlcatalog/services/project_service.py
import logging
import re
from typing import List, Optional

from sqlalchemy import func

from mlcatalog.database import run_with_retry
from mlcatalog.errors import AlreadyExists, InvalidArgument, NotFound
from mlcatalog.models.base import now_millis
from mlcatalog.models.project import Experiment, ExperimentRun, Project
from mlcatalog.models.resource_attribute import encode_blob
from mlcatalog.schemas.caller import Caller
from mlcatalog.schemas.project import (
    CodeVersion, ExperimentCreate, ExperimentRunCreate, LastModifiedRun, ProjectResponse, ProjectSummary,
)
from mlcatalog.services.deep_copy import ChildSpec
from mlcatalog.services.resource_service import ResourceAccessor

logger = logging.getLogger(__name__)

_SHORT_NAME_INVALID = re.compile(r"[^a-z0-9_\-]")


def to_short_name(value: str, max_length: int) -> str:
    """Lowercase, replace anything outside [a-z0-9_-] with '-', truncate."""
    return _SHORT_NAME_INVALID.sub("-", value.lower())[:max_length]


class ProjectAccessor(ResourceAccessor):
    model = Project
    resource_type = "project"
    response_schema = ProjectResponse
    children = [
        ChildSpec("experiment", Experiment, {"project_id": "project"}),
        ChildSpec("experiment_run", ExperimentRun, {"project_id": "project", "experiment_id": "experiment"}),
    ]

    def _extra_fields(self, payload):
        return {"readme_text": payload.readme_text or ""}

    def _copy_overrides(self):
        # Short names stay unique, so a copy starts without one
        return {"short_name": None}

    def set_readme(self, project_id: str, readme_text: str):
        return self.mutations.update_fields(project_id, readme_text=readme_text or "")

    def set_short_name(self, project_id: str, short_name: str):
        """
        Set the project's short name.

        The value must already be in normal form (see ``to_short_name``);
        anything normalisation would change is rejected rather than
        silently rewritten.
        """
        if not short_name:
            raise InvalidArgument("Project short name not found in request")
        if to_short_name(short_name, self.settings.short_name_max_length) != short_name:
            raise InvalidArgument("Project short name is not valid")

        def operation():
            project = self.mutations.load_live(project_id)
            taken = self.db.query(Project.id).filter(
                Project.short_name == short_name,
                Project.owner == project.owner,
                Project.workspace == project.workspace,
                Project.id != project_id,
                Project.deleted.is_(False),
            ).first()
            if taken:
                raise AlreadyExists(f"Project with short name '{short_name}' already exists")
            project.short_name = short_name
            self.db.flush()
            self.mutations.touch(project)
            self.db.commit()
            return self._snapshot(project)

        return run_with_retry(self.db, operation)

    def get_short_name(self, project_id: str) -> Optional[str]:
        return self._live(project_id).short_name

    def log_code_version(self, project_id: str, code_version: CodeVersion):
        """Record where the project's code lives. A project's code version is logged once."""

        def operation():
            project = self.mutations.load_live(project_id)
            if project.code_version is not None:
                raise AlreadyExists(f"Code version already logged for project {project_id}")
            project.code_version = encode_blob(code_version.model_dump(exclude_none=True))
            self.db.flush()
            self.mutations.touch(project)
            self.db.commit()
            return self._snapshot(project)

        return run_with_retry(self.db, operation)

    def _live_experiment(self, project_id: str, experiment_id: str) -> Experiment:
        experiment = self.db.query(Experiment).filter(
            Experiment.id == experiment_id,
            Experiment.project_id == project_id,
            Experiment.deleted.is_(False),
        ).first()
        if experiment is None:
            raise NotFound("Experiment not found")
        return experiment

    def add_experiment(self, project_id: str, caller: Caller, payload: ExperimentCreate) -> Experiment:
        """Create an experiment under a live project; names are unique per project and owner."""
        name = (payload.name or "").strip()
        if not name:
            raise InvalidArgument("Experiment name not found in request")

        project = self.mutations.load_live(project_id)
        duplicate = self.db.query(Experiment.id).filter(
            Experiment.project_id == project_id,
            Experiment.owner == caller.id,
            Experiment.name == name,
            Experiment.deleted.is_(False),
        ).first()
        if duplicate:
            self.db.rollback()
            raise AlreadyExists(f"Experiment with name '{name}' already exists in this project")

        now = now_millis()
        experiment = Experiment(
            project_id=project_id,
            owner=caller.id,
            name=name,
            description=payload.description or "",
            date_created=now,
            date_updated=now,
        )
        self.db.add(experiment)
        self.mutations.touch(project)
        self.db.commit()
        self.db.refresh(experiment)
        logger.info(f"Created experiment {experiment.id} in project {project_id}")
        return experiment

    def add_experiment_run(
        self, project_id: str, experiment_id: str, caller: Caller, payload: ExperimentRunCreate
    ) -> ExperimentRun:
        name = (payload.name or "").strip()
        if not name:
            raise InvalidArgument("Experiment run name not found in request")

        project = self.mutations.load_live(project_id)
        experiment = self._live_experiment(project_id, experiment_id)

        now = now_millis()
        run = ExperimentRun(
            project_id=project_id,
            experiment_id=experiment.id,
            owner=caller.id,
            name=name,
            description=payload.description or "",
            date_created=now,
            date_updated=now,
        )
        self.db.add(run)
        experiment.date_updated = max(now, experiment.date_updated or 0)
        self.mutations.touch(project)
        self.db.commit()
        self.db.refresh(run)
        logger.info(f"Created experiment run {run.id} in experiment {experiment_id}")
        return run

    def list_experiments(self, project_id: str) -> List[Experiment]:
        self._live(project_id)
        return self.db.query(Experiment).filter(
            Experiment.project_id == project_id,
            Experiment.deleted.is_(False),
        ).order_by(Experiment.date_created, Experiment.id).all()

    def list_experiment_runs(self, project_id: str, experiment_id: str) -> List[ExperimentRun]:
        self._live_experiment(project_id, experiment_id)
        return self.db.query(ExperimentRun).filter(
            ExperimentRun.experiment_id == experiment_id,
            ExperimentRun.deleted.is_(False),
        ).order_by(ExperimentRun.date_created, ExperimentRun.id).all()

    def summary(self, project_id: str) -> ProjectSummary:
        """Counts are always recomputed from live child rows."""
        project = self._live(project_id)

        total_experiments = self.db.query(func.count(Experiment.id)).filter(
            Experiment.project_id == project_id,
            Experiment.deleted.is_(False),
        ).scalar() or 0
        runs = self.db.query(ExperimentRun).filter(
            ExperimentRun.project_id == project_id,
            ExperimentRun.deleted.is_(False),
        )
        total_runs = runs.count()
        last_run = runs.order_by(ExperimentRun.date_updated.desc(), ExperimentRun.id).first()

        return ProjectSummary(
            name=project.name,
            last_updated_time=project.date_updated,
            total_experiments=total_experiments,
            total_experiment_runs=total_runs,
            last_modified_experiment_run=(
                LastModifiedRun(name=last_run.name, last_updated_time=last_run.date_updated)
                if last_run else None
            ),
        )
