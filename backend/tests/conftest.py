# backend/tests/conftest.py
import os

# Must be set before mlcatalog.config is first imported
os.environ.setdefault("TASK_BROKER", "stub")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mlcatalog.main import app
from mlcatalog.database import get_db
from mlcatalog.models import Base, Project, ResourceTag, ResourceVisibility
from mlcatalog.schemas.caller import Caller
from mlcatalog.services.authorization import AuthorizationClient, ScopeResolver
from mlcatalog.services.dataset_service import DatasetAccessor
from mlcatalog.services.project_service import ProjectAccessor
from mlcatalog.tasks import broker


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_project(db_session):
    """Insert a project row directly, bypassing the accessor."""
    def _make(name, owner="alice", workspace=None, visibility=ResourceVisibility.PRIVATE,
              date_updated=1_000, tags=(), deleted=False):
        project = Project(
            owner=owner,
            name=name,
            description="",
            workspace=workspace or owner,
            visibility=visibility,
            date_created=date_updated,
            date_updated=date_updated,
            deleted=deleted,
        )
        db_session.add(project)
        db_session.flush()
        for position, tag in enumerate(tags):
            db_session.add(ResourceTag(
                resource_type="project", resource_id=project.id, tag=tag, position=position,
            ))
        db_session.commit()
        return project
    return _make


@pytest.fixture
def authz_client():
    """Mock authorization collaborator: shares nothing, allows nothing."""
    mock_client = MagicMock(spec=AuthorizationClient)
    mock_client.accessible_ids.return_value = set()
    mock_client.check_permission.return_value = False
    return mock_client


@pytest.fixture
def resolver(db_session, authz_client):
    return ScopeResolver(db_session, authz_client)


@pytest.fixture
def projects(db_session, resolver):
    return ProjectAccessor(db_session, resolver)


@pytest.fixture
def datasets(db_session, resolver):
    return DatasetAccessor(db_session, resolver)


@pytest.fixture
def alice():
    return Caller(id="alice")


@pytest.fixture
def bob():
    return Caller(id="bob")


@pytest.fixture
def admin():
    return Caller(id="root", roles=["admin"])


@pytest.fixture
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    broker.flush_all()
