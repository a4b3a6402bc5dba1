"""
Shared fixtures for the Project Management Service tests.

Every test gets its own in-memory store; nothing leaks between tests.
"""
import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient

from api import app, get_uow
from infrastructure import (
    InMemoryProjectStore,
    InMemoryUnitOfWork,
    seed_collaborator,
    seed_resources,
)
from model import CollaboratorRole, Resource

MANAGER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
CONTRIBUTOR_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
OTHER_CONTRIBUTOR_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")


@pytest.fixture
def store():
    return InMemoryProjectStore()


@pytest.fixture
def uow(store):
    """Unit of work over a fresh store holding one manager and two contributors."""
    uow = InMemoryUnitOfWork(store)
    seed_collaborator(uow, MANAGER_ID, "Ada", "Manager", "ada@example.com", CollaboratorRole.MANAGER)
    seed_collaborator(uow, CONTRIBUTOR_ID, "Carl", "Contributor", "carl@example.com", CollaboratorRole.CONTRIBUTOR)
    seed_collaborator(uow, OTHER_CONTRIBUTOR_ID, "Dora", "Developer", "dora@example.com", CollaboratorRole.CONTRIBUTOR)
    return uow


@pytest.fixture
def manager_id():
    return MANAGER_ID


@pytest.fixture
def contributor_id():
    return CONTRIBUTOR_ID


@pytest.fixture
def other_contributor_id():
    return OTHER_CONTRIBUTOR_ID


@pytest.fixture
def resource(uow):
    """A 15000-per-unit catalog resource."""
    item = Resource(name="Excavator", type="Machinery", cost=15000.0, description="Tracked excavator")
    uow.resources.save(item)
    return item


@pytest.fixture
def catalog(uow):
    seed_resources(uow)
    return uow.resources.list_all()


@pytest.fixture
def project_dates():
    return date(2025, 1, 1), date(2025, 6, 30)


@pytest.fixture
def test_client(store, uow):
    """FastAPI test client wired to the per-test store."""
    app.dependency_overrides[get_uow] = lambda: InMemoryUnitOfWork(store)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    """Build the bearer header for a collaborator id."""
    def _auth(collaborator_id):
        return {"Authorization": f"Bearer {collaborator_id}"}
    return _auth
