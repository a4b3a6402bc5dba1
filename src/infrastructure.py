"""
infrastructure.py

In-memory implementation of all repository interfaces and the Unit of Work.

This is a self-contained backend that stores everything in plain Python
dicts keyed by UUID: the project collection, the collaborator registry and
the resource catalog.  It is intentionally simple and suitable for local
development, demos, and tests without needing a real database.

Reads hand out copies and writes replace the stored entity as a whole, so
a use case that fails half-way leaves nothing behind, and the last write
wins.

To swap in a real database later, implement the same Abstract* interfaces
from application.py and override get_uow() in api.py:

    app.dependency_overrides[get_uow] = lambda: SqlAlchemyUnitOfWork(session)

Nothing in service.py, application.py, or api.py needs to change.
"""

from __future__ import annotations

import copy
import logging
import uuid
from typing import Iterable

from application import (
    AbstractCollaboratorRepository,
    AbstractProjectRepository,
    AbstractResourceRepository,
    AbstractUnitOfWork,
)
from model import Collaborator, CollaboratorRole, Project, Resource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic in-memory store
# ---------------------------------------------------------------------------

class _Store(dict):
    """A plain dict with copy-on-read / replace-on-write helpers."""

    def fetch(self, key: uuid.UUID):
        obj = self.get(key)
        return copy.deepcopy(obj) if obj is not None else None

    def put(self, obj) -> None:
        self[obj.id] = copy.deepcopy(obj)

    def all(self) -> list:
        return [copy.deepcopy(obj) for obj in self.values()]


# ---------------------------------------------------------------------------
# Shared in-memory project store (module-level singleton)
# Persists for the lifetime of the process; restarting uvicorn resets it.
# ---------------------------------------------------------------------------

class InMemoryProjectStore:
    def __init__(self):
        self.projects:      _Store = _Store()
        self.collaborators: _Store = _Store()
        self.resources:     _Store = _Store()


# Module-level singleton, shared across all requests
_store = InMemoryProjectStore()


# ---------------------------------------------------------------------------
# Repository implementations
# ---------------------------------------------------------------------------

class InMemoryProjectRepository(AbstractProjectRepository):
    def __init__(self, store: _Store): self._s = store
    def get(self, project_id):        return self._s.fetch(project_id)
    def list_all(self):               return self._s.all()
    def save(self, project):          self._s.put(project)


class InMemoryCollaboratorRepository(AbstractCollaboratorRepository):
    def __init__(self, store: _Store): self._s = store
    def get(self, collaborator_id):   return self._s.fetch(collaborator_id)
    def get_by_email(self, email):
        email = email.strip().lower()
        return next((c for c in self._s.all() if c.email == email), None)
    def list_all(self):               return self._s.all()
    def save(self, collaborator):     self._s.put(collaborator)


class InMemoryResourceRepository(AbstractResourceRepository):
    def __init__(self, store: _Store): self._s = store
    def get(self, resource_id):       return self._s.fetch(resource_id)
    def list_all(self):               return self._s.all()
    def save(self, resource):         self._s.put(resource)


# ---------------------------------------------------------------------------
# Unit of Work
# ---------------------------------------------------------------------------

class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Wraps all in-memory repositories.  commit() and rollback() are no-ops
    because saves are immediate and reads are copies: an aborted use case
    simply never calls save().
    In a real SQL implementation, commit() would call session.commit().
    """

    def __init__(self, store: InMemoryProjectStore = _store):
        self.projects      = InMemoryProjectRepository(store.projects)
        self.collaborators = InMemoryCollaboratorRepository(store.collaborators)
        self.resources     = InMemoryResourceRepository(store.resources)

    def commit(self)   -> None: pass   # no-op for in-memory
    def rollback(self) -> None: pass   # no-op for in-memory


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

DEFAULT_RESOURCE_CATALOG = (
    ("Senior developer (hour)", "Labour", 45.0, "Senior software engineer, billed hourly."),
    ("QA analyst (hour)", "Labour", 30.0, "Manual and automated testing, billed hourly."),
    ("Cloud server (month)", "Infrastructure", 250.0, "Managed virtual machine."),
    ("Design licence", "Software", 120.0, "Yearly seat for the design suite."),
)


def seed_collaborator(
    uow: AbstractUnitOfWork,
    collaborator_id: uuid.UUID,
    first_name: str,
    last_name: str,
    email: str,
    role: CollaboratorRole,
    phone: str = "",
) -> Collaborator:
    """Insert a collaborator with a fixed id unless it already exists."""
    existing = uow.collaborators.get(collaborator_id)
    if existing is not None:
        return existing
    collaborator = Collaborator(
        id=collaborator_id,
        first_name=first_name,
        last_name=last_name,
        email=email.lower(),
        phone=phone,
        role=role,
    )
    uow.collaborators.save(collaborator)
    logger.info("Seeded %s %s (%s)", role.value, collaborator.full_name, collaborator_id)
    return collaborator


def seed_resources(uow: AbstractUnitOfWork, catalog: Iterable[tuple] = DEFAULT_RESOURCE_CATALOG) -> None:
    """Load the resource catalog when it is empty."""
    if uow.resources.list_all():
        return
    for name, kind, cost, description in catalog:
        uow.resources.save(Resource(name=name, type=kind, cost=cost, description=description))
    logger.info("Seeded resource catalog")


def replace_catalog(
    uow: AbstractUnitOfWork,
    projects: Iterable[Project] = (),
    collaborators: Iterable[Collaborator] = (),
    resources: Iterable[Resource] = (),
) -> None:
    """Bulk-load entities fetched from a remote backend into the store."""
    for resource in resources:
        uow.resources.save(resource)
    for collaborator in collaborators:
        uow.collaborators.save(collaborator)
    for project in projects:
        uow.projects.save(project)
