"""
gateway.py

Read-only client that loads the project store from a remote REST backend.

The backend speaks its own loosely-typed dialect (Spanish catalog
descriptions, tasks spread over assignment and resource allocation
records, money as strings).  This module maps those payloads onto the
domain model.

The initial load (catalogs + project list + collaborators) is issued as
independent parallel requests.  A failing request is logged and recorded
in InitialLoad.errors; it never prevents the others from populating
their part of the result.

Writes are not forwarded: once loaded, the local store is the one the
API mutates.

Usage
-----
    gateway = BackendGateway(settings.backend_url, token, timeout=settings.backend_timeout)
    load = gateway.load_initial_data(include_collaborators=True)
    if load.errors:
        ...
    sync_into(InMemoryUnitOfWork(), load)
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from application import AbstractUnitOfWork
from infrastructure import replace_catalog
from model import (
    Collaborator,
    CollaboratorRole,
    PriorityLevel,
    ProgressNote,
    Project,
    ProjectStatus,
    Resource,
    ResourceAssignment,
    Task,
    TaskDocument,
    TaskStatus,
    parse_priority,
    parse_role,
    parse_task_status,
)
from service import ProjectService

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_PROGRESS_MESSAGE = "Progress update recorded"

_project_svc = ProjectService()


class GatewayError(Exception):
    """Raised when the remote backend cannot be reached or rejects a call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Payload parsing helpers
# ---------------------------------------------------------------------------

def _as_uuid(value: Any) -> uuid.UUID:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise GatewayError(f"Backend returned a non-UUID identifier: {value!r}") from exc


def _as_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def _as_datetime(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _error_message(response: requests.Response, fallback: str) -> str:
    """The backend reports errors as {"message": str | [str, ...]}."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    message = body.get("message") if isinstance(body, dict) else None
    if isinstance(message, list):
        return " ".join(str(m) for m in message)
    if isinstance(message, str) and message:
        return message
    return fallback


# ---------------------------------------------------------------------------
# Payload → domain mapping
# ---------------------------------------------------------------------------

def map_employee(payload: Dict[str, Any]) -> Collaborator:
    role = payload.get("role") or {}
    return Collaborator(
        id=_as_uuid(payload["id"]),
        first_name=payload.get("firstName", ""),
        last_name=payload.get("lastName", ""),
        email=(payload.get("email") or "").lower(),
        phone=payload.get("phone") or "",
        role=parse_role(role.get("name") if isinstance(role, dict) else role),
    )


def map_resource(payload: Dict[str, Any]) -> Resource:
    return Resource(
        id=_as_uuid(payload["id"]),
        name=payload.get("description", ""),
        type=payload.get("type") or "Resource",
        cost=_as_float(payload.get("unitCost")),
        description=payload.get("description", ""),
    )


def _map_task(payload: Dict[str, Any], project: Dict[str, Any]) -> Task:
    start = payload.get("startDate") or project.get("startDate")
    return Task(
        id=_as_uuid(payload["id"]),
        name=payload.get("description", ""),
        priority=parse_priority(payload.get("priority")),
        start_date=_as_date(start),
        due_date=_as_date(payload.get("estimatedDate") or project.get("estimatedDate")),
        status=parse_task_status(payload.get("state")),
        description="",
        documentation=[
            TaskDocument(
                id=_as_uuid(doc["id"]),
                name=doc.get("fileName", ""),
                uploaded_at=_as_datetime(doc.get("uploadedAt")),
            )
            for doc in payload.get("documents") or []
        ],
        progress_notes=[
            ProgressNote(
                id=_as_uuid(evo["id"]),
                message=evo.get("description") or DEFAULT_PROGRESS_MESSAGE,
                created_at=_as_datetime(evo.get("startDate")),
            )
            for evo in payload.get("evolutions") or []
        ],
        created_at=_as_datetime(start),
    )


def map_project(payload: Dict[str, Any]) -> Project:
    """
    Rebuild a Project from the backend's flattened representation.

    Tasks appear inside task-assignment records (one per assignee) and
    resource-allocation records; both are folded into one ordered task list.
    Derived fields are recomputed locally.
    """
    tasks: Dict[uuid.UUID, Task] = {}
    people: Dict[uuid.UUID, Collaborator] = {}

    for assignment in payload.get("taskAssignments") or []:
        raw_task = assignment["task"]
        task_id = _as_uuid(raw_task["id"])
        task = tasks.setdefault(task_id, _map_task(raw_task, payload))
        employee = assignment.get("employee")
        if employee:
            collaborator = map_employee(employee)
            people[collaborator.id] = collaborator
            if collaborator.id not in task.assignee_ids:
                task.assignee_ids.append(collaborator.id)

    for allocation in payload.get("resources") or []:
        raw_task = allocation["task"]
        task_id = _as_uuid(raw_task["id"])
        task = tasks.setdefault(task_id, _map_task(raw_task, payload))
        assignment_id = _as_uuid(allocation["id"])
        if any(a.id == assignment_id for a in task.resources):
            continue
        resource = allocation["resource"]
        quantity = _as_float(allocation.get("quantity"), 1.0) or 1.0
        unit_cost = _as_float(resource.get("unitCost"))
        task.resources.append(
            ResourceAssignment(
                id=assignment_id,
                resource_id=_as_uuid(resource["id"]),
                name=resource.get("description", ""),
                quantity=quantity,
                unit_cost=unit_cost,
                cost=unit_cost * quantity,
                assigned_at=_as_datetime(raw_task.get("startDate") or payload.get("startDate")),
            )
        )

    team_ids: List[uuid.UUID] = []
    for member in payload.get("collaborators") or []:
        collaborator = map_employee(member["employee"])
        people[collaborator.id] = collaborator
        team_ids.append(collaborator.id)
    for task in tasks.values():
        team_ids.extend(task.assignee_ids)

    manager = next((c for c in people.values() if c.role == CollaboratorRole.MANAGER), None)
    if manager is not None:
        team_ids.insert(0, manager.id)

    project = Project(
        id=_as_uuid(payload["id"]),
        name=payload.get("name", ""),
        description=payload.get("description") or "",
        priority=parse_priority(payload.get("priority")),
        start_date=_as_date(payload.get("startDate")),
        end_date=_as_date(payload.get("endDate") or payload.get("estimatedDate")),
        manager_id=manager.id if manager else None,
        team_ids=list(dict.fromkeys(team_ids)),
        budget=_as_float(payload.get("budget")),
        status=ProjectStatus.PLANNED,
        tasks=list(tasks.values()),
    )
    return _project_svc.recalculate_metrics(project)


def project_collaborators(payload: Dict[str, Any]) -> List[Collaborator]:
    """Every collaborator embedded in a project payload."""
    found: Dict[uuid.UUID, Collaborator] = {}
    for assignment in payload.get("taskAssignments") or []:
        if assignment.get("employee"):
            collaborator = map_employee(assignment["employee"])
            found[collaborator.id] = collaborator
    for member in payload.get("collaborators") or []:
        collaborator = map_employee(member["employee"])
        found[collaborator.id] = collaborator
    return list(found.values())


def _catalog_ids(entries: Sequence[Dict[str, Any]], parse: Callable[[Any], Any]) -> Dict[Any, str]:
    """Map each catalog entry's normalized value to its backend id."""
    ids: Dict[Any, str] = {}
    for entry in entries:
        ids[parse(entry)] = str(entry["id"])
    return ids


# ---------------------------------------------------------------------------
# Initial load
# ---------------------------------------------------------------------------

@dataclass
class InitialLoad:
    projects: List[Project] = field(default_factory=list)
    collaborators: List[Collaborator] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)
    priority_ids: Dict[PriorityLevel, str] = field(default_factory=dict)
    task_state_ids: Dict[TaskStatus, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def sync_into(uow: AbstractUnitOfWork, load: InitialLoad) -> None:
    """Copy whatever part of an initial load succeeded into a local store."""
    with uow:
        replace_catalog(
            uow,
            projects=load.projects,
            collaborators=load.collaborators,
            resources=load.resources,
        )
        uow.commit()


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class BackendGateway:
    """
    Thin synchronous client for the remote project backend.

    Each call blocks until the backend answers or the transport timeout
    expires; nothing is retried here.  Every request opens its own session,
    so the parallel initial load never shares one between threads.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Authorization": f"Bearer {token}"}
        self.session_factory = session_factory
        self.priority_ids: Dict[PriorityLevel, str] = {}
        self.task_state_ids: Dict[TaskStatus, str] = {}

    def _get(self, path: str, fallback: str) -> Any:
        url = f"{self.base_url}{path}"
        with self.session_factory() as session:
            try:
                response = session.get(url, headers=self.headers, timeout=self.timeout)
            except requests.RequestException as exc:
                raise GatewayError(f"{fallback} ({exc})") from exc
        if response.status_code >= 400:
            raise GatewayError(_error_message(response, fallback), response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def load_initial_data(self, include_collaborators: bool = False) -> InitialLoad:
        """
        Fetch catalogs, projects and (for managers) collaborators in parallel.
        Each part fails independently.
        """
        requests_by_part = {
            "priorities": ("/projects/catalog/priorities", "Could not load priorities."),
            "task_states": ("/projects/catalog/task-states", "Could not load task states."),
            "resources": ("/projects/catalog/resources", "Could not load the resource catalog."),
            "projects": ("/projects", "Could not load projects."),
        }
        if include_collaborators:
            requests_by_part["collaborators"] = (
                "/employees/collaborators", "Could not load collaborators."
            )

        load = InitialLoad()
        with ThreadPoolExecutor(max_workers=len(requests_by_part)) as pool:
            futures = {
                part: pool.submit(self._get, path, fallback)
                for part, (path, fallback) in requests_by_part.items()
            }
            for part, future in futures.items():
                try:
                    self._apply_part(load, part, future.result())
                except (GatewayError, KeyError, TypeError, ValueError) as exc:
                    logger.warning("Initial load of %s failed: %s", part, exc)
                    load.errors.append(str(exc) or requests_by_part[part][1])

        self.priority_ids = dict(load.priority_ids)
        self.task_state_ids = dict(load.task_state_ids)
        return load

    @staticmethod
    def _apply_part(load: InitialLoad, part: str, payload: Any) -> None:
        if part == "priorities":
            load.priority_ids = _catalog_ids(payload, parse_priority)
        elif part == "task_states":
            load.task_state_ids = _catalog_ids(payload, parse_task_status)
        elif part == "resources":
            load.resources = [map_resource(r) for r in payload]
        elif part == "projects":
            load.projects = [map_project(p) for p in payload]
            known = {c.id for c in load.collaborators}
            for raw in payload:
                for collaborator in project_collaborators(raw):
                    if collaborator.id not in known:
                        load.collaborators.append(collaborator)
                        known.add(collaborator.id)
        elif part == "collaborators":
            known = {c.id for c in load.collaborators}
            for raw in payload:
                collaborator = map_employee(raw)
                if collaborator.id not in known:
                    load.collaborators.append(collaborator)
                    known.add(collaborator.id)
