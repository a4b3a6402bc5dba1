"""
model.py

Domain models for the Project Management Service.

Entities
--------
- Collaborator
- Resource
- ResourceAssignment
- TaskDocument
- ProgressNote
- Task
- Project

Ownership
---------
A Project exclusively owns its Tasks; a Task exclusively owns its
ResourceAssignments, TaskDocuments and ProgressNotes.  Collaborators and
Resources are shared and only referenced by id.

All models use Python dataclasses for clean, framework-agnostic definitions.
UUID primary keys are used throughout for portability.
Timestamps are always stored in UTC.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ProjectStatus(str, Enum):
    """
    Lifecycle status of a project.

    PLANNED, IN_PROGRESS and COMPLETED are derived from task completion.
    ON_HOLD is only ever set by a person and is never auto-transitioned.
    """
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"


class TaskStatus(str, Enum):
    """Status of a task.  Any status may follow any other."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CollaboratorRole(str, Enum):
    """
    MANAGER      – creates projects and tasks, assigns people and resources,
                   registers contributor accounts.
    CONTRIBUTOR  – views and updates the status of tasks assigned to them.
    """
    MANAGER = "manager"
    CONTRIBUTOR = "contributor"


# ---------------------------------------------------------------------------
# Normalization tables
# ---------------------------------------------------------------------------
# The backend and older clients send loosely-typed descriptions
# ("ALTA", "En curso", {"description": "COMPLETADA"} ...).  Every accepted
# spelling is listed here; anything else falls back to the documented default.

DEFAULT_PRIORITY = PriorityLevel.MEDIUM
DEFAULT_TASK_STATUS = TaskStatus.PENDING

PRIORITY_LOOKUP: Dict[str, PriorityLevel] = {
    "LOW": PriorityLevel.LOW,
    "MEDIUM": PriorityLevel.MEDIUM,
    "HIGH": PriorityLevel.HIGH,
    "CRITICAL": PriorityLevel.CRITICAL,
    "BAJA": PriorityLevel.LOW,
    "MEDIA": PriorityLevel.MEDIUM,
    "ALTA": PriorityLevel.HIGH,
    "CRITICA": PriorityLevel.CRITICAL,
    "CRÍTICA": PriorityLevel.CRITICAL,
}

TASK_STATUS_LOOKUP: Dict[str, TaskStatus] = {
    "PENDING": TaskStatus.PENDING,
    "IN_PROGRESS": TaskStatus.IN_PROGRESS,
    "IN PROGRESS": TaskStatus.IN_PROGRESS,
    "IN_REVIEW": TaskStatus.IN_REVIEW,
    "IN REVIEW": TaskStatus.IN_REVIEW,
    "COMPLETED": TaskStatus.COMPLETED,
    "CREADA": TaskStatus.PENDING,
    "PENDIENTE": TaskStatus.PENDING,
    "EN CURSO": TaskStatus.IN_PROGRESS,
    "EN REVISION": TaskStatus.IN_REVIEW,
    "EN REVISIÓN": TaskStatus.IN_REVIEW,
    "COMPLETADA": TaskStatus.COMPLETED,
}

ROLE_LOOKUP: Dict[str, CollaboratorRole] = {
    "MANAGER": CollaboratorRole.MANAGER,
    "GESTOR": CollaboratorRole.MANAGER,
    "GESTOR DE PROYECTO": CollaboratorRole.MANAGER,
    "CONTRIBUTOR": CollaboratorRole.CONTRIBUTOR,
    "COLABORADOR": CollaboratorRole.CONTRIBUTOR,
}

TASK_STATUS_LABELS: Dict[TaskStatus, str] = {
    TaskStatus.PENDING: "Pending",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.IN_REVIEW: "In review",
    TaskStatus.COMPLETED: "Completed",
}


def _normalize_description(value: Any) -> Optional[str]:
    """
    Reduce a raw value to an upper-cased lookup key.

    Accepts plain strings, enum members, and dicts or objects exposing a
    `description` attribute/key (the shape of the backend catalogs).
    """
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, dict):
        value = value.get("description")
    elif value is not None and not isinstance(value, str):
        value = getattr(value, "description", None)
    if not isinstance(value, str):
        return None
    return value.strip().upper()


def parse_priority(value: Any) -> PriorityLevel:
    key = _normalize_description(value)
    if key is None:
        return DEFAULT_PRIORITY
    return PRIORITY_LOOKUP.get(key, DEFAULT_PRIORITY)


def parse_task_status(value: Any) -> TaskStatus:
    key = _normalize_description(value)
    if key is None:
        return DEFAULT_TASK_STATUS
    return TASK_STATUS_LOOKUP.get(key, DEFAULT_TASK_STATUS)


def parse_role(value: Any) -> CollaboratorRole:
    """Unknown or missing roles are treated as CONTRIBUTOR (least privilege)."""
    key = _normalize_description(value)
    if key is None:
        return CollaboratorRole.CONTRIBUTOR
    return ROLE_LOOKUP.get(key, CollaboratorRole.CONTRIBUTOR)


def task_status_label(status: TaskStatus) -> str:
    return TASK_STATUS_LABELS[status]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Shared catalog entities
# ---------------------------------------------------------------------------


@dataclass
class Collaborator:
    """
    A person who can manage projects or be assigned to tasks.

    Collaborators are global to the system and referenced by id from
    projects (team_ids, manager_id) and tasks (assignee_ids).
    """
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    role: CollaboratorRole = CollaboratorRole.CONTRIBUTOR
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_manager(self) -> bool:
        return self.role == CollaboratorRole.MANAGER


@dataclass
class Resource:
    """Read-only catalog entry.  `cost` is the unit cost."""
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    name: str = ""
    type: str = ""
    cost: float = 0.0
    description: str = ""


# ---------------------------------------------------------------------------
# Task-owned entities
# ---------------------------------------------------------------------------


@dataclass
class ResourceAssignment:
    """
    A resource allocated to a task.

    name, unit_cost and cost are snapshots taken at assignment time; later
    changes to the catalog Resource do not flow back into existing
    assignments.  cost = unit_cost * quantity.
    """
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    resource_id: uuid.UUID = field(default_factory=uuid.uuid4)   # FK → Resource.id
    name: str = ""
    quantity: float = 1.0
    unit_cost: float = 0.0
    cost: float = 0.0
    assigned_at: datetime = field(default_factory=_utcnow)


@dataclass
class TaskDocument:
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    name: str = ""
    uploaded_at: datetime = field(default_factory=_utcnow)


@dataclass
class ProgressNote:
    """Append-only log entry written on every task status update."""
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    message: str = ""
    created_at: datetime = field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Core Project Entities
# ---------------------------------------------------------------------------


@dataclass
class Task:
    """
    A unit of work inside a project.

    start_date <= due_date is checked at creation; there is no edit path
    for the dates afterwards.
    """
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    name: str = ""
    priority: PriorityLevel = PriorityLevel.MEDIUM
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    status: TaskStatus = TaskStatus.PENDING
    description: str = ""

    assignee_ids: List[uuid.UUID] = field(default_factory=list)          # FK → Collaborator.id, unique
    documentation: List[TaskDocument] = field(default_factory=list)
    resources: List[ResourceAssignment] = field(default_factory=list)
    progress_notes: List[ProgressNote] = field(default_factory=list)     # append-only

    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class Project:
    """
    Top-level container owning an ordered list of tasks.

    progress, used_budget and status are derived fields: they are only
    written by ProjectService.recalculate_metrics.
    team_ids always contains the manager and every task assignee; it only
    grows.
    """
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    name: str = ""
    description: str = ""
    priority: PriorityLevel = PriorityLevel.MEDIUM

    # Schedule
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    # People
    manager_id: Optional[uuid.UUID] = None                       # FK → Collaborator.id (MANAGER)
    team_ids: List[uuid.UUID] = field(default_factory=list)      # FK → Collaborator.id, unique

    # Budget
    budget: float = 0.0
    used_budget: float = 0.0                                     # derived

    # Computed / updated summary fields
    status: ProjectStatus = ProjectStatus.PLANNED                # derived (except ON_HOLD)
    progress: int = 0                                            # derived, 0 – 100

    tasks: List[Task] = field(default_factory=list)

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def find_task(self, task_id: uuid.UUID) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)
