"""
application.py

Application layer for the Project Management Service.

Overview
--------
The application layer sits between the presentation layer (API) and the
domain / service layer.  It is responsible for:

  1. Defining clean output DTOs (dataclasses) that carry only the data
     the presentation layer needs; no raw domain objects are leaked upward.
  2. Declaring abstract Repository interfaces so that the application layer
     remains fully persistence-agnostic (implementations live in
     infrastructure.py).
  3. Declaring the UnitOfWork abstraction: the explicit store handle every
     use case receives.  All mutations go through the use cases below, so
     the derived project metrics are always recalculated.
  4. Implementing Use Case handlers, one class per user-facing operation,
     that run the access check, validation, mutation and metrics
     recalculation in that order.

Structure
---------
DTOs
    CollaboratorDTO, ResourceDTO
    ProjectDTO, TaskDTO, ResourceAssignmentDTO, TaskDocumentDTO, ProgressNoteDTO
    DashboardSummaryDTO, ProjectStatusBreakdownDTO, CollaboratorTasksReportDTO,
    DelayedProjectDTO

Repository interfaces
    AbstractProjectRepository
    AbstractCollaboratorRepository
    AbstractResourceRepository

Unit of Work
    AbstractUnitOfWork

Use Cases
    --- Projects ---
    CreateProjectUseCase, GetProjectUseCase, ListProjectsUseCase

    --- Tasks ---
    CreateTaskUseCase, ListTasksUseCase, DeleteTaskUseCase,
    SetTaskCollaboratorsUseCase, UpdateTaskStatusUseCase

    --- Resources & documentation ---
    ListResourcesUseCase, AssignResourceUseCase, RemoveResourceUseCase,
    AddDocumentationUseCase, RemoveDocumentationUseCase

    --- Collaborators ---
    RegisterCollaboratorUseCase, GetCollaboratorUseCase, ListCollaboratorsUseCase

    --- Reports ---
    GetDashboardSummaryUseCase, GetTaskStatusBreakdownUseCase,
    GetCollaboratorsWithMultipleTasksUseCase, GetOverAssignedCollaboratorsUseCase,
    GetDelayedProjectsUseCase

Design notes
------------
- Use cases receive plain values / command dataclasses and return DTOs only.
- Every use case takes the acting collaborator's id and evaluates the role
  check once, before anything else.
- Validation fully precedes mutation; a failing use case saves nothing.
- Removal use cases are tolerant: removing something already absent is a
  successful no-op.  The owning project and task must still exist.
- Errors bubble up as ApplicationError subclasses or ValidationError.
"""

from __future__ import annotations

import abc
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from model import (
    Collaborator,
    CollaboratorRole,
    PriorityLevel,
    ProgressNote,
    Project,
    Resource,
    ResourceAssignment,
    Task,
    TaskDocument,
    TaskStatus,
    task_status_label,
)
from service import (
    CollaboratorService,
    DocumentationService,
    ProjectService,
    ReportService,
    ResourceService,
    TaskService,
    ValidationError,
    can_access_project,
    can_update_task_status,
    require_role,
    visible_projects,
    visible_tasks,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ApplicationError(Exception):
    """Raised when a use case cannot complete due to a business rule violation."""


class NotFoundError(ApplicationError):
    """Raised when a requested entity does not exist."""


class AuthorizationError(ApplicationError):
    """Raised when the acting user lacks the required role or visibility."""


class AuthenticationError(ApplicationError):
    """Raised when a request carries no usable collaborator identity."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fmt(dt: Optional[datetime]) -> Optional[str]:
    """Convert a datetime to an ISO-8601 UTC string, or None."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def _fmt_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


# ===========================================================================
# DTO DEFINITIONS
# ===========================================================================

# ---------------------------------------------------------------------------
# Catalog DTOs
# ---------------------------------------------------------------------------

@dataclass
class CollaboratorDTO:
    id: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str
    role: str


@dataclass
class ResourceDTO:
    id: str
    name: str
    type: str
    cost: float
    description: str


# ---------------------------------------------------------------------------
# Task DTOs
# ---------------------------------------------------------------------------

@dataclass
class ResourceAssignmentDTO:
    id: str
    resource_id: str
    name: str
    quantity: float
    unit_cost: float
    cost: float
    assigned_at: str


@dataclass
class TaskDocumentDTO:
    id: str
    name: str
    uploaded_at: str


@dataclass
class ProgressNoteDTO:
    id: str
    message: str
    created_at: str


@dataclass
class TaskDTO:
    id: str
    name: str
    priority: str
    start_date: Optional[str]
    due_date: Optional[str]
    status: str
    status_label: str
    description: str
    assignee_ids: List[str]
    documentation: List[TaskDocumentDTO]
    resources: List[ResourceAssignmentDTO]
    progress_notes: List[ProgressNoteDTO]
    created_at: str


# ---------------------------------------------------------------------------
# Project DTOs
# ---------------------------------------------------------------------------

@dataclass
class ProjectDTO:
    id: str
    name: str
    description: str
    status: str
    progress: int
    priority: str
    start_date: Optional[str]
    end_date: Optional[str]
    manager_id: Optional[str]
    team_ids: List[str]
    budget: float
    used_budget: float
    tasks: List[TaskDTO]
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# Report DTOs
# ---------------------------------------------------------------------------

@dataclass
class DashboardSummaryDTO:
    total_projects: int
    completed_projects: int
    active_projects: int
    average_progress: int


@dataclass
class TaskStatusCountDTO:
    status: str
    label: str
    count: int
    percentage: int


@dataclass
class ProjectStatusBreakdownDTO:
    project_id: str
    project_name: str
    statuses: List[TaskStatusCountDTO]


@dataclass
class ReportTaskDTO:
    id: str
    name: str
    status: str
    status_label: str
    project_id: str
    project_name: str
    start_date: Optional[str]
    due_date: Optional[str]


@dataclass
class CollaboratorTasksReportDTO:
    collaborator: CollaboratorDTO
    tasks: List[ReportTaskDTO] = field(default_factory=list)


@dataclass
class DelayedProjectDTO:
    id: str
    name: str
    end_date: Optional[str]
    delay_days: int
    pending_tasks: int


# ===========================================================================
# DTO ASSEMBLERS
# ===========================================================================

class _Assembler:
    """Converts domain model instances into DTOs."""

    @staticmethod
    def collaborator(c: Collaborator) -> CollaboratorDTO:
        return CollaboratorDTO(
            id=str(c.id),
            first_name=c.first_name,
            last_name=c.last_name,
            full_name=c.full_name,
            email=c.email,
            phone=c.phone,
            role=c.role.value,
        )

    @staticmethod
    def resource(r: Resource) -> ResourceDTO:
        return ResourceDTO(
            id=str(r.id),
            name=r.name,
            type=r.type,
            cost=r.cost,
            description=r.description,
        )

    @staticmethod
    def assignment(a: ResourceAssignment) -> ResourceAssignmentDTO:
        return ResourceAssignmentDTO(
            id=str(a.id),
            resource_id=str(a.resource_id),
            name=a.name,
            quantity=a.quantity,
            unit_cost=a.unit_cost,
            cost=a.cost,
            assigned_at=_fmt(a.assigned_at),
        )

    @staticmethod
    def document(d: TaskDocument) -> TaskDocumentDTO:
        return TaskDocumentDTO(id=str(d.id), name=d.name, uploaded_at=_fmt(d.uploaded_at))

    @staticmethod
    def progress_note(n: ProgressNote) -> ProgressNoteDTO:
        return ProgressNoteDTO(id=str(n.id), message=n.message, created_at=_fmt(n.created_at))

    @staticmethod
    def task(t: Task) -> TaskDTO:
        return TaskDTO(
            id=str(t.id),
            name=t.name,
            priority=t.priority.value,
            start_date=_fmt_date(t.start_date),
            due_date=_fmt_date(t.due_date),
            status=t.status.value,
            status_label=task_status_label(t.status),
            description=t.description,
            assignee_ids=[str(i) for i in t.assignee_ids],
            documentation=[_Assembler.document(d) for d in t.documentation],
            resources=[_Assembler.assignment(a) for a in t.resources],
            progress_notes=[_Assembler.progress_note(n) for n in t.progress_notes],
            created_at=_fmt(t.created_at),
        )

    @staticmethod
    def project(p: Project, tasks: Optional[List[Task]] = None) -> ProjectDTO:
        """`tasks` overrides p.tasks, for views filtered by visibility."""
        return ProjectDTO(
            id=str(p.id),
            name=p.name,
            description=p.description,
            status=p.status.value,
            progress=p.progress,
            priority=p.priority.value,
            start_date=_fmt_date(p.start_date),
            end_date=_fmt_date(p.end_date),
            manager_id=str(p.manager_id) if p.manager_id else None,
            team_ids=[str(i) for i in p.team_ids],
            budget=p.budget,
            used_budget=p.used_budget,
            tasks=[_Assembler.task(t) for t in (p.tasks if tasks is None else tasks)],
            created_at=_fmt(p.created_at),
            updated_at=_fmt(p.updated_at),
        )

    @staticmethod
    def report_task(p: Project, t: Task) -> ReportTaskDTO:
        return ReportTaskDTO(
            id=str(t.id),
            name=t.name,
            status=t.status.value,
            status_label=task_status_label(t.status),
            project_id=str(p.id),
            project_name=p.name,
            start_date=_fmt_date(t.start_date),
            due_date=_fmt_date(t.due_date),
        )


# ===========================================================================
# REPOSITORY INTERFACES
# ===========================================================================

class AbstractProjectRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, project_id: uuid.UUID) -> Optional[Project]: ...
    @abc.abstractmethod
    def list_all(self) -> List[Project]: ...
    @abc.abstractmethod
    def save(self, project: Project) -> None: ...


class AbstractCollaboratorRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, collaborator_id: uuid.UUID) -> Optional[Collaborator]: ...
    @abc.abstractmethod
    def get_by_email(self, email: str) -> Optional[Collaborator]: ...
    @abc.abstractmethod
    def list_all(self) -> List[Collaborator]: ...
    @abc.abstractmethod
    def save(self, collaborator: Collaborator) -> None: ...


class AbstractResourceRepository(abc.ABC):
    @abc.abstractmethod
    def get(self, resource_id: uuid.UUID) -> Optional[Resource]: ...
    @abc.abstractmethod
    def list_all(self) -> List[Resource]: ...
    @abc.abstractmethod
    def save(self, resource: Resource) -> None: ...


# ===========================================================================
# UNIT OF WORK
# ===========================================================================

class AbstractUnitOfWork(abc.ABC):
    """
    Groups all repositories under a single transactional boundary.
    Use as a context manager:

        with uow:
            uow.projects.save(project)
            uow.commit()
    """
    projects: AbstractProjectRepository
    collaborators: AbstractCollaboratorRepository
    resources: AbstractResourceRepository

    def __enter__(self) -> "AbstractUnitOfWork":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        else:
            self.commit()

    @abc.abstractmethod
    def commit(self) -> None: ...

    @abc.abstractmethod
    def rollback(self) -> None: ...


# ===========================================================================
# SERVICE SINGLETONS (shared across use cases)
# ===========================================================================

_project_svc = ProjectService()
_task_svc = TaskService()
_resource_svc = ResourceService()
_doc_svc = DocumentationService()
_collaborator_svc = CollaboratorService()
_report_svc = ReportService()


# ===========================================================================
# USE CASE HELPERS
# ===========================================================================

def _get_actor_or_raise(uow: AbstractUnitOfWork, collaborator_id: uuid.UUID) -> Collaborator:
    actor = uow.collaborators.get(collaborator_id)
    if actor is None:
        raise NotFoundError(f"Collaborator {collaborator_id} not found.")
    return actor


def _authorize(actor: Collaborator, *roles: CollaboratorRole) -> None:
    try:
        require_role(actor, *roles)
    except PermissionError as exc:
        logger.warning("Access denied for collaborator %s: %s", actor.id, exc)
        raise AuthorizationError(str(exc)) from exc


def _require_manager(uow: AbstractUnitOfWork, acting_user_id: uuid.UUID) -> Collaborator:
    actor = _get_actor_or_raise(uow, acting_user_id)
    _authorize(actor, CollaboratorRole.MANAGER)
    return actor


def _get_project_or_raise(uow: AbstractUnitOfWork, project_id: uuid.UUID) -> Project:
    project = uow.projects.get(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found.")
    return project


def _get_task_or_raise(project: Project, task_id: uuid.UUID) -> Task:
    task = project.find_task(task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found in project {project.id}.")
    return task


def _get_visible_project_or_raise(
    uow: AbstractUnitOfWork, project_id: uuid.UUID, actor: Collaborator
) -> Project:
    project = _get_project_or_raise(uow, project_id)
    if not can_access_project(project, actor):
        logger.warning("Collaborator %s may not view project %s", actor.id, project_id)
        raise AuthorizationError(f"Collaborator {actor.id} may not view project {project_id}.")
    return project


def _refresh_and_save(uow: AbstractUnitOfWork, project: Project) -> Project:
    """Recompute the derived project fields and persist the project."""
    project = _project_svc.recalculate_metrics(project)
    uow.projects.save(project)
    return project


# ===========================================================================
# USE CASES — PROJECTS
# ===========================================================================

@dataclass
class CreateProjectCommand:
    name: str
    description: str
    start_date: Optional[date]
    end_date: Optional[date]
    budget: float
    manager_id: uuid.UUID
    acting_user_id: uuid.UUID
    priority: PriorityLevel = PriorityLevel.MEDIUM


class CreateProjectUseCase:
    """
    Create a new project.  The manager becomes the first team member.
    """

    def execute(self, cmd: CreateProjectCommand, uow: AbstractUnitOfWork) -> ProjectDTO:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            manager = uow.collaborators.get(cmd.manager_id)
            if manager is None:
                raise NotFoundError(f"Manager {cmd.manager_id} not found.")

            project = _project_svc.create_project(
                name=cmd.name,
                description=cmd.description,
                start_date=cmd.start_date,
                end_date=cmd.end_date,
                budget=cmd.budget,
                priority=cmd.priority,
                manager=manager,
            )
            uow.projects.save(project)
            uow.commit()
            logger.info("Project %s '%s' created by %s", project.id, project.name, cmd.acting_user_id)
            return _Assembler.project(project)


class GetProjectUseCase:
    """Return one project; contributors only see the tasks assigned to them."""

    def execute(
        self, project_id: uuid.UUID, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork
    ) -> ProjectDTO:
        with uow:
            actor = _get_actor_or_raise(uow, acting_user_id)
            project = _get_visible_project_or_raise(uow, project_id, actor)
            return _Assembler.project(project, visible_tasks(project, actor))


class ListProjectsUseCase:
    def execute(self, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork) -> List[ProjectDTO]:
        with uow:
            actor = _get_actor_or_raise(uow, acting_user_id)
            return [
                _Assembler.project(p, visible_tasks(p, actor))
                for p in visible_projects(uow.projects.list_all(), actor)
            ]


# ===========================================================================
# USE CASES — TASKS
# ===========================================================================

@dataclass
class CreateTaskCommand:
    project_id: uuid.UUID
    name: str
    start_date: Optional[date]
    due_date: Optional[date]
    acting_user_id: uuid.UUID
    priority: PriorityLevel = PriorityLevel.MEDIUM
    description: str = ""


class CreateTaskUseCase:
    def execute(self, cmd: CreateTaskCommand, uow: AbstractUnitOfWork) -> TaskDTO:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            task = _task_svc.create_task(
                name=cmd.name,
                priority=cmd.priority,
                start_date=cmd.start_date,
                due_date=cmd.due_date,
                description=cmd.description,
            )
            project.tasks.append(task)
            _refresh_and_save(uow, project)
            uow.commit()
            logger.info("Task %s '%s' added to project %s", task.id, task.name, project.id)
            return _Assembler.task(task)


class ListTasksUseCase:
    """Tasks of a project, filtered to what the acting user may see."""

    def execute(
        self, project_id: uuid.UUID, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork
    ) -> List[TaskDTO]:
        with uow:
            actor = _get_actor_or_raise(uow, acting_user_id)
            project = _get_visible_project_or_raise(uow, project_id, actor)
            return [_Assembler.task(t) for t in visible_tasks(project, actor)]


@dataclass
class DeleteTaskCommand:
    project_id: uuid.UUID
    task_id: uuid.UUID
    acting_user_id: uuid.UUID


class DeleteTaskUseCase:
    """Delete a task.  Deleting an already-deleted task is a no-op."""

    def execute(self, cmd: DeleteTaskCommand, uow: AbstractUnitOfWork) -> None:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            removed = _task_svc.remove_task(project, cmd.task_id)
            _refresh_and_save(uow, project)
            uow.commit()
            if removed is not None:
                logger.info("Task %s deleted from project %s", cmd.task_id, cmd.project_id)


@dataclass
class SetTaskCollaboratorsCommand:
    project_id: uuid.UUID
    task_id: uuid.UUID
    collaborator_ids: List[uuid.UUID]
    acting_user_id: uuid.UUID


class SetTaskCollaboratorsUseCase:
    """
    Replace a task's assignees wholesale.  Every assignee is added to the
    project team; nobody is removed from the team.
    """

    def execute(self, cmd: SetTaskCollaboratorsCommand, uow: AbstractUnitOfWork) -> TaskDTO:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            task = _get_task_or_raise(project, cmd.task_id)
            for collaborator_id in cmd.collaborator_ids:
                if uow.collaborators.get(collaborator_id) is None:
                    raise NotFoundError(f"Collaborator {collaborator_id} not found.")

            _task_svc.set_collaborators(project, task, cmd.collaborator_ids)
            _refresh_and_save(uow, project)
            uow.commit()
            return _Assembler.task(task)


@dataclass
class UpdateTaskStatusCommand:
    project_id: uuid.UUID
    task_id: uuid.UUID
    new_status: TaskStatus
    note: str
    acting_user_id: uuid.UUID


class UpdateTaskStatusUseCase:
    """
    Set a task's status and log the mandatory progress note.

    Managers may update any task; contributors only their own.  No
    transition rules apply: COMPLETED → PENDING is allowed.
    """

    def execute(self, cmd: UpdateTaskStatusCommand, uow: AbstractUnitOfWork) -> TaskDTO:
        with uow:
            actor = _get_actor_or_raise(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            task = _get_task_or_raise(project, cmd.task_id)
            if not can_update_task_status(task, actor):
                logger.warning(
                    "Collaborator %s may not update task %s", actor.id, task.id
                )
                raise AuthorizationError(
                    f"Collaborator {actor.id} is not assigned to task {task.id}."
                )

            previous = task.status
            _task_svc.update_status(task, cmd.new_status, cmd.note)
            project = _refresh_and_save(uow, project)
            uow.commit()
            logger.info(
                "Task %s status %s -> %s (project %s now %s%%, %s)",
                task.id, previous.value, task.status.value,
                project.id, project.progress, project.status.value,
            )
            return _Assembler.task(task)


# ===========================================================================
# USE CASES — RESOURCES & DOCUMENTATION
# ===========================================================================

class ListResourcesUseCase:
    def execute(self, uow: AbstractUnitOfWork) -> List[ResourceDTO]:
        with uow:
            return [_Assembler.resource(r) for r in uow.resources.list_all()]


@dataclass
class AssignResourceCommand:
    project_id: uuid.UUID
    task_id: uuid.UUID
    resource_id: uuid.UUID
    acting_user_id: uuid.UUID
    quantity: float = 1


class AssignResourceUseCase:
    def execute(self, cmd: AssignResourceCommand, uow: AbstractUnitOfWork) -> ResourceAssignmentDTO:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            task = _get_task_or_raise(project, cmd.task_id)
            resource = uow.resources.get(cmd.resource_id)
            if resource is None:
                raise NotFoundError(f"Resource {cmd.resource_id} not found.")

            assignment = _resource_svc.assign(task, resource, cmd.quantity)
            project = _refresh_and_save(uow, project)
            uow.commit()
            logger.info(
                "Resource %s assigned to task %s (cost %s, project used budget %s)",
                resource.id, task.id, assignment.cost, project.used_budget,
            )
            return _Assembler.assignment(assignment)


@dataclass
class RemoveResourceCommand:
    project_id: uuid.UUID
    task_id: uuid.UUID
    assignment_id: uuid.UUID
    acting_user_id: uuid.UUID


class RemoveResourceUseCase:
    def execute(self, cmd: RemoveResourceCommand, uow: AbstractUnitOfWork) -> None:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            task = _get_task_or_raise(project, cmd.task_id)
            _resource_svc.remove(task, cmd.assignment_id)
            _refresh_and_save(uow, project)
            uow.commit()


@dataclass
class AddDocumentationCommand:
    project_id: uuid.UUID
    task_id: uuid.UUID
    document_names: List[str]
    acting_user_id: uuid.UUID


class AddDocumentationUseCase:
    """Attach documents to a task.  Budget and progress are unaffected."""

    def execute(self, cmd: AddDocumentationCommand, uow: AbstractUnitOfWork) -> List[TaskDocumentDTO]:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            task = _get_task_or_raise(project, cmd.task_id)
            documents = _doc_svc.add(task, cmd.document_names)
            uow.projects.save(project)
            uow.commit()
            return [_Assembler.document(d) for d in documents]


@dataclass
class RemoveDocumentationCommand:
    project_id: uuid.UUID
    task_id: uuid.UUID
    document_id: uuid.UUID
    acting_user_id: uuid.UUID


class RemoveDocumentationUseCase:
    def execute(self, cmd: RemoveDocumentationCommand, uow: AbstractUnitOfWork) -> None:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            project = _get_project_or_raise(uow, cmd.project_id)
            task = _get_task_or_raise(project, cmd.task_id)
            _doc_svc.remove(task, cmd.document_id)
            uow.projects.save(project)
            uow.commit()


# ===========================================================================
# USE CASES — COLLABORATORS
# ===========================================================================

@dataclass
class RegisterCollaboratorCommand:
    first_name: str
    last_name: str
    email: str
    phone: str
    acting_user_id: uuid.UUID


class RegisterCollaboratorUseCase:
    """Managers register contributor accounts; the role is always CONTRIBUTOR."""

    def execute(self, cmd: RegisterCollaboratorCommand, uow: AbstractUnitOfWork) -> CollaboratorDTO:
        with uow:
            _require_manager(uow, cmd.acting_user_id)
            collaborator = _collaborator_svc.register(
                first_name=cmd.first_name,
                last_name=cmd.last_name,
                email=cmd.email,
                phone=cmd.phone,
                existing=uow.collaborators.get_by_email(cmd.email or ""),
            )
            uow.collaborators.save(collaborator)
            uow.commit()
            logger.info("Collaborator %s registered by %s", collaborator.id, cmd.acting_user_id)
            return _Assembler.collaborator(collaborator)


class GetCollaboratorUseCase:
    def execute(self, collaborator_id: uuid.UUID, uow: AbstractUnitOfWork) -> CollaboratorDTO:
        with uow:
            return _Assembler.collaborator(_get_actor_or_raise(uow, collaborator_id))


class ListCollaboratorsUseCase:
    """Registry sorted by full name, case-insensitively."""

    def execute(self, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork) -> List[CollaboratorDTO]:
        with uow:
            _require_manager(uow, acting_user_id)
            collaborators = sorted(
                uow.collaborators.list_all(), key=lambda c: c.full_name.lower()
            )
            return [_Assembler.collaborator(c) for c in collaborators]


# ===========================================================================
# USE CASES — REPORTS
# ===========================================================================

class GetDashboardSummaryUseCase:
    def execute(self, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork) -> DashboardSummaryDTO:
        with uow:
            actor = _get_actor_or_raise(uow, acting_user_id)
            projects = visible_projects(uow.projects.list_all(), actor)
            return DashboardSummaryDTO(**_report_svc.dashboard_summary(projects))


class GetTaskStatusBreakdownUseCase:
    def execute(self, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork) -> List[ProjectStatusBreakdownDTO]:
        with uow:
            _require_manager(uow, acting_user_id)
            rows = _report_svc.task_status_breakdown(uow.projects.list_all())
            return [
                ProjectStatusBreakdownDTO(
                    project_id=str(row["project"].id),
                    project_name=row["project"].name,
                    statuses=[
                        TaskStatusCountDTO(
                            status=s["status"].value,
                            label=s["label"],
                            count=s["count"],
                            percentage=s["percentage"],
                        )
                        for s in row["statuses"]
                    ],
                )
                for row in rows
            ]


class GetCollaboratorsWithMultipleTasksUseCase:
    def execute(self, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork) -> List[CollaboratorTasksReportDTO]:
        with uow:
            _require_manager(uow, acting_user_id)
            rows = _report_svc.collaborators_with_multiple_tasks(
                uow.projects.list_all(), uow.collaborators.list_all()
            )
            return [
                CollaboratorTasksReportDTO(
                    collaborator=_Assembler.collaborator(row["collaborator"]),
                    tasks=[_Assembler.report_task(p, t) for p, t in row["tasks"]],
                )
                for row in rows
            ]


class GetOverAssignedCollaboratorsUseCase:
    def execute(self, acting_user_id: uuid.UUID, uow: AbstractUnitOfWork) -> List[CollaboratorTasksReportDTO]:
        with uow:
            _require_manager(uow, acting_user_id)
            rows = _report_svc.over_assigned_collaborators(
                uow.projects.list_all(), uow.collaborators.list_all()
            )
            return [
                CollaboratorTasksReportDTO(
                    collaborator=_Assembler.collaborator(row["collaborator"]),
                    tasks=[_Assembler.report_task(p, t) for p, t in row["conflicts"]],
                )
                for row in rows
            ]


class GetDelayedProjectsUseCase:
    def execute(
        self,
        acting_user_id: uuid.UUID,
        uow: AbstractUnitOfWork,
        today: Optional[date] = None,
    ) -> List[DelayedProjectDTO]:
        today = today or datetime.now(timezone.utc).date()
        with uow:
            _require_manager(uow, acting_user_id)
            rows = _report_svc.delayed_projects(uow.projects.list_all(), today)
            return [
                DelayedProjectDTO(
                    id=str(row["project"].id),
                    name=row["project"].name,
                    end_date=_fmt_date(row["project"].end_date),
                    delay_days=row["delay_days"],
                    pending_tasks=row["pending_tasks"],
                )
                for row in rows
            ]
