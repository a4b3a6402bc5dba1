"""
service.py

Service layer for the Project Management Service.

Responsibilities
----------------
Each service class encapsulates the business rules for its part of the
domain.  Services receive and return domain model instances (from
model.py).  No persistence is handled here: callers load entities from a
unit of work, hand them to a service, and save what comes back.

Services
--------
- ProjectService          – Project creation and derived-metrics recalculation
- TaskService             – Task creation, deletion, assignees, status updates
- ResourceService         – Resource assignment snapshots
- DocumentationService    – Task document bookkeeping
- CollaboratorService     – Contributor registration
- ReportService           – Read-only aggregations over projects

Visibility & access
-------------------
can_access_project / visible_projects / visible_tasks decide what a given
user may read.  require_role / can_update_task_status gate mutations.
All of them are pure functions.

Design notes
------------
- UTC datetimes are used throughout.
- Bad input raises ValidationError (a ValueError carrying the offending
  field name).  Validation always completes before any entity is touched,
  so a rejected call leaves its inputs unchanged.
- Role violations raise PermissionError; the application layer turns
  them into AuthorizationError.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

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
    task_status_label,
)

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised when an input field fails validation.  `field` names it."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: Optional[str], field: str) -> str:
    """Return the stripped value or raise if it is missing/blank."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(field, f"{field} must not be empty.")
    return cleaned


def _require_date_range(
    start: Optional[date],
    end: Optional[date],
    start_field: str,
    end_field: str,
) -> None:
    if start is None:
        raise ValidationError(start_field, f"{start_field} is required.")
    if end is None:
        raise ValidationError(end_field, f"{end_field} is required.")
    if end < start:
        raise ValidationError(end_field, f"{end_field} must not be before {start_field}.")


def _is_positive_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _unique(ids: Iterable[uuid.UUID]) -> List[uuid.UUID]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(ids))


# ---------------------------------------------------------------------------
# Visibility & access
# ---------------------------------------------------------------------------

def _is_manager(user: Optional[Collaborator]) -> bool:
    return user is not None and user.is_manager


def can_access_project(project: Project, user: Optional[Collaborator]) -> bool:
    """
    Managers see every project.  Contributors see a project when they are
    on its team or assigned to any of its tasks.
    """
    if user is None:
        return False
    if _is_manager(user):
        return True
    if user.id in project.team_ids:
        return True
    return any(user.id in task.assignee_ids for task in project.tasks)


def visible_projects(projects: Sequence[Project], user: Optional[Collaborator]) -> List[Project]:
    if user is None:
        return []
    if _is_manager(user):
        return list(projects)
    return [p for p in projects if can_access_project(p, user)]


def visible_tasks(project: Project, user: Optional[Collaborator]) -> List[Task]:
    if user is None:
        return []
    if _is_manager(user):
        return list(project.tasks)
    return [t for t in project.tasks if user.id in t.assignee_ids]


def require_role(user: Optional[Collaborator], *allowed_roles: CollaboratorRole) -> None:
    """Raise PermissionError if the user does not hold one of the allowed roles."""
    if user is None:
        raise PermissionError("An authenticated collaborator is required.")
    if user.role not in allowed_roles:
        raise PermissionError(
            f"Collaborator {user.id} does not hold any of the required "
            f"roles: {[r.value for r in allowed_roles]}."
        )


def can_update_task_status(task: Task, user: Optional[Collaborator]) -> bool:
    """Managers may update any task; contributors only tasks assigned to them."""
    if user is None:
        return False
    return _is_manager(user) or user.id in task.assignee_ids


# ---------------------------------------------------------------------------
# ProjectService
# ---------------------------------------------------------------------------

class ProjectService:
    """
    Manages project creation and the derived summary fields.
    """

    def create_project(
        self,
        name: str,
        description: str,
        start_date: Optional[date],
        end_date: Optional[date],
        budget: float,
        priority: PriorityLevel,
        manager: Collaborator,
    ) -> Project:
        """Validate and return a new Project (unsaved)."""
        name = _require_text(name, "name")
        description = _require_text(description, "description")
        _require_date_range(start_date, end_date, "start_date", "end_date")
        if not _is_positive_number(budget):
            raise ValidationError("budget", "budget must be a finite number greater than 0.")
        if not manager.is_manager:
            raise ValidationError(
                "manager_id", f"Collaborator {manager.id} is not a project manager."
            )

        project = Project(
            name=name,
            description=description,
            priority=priority,
            start_date=start_date,
            end_date=end_date,
            manager_id=manager.id,
            team_ids=[manager.id],
            budget=float(budget),
            used_budget=0.0,
            status=ProjectStatus.PLANNED,
            progress=0,
            tasks=[],
            created_at=_utcnow(),
            updated_at=_utcnow(),
        )
        return self.recalculate_metrics(project)

    def recalculate_metrics(self, project: Project) -> Project:
        """
        Return a copy of `project` with used_budget, progress and status
        re-derived from its tasks.  The input is not modified.

        - used_budget is the sum of every resource assignment cost.
        - progress is the share of COMPLETED tasks, rounded half up; 0 with
          no tasks.
        - status becomes COMPLETED at 100 %, moves PLANNED → IN_PROGRESS once
          any task is completed, and is otherwise left alone.  ON_HOLD is
          never changed here.
        """
        tasks = project.tasks
        used_budget = sum(
            assignment.cost for task in tasks for assignment in task.resources
        )

        if tasks:
            completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
            progress = _round_half_up(100 * completed / len(tasks))
        else:
            progress = 0

        status = project.status
        if status != ProjectStatus.ON_HOLD and tasks:
            if progress == 100:
                status = ProjectStatus.COMPLETED
            elif progress > 0 and status == ProjectStatus.PLANNED:
                status = ProjectStatus.IN_PROGRESS

        logger.debug(
            "Recalculated project %s: progress=%s used_budget=%s status=%s",
            project.id, progress, used_budget, status.value,
        )
        return replace(
            project,
            used_budget=float(used_budget),
            progress=progress,
            status=status,
            updated_at=_utcnow(),
        )


# ---------------------------------------------------------------------------
# TaskService
# ---------------------------------------------------------------------------

class TaskService:
    """
    Manages the task lifecycle inside a project.
    """

    def create_task(
        self,
        name: str,
        priority: PriorityLevel,
        start_date: Optional[date],
        due_date: Optional[date],
        description: str = "",
    ) -> Task:
        """Validate and return a new PENDING Task (not yet attached)."""
        name = _require_text(name, "name")
        _require_date_range(start_date, due_date, "start_date", "due_date")
        return Task(
            name=name,
            priority=priority,
            start_date=start_date,
            due_date=due_date,
            status=TaskStatus.PENDING,
            description=(description or "").strip(),
            assignee_ids=[],
            documentation=[],
            resources=[],
            progress_notes=[],
            created_at=_utcnow(),
        )

    def remove_task(self, project: Project, task_id: uuid.UUID) -> Optional[Task]:
        """
        Detach a task from its project.  Returns the removed task, or None if
        it was already gone (not an error).
        """
        task = project.find_task(task_id)
        if task is None:
            return None
        project.tasks = [t for t in project.tasks if t.id != task_id]
        return task

    def set_collaborators(
        self,
        project: Project,
        task: Task,
        collaborator_ids: Iterable[uuid.UUID],
    ) -> Task:
        """
        Replace the task's assignees and add them to the project team.
        The team only ever grows here.
        """
        assignees = _unique(collaborator_ids)
        task.assignee_ids = assignees
        project.team_ids = _unique([*project.team_ids, *assignees])
        return task

    def update_status(self, task: Task, new_status: TaskStatus, note: str) -> ProgressNote:
        """
        Record a progress note and set the new status.

        No transition graph is enforced: any status may follow any other.
        An empty note is rejected and leaves the task untouched.
        """
        message = _require_text(note, "note")
        progress_note = ProgressNote(message=message, created_at=_utcnow())
        task.progress_notes.append(progress_note)
        task.status = new_status
        return progress_note


# ---------------------------------------------------------------------------
# ResourceService
# ---------------------------------------------------------------------------

class ResourceService:
    """
    Allocates catalog resources to tasks.
    """

    def assign(self, task: Task, resource: Resource, quantity: float = 1) -> ResourceAssignment:
        """
        Snapshot the resource's current name and unit cost onto a new
        assignment.  A missing, non-finite or non-positive quantity counts
        as 1.
        """
        if not _is_positive_number(quantity):
            quantity = 1
        assignment = ResourceAssignment(
            resource_id=resource.id,
            name=resource.name,
            quantity=float(quantity),
            unit_cost=float(resource.cost),
            cost=float(resource.cost) * quantity,
            assigned_at=_utcnow(),
        )
        task.resources.append(assignment)
        return assignment

    def remove(self, task: Task, assignment_id: uuid.UUID) -> Optional[ResourceAssignment]:
        assignment = next((a for a in task.resources if a.id == assignment_id), None)
        if assignment is not None:
            task.resources = [a for a in task.resources if a.id != assignment_id]
        return assignment


# ---------------------------------------------------------------------------
# DocumentationService
# ---------------------------------------------------------------------------

class DocumentationService:

    def add(self, task: Task, document_names: Sequence[str]) -> List[TaskDocument]:
        names = [_require_text(name, "document_names") for name in document_names]
        uploaded_at = _utcnow()
        documents = [TaskDocument(name=name, uploaded_at=uploaded_at) for name in names]
        task.documentation.extend(documents)
        return documents

    def remove(self, task: Task, document_id: uuid.UUID) -> Optional[TaskDocument]:
        document = next((d for d in task.documentation if d.id == document_id), None)
        if document is not None:
            task.documentation = [d for d in task.documentation if d.id != document_id]
        return document


# ---------------------------------------------------------------------------
# CollaboratorService
# ---------------------------------------------------------------------------

class CollaboratorService:
    """
    Manages collaborator registration.
    """

    def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        existing: Optional[Collaborator] = None,
    ) -> Collaborator:
        """
        Create and return a new CONTRIBUTOR (unsaved).

        Only contributor accounts can be registered through this path;
        email is stored lower-cased and must be unique.  `existing` is the
        collaborator already registered under this email, if any.
        """
        first_name = _require_text(first_name, "first_name")
        last_name = _require_text(last_name, "last_name")
        email = _require_text(email, "email").lower()
        phone = _require_text(phone, "phone")
        if "@" not in email:
            raise ValidationError("email", f"'{email}' does not appear to be a valid email address.")
        if existing is not None:
            raise ValidationError("email", f"A collaborator with email '{email}' already exists.")
        return Collaborator(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            role=CollaboratorRole.CONTRIBUTOR,
            created_at=_utcnow(),
        )


# ---------------------------------------------------------------------------
# ReportService
# ---------------------------------------------------------------------------

class ReportService:
    """
    Read-only operational reports computed from the project collection.
    """

    def task_status_breakdown(self, projects: Sequence[Project]) -> List[Dict]:
        """Per project: number and share of tasks in every status."""
        rows: List[Dict] = []
        for project in projects:
            total = len(project.tasks) or 1
            counts = {status: 0 for status in TaskStatus}
            for task in project.tasks:
                counts[task.status] += 1
            rows.append({
                "project": project,
                "statuses": [
                    {
                        "status": status,
                        "label": task_status_label(status),
                        "count": count,
                        "percentage": _round_half_up(100 * count / total),
                    }
                    for status, count in counts.items()
                ],
            })
        return rows

    def dashboard_summary(self, projects: Sequence[Project]) -> Dict:
        total = len(projects)
        completed = sum(1 for p in projects if p.progress == 100)
        average = _round_half_up(sum(p.progress for p in projects) / total) if total else 0
        return {
            "total_projects": total,
            "completed_projects": completed,
            "active_projects": total - completed,
            "average_progress": average,
        }

    def collaborators_with_multiple_tasks(
        self,
        projects: Sequence[Project],
        collaborators: Sequence[Collaborator],
    ) -> List[Dict]:
        """Collaborators assigned to more than one task, with those tasks."""
        rows: List[Dict] = []
        for collaborator, assigned in self._tasks_by_collaborator(projects, collaborators):
            if len(assigned) > 1:
                rows.append({"collaborator": collaborator, "tasks": assigned})
        return rows

    def over_assigned_collaborators(
        self,
        projects: Sequence[Project],
        collaborators: Sequence[Collaborator],
    ) -> List[Dict]:
        """
        Collaborators whose open (non-completed) tasks overlap in time.
        Only the overlapping tasks are reported.
        """
        rows: List[Dict] = []
        for collaborator, assigned in self._tasks_by_collaborator(projects, collaborators):
            open_tasks = [
                (project, task) for project, task in assigned
                if task.status != TaskStatus.COMPLETED
                and task.start_date is not None
                and task.due_date is not None
            ]
            open_tasks.sort(key=lambda pt: pt[1].start_date)
            conflicting: Dict[uuid.UUID, tuple] = {}
            for i, (project_a, task_a) in enumerate(open_tasks):
                for project_b, task_b in open_tasks[i + 1:]:
                    if task_b.start_date > task_a.due_date:
                        break
                    conflicting[task_a.id] = (project_a, task_a)
                    conflicting[task_b.id] = (project_b, task_b)
            if conflicting:
                rows.append({"collaborator": collaborator, "conflicts": list(conflicting.values())})
        return rows

    def delayed_projects(self, projects: Sequence[Project], today: date) -> List[Dict]:
        """Unfinished projects whose end date has already passed."""
        rows: List[Dict] = []
        for project in projects:
            if project.end_date is None or project.end_date >= today:
                continue
            if project.status == ProjectStatus.COMPLETED or project.progress == 100:
                continue
            rows.append({
                "project": project,
                "delay_days": (today - project.end_date).days,
                "pending_tasks": sum(
                    1 for t in project.tasks if t.status != TaskStatus.COMPLETED
                ),
            })
        rows.sort(key=lambda r: r["delay_days"], reverse=True)
        return rows

    @staticmethod
    def _tasks_by_collaborator(
        projects: Sequence[Project],
        collaborators: Sequence[Collaborator],
    ):
        for collaborator in collaborators:
            assigned = [
                (project, task)
                for project in projects
                for task in project.tasks
                if collaborator.id in task.assignee_ids
            ]
            yield collaborator, assigned
