"""
Use-case tests: every operation runs through an in-memory unit of work.
"""
import uuid
from datetime import date

import pytest

from application import (
    AddDocumentationCommand,
    AddDocumentationUseCase,
    AssignResourceCommand,
    AssignResourceUseCase,
    AuthorizationError,
    CreateProjectCommand,
    CreateProjectUseCase,
    CreateTaskCommand,
    CreateTaskUseCase,
    DeleteTaskCommand,
    DeleteTaskUseCase,
    GetCollaboratorsWithMultipleTasksUseCase,
    GetDashboardSummaryUseCase,
    GetDelayedProjectsUseCase,
    GetProjectUseCase,
    GetTaskStatusBreakdownUseCase,
    ListCollaboratorsUseCase,
    ListProjectsUseCase,
    ListTasksUseCase,
    NotFoundError,
    RegisterCollaboratorCommand,
    RegisterCollaboratorUseCase,
    RemoveDocumentationCommand,
    RemoveDocumentationUseCase,
    RemoveResourceCommand,
    RemoveResourceUseCase,
    SetTaskCollaboratorsCommand,
    SetTaskCollaboratorsUseCase,
    UpdateTaskStatusCommand,
    UpdateTaskStatusUseCase,
    ValidationError,
)
from model import PriorityLevel, Resource, TaskStatus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def create_project(uow, manager_id, budget=100000, start=date(2025, 1, 1), end=date(2025, 6, 30)):
    cmd = CreateProjectCommand(
        name="Warehouse",
        description="New regional warehouse",
        start_date=start,
        end_date=end,
        budget=budget,
        manager_id=manager_id,
        acting_user_id=manager_id,
        priority=PriorityLevel.HIGH,
    )
    return CreateProjectUseCase().execute(cmd, uow)


def create_task(uow, manager_id, project_id, name="Foundations",
                start=date(2025, 1, 10), due=date(2025, 2, 10)):
    cmd = CreateTaskCommand(
        project_id=uuid.UUID(project_id),
        name=name,
        start_date=start,
        due_date=due,
        acting_user_id=manager_id,
    )
    return CreateTaskUseCase().execute(cmd, uow)


def assign(uow, manager_id, project_id, task_id, resource_id, quantity=1):
    cmd = AssignResourceCommand(
        project_id=uuid.UUID(project_id),
        task_id=uuid.UUID(task_id),
        resource_id=resource_id,
        acting_user_id=manager_id,
        quantity=quantity,
    )
    return AssignResourceUseCase().execute(cmd, uow)


def set_assignees(uow, manager_id, project_id, task_id, ids):
    cmd = SetTaskCollaboratorsCommand(
        project_id=uuid.UUID(project_id),
        task_id=uuid.UUID(task_id),
        collaborator_ids=ids,
        acting_user_id=manager_id,
    )
    return SetTaskCollaboratorsUseCase().execute(cmd, uow)


def update_status(uow, actor_id, project_id, task_id, status, note="Progress"):
    cmd = UpdateTaskStatusCommand(
        project_id=uuid.UUID(project_id),
        task_id=uuid.UUID(task_id),
        new_status=status,
        note=note,
        acting_user_id=actor_id,
    )
    return UpdateTaskStatusUseCase().execute(cmd, uow)


def stored_project(uow, project_id):
    return uow.projects.get(uuid.UUID(project_id))


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class TestCreateProject:

    def test_manager_creates_planned_project(self, uow, manager_id):
        project = create_project(uow, manager_id)
        assert project.status == "planned"
        assert project.progress == 0
        assert project.team_ids == [str(manager_id)]
        assert len(uow.projects.list_all()) == 1

    def test_negative_budget_leaves_collection_unchanged(self, uow, manager_id):
        create_project(uow, manager_id)
        before = uow.projects.list_all()
        with pytest.raises(ValidationError):
            create_project(uow, manager_id, budget=-5)
        after = uow.projects.list_all()
        assert [p.id for p in after] == [p.id for p in before]

    def test_end_before_start_rejected(self, uow, manager_id):
        with pytest.raises(ValidationError) as exc:
            create_project(uow, manager_id, start=date(2024, 6, 1), end=date(2024, 1, 1))
        assert exc.value.field == "end_date"
        assert uow.projects.list_all() == []

    def test_contributor_cannot_create(self, uow, contributor_id):
        with pytest.raises(AuthorizationError):
            create_project(uow, contributor_id)

    def test_unknown_actor(self, uow):
        with pytest.raises(NotFoundError):
            create_project(uow, uuid.uuid4())

    def test_unknown_manager_id(self, uow, manager_id):
        cmd = CreateProjectCommand(
            name="Warehouse",
            description="New regional warehouse",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 6, 30),
            budget=100000,
            manager_id=uuid.uuid4(),
            acting_user_id=manager_id,
        )
        with pytest.raises(NotFoundError):
            CreateProjectUseCase().execute(cmd, uow)
        assert uow.projects.list_all() == []


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class TestTasks:

    def test_create_task_in_unknown_project(self, uow, manager_id):
        with pytest.raises(NotFoundError):
            create_task(uow, manager_id, str(uuid.uuid4()))

    def test_bad_task_dates_leave_project_unchanged(self, uow, manager_id):
        project = create_project(uow, manager_id)
        with pytest.raises(ValidationError):
            create_task(uow, manager_id, project.id, start=date(2025, 3, 1), due=date(2025, 2, 1))
        assert stored_project(uow, project.id).tasks == []

    def test_delete_task_twice_is_idempotent(self, uow, manager_id):
        project = create_project(uow, manager_id)
        keep = create_task(uow, manager_id, project.id, name="Keep")
        drop = create_task(uow, manager_id, project.id, name="Drop")
        cmd = DeleteTaskCommand(
            project_id=uuid.UUID(project.id),
            task_id=uuid.UUID(drop.id),
            acting_user_id=manager_id,
        )
        DeleteTaskUseCase().execute(cmd, uow)
        once = [t.id for t in stored_project(uow, project.id).tasks]
        DeleteTaskUseCase().execute(cmd, uow)
        twice = [t.id for t in stored_project(uow, project.id).tasks]
        assert once == twice == [uuid.UUID(keep.id)]

    def test_deleting_last_open_task_recalculates_progress(self, uow, manager_id):
        project = create_project(uow, manager_id)
        done = create_task(uow, manager_id, project.id, name="Done")
        open_task = create_task(uow, manager_id, project.id, name="Open")
        update_status(uow, manager_id, project.id, done.id, TaskStatus.COMPLETED)
        assert stored_project(uow, project.id).progress == 50

        DeleteTaskUseCase().execute(
            DeleteTaskCommand(uuid.UUID(project.id), uuid.UUID(open_task.id), manager_id), uow
        )
        stored = stored_project(uow, project.id)
        assert stored.progress == 100
        assert stored.status.value == "completed"

    def test_set_collaborators_adds_to_team(self, uow, manager_id, contributor_id, other_contributor_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        result = set_assignees(uow, manager_id, project.id, task.id,
                               [contributor_id, other_contributor_id, contributor_id])
        assert result.assignee_ids == [str(contributor_id), str(other_contributor_id)]
        assert stored_project(uow, project.id).team_ids == [
            manager_id, contributor_id, other_contributor_id,
        ]

    def test_set_collaborators_unknown_id(self, uow, manager_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        with pytest.raises(NotFoundError):
            set_assignees(uow, manager_id, project.id, task.id, [uuid.uuid4()])
        assert stored_project(uow, project.id).tasks[0].assignee_ids == []


class TestUpdateTaskStatus:

    def test_empty_note_leaves_task_unchanged(self, uow, manager_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        with pytest.raises(ValidationError):
            update_status(uow, manager_id, project.id, task.id, TaskStatus.COMPLETED, note="")
        stored = stored_project(uow, project.id).tasks[0]
        assert stored.status == TaskStatus.PENDING
        assert stored.progress_notes == []

    def test_contributor_updates_own_task(self, uow, manager_id, contributor_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        set_assignees(uow, manager_id, project.id, task.id, [contributor_id])
        result = update_status(uow, contributor_id, project.id, task.id,
                               TaskStatus.IN_REVIEW, note="Ready for review")
        assert result.status == "in_review"
        assert result.status_label == "In review"
        assert [n.message for n in result.progress_notes] == ["Ready for review"]

    def test_contributor_cannot_update_others_task(self, uow, manager_id, contributor_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        with pytest.raises(AuthorizationError):
            update_status(uow, contributor_id, project.id, task.id, TaskStatus.COMPLETED)

    def test_completed_can_go_back_to_pending(self, uow, manager_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        update_status(uow, manager_id, project.id, task.id, TaskStatus.COMPLETED)
        result = update_status(uow, manager_id, project.id, task.id, TaskStatus.PENDING, note="Reopened")
        assert result.status == "pending"
        assert len(result.progress_notes) == 2
        assert stored_project(uow, project.id).progress == 0


# ---------------------------------------------------------------------------
# Resources & documentation
# ---------------------------------------------------------------------------

class TestResources:

    def test_used_budget_follows_assignments(self, uow, manager_id, resource):
        heavy = Resource(name="Crane", type="Machinery", cost=32000.0)
        uow.resources.save(heavy)
        project = create_project(uow, manager_id, budget=100000)
        first = create_task(uow, manager_id, project.id, name="Dig")
        second = create_task(uow, manager_id, project.id, name="Lift")

        excavator = assign(uow, manager_id, project.id, first.id, resource.id)
        assign(uow, manager_id, project.id, second.id, heavy.id)
        assert stored_project(uow, project.id).used_budget == 47000.0

        RemoveResourceUseCase().execute(
            RemoveResourceCommand(
                project_id=uuid.UUID(project.id),
                task_id=uuid.UUID(first.id),
                assignment_id=uuid.UUID(excavator.id),
                acting_user_id=manager_id,
            ),
            uow,
        )
        assert stored_project(uow, project.id).used_budget == 32000.0

    def test_unknown_resource(self, uow, manager_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        with pytest.raises(NotFoundError):
            assign(uow, manager_id, project.id, task.id, uuid.uuid4())
        assert stored_project(uow, project.id).tasks[0].resources == []

    def test_quantity_multiplies_cost(self, uow, manager_id, resource):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        result = assign(uow, manager_id, project.id, task.id, resource.id, quantity=2)
        assert result.cost == 30000.0
        assert stored_project(uow, project.id).used_budget == 30000.0

    def test_catalog_price_change_does_not_touch_assignment(self, uow, manager_id, resource):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        assign(uow, manager_id, project.id, task.id, resource.id)
        resource.cost = 1.0
        uow.resources.save(resource)
        assert stored_project(uow, project.id).used_budget == 15000.0

    def test_remove_missing_assignment_is_noop(self, uow, manager_id, resource):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        assign(uow, manager_id, project.id, task.id, resource.id)
        RemoveResourceUseCase().execute(
            RemoveResourceCommand(uuid.UUID(project.id), uuid.UUID(task.id), uuid.uuid4(), manager_id),
            uow,
        )
        assert stored_project(uow, project.id).used_budget == 15000.0


class TestDocumentation:

    def test_add_and_remove(self, uow, manager_id):
        project = create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        docs = AddDocumentationUseCase().execute(
            AddDocumentationCommand(uuid.UUID(project.id), uuid.UUID(task.id),
                                    ["plan.pdf", "permit.pdf"], manager_id),
            uow,
        )
        assert [d.name for d in docs] == ["plan.pdf", "permit.pdf"]

        RemoveDocumentationUseCase().execute(
            RemoveDocumentationCommand(uuid.UUID(project.id), uuid.UUID(task.id),
                                       uuid.UUID(docs[0].id), manager_id),
            uow,
        )
        stored = stored_project(uow, project.id).tasks[0]
        assert [d.name for d in stored.documentation] == ["permit.pdf"]


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

class TestVisibility:

    def test_contributor_sees_only_assigned_tasks(
        self, uow, manager_id, contributor_id, other_contributor_id
    ):
        project = create_project(uow, manager_id)
        shared = create_task(uow, manager_id, project.id, name="Shared")
        theirs = create_task(uow, manager_id, project.id, name="Theirs")
        set_assignees(uow, manager_id, project.id, shared.id, [contributor_id, other_contributor_id])
        set_assignees(uow, manager_id, project.id, theirs.id, [other_contributor_id])

        tasks = ListTasksUseCase().execute(uuid.UUID(project.id), contributor_id, uow)
        assert [t.name for t in tasks] == ["Shared"]

        view = GetProjectUseCase().execute(uuid.UUID(project.id), contributor_id, uow)
        assert [t.name for t in view.tasks] == ["Shared"]

    def test_manager_sees_all_projects(self, uow, manager_id):
        create_project(uow, manager_id)
        create_project(uow, manager_id)
        assert len(ListProjectsUseCase().execute(manager_id, uow)) == 2

    def test_contributor_outside_project(self, uow, manager_id, contributor_id):
        project = create_project(uow, manager_id)
        assert ListProjectsUseCase().execute(contributor_id, uow) == []
        with pytest.raises(AuthorizationError):
            GetProjectUseCase().execute(uuid.UUID(project.id), contributor_id, uow)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class TestCollaborators:

    def _register(self, uow, actor_id, email="eve@example.com"):
        cmd = RegisterCollaboratorCommand(
            first_name="Eve", last_name="Engineer", email=email,
            phone="555-0100", acting_user_id=actor_id,
        )
        return RegisterCollaboratorUseCase().execute(cmd, uow)

    def test_register_contributor(self, uow, manager_id):
        result = self._register(uow, manager_id)
        assert result.role == "contributor"
        assert uow.collaborators.get_by_email("EVE@example.com") is not None

    def test_duplicate_email(self, uow, manager_id):
        with pytest.raises(ValidationError):
            self._register(uow, manager_id, email="carl@example.com")

    def test_duplicate_email_ignores_case(self, uow, manager_id):
        with pytest.raises(ValidationError) as exc:
            self._register(uow, manager_id, email="  CARL@Example.com ")
        assert exc.value.field == "email"
        assert len(uow.collaborators.list_all()) == 3

    def test_contributor_cannot_register(self, uow, contributor_id):
        with pytest.raises(AuthorizationError):
            self._register(uow, contributor_id)

    def test_list_sorted_by_name(self, uow, manager_id):
        names = [c.full_name for c in ListCollaboratorsUseCase().execute(manager_id, uow)]
        assert names == ["Ada Manager", "Carl Contributor", "Dora Developer"]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class TestReports:

    def test_dashboard_uses_visible_projects(self, uow, manager_id, contributor_id):
        project = create_project(uow, manager_id)
        create_project(uow, manager_id)
        task = create_task(uow, manager_id, project.id)
        set_assignees(uow, manager_id, project.id, task.id, [contributor_id])
        update_status(uow, manager_id, project.id, task.id, TaskStatus.COMPLETED)

        summary = GetDashboardSummaryUseCase().execute(contributor_id, uow)
        assert summary.total_projects == 1
        assert summary.completed_projects == 1

        summary = GetDashboardSummaryUseCase().execute(manager_id, uow)
        assert summary.total_projects == 2
        assert summary.average_progress == 50

    def test_task_status_breakdown(self, uow, manager_id):
        project = create_project(uow, manager_id)
        create_task(uow, manager_id, project.id)
        (row,) = GetTaskStatusBreakdownUseCase().execute(manager_id, uow)
        pending = next(s for s in row.statuses if s.status == "pending")
        assert (pending.count, pending.percentage, pending.label) == (1, 100, "Pending")

    def test_multiple_tasks_report(self, uow, manager_id, contributor_id):
        project = create_project(uow, manager_id)
        for name in ("One", "Two"):
            task = create_task(uow, manager_id, project.id, name=name)
            set_assignees(uow, manager_id, project.id, task.id, [contributor_id])
        (row,) = GetCollaboratorsWithMultipleTasksUseCase().execute(manager_id, uow)
        assert row.collaborator.id == str(contributor_id)
        assert sorted(t.name for t in row.tasks) == ["One", "Two"]

    def test_delayed_projects(self, uow, manager_id):
        create_project(uow, manager_id, start=date(2024, 1, 1), end=date(2024, 3, 1))
        (row,) = GetDelayedProjectsUseCase().execute(manager_id, uow, today=date(2024, 3, 11))
        assert row.delay_days == 10

    def test_reports_require_manager(self, uow, contributor_id):
        with pytest.raises(AuthorizationError):
            GetDelayedProjectsUseCase().execute(contributor_id, uow)
