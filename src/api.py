"""
api.py

REST API layer for the Project Management Service.

Framework : FastAPI
Auth      : Bearer token.  The token is resolved to a Collaborator UUID by
            the get_current_user dependency; token issuance lives outside
            this service.  Every endpoint receives the resolved collaborator
            id as `current_user_id` and passes it to the relevant use case,
            which performs the role check.

Structure
---------
  Routers (all prefixed under /api/v1)
  ├── /collaborators                          — registry & contributor registration
  ├── /resources                              — resource catalog (read-only)
  ├── /projects                               — project creation & visibility-filtered reads
  │   └── /{project_id}/tasks                 — task CRUD
  │       ├── /{task_id}/collaborators        — assignee replacement
  │       ├── /{task_id}/resources            — resource assignment
  │       ├── /{task_id}/documents            — task documentation
  │       └── /{task_id}/status               — status + progress note
  └── /reports                                — operational reports

Error handling
--------------
  AuthenticationError → 401
  NotFoundError      → 404
  AuthorizationError → 403
  ValidationError    → 422 (with "field")
  ApplicationError   → 422
  ValueError         → 422
  GatewayError       → 502
  Unhandled          → 500 (FastAPI default)

Response envelope
-----------------
  Success  : { "data": <payload> }
  Error    : { "detail": "<message>" }

Running
-------
  uvicorn api:app --reload

Dependencies (install via pip)
-------------------------------
  fastapi>=0.110
  uvicorn[standard]>=0.29
  pydantic[email]>=2.0
  fastapi-mcp
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Path, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_mcp import FastApiMCP
from pydantic import BaseModel, EmailStr, Field, field_validator

from application import (
    # Exceptions
    ApplicationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
    AbstractUnitOfWork,
    # Use-case commands
    AddDocumentationCommand,
    AssignResourceCommand,
    CreateProjectCommand,
    CreateTaskCommand,
    DeleteTaskCommand,
    RegisterCollaboratorCommand,
    RemoveDocumentationCommand,
    RemoveResourceCommand,
    SetTaskCollaboratorsCommand,
    UpdateTaskStatusCommand,
    # Use-case classes
    AddDocumentationUseCase,
    AssignResourceUseCase,
    CreateProjectUseCase,
    CreateTaskUseCase,
    DeleteTaskUseCase,
    GetCollaboratorUseCase,
    GetCollaboratorsWithMultipleTasksUseCase,
    GetDashboardSummaryUseCase,
    GetDelayedProjectsUseCase,
    GetOverAssignedCollaboratorsUseCase,
    GetProjectUseCase,
    GetTaskStatusBreakdownUseCase,
    ListCollaboratorsUseCase,
    ListProjectsUseCase,
    ListResourcesUseCase,
    ListTasksUseCase,
    RegisterCollaboratorUseCase,
    RemoveDocumentationUseCase,
    RemoveResourceUseCase,
    SetTaskCollaboratorsUseCase,
    UpdateTaskStatusUseCase,
)
from gateway import BackendGateway, GatewayError, sync_into
from infrastructure import InMemoryUnitOfWork, seed_collaborator, seed_resources
from model import CollaboratorRole, PriorityLevel, TaskStatus, parse_priority
from settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


# ---------------------------------------------------------------------------
# App bootstrap
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Project Management API",
    version="1.0.0",
    description=(
        "REST API for managing projects and tasks: collaborator and resource "
        "assignment, status tracking with progress notes, derived budget and "
        "completion metrics, role-based visibility, and operational reports."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def seed_bootstrap_data():
    """
    Pull the remote backend's data when one is configured, then ensure the
    bootstrap manager exists so the API can be used right away (its UUID is
    the bearer token) and load the demo resource catalog.
    """
    if settings.backend_url and settings.backend_token:
        gateway = BackendGateway(
            settings.backend_url, settings.backend_token, timeout=settings.backend_timeout
        )
        load = gateway.load_initial_data(include_collaborators=True)
        sync_into(InMemoryUnitOfWork(), load)
        logger.info(
            "Loaded %d projects, %d collaborators and %d resources from %s",
            len(load.projects), len(load.collaborators), len(load.resources),
            settings.backend_url,
        )
        if not load.ok:
            logger.warning("Initial backend load incomplete: %s", "; ".join(load.errors))

    if not settings.seed_demo_data:
        return
    uow = InMemoryUnitOfWork()
    seed_collaborator(
        uow,
        settings.manager_id,
        first_name="Default",
        last_name="Manager",
        email="manager@example.com",
        role=CollaboratorRole.MANAGER,
    )
    seed_resources(uow)
    logger.info("Bootstrap manager available with bearer token %s", settings.manager_id)


# ---------------------------------------------------------------------------
# Global exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(AuthenticationError)
async def authentication_handler(request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AuthorizationError)
async def authorization_handler(request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(GatewayError)
async def gateway_error_handler(request, exc: GatewayError):
    logger.error("Backend gateway failure: %s", exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_uow() -> AbstractUnitOfWork:
    """Returns the in-memory Unit of Work (no database required)."""
    return InMemoryUnitOfWork()


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    uow: AbstractUnitOfWork = Depends(get_uow),
) -> uuid.UUID:
    """Resolve `Authorization: Bearer <collaborator-uuid>` to a known collaborator id."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Missing bearer token.")
    token = authorization.split(" ", 1)[1].strip()
    try:
        collaborator_id = uuid.UUID(token)
    except ValueError:
        raise AuthenticationError("Bearer token is not a collaborator id.") from None
    if uow.collaborators.get(collaborator_id) is None:
        raise AuthenticationError(f"Unknown collaborator {collaborator_id}.")
    return collaborator_id


# ---------------------------------------------------------------------------
# Envelope helper
# ---------------------------------------------------------------------------

def _ok(data: Any) -> Dict:
    """Wrap a DTO or list of DTOs in the standard success envelope."""
    if dataclasses.is_dataclass(data):
        return {"data": dataclasses.asdict(data)}
    if isinstance(data, list):
        return {
            "data": [
                dataclasses.asdict(item) if dataclasses.is_dataclass(item) else item
                for item in data
            ]
        }
    return {"data": data}


# ===========================================================================
# REQUEST BODY SCHEMAS  (Pydantic v2)
# ===========================================================================

def _coerce_priority(v: Any) -> PriorityLevel:
    """Unknown priority descriptions fall back to MEDIUM."""
    return parse_priority(v)


# ---------------------------------------------------------------------------
# Collaborator schemas
# ---------------------------------------------------------------------------

class RegisterCollaboratorRequest(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    email: EmailStr
    phone: str = Field(..., max_length=40)


# ---------------------------------------------------------------------------
# Project schemas
# ---------------------------------------------------------------------------

class CreateProjectRequest(BaseModel):
    name: str = Field(..., max_length=200)
    description: str = Field(..., max_length=4000)
    start_date: date
    end_date: date
    budget: float
    priority: PriorityLevel = PriorityLevel.MEDIUM
    manager_id: Optional[uuid.UUID] = Field(
        default=None, description="Defaults to the requesting manager."
    )

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v: Any) -> PriorityLevel:
        return _coerce_priority(v)


# ---------------------------------------------------------------------------
# Task schemas
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    name: str = Field(..., max_length=200)
    start_date: date
    due_date: date
    priority: PriorityLevel = PriorityLevel.MEDIUM
    description: str = Field(default="")

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v: Any) -> PriorityLevel:
        return _coerce_priority(v)


class SetTaskCollaboratorsRequest(BaseModel):
    collaborator_ids: List[uuid.UUID] = Field(default_factory=list)


class AssignResourceRequest(BaseModel):
    resource_id: uuid.UUID
    quantity: float = Field(default=1)


class AddDocumentationRequest(BaseModel):
    document_names: List[str] = Field(..., description="File names of the uploaded documents.")


class UpdateTaskStatusRequest(BaseModel):
    status: str = Field(..., description="One of: pending, in_progress, in_review, completed")
    note: str = Field(..., description="Mandatory progress note.")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        valid = {s.value for s in TaskStatus}
        if v not in valid:
            raise ValueError(f"status must be one of: {sorted(valid)}")
        return v


# ===========================================================================
# ROUTERS
# ===========================================================================

api_v1 = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

collaborator_router = APIRouter(prefix="/collaborators", tags=["Collaborators"])


@collaborator_router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Register a new contributor",
)
def register_collaborator(
    body: RegisterCollaboratorRequest,
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """
    Managers register contributor accounts.  Only the CONTRIBUTOR role can
    be created through this endpoint.
    """
    cmd = RegisterCollaboratorCommand(
        first_name=body.first_name,
        last_name=body.last_name,
        email=str(body.email),
        phone=body.phone,
        acting_user_id=current_user_id,
    )
    result = RegisterCollaboratorUseCase().execute(cmd, uow)
    return _ok(result)


@collaborator_router.get("", summary="List all collaborators (managers only)")
def list_collaborators(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = ListCollaboratorsUseCase().execute(current_user_id, uow)
    return _ok(result)


@collaborator_router.get("/me", summary="The collaborator behind the bearer token")
def get_me(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetCollaboratorUseCase().execute(current_user_id, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

resource_router = APIRouter(prefix="/resources", tags=["Resources"])


@resource_router.get("", summary="List the resource catalog")
def list_resources(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = ListResourcesUseCase().execute(uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

project_router = APIRouter(prefix="/projects", tags=["Projects"])


@project_router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a new project",
)
def create_project(
    body: CreateProjectRequest,
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """
    Creates the project in PLANNED status with the manager as its first
    team member.  `manager_id` defaults to the requesting manager.
    """
    cmd = CreateProjectCommand(
        name=body.name,
        description=body.description,
        start_date=body.start_date,
        end_date=body.end_date,
        budget=body.budget,
        priority=body.priority,
        manager_id=body.manager_id or current_user_id,
        acting_user_id=current_user_id,
    )
    result = CreateProjectUseCase().execute(cmd, uow)
    return _ok(result)


@project_router.get("", summary="List the projects visible to the current user")
def list_projects(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = ListProjectsUseCase().execute(current_user_id, uow)
    return _ok(result)


@project_router.get("/{project_id}", summary="Get a project by ID")
def get_project(
    project_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetProjectUseCase().execute(project_id, current_user_id, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

task_router = APIRouter(
    prefix="/projects/{project_id}/tasks",
    tags=["Tasks"],
)


@task_router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Add a task to a project",
)
def create_task(
    body: CreateTaskRequest,
    project_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = CreateTaskCommand(
        project_id=project_id,
        name=body.name,
        start_date=body.start_date,
        due_date=body.due_date,
        priority=body.priority,
        description=body.description,
        acting_user_id=current_user_id,
    )
    result = CreateTaskUseCase().execute(cmd, uow)
    return _ok(result)


@task_router.get("", summary="List the project tasks visible to the current user")
def list_tasks(
    project_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = ListTasksUseCase().execute(project_id, current_user_id, uow)
    return _ok(result)


@task_router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task (no-op if already deleted)",
)
def delete_task(
    project_id: uuid.UUID = Path(...),
    task_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = DeleteTaskCommand(
        project_id=project_id,
        task_id=task_id,
        acting_user_id=current_user_id,
    )
    DeleteTaskUseCase().execute(cmd, uow)


@task_router.put(
    "/{task_id}/collaborators",
    summary="Replace the collaborators assigned to a task",
)
def set_task_collaborators(
    body: SetTaskCollaboratorsRequest,
    project_id: uuid.UUID = Path(...),
    task_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """
    Duplicate ids are ignored.  Every assignee joins the project team;
    nobody is removed from the team.
    """
    cmd = SetTaskCollaboratorsCommand(
        project_id=project_id,
        task_id=task_id,
        collaborator_ids=body.collaborator_ids,
        acting_user_id=current_user_id,
    )
    result = SetTaskCollaboratorsUseCase().execute(cmd, uow)
    return _ok(result)


@task_router.post(
    "/{task_id}/resources",
    status_code=status.HTTP_201_CREATED,
    summary="Assign a catalog resource to a task",
)
def assign_resource(
    body: AssignResourceRequest,
    project_id: uuid.UUID = Path(...),
    task_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """The resource's current name and cost are copied onto the assignment."""
    cmd = AssignResourceCommand(
        project_id=project_id,
        task_id=task_id,
        resource_id=body.resource_id,
        quantity=body.quantity,
        acting_user_id=current_user_id,
    )
    result = AssignResourceUseCase().execute(cmd, uow)
    return _ok(result)


@task_router.delete(
    "/{task_id}/resources/{assignment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a resource assignment (no-op if absent)",
)
def remove_resource(
    project_id: uuid.UUID = Path(...),
    task_id: uuid.UUID = Path(...),
    assignment_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = RemoveResourceCommand(
        project_id=project_id,
        task_id=task_id,
        assignment_id=assignment_id,
        acting_user_id=current_user_id,
    )
    RemoveResourceUseCase().execute(cmd, uow)


@task_router.post(
    "/{task_id}/documents",
    status_code=status.HTTP_201_CREATED,
    summary="Attach documents to a task",
)
def add_documentation(
    body: AddDocumentationRequest,
    project_id: uuid.UUID = Path(...),
    task_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = AddDocumentationCommand(
        project_id=project_id,
        task_id=task_id,
        document_names=body.document_names,
        acting_user_id=current_user_id,
    )
    result = AddDocumentationUseCase().execute(cmd, uow)
    return _ok(result)


@task_router.delete(
    "/{task_id}/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a task document (no-op if absent)",
)
def remove_documentation(
    project_id: uuid.UUID = Path(...),
    task_id: uuid.UUID = Path(...),
    document_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    cmd = RemoveDocumentationCommand(
        project_id=project_id,
        task_id=task_id,
        document_id=document_id,
        acting_user_id=current_user_id,
    )
    RemoveDocumentationUseCase().execute(cmd, uow)


@task_router.patch(
    "/{task_id}/status",
    summary="Change a task's status with a mandatory progress note",
)
def update_task_status(
    body: UpdateTaskStatusRequest,
    project_id: uuid.UUID = Path(...),
    task_id: uuid.UUID = Path(...),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    """
    Managers can update any task; contributors only tasks assigned to them.
    Any status may follow any other.  The note is stored as a progress entry.
    """
    cmd = UpdateTaskStatusCommand(
        project_id=project_id,
        task_id=task_id,
        new_status=TaskStatus(body.status),
        note=body.note,
        acting_user_id=current_user_id,
    )
    result = UpdateTaskStatusUseCase().execute(cmd, uow)
    return _ok(result)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

report_router = APIRouter(prefix="/reports", tags=["Reports"])


@report_router.get("/dashboard", summary="Project counts and average progress")
def dashboard_summary(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetDashboardSummaryUseCase().execute(current_user_id, uow)
    return _ok(result)


@report_router.get("/projects/task-status", summary="Task status breakdown per project")
def task_status_breakdown(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetTaskStatusBreakdownUseCase().execute(current_user_id, uow)
    return _ok(result)


@report_router.get("/projects/delayed", summary="Unfinished projects past their end date")
def delayed_projects(
    today: Optional[date] = Query(default=None, description="Reference date; defaults to today (UTC)"),
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetDelayedProjectsUseCase().execute(current_user_id, uow, today=today)
    return _ok(result)


@report_router.get(
    "/collaborators/multiple-tasks",
    summary="Collaborators assigned to more than one task",
)
def collaborators_with_multiple_tasks(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetCollaboratorsWithMultipleTasksUseCase().execute(current_user_id, uow)
    return _ok(result)


@report_router.get(
    "/collaborators/over-assignment",
    summary="Collaborators with overlapping open tasks",
)
def over_assigned_collaborators(
    current_user_id: uuid.UUID = Depends(get_current_user),
    uow: AbstractUnitOfWork = Depends(get_uow),
):
    result = GetOverAssignedCollaboratorsUseCase().execute(current_user_id, uow)
    return _ok(result)


# ===========================================================================
# REGISTER ROUTERS
# ===========================================================================

api_v1.include_router(collaborator_router)
api_v1.include_router(resource_router)
api_v1.include_router(project_router)
api_v1.include_router(task_router)
api_v1.include_router(report_router)

app.include_router(api_v1)

# ---------------------------------------------------------------------------
# MCP Server — exposes all API routes as MCP tools
# Accessible at: http://localhost:8000/mcp
# ---------------------------------------------------------------------------
mcp = FastApiMCP(app)
mcp.mount()


# ===========================================================================
# HEALTH CHECK
# ===========================================================================

@app.get("/health", tags=["Health"], summary="Service health check")
def health():
    return {"status": "ok"}


# ===========================================================================
# OPENAPI CUSTOMISATION — tag order and descriptions
# ===========================================================================

tags_metadata = [
    {
        "name": "Health",
        "description": "Liveness probe.",
    },
    {
        "name": "Collaborators",
        "description": (
            "Collaborator registry.  Managers register contributor accounts; "
            "the bearer token of every request is a collaborator id."
        ),
    },
    {
        "name": "Resources",
        "description": "Read-only catalog of resources that can be assigned to tasks.",
    },
    {
        "name": "Projects",
        "description": (
            "Projects with derived progress, used budget and status.  Contributors "
            "only see projects they belong to, and only their own tasks within them."
        ),
    },
    {
        "name": "Tasks",
        "description": (
            "Tasks, their assignees, resource assignments, documents and status "
            "history.  Every structural change re-derives the project metrics."
        ),
    },
    {
        "name": "Reports",
        "description": (
            "Operational reports: dashboard summary, task status breakdown, "
            "delayed projects, and collaborator workload."
        ),
    },
]

app.openapi_tags = tags_metadata
