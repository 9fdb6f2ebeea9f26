"""Task routes."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, File, Response, UploadFile, status
from pydantic import ConfigDict, Field

from taskcred.core.domain_types import Task, TaskStatus
from taskcred.core.transitions import UNSET
from taskcred.entrypoints.api.deps import get_task_service
from taskcred.entrypoints.api.middleware.auth import CurrentSession, RequireAdmin
from taskcred.entrypoints.api.schemas import CamelModel, TaskResponse
from taskcred.services.tasks import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])

TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def to_response(task_service: TaskService, task: Task) -> TaskResponse:
    """Task response with the owner's name and e-mail resolved."""
    return TaskResponse.from_task(task, await task_service.owner_accounts([task]))


async def to_responses(task_service: TaskService, tasks: list[Task]) -> list[TaskResponse]:
    owners = await task_service.owner_accounts(tasks)
    return [TaskResponse.from_task(t, owners) for t in tasks]


def content_disposition(filename: str) -> str:
    """Attachment header value safe for any filename.

    Latin-1 header values cannot carry arbitrary unicode, so the plain
    ``filename`` gets an ASCII fallback and ``filename*`` carries the
    UTF-8 name percent-encoded (RFC 5987).
    """
    fallback = "".join(
        ch if 0x20 <= ord(ch) < 0x7F and ch not in '"\\' else "_" for ch in filename
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


class CreateTaskRequest(CamelModel):
    """Request to create a task.

    Leaving out ``owner`` makes the creator the owner; ``owner: null``
    creates an unassigned task.
    """

    model_config = ConfigDict(extra="forbid")

    title: str
    description: str
    owner: str | None = None
    status: TaskStatus | None = None
    due_date: datetime | None = None
    priority: str | None = None
    is_public: bool | None = None
    visible_to: list[str] | None = None


class AssignRequest(CamelModel):
    """Ownership change. ``userId: null`` releases the task."""

    model_config = ConfigDict(extra="forbid")

    user_id: str | None = Field(...)


class VisibilityRequest(CamelModel):
    """Visibility change."""

    model_config = ConfigDict(extra="forbid")

    is_public: bool | None = None
    visible_to: list[str] | None = None


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: CreateTaskRequest,
    session: CurrentSession,
    task_service: TaskServiceDep,
) -> TaskResponse:
    """Create a task."""
    task = await task_service.create(
        session.account,
        body.title,
        body.description,
        owner_id=body.owner if "owner" in body.model_fields_set else UNSET,
        status=body.status,
        due_date=body.due_date,
        priority=body.priority,
        is_public=body.is_public,
        visible_to=body.visible_to,
    )
    return await to_response(task_service, task)


@router.get("", response_model=list[TaskResponse])
async def list_tasks(session: CurrentSession, task_service: TaskServiceDep) -> list[TaskResponse]:
    """Tasks the caller owns, can see publicly, or was granted."""
    tasks = await task_service.list_visible(session.account)
    return await to_responses(task_service, tasks)


@router.get("/all", response_model=list[TaskResponse])
async def list_all_tasks(admin: RequireAdmin, task_service: TaskServiceDep) -> list[TaskResponse]:
    """Every task (admin only)."""
    tasks = await task_service.list_all(admin.account)
    return await to_responses(task_service, tasks)


@router.get("/export")
async def export_tasks(session: CurrentSession, task_service: TaskServiceDep) -> Response:
    """Download the visible tasks as an Excel workbook."""
    content = await task_service.export_xlsx(session.account)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": content_disposition("tasks.xlsx")},
    )


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    session: CurrentSession,
    task_service: TaskServiceDep,
) -> TaskResponse:
    """Get one task."""
    task = await task_service.get(session.account, task_id)
    return await to_response(task_service, task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    session: CurrentSession,
    task_service: TaskServiceDep,
    body: Annotated[dict[str, Any], Body()],
) -> TaskResponse:
    """General field update.

    Accepts title, description, status, dueDate, priority, visibleTo and
    isPublic. Any other field rejects the whole request.
    """
    task = await task_service.update(session.account, task_id, body)
    return await to_response(task_service, task)


@router.delete("/{task_id}", response_model=TaskResponse)
async def delete_task(
    task_id: str,
    session: CurrentSession,
    task_service: TaskServiceDep,
) -> TaskResponse:
    """Delete a task and its attachment."""
    task = await task_service.delete(session.account, task_id)
    return await to_response(task_service, task)


@router.patch("/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: str,
    body: AssignRequest,
    session: CurrentSession,
    task_service: TaskServiceDep,
) -> TaskResponse:
    """Claim, assign or release a task."""
    task = await task_service.assign(session.account, task_id, body.user_id)
    return await to_response(task_service, task)


@router.patch("/{task_id}/visibility", response_model=TaskResponse)
async def change_visibility(
    task_id: str,
    body: VisibilityRequest,
    session: CurrentSession,
    task_service: TaskServiceDep,
) -> TaskResponse:
    """Make a task public or restrict it to a list of accounts."""
    task = await task_service.change_visibility(
        session.account, task_id, body.is_public, body.visible_to
    )
    return await to_response(task_service, task)


# ============================================================================
# Attachments
# ============================================================================


@router.post("/{task_id}/attachment", response_model=TaskResponse)
async def upload_attachment(
    task_id: str,
    session: CurrentSession,
    task_service: TaskServiceDep,
    file: Annotated[UploadFile, File()],
) -> TaskResponse:
    """Upload or replace the task's attachment."""
    data = await file.read()
    task = await task_service.upload_attachment(
        session.account,
        task_id,
        filename=file.filename or "attachment",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return await to_response(task_service, task)


@router.get("/{task_id}/attachment")
async def download_attachment(
    task_id: str,
    session: CurrentSession,
    task_service: TaskServiceDep,
) -> Response:
    """Download the task's attachment."""
    stored = await task_service.get_attachment(session.account, task_id)
    return Response(
        content=stored.data,
        media_type=stored.content_type,
        headers={"Content-Disposition": content_disposition(stored.filename)},
    )


@router.delete("/{task_id}/attachment", response_model=TaskResponse)
async def delete_attachment(
    task_id: str,
    session: CurrentSession,
    task_service: TaskServiceDep,
) -> TaskResponse:
    """Remove the task's attachment."""
    task = await task_service.delete_attachment(session.account, task_id)
    return await to_response(task_service, task)
