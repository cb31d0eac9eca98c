from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from pydantic import ValidationError

from ..errors import TaskNotFoundError, TaskValidationError
from ..repositories import ORDERS, SORT_FIELDS, STATUSES, ListQuery, Repository, get_repository
from ..schemas import (
    ClearResult,
    CompleteAllRequest,
    ImportResult,
    TaskCreate,
    TaskImport,
    TaskOut,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)


def _out(items) -> List[TaskOut]:
    return [TaskOut(**it) for it in items]  # type: ignore[arg-type]


# Bulk routes are declared before /{task_id} so their literal paths win.

# PUBLIC_INTERFACE
@router.post(
    "/complete_all",
    response_model=List[TaskOut],
    summary="Complete all tasks",
    description="Set the completion flag of every task and return the full list in default order.",
)
def complete_all(
    payload: Optional[CompleteAllRequest] = None,
    repo: Repository = Depends(get_repository),
) -> List[TaskOut]:
    value = payload.value if payload is not None else True
    touched = repo.complete_all(value)
    logger.info("Marked %d task(s) completed=%s", touched, value)
    return _out(repo.list(ListQuery()))


# PUBLIC_INTERFACE
@router.delete(
    "/clear_completed",
    response_model=ClearResult,
    summary="Clear completed tasks",
    description="Delete every completed task in a single statement.",
)
def clear_completed(repo: Repository = Depends(get_repository)) -> ClearResult:
    deleted = repo.clear_completed()
    logger.info("Cleared %d completed task(s)", deleted)
    return ClearResult(deleted=deleted)


# PUBLIC_INTERFACE
@router.get(
    "/export",
    response_model=List[TaskOut],
    summary="Export tasks",
    description="Return every task, ordered by id, as a downloadable JSON array.",
)
def export_tasks(response: Response, repo: Repository = Depends(get_repository)) -> List[TaskOut]:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    response.headers["Content-Disposition"] = f'attachment; filename="tasks-export-{stamp}.json"'
    return _out(repo.export())


# PUBLIC_INTERFACE
@router.post(
    "/import",
    response_model=ImportResult,
    summary="Import tasks",
    description=(
        "Insert every well-formed element of a JSON array of tasks (the export format). "
        "Malformed elements are skipped; ids are reassigned."
    ),
    responses={400: {"description": "Body is not a JSON array"}},
)
def import_tasks(
    payload: List[Any] = Body(..., description="JSON array of task objects"),
    repo: Repository = Depends(get_repository),
) -> ImportResult:
    valid: List[TaskImport] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        try:
            valid.append(TaskImport.model_validate(entry))
        except ValidationError as e:
            logger.debug("Skipping malformed import entry %r: %s", entry, e)
    imported = repo.import_many(valid)
    skipped = len(payload) - imported
    logger.info("Imported %d task(s), skipped %d", imported, skipped)
    return ImportResult(imported=imported, skipped=skipped)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List tasks",
    description=(
        "List tasks with optional filtering and sorting.\n\n"
        "Query parameters:\n"
        "- status: all (default), active or completed\n"
        "- search: case-insensitive substring of the title\n"
        "- sort: created_at (default), due_date or priority; unknown values fall back to created_at\n"
        "- order: asc or desc (default)"
    ),
    responses={400: {"description": "Invalid query parameters"}},
)
def list_tasks(
    status_: str = Query("all", alias="status", description="all, active or completed"),
    search: Optional[str] = Query(None, description="Search text for the title"),
    sort: str = Query("created_at", description="created_at, due_date or priority"),
    order: str = Query("desc", description="asc or desc"),
    repo: Repository = Depends(get_repository),
) -> List[TaskOut]:
    status_norm = status_.strip().lower()
    if status_norm not in STATUSES:
        raise TaskValidationError("status must be 'all', 'active' or 'completed'")
    order_norm = order.strip().lower()
    if order_norm not in ORDERS:
        raise TaskValidationError("order must be 'asc' or 'desc'")
    sort_norm = sort.strip().lower()
    if sort_norm not in SORT_FIELDS:
        sort_norm = "created_at"

    query = ListQuery(
        status=status_norm,
        search=search.strip() if search and search.strip() else None,
        sort=sort_norm,
        order=order_norm,
    )
    return _out(repo.list(query))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create task",
    description="Create a new task and return it.",
    responses={400: {"description": "Title missing or blank, or malformed body"}},
)
def create_task(payload: TaskCreate, repo: Repository = Depends(get_repository)) -> TaskOut:
    created = repo.create(payload)
    logger.info("Created task %d", created["id"])
    return TaskOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get task",
    responses={404: {"description": "Task not found"}},
)
def get_task(task_id: int, repo: Repository = Depends(get_repository)) -> TaskOut:
    item = repo.get(task_id)
    if not item:
        raise TaskNotFoundError(task_id)
    return TaskOut(**item)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update task",
    description="Partially update title, completed, due_date or priority of a task.",
    responses={
        404: {"description": "Task not found"},
        400: {"description": "Invalid field values"},
    },
)
def patch_task(task_id: int, payload: TaskUpdate, repo: Repository = Depends(get_repository)) -> TaskOut:
    updated = repo.update(task_id, payload)
    if not updated:
        raise TaskNotFoundError(task_id)
    return TaskOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete task",
    responses={404: {"description": "Task not found"}},
)
def delete_task(task_id: int, repo: Repository = Depends(get_repository)) -> Response:
    """
    Delete a task. Returns 204 with an empty body on success, 404 if not found.
    """
    if not repo.delete(task_id):
        raise TaskNotFoundError(task_id)
    logger.info("Deleted task %d", task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
