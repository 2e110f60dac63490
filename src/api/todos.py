"""Todo API endpoints. Every route is scoped to the authenticated user."""

import math
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
import structlog

from src.api.dependencies import get_current_user
from src.api.responses import success_response
from src.models.todo import Todo, TodoCreate, TodoPriority, TodoStatus, TodoUpdate
from src.models.user import User
from src.services.errors import NotFoundError, ValidationError
from src.services.todo_service import TodoService
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/todos", tags=["Todos"])

TODO_NOT_FOUND = "Todo not found or you do not have access to it"


def _todo_list(todos: List[Todo]) -> List[dict]:
    return [t.to_response() for t in todos]


def _paginated(todos: List[Todo], total: int, page: int, limit: int) -> JSONResponse:
    return success_response(
        data=_todo_list(todos),
        count=len(todos),
        total=total,
        currentPage=page,
        totalPages=math.ceil(total / limit) if total else 0,
    )


@router.get("")
async def list_todos(
    status_filter: Optional[TodoStatus] = Query(default=None, alias="status"),
    priority: Optional[TodoPriority] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """List todos owned by or assigned to the current user."""
    todos, total = await TodoService().list_todos(
        current_user.id,
        status=status_filter,
        priority=priority,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return _paginated(todos, total, page, limit)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_todo(
    request: TodoCreate,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Create a todo, optionally assigned to another user."""
    if request.assigned_to is not None and request.assigned_to != current_user.id:
        assignee = await UserService().get_by_id(request.assigned_to)
        if assignee is None:
            raise ValidationError(
                "Invalid data", errors=["Assigned user does not exist"]
            )

    todo = await TodoService().create_todo(current_user.id, request)
    return success_response(
        data=todo.to_response(),
        message="Todo created",
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/created-by-me")
async def list_created_by_me(
    status_filter: Optional[TodoStatus] = Query(default=None, alias="status"),
    priority: Optional[TodoPriority] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """List todos the current user created, whoever they are assigned to."""
    todos, total = await TodoService().list_todos(
        current_user.id,
        status=status_filter,
        priority=priority,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        owner_field="created_by",
    )
    return _paginated(todos, total, page, limit)


@router.get("/overdue")
async def list_overdue(current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Todos past their end time that are not completed."""
    todos = await TodoService().list_overdue(current_user.id)
    return success_response(data=_todo_list(todos), count=len(todos))


@router.get("/date-range")
async def list_by_date_range(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Todos that overlap the given window."""
    if start_date.tzinfo is None:
        start_date = start_date.replace(tzinfo=timezone.utc)
    if end_date.tzinfo is None:
        end_date = end_date.replace(tzinfo=timezone.utc)
    if end_date < start_date:
        raise ValidationError("Invalid data", errors=["endDate must not be before startDate"])

    todos = await TodoService().list_by_date_range(current_user.id, start_date, end_date)
    return success_response(data=_todo_list(todos), count=len(todos))


@router.get("/status/{todo_status}")
async def list_by_status(
    todo_status: TodoStatus,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Todos with the given status."""
    todos = await TodoService().list_by_status(current_user.id, todo_status)
    return success_response(data=_todo_list(todos), count=len(todos))


@router.get("/{todo_id}")
async def get_todo(
    todo_id: UUID,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    todo = await TodoService().get_todo(todo_id, current_user.id)
    if todo is None:
        raise NotFoundError(TODO_NOT_FOUND)
    return success_response(data=todo.to_response())


@router.put("/{todo_id}")
async def update_todo(
    todo_id: UUID,
    request: TodoUpdate,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    todo = await TodoService().update_todo(todo_id, current_user.id, request)
    if todo is None:
        raise NotFoundError(TODO_NOT_FOUND)
    return success_response(data=todo.to_response(), message="Todo updated")


@router.delete("/{todo_id}")
async def delete_todo(
    todo_id: UUID,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    deleted = await TodoService().delete_todo(todo_id, current_user.id)
    if not deleted:
        raise NotFoundError(TODO_NOT_FOUND)
    return success_response(message="Todo deleted")
