"""Todo CRUD scoped to the authenticated user."""

from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple
from uuid import UUID, uuid4

import structlog

from src.database import get_pool
from src.models.todo import Todo, TodoCreate, TodoPriority, TodoStatus, TodoUpdate
from src.services.errors import ValidationError

logger = structlog.get_logger(__name__)

TODO_COLUMNS = (
    "id, user_id, created_by, assigned_to, title, description, start_time, "
    "end_time, status, priority, tags, created_at, updated_at"
)

# API sort keys -> columns. Anything else is rejected, never interpolated.
SORT_COLUMNS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "startTime": "start_time",
    "endTime": "end_time",
    "title": "title",
    "status": "status",
    "priority": "priority",
}


def _row_to_todo(row) -> Todo:
    return Todo(
        id=row["id"],
        user_id=row["user_id"],
        created_by=row["created_by"],
        assigned_to=row["assigned_to"],
        title=row["title"],
        description=row["description"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        status=row["status"],
        priority=row["priority"],
        tags=list(row["tags"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class TodoService:
    """Service for todo CRUD operations."""

    async def list_todos(
        self,
        user_id: UUID,
        status: Optional[TodoStatus] = None,
        priority: Optional[TodoPriority] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        owner_field: str = "user_id",
    ) -> Tuple[List[Todo], int]:
        """List a user's todos with filtering, sorting and pagination.

        Args:
            user_id: Caller's user id
            status: Optional status filter
            priority: Optional priority filter
            page: 1-based page number
            limit: Page size
            sort_by: One of SORT_COLUMNS keys
            sort_order: "asc" or "desc"
            owner_field: "user_id" for todos owned by/assigned to the user,
                "created_by" for todos the user created

        Returns:
            Tuple of (todos on the page, total matching count)
        """
        if owner_field not in ("user_id", "created_by"):
            raise ValueError(f"Unsupported owner field: {owner_field}")
        column = SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(
                "Invalid data",
                errors=[f"sortBy must be one of: {', '.join(SORT_COLUMNS)}"],
            )
        direction = "ASC" if sort_order.lower() == "asc" else "DESC"

        conditions = [f"{owner_field} = $1"]
        params: List[Any] = [user_id]
        if status is not None:
            params.append(TodoStatus(status).value)
            conditions.append(f"status = ${len(params)}")
        if priority is not None:
            params.append(TodoPriority(priority).value)
            conditions.append(f"priority = ${len(params)}")
        where = " AND ".join(conditions)

        pool = await get_pool()

        async with pool.acquire() as conn:
            total = await conn.fetchval(
                f"SELECT COUNT(*) FROM todos WHERE {where}", *params
            )
            rows = await conn.fetch(
                f"""
                SELECT {TODO_COLUMNS}
                FROM todos
                WHERE {where}
                ORDER BY {column} {direction}
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
                """,
                *params,
                limit,
                (page - 1) * limit,
            )

        return [_row_to_todo(row) for row in rows], total

    async def get_todo(self, todo_id: UUID, user_id: UUID) -> Optional[Todo]:
        """Get one of the user's todos, or None if absent or not theirs."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {TODO_COLUMNS} FROM todos WHERE id = $1 AND user_id = $2",
                todo_id,
                user_id,
            )

        if row is None:
            return None
        return _row_to_todo(row)

    async def create_todo(self, creator_id: UUID, request: TodoCreate) -> Todo:
        """Create a todo owned by the assignee (or the creator if unassigned)."""
        todo_id = uuid4()
        now = datetime.now(timezone.utc)
        owner_id = request.assigned_to or creator_id

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO todos (id, user_id, created_by, assigned_to, title, description, start_time, end_time, status, priority, tags, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                RETURNING {TODO_COLUMNS}
                """,
                todo_id,
                owner_id,
                creator_id,
                owner_id,
                request.title,
                request.description,
                request.start_time,
                request.end_time,
                request.status.value,
                request.priority.value,
                request.tags,
                now,
                now,
            )

        logger.info(
            "todo_created",
            todo_id=str(todo_id),
            created_by=str(creator_id),
            assigned_to=str(owner_id),
        )
        return _row_to_todo(row)

    async def update_todo(
        self, todo_id: UUID, user_id: UUID, request: TodoUpdate
    ) -> Optional[Todo]:
        """Apply a partial update to one of the user's todos.

        Returns:
            Updated Todo, or None if absent or not the user's

        Raises:
            ValidationError: If the resulting end time is not after the start
        """
        existing = await self.get_todo(todo_id, user_id)
        if existing is None:
            return None

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        start = changes.get("start_time", existing.start_time)
        end = changes.get("end_time", existing.end_time)
        if end <= start:
            raise ValidationError(
                "Invalid data", errors=["End time must be after start time"]
            )

        if not changes:
            return existing

        set_clauses = []
        params: List[Any] = []
        for column, value in changes.items():
            if isinstance(value, (TodoStatus, TodoPriority)):
                value = value.value
            params.append(value)
            set_clauses.append(f"{column} = ${len(params)}")

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")
        params.append(todo_id)
        params.append(user_id)

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE todos
                SET {', '.join(set_clauses)}
                WHERE id = ${len(params) - 1} AND user_id = ${len(params)}
                RETURNING {TODO_COLUMNS}
                """,
                *params,
            )

        if row is None:
            return None

        logger.info("todo_updated", todo_id=str(todo_id), fields_updated=list(changes))
        return _row_to_todo(row)

    async def delete_todo(self, todo_id: UUID, user_id: UUID) -> bool:
        """Delete one of the user's todos. Returns False if not found."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM todos WHERE id = $1 AND user_id = $2",
                todo_id,
                user_id,
            )

        deleted = result == "DELETE 1"

        if deleted:
            logger.info("todo_deleted", todo_id=str(todo_id), user_id=str(user_id))
        else:
            logger.warning("todo_delete_not_found", todo_id=str(todo_id))

        return deleted

    async def list_by_status(self, user_id: UUID, status: TodoStatus) -> List[Todo]:
        """All of the user's todos with the given status."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TODO_COLUMNS} FROM todos
                WHERE user_id = $1 AND status = $2
                ORDER BY created_at DESC
                """,
                user_id,
                TodoStatus(status).value,
            )

        return [_row_to_todo(row) for row in rows]

    async def list_by_date_range(
        self, user_id: UUID, start: datetime, end: datetime
    ) -> List[Todo]:
        """Todos that start or end inside [start, end], or span it entirely."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TODO_COLUMNS} FROM todos
                WHERE user_id = $1
                  AND (
                    (start_time BETWEEN $2 AND $3)
                    OR (end_time BETWEEN $2 AND $3)
                    OR (start_time <= $2 AND end_time >= $3)
                  )
                ORDER BY start_time ASC
                """,
                user_id,
                start,
                end,
            )

        return [_row_to_todo(row) for row in rows]

    async def list_overdue(self, user_id: UUID) -> List[Todo]:
        """Todos past their end time that are not completed."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {TODO_COLUMNS} FROM todos
                WHERE user_id = $1 AND end_time < $2 AND status <> 'completed'
                ORDER BY end_time ASC
                """,
                user_id,
                datetime.now(timezone.utc),
            )

        return [_row_to_todo(row) for row in rows]

    async def count_todos(self, user_id: UUID) -> int:
        """Number of todos owned by the user."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM todos WHERE user_id = $1", user_id
            )

        return count or 0
