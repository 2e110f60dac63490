"""Models package exports."""

from src.models.auth import TokenPair
from src.models.todo import Todo, TodoCreate, TodoPriority, TodoStatus, TodoUpdate
from src.models.user import RefreshTokenRecord, User, UserPublic, UserRole

__all__ = [
    "RefreshTokenRecord",
    "Todo",
    "TodoCreate",
    "TodoPriority",
    "TodoStatus",
    "TodoUpdate",
    "TokenPair",
    "User",
    "UserPublic",
    "UserRole",
]
