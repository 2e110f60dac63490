"""Services package exports."""

from src.services.auth_service import AuthService
from src.services.logging_service import configure_logging, get_logger
from src.services.todo_service import TodoService
from src.services.token_service import TokenService
from src.services.user_service import UserService

__all__ = [
    "AuthService",
    "TodoService",
    "TokenService",
    "UserService",
    "configure_logging",
    "get_logger",
]
