"""Health and API information endpoints."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.api.dependencies import get_optional_user
from src.api.responses import success_response
from src.config import get_settings
from src.models.user import User

router = APIRouter()

API_VERSION = "1.0.0"


@router.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format, environment and database state
    """
    settings = get_settings()
    body = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }

    try:
        from src.database import health_check as db_health_check
        db_healthy = await db_health_check()
        body["database"] = "healthy" if db_healthy else "unhealthy"
    except Exception:
        body["database"] = "unavailable"

    return success_response(message="Todo API is running", **body)


@router.get("/")
async def api_info(user: Optional[User] = Depends(get_optional_user)) -> JSONResponse:
    """API information. Greets the caller by handle when a valid token is sent."""
    prefix = get_settings().api_prefix
    body = {
        "version": API_VERSION,
        "documentation": "/docs",
        "endpoints": {
            "GET /health": "Server health",
            f"POST {prefix}/auth/register": "Register",
            f"POST {prefix}/auth/login": "Login",
            f"POST {prefix}/auth/refresh": "Refresh tokens",
            f"POST {prefix}/auth/logout": "Logout",
            f"GET {prefix}/auth/me": "Current user",
            f"GET {prefix}/todos": "List todos",
            f"POST {prefix}/todos": "Create todo",
            f"GET {prefix}/todos/{{id}}": "Get todo",
            f"PUT {prefix}/todos/{{id}}": "Update todo",
            f"DELETE {prefix}/todos/{{id}}": "Delete todo",
        },
    }
    if user is not None:
        body["authenticatedAs"] = user.handle
    return success_response(message="Welcome to the Todo API", **body)
