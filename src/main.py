"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import asyncpg
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.admin import router as admin_router
from src.api.auth import router as auth_router
from src.api.middleware import CorrelationIdMiddleware
from src.api.responses import error_response
from src.api.routes import router
from src.api.todos import router as todos_router
from src.config import get_settings
from src.services.errors import AppError, InternalError
from src.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    try:
        from src.database import init_database, run_migrations

        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - requests touching the store will fail",
        )

    try:
        from src.services.seed_service import seed_admin_user

        await seed_admin_user()
    except Exception as e:
        logger.warning("admin_seed_failed", error=str(e))

    logger.info(
        "application_started",
        environment=settings.environment,
        log_level=settings.log_level,
    )

    yield

    try:
        from src.database import close_database

        await close_database()
    except Exception as e:
        logger.warning("database_close_failed", error=str(e))

    logger.info("application_shutdown")


app = FastAPI(
    title="Todo API",
    description="Todo list REST API with JWT authentication",
    version="1.0.0",
    lifespan=lifespan,
)


def _format_validation_error(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", []) if part not in ("body", "query", "path")]
    field = ".".join(loc) or "request"
    return f"{field}: {error.get('msg', 'invalid value')}"


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Translate application errors into the response envelope."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        status_code=exc.status_code,
        code=exc.code,
        detail=exc.message,
    )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(
        exc.status_code,
        exc.message,
        errors=exc.errors,
        code=exc.code,
        headers=headers,
    )


@app.exception_handler(asyncpg.PostgresError)
@app.exception_handler(asyncpg.InterfaceError)
async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report database failures as InternalError; driver detail stays in the log."""
    structlog.get_logger().error(
        "store_error",
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return await app_error_handler(request, InternalError())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report schema validation failures as 400 with per-field errors."""
    errors = [_format_validation_error(e) for e in exc.errors()]
    structlog.get_logger().warning("validation_error", errors=errors)
    return error_response(400, "Invalid data", errors=errors, code="VALIDATION_ERROR")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the envelope."""
    if exc.status_code == 404:
        message = f"Route {request.url.path} not found"
        code = "NOT_FOUND"
    else:
        message = str(exc.detail)
        code = None
    return error_response(exc.status_code, message, code=code, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report unexpected failures as 500 without leaking detail in production."""
    structlog.get_logger().error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    errors = None if get_settings().is_production else [str(exc)]
    return error_response(500, "Internal server error", errors=errors, code="INTERNAL_ERROR")


# CORS middleware for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

# Include API routes
api_prefix = get_settings().api_prefix
app.include_router(auth_router, prefix=api_prefix)
app.include_router(todos_router, prefix=api_prefix)
app.include_router(admin_router, prefix=api_prefix)
app.include_router(router)
