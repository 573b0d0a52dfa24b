"""ProjectFlow Backend: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# configure_structlog must run before the other projectflow imports create their loggers
from projectflow.core.logging import REQUEST_ID_HEADER, configure_structlog, current_request_id

configure_structlog()

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from projectflow.api.routes import api_router
from projectflow.core.config import get_settings
from projectflow.core.exceptions import (
    ExternalCallFailure,
    NotFoundError,
    OrderingInvariantError,
    PersistenceFailure,
    ValidationError,
)
from projectflow.services.project_store import ProjectStore
from projectflow.storage import InMemoryBlobStore, connect_redis, redis_storage

logger = structlog.get_logger(__name__)


async def build_project_store(app: FastAPI) -> ProjectStore:
    """Build the ProjectStore for the backend named by STORAGE_BACKEND.

    The redis backend also gets a cross-worker mutex; its client is kept on
    ``app.state.redis`` for readiness checks and shutdown.
    """
    settings = get_settings()
    if settings.storage_backend == "redis":
        app.state.redis = await connect_redis(settings)
        blob_store, mutex = redis_storage(app.state.redis, settings)
        return ProjectStore(blob_store, mutex=mutex)
    logger.warning("memory_storage_in_use", reason="state is lost on restart")
    return ProjectStore(InMemoryBlobStore())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM flips this so the health check returns 503 while draining
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    # Startup
    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    app.state.redis = None
    app.state.project_store = await build_project_store(app)
    loaded = await app.state.project_store.hydrate()
    logger.info("project_store_initialized", backend=settings.storage_backend, projects=loaded)

    yield

    # Shutdown
    logger.info("shutdown_begin")
    if app.state.redis is not None:
        await app.state.redis.aclose()
    logger.info("shutdown_complete")


def _error_response(
    request: Request, status_code: int, detail, event: str, level: str = "warning", **extra
) -> JSONResponse:
    """Log ``event`` with a fresh debug_id and return it to the client with ``detail``."""
    debug_id = str(uuid.uuid4())
    getattr(logger, level)(
        event,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=current_request_id(),
        path=request.url.path,
        method=request.method,
        detail=detail,
        **extra,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "debug_id": debug_id, **extra},
    )


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(request, 422, str(exc), "validation_failed", field=exc.field)


async def ordering_exception_handler(request: Request, exc: OrderingInvariantError) -> JSONResponse:
    return _error_response(request, 422, str(exc), "ordering_invariant_violated", group=exc.group)


async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(request, 404, str(exc), "entity_not_found")


async def persistence_exception_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
    """Storage is unavailable; in-memory state was left untouched."""
    return _error_response(request, 503, "Project storage is unavailable", "persistence_failed", level="error")


async def external_call_exception_handler(request: Request, exc: ExternalCallFailure) -> JSONResponse:
    return _error_response(request, 502, str(exc), "external_call_failed")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail, "http_exception")


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled errors: traceback stays in the logs, the client gets a generic 500."""
    logger.error("unhandled_exception", error=str(exc), error_type=type(exc).__name__, exc_info=True)
    return _error_response(request, 500, "Internal server error", "unhandled_exception_response", level="error")


def register_error_handlers(app: FastAPI) -> None:
    """Map the ProjectFlow error taxonomy onto HTTP responses carrying a debug_id."""
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(OrderingInvariantError, ordering_exception_handler)
    app.add_exception_handler(NotFoundError, not_found_exception_handler)
    app.add_exception_handler(PersistenceFailure, persistence_exception_handler)
    app.add_exception_handler(ExternalCallFailure, external_call_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


def add_request_id_middleware(app: FastAPI) -> None:
    """Echo the client's X-Request-ID, or issue a UUID, and expose it to logging."""
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        generator=lambda: str(uuid.uuid4()),
        validator=None,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Project planning with stages, subtasks and AI-assisted organization",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Added last so it wraps CORS and sees every request first
    add_request_id_middleware(app)
    register_error_handlers(app)

    app.include_router(api_router, prefix="/api")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "projectflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
