import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness check. Returns 503 during graceful shutdown."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": "projectflow-backend"},
        )
    return {"status": "healthy", "service": "projectflow-backend"}


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness check - verifies the store is hydrated and its backend reachable."""
    checks = {"store": getattr(request.app.state, "project_store", None) is not None}

    client = getattr(request.app.state, "redis", None)
    if client is not None:
        checks["redis"] = False
        try:
            await client.ping()
            checks["redis"] = True
        except Exception as e:
            logger.error("redis_health_check_failed", error=str(e), error_type=type(e).__name__)

    all_healthy = all(checks.values())
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
