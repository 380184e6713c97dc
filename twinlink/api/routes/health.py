"""
Health Check Routes - System health and monitoring endpoints.

These endpoints are used for:
1. Load balancer health checks
2. Kubernetes liveness/readiness probes
3. Monitoring systems
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from twinlink import __version__
from twinlink.api.dependencies import Container, get_container
from twinlink.core.logging_config import get_logger
from twinlink.models.api import HealthResponse

logger = get_logger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description="Returns 200 OK while the API process is up. Dependencies are not checked."
)
async def health_check() -> HealthResponse:
    """Perform a basic liveness check."""
    logger.debug("Health check requested")
    return HealthResponse(status="healthy", version=__version__)


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness check endpoint",
    description="""
    Returns whether the service is ready to accept requests.

    Verifies that the document store answers. Returns 503 when it does not.
    """
)
async def readiness_check(container: Container = Depends(get_container)):
    """Check document store connectivity."""
    logger.debug("Readiness check requested")

    if not await container.documents.check_connection():
        logger.warning("Readiness check failed: document store unavailable")
        return JSONResponse(
            status_code=503,
            content=HealthResponse(status="unavailable", version=__version__).model_dump(mode="json"),
        )

    return HealthResponse(status="ready", version=__version__)
