"""Health Check Endpoint"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, Response
from typing import Dict, Any
from billing_resources.core.config import settings
from billing_resources.core.monitoring import get_metrics, get_metrics_content_type

router = APIRouter(tags=["health"])


async def check_database() -> bool:
    """Check database connection health"""
    from billing_resources.core.database import check_database_connection
    return await check_database_connection()


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """
    Health check endpoint that verifies the database is reachable.

    Returns:
        200 OK if the database is healthy
        503 Service Unavailable otherwise
    """
    checks = {
        "database": await check_database(),
    }

    all_healthy = all(checks.values())

    response_data: Dict[str, Any] = {
        "status": "healthy" if all_healthy else "unhealthy",
        "version": settings.APP_VERSION,
        "services": checks
    }

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response_data
    )


@router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping by Prometheus server.
    """
    metrics_data = get_metrics()
    return Response(
        content=metrics_data,
        media_type=get_metrics_content_type()
    )
