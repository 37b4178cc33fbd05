"""
Health check endpoints.

Provides endpoints for monitoring application health and readiness.
"""

import logging

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from shared.config import get_settings

from ..dependencies import get_container

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    storage: str
    provider: str
    gateway: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the API is running.
    """
    return HealthResponse(status="healthy", version=get_settings().app_version)


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(response: Response) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Builds the configured store, provider and gateway. Returns 503 if any
    of them can't be constructed, e.g. because credentials are missing.
    """
    container = get_container()
    checks = {
        "storage": lambda: (container.ledger, container.job_store, container.payment_store),
        "provider": lambda: container.provider,
        "gateway": lambda: container.gateway,
    }

    results: dict[str, str] = {}
    for name, check in checks.items():
        try:
            check()
            results[name] = "ok"
        except (RuntimeError, ValueError) as e:
            logger.warning(f"Readiness check failed for {name}: {e}")
            results[name] = "unavailable"

    ready = all(value == "ok" for value in results.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="ready" if ready else "not_ready", **results)
