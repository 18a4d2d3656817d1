"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

The distinction matters in orchestration systems like Kubernetes
where liveness and readiness have different behaviors.
"""

import logging

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ...core.videos.models import utc_now_iso
from ..dependencies import DocumentStoreDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

# Never a real video id; reading it exercises the store connection
_READINESS_PROBE_ID = "__readiness_probe__"


class HealthResponse(BaseModel):
    ok: bool
    time: str


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None
    detail: str | None = None  # informational, never set on failure


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(ok=True, time=utc_now_iso())


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic. Checks the document store.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    documents: DocumentStoreDep,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Verifies configuration and performs a point read against the
    document store. Returns 503 if any check fails, which tells load
    balancers not to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    try:
        documents.read(_READINESS_PROBE_ID)
        checks.append(ReadinessCheck(
            name="document_store",
            status="ok",
            detail="mock mode" if settings.snowflake_mock_mode else None,
        ))
    except Exception as e:
        logger.error("Document store health check failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(
            name="document_store",
            status="error",
            error="unreachable",
        ))

    all_ok = all(check.status == "ok" for check in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=settings.api_version,
        checks=checks,
    )
