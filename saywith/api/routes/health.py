"""
Health endpoints.

- /health: liveness, answers without touching any backend
- /health/ready: readiness, checks configuration and the message store

Neither endpoint needs the access PIN.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ...config.settings import Settings
from ...infrastructure.snowflake.repositories.messages import MessageRepository
from ..dependencies import MessageRepositoryDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    name: str
    status: str  # "ok" or "error"
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


def check_configuration(settings: Settings) -> ReadinessCheck:
    missing = settings.validate_required_fields()
    if missing:
        return ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing)}",
        )
    return ReadinessCheck(name="configuration", status="ok")


def check_message_store(repository: MessageRepository) -> ReadinessCheck:
    try:
        repository.ping()
    except Exception as e:
        logger.error("Message store health check failed", extra={"error": str(e)})
        return ReadinessCheck(name="message_store", status="error", error=str(e))
    return ReadinessCheck(name="message_store", status="ok")


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "storage_provider": settings.storage_provider,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
            },
        },
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="200 when configuration is complete and the message store answers, 503 otherwise",
    responses={503: {"description": "Service not ready", "model": ReadinessResponse}},
)
async def readiness_check(settings: SettingsDep, repository: MessageRepositoryDep):
    checks = [check_configuration(settings), check_message_store(repository)]
    ready = all(check.status == "ok" for check in checks)

    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )

    if ready:
        return response

    logger.warning(
        "Readiness check failed",
        extra={"failed": [check.name for check in checks if check.status != "ok"]},
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(),
    )
