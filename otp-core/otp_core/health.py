"""
Health Check Module
===================
Liveness and dependency health for the OTP service.

GET /health answers 503 when the verification store is unreachable, since
no code can be issued or confirmed without it. An SMS sender that is not
ready only degrades the service.
"""

import time
from enum import Enum
from typing import Dict, Optional
from fastapi import APIRouter, Response
from pydantic import BaseModel
import structlog

from otp_core.sms import SmsSender
from otp_core.store import VerificationStore

logger = structlog.get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


async def check_store(store: VerificationStore) -> ComponentHealth:
    """Ping the verification store and time the round trip."""
    started = time.perf_counter()
    try:
        await store.ping()
    except Exception as e:
        # Backend detail stays in the logs
        logger.error("Store health check failed", store=store.name, error=str(e))
        return ComponentHealth(status="error", error="unavailable")
    elapsed_ms = (time.perf_counter() - started) * 1000
    return ComponentHealth(status="connected", latency_ms=round(elapsed_ms, 2))


async def check_sender(sender: SmsSender) -> ComponentHealth:
    try:
        ready = await sender.health_check()
    except Exception as e:
        logger.error("SMS sender health check failed", provider=sender.name, error=str(e))
        return ComponentHealth(status="error", error="unavailable")
    return ComponentHealth(status="ready" if ready else "not_ready")


def create_health_router(
    service_name: str,
    version: str,
    store: VerificationStore,
    sender: SmsSender,
) -> APIRouter:
    """
    Create the health router.

    Args:
        service_name: Reported service name
        version: Reported service version
        store: Verification store to ping
        sender: SMS sender to check

    Returns:
        FastAPI router with /health and /health/live endpoints
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health(response: Response) -> HealthResponse:
        components = {
            "store": await check_store(store),
            "sms": await check_sender(sender),
        }

        if components["store"].status == "error":
            status = HealthStatus.UNHEALTHY
            response.status_code = 503
        elif components["sms"].status != "ready":
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        return HealthResponse(
            status=status,
            service=service_name,
            version=version,
            components=components,
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def live():
        """Answers while the process is up."""
        return {"status": "alive"}

    return router
