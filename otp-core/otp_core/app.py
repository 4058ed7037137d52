"""
OTP Service Application
=======================
Assembles the FastAPI application and wires collaborators from settings.

Usage:
    uvicorn otp_core.app:create_app --factory

Backends are chosen from the environment:
- DATABASE_URL set: SQL verification store and identity binder, otherwise in-memory
- REDIS_URL set: Redis rate limiter, otherwise in-memory
- Text.lk credentials set: Text.lk sender, otherwise the console sender
"""

import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional, Tuple
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
import redis.asyncio as redis
import structlog

from otp_core import __version__
from otp_core.api import create_otp_router, validation_error_handler
from otp_core.config import OTPSettings
from otp_core.health import create_health_router
from otp_core.identity import IdentityBinder, InMemoryIdentityBinder, SQLIdentityBinder
from otp_core.lifecycle import OTPLifecycle
from otp_core.logging import bind_request_context, clear_request_context, configure_logging
from otp_core.otp import ProofToken
from otp_core.rate_limit import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from otp_core.sms import ConsoleSender, SmsSender, TextLKSender
from otp_core.store import (
    InMemoryVerificationStore,
    SQLVerificationStore,
    VerificationStore,
    close_engine,
    create_async_engine,
    create_session_factory,
    create_tables,
)
from otp_core.sweeper import ExpirySweeper

logger = structlog.get_logger(__name__)


def build_sender(settings: OTPSettings) -> SmsSender:
    if settings.sms_user_id and settings.sms_api_key:
        return TextLKSender(
            user_id=settings.sms_user_id,
            api_key=settings.sms_api_key,
            sender_id=settings.sms_sender_id,
            api_url=settings.sms_api_url,
            timeout=settings.sms_timeout,
        )
    logger.warning("Text.lk credentials not configured, codes go to the console sender")
    return ConsoleSender()


def build_lifecycle(settings: OTPSettings) -> Tuple[OTPLifecycle, Any, Any]:
    """
    Construct the lifecycle and its collaborators.

    Returns:
        Tuple of (lifecycle, database engine or None, redis client or None)
    """
    engine = None
    redis_client = None

    store: VerificationStore
    identity_binder: IdentityBinder
    if settings.database_url:
        engine = create_async_engine(settings.database_url)
        session_factory = create_session_factory(engine)
        store = SQLVerificationStore(session_factory)
        identity_binder = SQLIdentityBinder(session_factory)
    else:
        logger.warning("DATABASE_URL not set, using in-memory stores")
        store = InMemoryVerificationStore()
        identity_binder = InMemoryIdentityBinder()

    rate_limiter: RateLimiter
    if settings.redis_url:
        redis_client = redis.from_url(settings.redis_url)
        rate_limiter = RedisRateLimiter(redis_client)
    else:
        rate_limiter = InMemoryRateLimiter()

    proof = ProofToken(settings.proof_secret) if settings.proof_secret else None

    lifecycle = OTPLifecycle(
        store=store,
        sender=build_sender(settings),
        identity_binder=identity_binder,
        rate_limiter=rate_limiter,
        settings=settings,
        proof=proof,
    )
    return lifecycle, engine, redis_client


def create_app(
    settings: Optional[OTPSettings] = None,
    lifecycle: Optional[OTPLifecycle] = None,
    run_sweeper: bool = True,
) -> FastAPI:
    """
    Create the OTP service application.

    Args:
        settings: Service settings (default: read from the environment)
        lifecycle: Prebuilt lifecycle; when given no backends are constructed
        run_sweeper: Run the periodic expiry sweep while the app is up

    Returns:
        FastAPI application
    """
    settings = settings or OTPSettings.from_env()
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        json_output=settings.log_json,
    )

    engine = None
    redis_client = None
    if lifecycle is None:
        lifecycle, engine, redis_client = build_lifecycle(settings)

    sweeper = ExpirySweeper(lifecycle, interval=settings.sweep_interval) if run_sweeper else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            await create_tables(engine)
        await lifecycle.sender.initialize()
        if sweeper is not None:
            sweeper.start()
        logger.info(
            "OTP service started",
            version=__version__,
            store=lifecycle.store.name,
            provider=lifecycle.sender.name,
        )
        try:
            yield
        finally:
            if sweeper is not None:
                await sweeper.stop()
            await lifecycle.sender.close()
            if redis_client is not None:
                await redis_client.aclose()
            if engine is not None:
                await close_engine(engine)
            logger.info("OTP service stopped")

    app = FastAPI(title="OTP Core", version=__version__, lifespan=lifespan)
    app.state.lifecycle = lifecycle
    app.state.settings = settings
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        clear_request_context()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        bind_request_context(request_id=request_id, path=request.url.path)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(create_otp_router())
    app.include_router(create_health_router(
        service_name=settings.service_name,
        version=__version__,
        store=lifecycle.store,
        sender=lifecycle.sender,
    ))
    return app
