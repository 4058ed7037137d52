"""
OTP HTTP API
============
FastAPI routes for sending and verifying codes.

Errors are returned as {"error": {"code", "message", "retry_after"?}} with
a stable code. Internal failures carry only a generic message; the detail
is in the service logs.
"""

import math
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from otp_core.errors import ErrorKind, OTPError
from otp_core.lifecycle import OTPLifecycle

# HTTP status per error kind
STATUS_CODES = {
    ErrorKind.INVALID_PHONE: 400,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.INVALID_OTP: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_VERIFIED: 409,
    ErrorKind.EXPIRED: 410,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.ATTEMPTS_EXHAUSTED: 429,
    ErrorKind.DELIVERY_FAILED: 502,
    ErrorKind.INTERNAL: 500,
}


class SendOTPRequest(BaseModel):
    phone_number: str = Field(default="", max_length=32)


class SendOTPResponse(BaseModel):
    success: bool = True
    verification_id: str
    phone_number: str
    expires_at: datetime


class VerifyOTPRequest(BaseModel):
    verification_id: str = Field(default="", max_length=64)
    otp: str = Field(default="", max_length=16)
    phone_number: Optional[str] = Field(default=None, max_length=32)


class VerifyOTPResponse(BaseModel):
    success: bool = True
    user_id: str
    phone_number: str
    is_new_user: bool
    proof_token: Optional[str] = None


def error_response(error: OTPError) -> JSONResponse:
    """Render an OTPError as an HTTP response."""
    headers = {}
    if error.kind == ErrorKind.RATE_LIMITED and error.retry_after is not None:
        headers["Retry-After"] = str(math.ceil(error.retry_after))
    return JSONResponse(
        status_code=STATUS_CODES.get(error.kind, 500),
        content={"error": error.to_dict()},
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies in the service error format."""
    return error_response(OTPError.invalid_argument("Invalid request body"))


def get_lifecycle(request: Request) -> OTPLifecycle:
    """Dependency returning the lifecycle installed on the application."""
    return request.app.state.lifecycle


def create_otp_router(prefix: str = "/otp") -> APIRouter:
    """
    Create the OTP router.

    Args:
        prefix: Route prefix

    The lifecycle is resolved per request from app.state.lifecycle.

    Returns:
        FastAPI router with POST {prefix}/send and POST {prefix}/verify
    """
    router = APIRouter(prefix=prefix, tags=["OTP"])

    @router.post("/send", response_model=SendOTPResponse)
    async def send_otp(
        body: SendOTPRequest,
        request: Request,
        lifecycle: OTPLifecycle = Depends(get_lifecycle),
    ):
        result = await lifecycle.request_otp(
            body.phone_number,
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        if not result.success:
            return error_response(result.error)
        issued = result.value
        return SendOTPResponse(
            verification_id=issued.verification_id,
            phone_number=issued.phone_number,
            expires_at=issued.expires_at,
        )

    @router.post("/verify", response_model=VerifyOTPResponse)
    async def verify_otp(body: VerifyOTPRequest, lifecycle: OTPLifecycle = Depends(get_lifecycle)):
        result = await lifecycle.confirm_otp(body.verification_id, body.otp, body.phone_number)
        if not result.success:
            return error_response(result.error)
        confirmed = result.value
        return VerifyOTPResponse(
            user_id=confirmed.user_id,
            phone_number=confirmed.phone_number,
            is_new_user=confirmed.is_new_user,
            proof_token=confirmed.proof_token,
        )

    return router
