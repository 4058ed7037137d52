"""
OTP Error Taxonomy
==================
Caller-visible outcomes of the OTP operations.

Expected business outcomes (rate limiting, wrong code, expiry, ...) are
returned as values inside an OTPResult rather than raised. Exceptions are
reserved for collaborator failures, which the lifecycle converts into
ErrorKind.INTERNAL with a generic message.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Stable machine-readable error codes."""
    INVALID_PHONE = "invalid_phone"
    INVALID_ARGUMENT = "invalid_argument"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    ALREADY_VERIFIED = "already_verified"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    INVALID_OTP = "invalid_otp"
    DELIVERY_FAILED = "delivery_failed"
    INTERNAL = "internal"


# Generic message for unexpected failures. Collaborator detail goes to logs only.
INTERNAL_MESSAGE = "An unexpected error occurred. Please try again later."


@dataclass(frozen=True)
class OTPError:
    """A caller-visible failure."""
    kind: ErrorKind
    message: str
    retry_after: Optional[float] = None  # seconds, rate_limited only

    @property
    def retry_after_minutes(self) -> Optional[int]:
        if self.retry_after is None:
            return None
        return max(1, math.ceil(self.retry_after / 60))

    def to_dict(self) -> dict:
        data = {"code": self.kind.value, "message": self.message}
        if self.retry_after is not None:
            data["retry_after"] = math.ceil(self.retry_after)
        return data

    # Factories for the fixed-message outcomes

    @classmethod
    def invalid_phone(cls) -> "OTPError":
        return cls(ErrorKind.INVALID_PHONE, "Invalid phone number format")

    @classmethod
    def invalid_argument(cls, message: str) -> "OTPError":
        return cls(ErrorKind.INVALID_ARGUMENT, message)

    @classmethod
    def rate_limited(cls, message: str, retry_after: float) -> "OTPError":
        return cls(ErrorKind.RATE_LIMITED, message, retry_after=retry_after)

    @classmethod
    def not_found(cls) -> "OTPError":
        return cls(ErrorKind.NOT_FOUND, "Invalid verification ID")

    @classmethod
    def already_verified(cls) -> "OTPError":
        return cls(ErrorKind.ALREADY_VERIFIED, "OTP has already been verified")

    @classmethod
    def expired(cls) -> "OTPError":
        return cls(ErrorKind.EXPIRED, "OTP has expired. Please request a new one.")

    @classmethod
    def attempts_exhausted(cls) -> "OTPError":
        return cls(
            ErrorKind.ATTEMPTS_EXHAUSTED,
            "Maximum verification attempts exceeded. Please request a new OTP.",
        )

    @classmethod
    def invalid_otp(cls) -> "OTPError":
        return cls(ErrorKind.INVALID_OTP, "Invalid OTP. Please try again.")

    @classmethod
    def delivery_failed(cls) -> "OTPError":
        return cls(ErrorKind.DELIVERY_FAILED, "Failed to send SMS verification code")

    @classmethod
    def internal(cls) -> "OTPError":
        return cls(ErrorKind.INTERNAL, INTERNAL_MESSAGE)


@dataclass(frozen=True)
class OTPResult(Generic[T]):
    """Outcome of an OTP operation: either a value or an error."""
    value: Optional[T] = None
    error: Optional[OTPError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: T) -> "OTPResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: OTPError) -> "OTPResult[T]":
        return cls(error=error)

