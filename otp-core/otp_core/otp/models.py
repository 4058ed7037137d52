"""
OTP Models
==========
Verification record and its status enums.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum


class VerificationStatus(str, Enum):
    """Verification record states."""
    PENDING = "pending"
    VERIFIED = "verified"    # terminal
    EXPIRED = "expired"      # terminal
    FAILED = "failed"        # terminal, attempts exhausted


class DeliveryStatus(str, Enum):
    """Outcome of handing the code to the SMS gateway."""
    SENT = "sent"
    FAILED = "failed"


# Fields a store may change after creation
MUTABLE_FIELDS = frozenset({
    "status",
    "attempts",
    "delivery_status",
    "provider_message_id",
    "provider_response",
    "verified_at",
    "updated_at",
})


@dataclass
class VerificationRecord:
    """One OTP issuance-to-resolution cycle. Never holds the plaintext code."""
    id: str
    phone_number: str
    secret_digest: str
    max_attempts: int
    created_at: datetime
    expires_at: datetime
    attempts: int = 0
    status: VerificationStatus = VerificationStatus.PENDING
    delivery_status: Optional[DeliveryStatus] = None
    provider_message_id: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    verified_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_expired_at(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def is_verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def copy(self) -> "VerificationRecord":
        return deepcopy(self)
