"""
OTP Generator
=============
Creates new verification records together with their plaintext code.
"""

import uuid
from datetime import datetime, timezone, timedelta
from typing import Optional, Tuple
import structlog

from otp_core.config import OTPSettings
from .models import VerificationRecord, VerificationStatus
from .hashing import generate_otp, hash_otp

logger = structlog.get_logger(__name__)


class OTPGenerator:
    """High-level OTP and verification record generation."""

    def __init__(self, settings: Optional[OTPSettings] = None):
        self.settings = settings or OTPSettings()

    def generate(self) -> Tuple[str, str]:
        """
        Generate an OTP and its digest.

        Returns:
            Tuple of (otp, digest)
        """
        otp = generate_otp(length=self.settings.otp_length)
        return otp, hash_otp(otp)

    def create_record(
        self,
        phone_number: str,
        now: Optional[datetime] = None,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[str, VerificationRecord]:
        """
        Create a new pending verification record.

        Args:
            phone_number: Canonical phone number
            now: Issuance time (defaults to current UTC time)
            client_ip: Address the request came from, if known
            user_agent: Requesting client User-Agent, if known

        Returns:
            Tuple of (plain_otp, record)
        """
        otp, digest = self.generate()
        now = now or datetime.now(timezone.utc)

        record = VerificationRecord(
            id=str(uuid.uuid4()),
            phone_number=phone_number,
            secret_digest=digest,
            attempts=0,
            max_attempts=self.settings.max_attempts,
            status=VerificationStatus.PENDING,
            created_at=now,
            expires_at=now + timedelta(seconds=self.settings.expiry_seconds),
            client_ip=client_ip,
            user_agent=user_agent,
            updated_at=now,
        )

        logger.debug(
            "Verification record created",
            verification_id=record.id,
            expires_in=self.settings.expiry_seconds,
        )

        return otp, record
