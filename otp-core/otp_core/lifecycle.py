"""
OTP Lifecycle
=============
Issues and confirms phone verification codes.

State machine for a verification record:

    pending -> verified   correct code (terminal)
    pending -> expired    confirm after expires_at, or delivery failed (terminal)
    pending -> failed     attempts exhausted (terminal)
    pending -> pending    wrong code, attempts incremented

Every transition is a conditional store update on the expected current
status, so concurrent confirms against one record resolve to exactly one
winner and never lose an attempt increment. Losers reload the record and
report the state that won.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar
import structlog

from otp_core.config import OTPSettings
from otp_core.errors import OTPError, OTPResult
from otp_core.identity import Identity, IdentityBinder, default_profile
from otp_core.otp import (
    DeliveryStatus,
    OTPGenerator,
    ProofToken,
    VerificationRecord,
    VerificationStatus,
    verify_otp_hash,
)
from otp_core.phone import mask_phone, normalize_phone
from otp_core.rate_limit import RateLimiter
from otp_core.sms import MessageStatus, SendResult, SmsSender, render_message, validate_template
from otp_core.store import VerificationStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_CLIENT_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 512


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _redact(value: Any, secret: str) -> Any:
    """Replace every occurrence of `secret` in strings nested in `value`."""
    if isinstance(value, str):
        return value.replace(secret, "[REDACTED]")
    if isinstance(value, dict):
        return {key: _redact(item, secret) for key, item in value.items()}
    if isinstance(value, list):
        return [_redact(item, secret) for item in value]
    return value


@dataclass(frozen=True)
class IssuedOTP:
    """Handle returned to the caller after a code was sent."""
    verification_id: str
    phone_number: str
    expires_at: datetime


@dataclass(frozen=True)
class ConfirmedOTP:
    """Outcome of a successful confirmation."""
    user_id: str
    is_new_user: bool
    phone_number: str
    proof_token: Optional[str] = None


class OTPLifecycle:
    """
    Orchestrates OTP issuance, confirmation and expiry housekeeping.

    Collaborators are injected; the lifecycle itself holds no per-record
    state and is safe to share between concurrent requests.
    """

    def __init__(
        self,
        store: VerificationStore,
        sender: SmsSender,
        identity_binder: IdentityBinder,
        rate_limiter: RateLimiter,
        settings: Optional[OTPSettings] = None,
        proof: Optional[ProofToken] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.sender = sender
        self.identity_binder = identity_binder
        self.rate_limiter = rate_limiter
        self.settings = settings or OTPSettings()
        self.proof = proof
        self.generator = OTPGenerator(self.settings)
        self._plan = self.settings.numbering_plan
        self._clock = clock

        validate_template(self.settings.message_template)

    async def _bounded(self, call: Awaitable[T]) -> T:
        """Await a store, identity or limiter call under the store deadline."""
        return await asyncio.wait_for(call, timeout=self.settings.store_timeout)

    # -------------------------------------------------------------------------
    # Issuance
    # -------------------------------------------------------------------------

    async def request_otp(
        self,
        phone_number: Any,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> OTPResult[IssuedOTP]:
        """
        Generate a code for a phone number, persist its digest and send it.

        Args:
            phone_number: Raw phone number as entered by the user
            client_ip: Address the request came from, kept on the record
            user_agent: Requesting client User-Agent, kept on the record

        Returns:
            OTPResult with IssuedOTP on success
        """
        try:
            return await self._request_otp(phone_number, client_ip, user_agent)
        except Exception:
            logger.exception("Request OTP failed")
            return OTPResult.fail(OTPError.internal())

    async def _request_otp(
        self,
        raw_phone: Any,
        client_ip: Optional[str],
        user_agent: Optional[str],
    ) -> OTPResult[IssuedOTP]:
        if not raw_phone:
            return OTPResult.fail(OTPError.invalid_argument("Phone number is required"))

        phone, ok = normalize_phone(raw_phone, self._plan)
        if not ok:
            return OTPResult.fail(OTPError.invalid_phone())

        log = logger.bind(phone=mask_phone(phone))

        limit = await self._bounded(
            self.rate_limiter.consume(phone, self.settings.issue_policy)
        )
        if not limit.allowed:
            log.warning("OTP issuance rate limited", retry_after=limit.retry_after)
            return OTPResult.fail(OTPError.rate_limited(
                f"Too many OTP requests. Try again in {limit.retry_after_minutes} minutes",
                retry_after=limit.retry_after or 0,
            ))

        otp, record = self.generator.create_record(
            phone,
            now=self._clock(),
            client_ip=client_ip[:MAX_CLIENT_IP_LENGTH] if client_ip else None,
            user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
        )
        await self._bounded(self.store.create(record))

        message = render_message(self.settings.message_template, otp, self.settings.expiry_minutes)
        result = await self._deliver(phone, message)

        # Delivery outcome is kept whatever the verification status is by now
        recorded = await self._bounded(self.store.conditional_update(
            record.id,
            None,
            self._delivery_fields(result, otp),
        ))
        if not recorded:
            log.warning("Delivery status not recorded", verification_id=record.id)

        if result.success:
            log.info("OTP sent", verification_id=record.id)
            return OTPResult.ok(IssuedOTP(
                verification_id=record.id,
                phone_number=phone,
                expires_at=record.expires_at,
            ))

        # The user never got the code, so it must not stay confirmable
        await self._bounded(self.store.conditional_update(
            record.id,
            VerificationStatus.PENDING,
            {"status": VerificationStatus.EXPIRED, "updated_at": self._clock()},
        ))
        log.error(
            "OTP delivery failed",
            verification_id=record.id,
            error_code=result.error_code,
            error=result.error_message,
        )
        return OTPResult.fail(OTPError.delivery_failed())

    def _delivery_fields(self, result: SendResult, otp: str) -> Dict[str, Any]:
        response = result.raw_response if isinstance(result.raw_response, dict) else None
        return {
            "delivery_status": DeliveryStatus.SENT if result.success else DeliveryStatus.FAILED,
            "provider_message_id": result.provider_message_id,
            "provider_response": _redact(response, otp) if response is not None else None,
            "updated_at": self._clock(),
        }

    async def _deliver(self, phone: str, message: str) -> SendResult:
        """Send once. Timeouts and sender errors count as failed delivery."""
        try:
            return await asyncio.wait_for(
                self.sender.send(phone, message),
                timeout=self.settings.sms_timeout,
            )
        except asyncio.TimeoutError:
            return SendResult(
                success=False,
                status=MessageStatus.FAILED,
                error_code="timeout",
                error_message="Delivery timed out",
            )
        except Exception as e:
            logger.exception("SMS sender raised", provider=self.sender.name)
            return SendResult(
                success=False,
                status=MessageStatus.FAILED,
                error_code="sender_error",
                error_message=str(e),
            )

    # -------------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------------

    async def confirm_otp(
        self,
        verification_id: Any,
        otp: Any,
        phone_number: Any = None,
    ) -> OTPResult[ConfirmedOTP]:
        """
        Check a submitted code and bind the phone number to an identity.

        Args:
            verification_id: Handle returned by request_otp
            otp: Code entered by the user
            phone_number: Raw phone number, used as the rate limit key

        Returns:
            OTPResult with ConfirmedOTP on success
        """
        try:
            return await self._confirm_otp(verification_id, otp, phone_number)
        except Exception:
            logger.exception("Confirm OTP failed", verification_id=str(verification_id))
            return OTPResult.fail(OTPError.internal())

    async def _confirm_otp(
        self,
        verification_id: Any,
        otp: Any,
        raw_phone: Any,
    ) -> OTPResult[ConfirmedOTP]:
        if not verification_id or not otp:
            return OTPResult.fail(
                OTPError.invalid_argument("Verification ID and OTP are required")
            )
        verification_id = str(verification_id)
        otp = str(otp)

        phone, phone_ok = normalize_phone(raw_phone, self._plan)
        rate_key = phone or f"verification:{verification_id}"
        log = logger.bind(verification_id=verification_id)

        limit = await self._bounded(
            self.rate_limiter.consume(rate_key, self.settings.verify_policy)
        )
        if not limit.allowed:
            log.warning("OTP verification rate limited", retry_after=limit.retry_after)
            return OTPResult.fail(OTPError.rate_limited(
                "Too many verification attempts. Please try again later.",
                retry_after=limit.retry_after or 0,
            ))

        record = await self._bounded(self.store.get(verification_id))
        if record is None:
            return OTPResult.fail(OTPError.not_found())

        if phone_ok and phone != record.phone_number:
            log.warning("Phone number does not match verification record")

        now = self._clock()
        error = await self._check_state(record, now)
        if error:
            return OTPResult.fail(error)

        if not verify_otp_hash(otp, record.secret_digest):
            attempts = await self._bounded(self.store.atomic_increment(
                verification_id,
                "attempts",
                expected_status=VerificationStatus.PENDING,
                ceiling=record.max_attempts,
            ))
            if attempts is None:
                return OTPResult.fail(await self._settle(verification_id, now))
            log.warning(
                "Invalid OTP attempt",
                attempts=attempts,
                remaining=record.max_attempts - attempts,
            )
            return OTPResult.fail(OTPError.invalid_otp())

        verified = await self._bounded(self.store.conditional_update(
            verification_id,
            VerificationStatus.PENDING,
            {
                "status": VerificationStatus.VERIFIED,
                "verified_at": now,
                "updated_at": now,
            },
        ))
        if not verified:
            return OTPResult.fail(await self._settle(verification_id, now))

        identity, is_new_user = await self._bind_identity(record.phone_number)
        proof_token = (
            self.proof.generate(verification_id, identity.id, is_new_user)
            if self.proof else None
        )

        log.info(
            "OTP verified",
            phone=mask_phone(record.phone_number),
            user_id=identity.id,
            is_new_user=is_new_user,
        )
        return OTPResult.ok(ConfirmedOTP(
            user_id=identity.id,
            is_new_user=is_new_user,
            phone_number=record.phone_number,
            proof_token=proof_token,
        ))

    async def _check_state(
        self,
        record: VerificationRecord,
        now: datetime,
        reload_on_conflict: bool = True,
    ) -> Optional[OTPError]:
        """
        Reject records that can no longer be confirmed.

        Moves a pending record past its expiry to `expired`, and one out of
        attempts to `failed`.
        """
        if record.status == VerificationStatus.VERIFIED:
            return OTPError.already_verified()
        if record.status == VerificationStatus.EXPIRED:
            return OTPError.expired()
        if record.status == VerificationStatus.FAILED:
            return OTPError.attempts_exhausted()

        if record.is_expired_at(now):
            target, error = VerificationStatus.EXPIRED, OTPError.expired()
        elif record.attempts_exhausted:
            target, error = VerificationStatus.FAILED, OTPError.attempts_exhausted()
        else:
            return None

        moved = await self._bounded(self.store.conditional_update(
            record.id,
            VerificationStatus.PENDING,
            {"status": target, "updated_at": now},
        ))
        if not moved and reload_on_conflict:
            return await self._settle(record.id, now)
        return error

    async def _settle(self, verification_id: str, now: datetime) -> OTPError:
        """Reload a record after losing a conditional update and report what won."""
        record = await self._bounded(self.store.get(verification_id))
        if record is None:
            return OTPError.not_found()
        error = await self._check_state(record, now, reload_on_conflict=False)
        if error is None:
            logger.error("Conditional update lost without a state change", verification_id=verification_id)
            return OTPError.internal()
        return error

    async def _bind_identity(self, phone: str) -> Tuple[Identity, bool]:
        """Reuse the identity for a phone, or provision one."""
        existing = await self._bounded(self.identity_binder.find_by_phone(phone))
        if existing is not None:
            await self._bounded(self.identity_binder.mark_phone_verified(existing.id))
            return existing, False

        created = await self._bounded(
            self.identity_binder.create_identity(phone, default_profile())
        )
        return created, True

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    async def run_expiry_sweep(self) -> int:
        """
        Delete one batch of records past their expiry.

        Returns:
            Number of records deleted
        """
        deleted = await self._bounded(
            self.store.delete_expired_batch(self._clock(), self.settings.sweep_batch_size)
        )
        if deleted:
            logger.info("Cleaned up expired OTP records", count=deleted)
        else:
            logger.debug("No expired OTP records to clean up")
        return deleted
