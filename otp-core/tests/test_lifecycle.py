"""
Tests for the OTP lifecycle: issuance, confirmation and expiry.
"""

import asyncio
import re
import pytest
from datetime import datetime, timezone, timedelta

PHONE = "+94771234567"


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_lifecycle(
    sender=None,
    store=None,
    rate_limiter=None,
    proof=None,
    identity_binder=None,
    **overrides,
):
    """Returns (lifecycle, clock) wired with in-memory collaborators."""
    from otp_core.config import OTPSettings
    from otp_core.identity import InMemoryIdentityBinder
    from otp_core.lifecycle import OTPLifecycle
    from otp_core.rate_limit import InMemoryRateLimiter
    from otp_core.sms import ConsoleSender
    from otp_core.store import InMemoryVerificationStore

    clock = FakeClock()
    lifecycle = OTPLifecycle(
        store=store if store is not None else InMemoryVerificationStore(),
        sender=sender or ConsoleSender(),
        identity_binder=(
            identity_binder if identity_binder is not None else InMemoryIdentityBinder(clock=clock)
        ),
        rate_limiter=rate_limiter or InMemoryRateLimiter(clock=lambda: clock().timestamp()),
        settings=OTPSettings(**overrides),
        proof=proof,
        clock=clock,
    )
    return lifecycle, clock


def sent_code(sender) -> str:
    return re.search(r"code is: (\d+)", sender.last_message).group(1)


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


def failing_sender(result=None, error=None, delay=None):
    from otp_core.sms import ConsoleSender, MessageStatus, SendResult

    class FailingSender(ConsoleSender):
        name = "failing"

        async def send(self, phone_number, message):
            self.outbox.append((phone_number, message))
            if delay:
                await asyncio.sleep(delay)
            if error:
                raise error
            return result or SendResult(
                success=False,
                status=MessageStatus.REJECTED,
                error_code="400",
                error_message="rejected",
            )

    return FailingSender()


async def make_sql_store(path):
    """Returns (store, close) on a SQLite file that concurrent sessions can share."""
    from otp_core.store import (
        SQLVerificationStore,
        close_engine,
        create_async_engine,
        create_session_factory,
        create_tables,
    )

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        connect_args={"timeout": 30},
    )
    await create_tables(engine)

    async def close():
        await close_engine(engine)

    return SQLVerificationStore(create_session_factory(engine)), close


async def make_store(kind, tmp_path):
    from otp_core.store import InMemoryVerificationStore

    if kind == "sql":
        return await make_sql_store(tmp_path / "otp.db")

    async def close():
        pass
    return InMemoryVerificationStore(), close


class TestRequestOTP:
    """Tests for code issuance."""

    @pytest.mark.asyncio
    async def test_request_sends_code(self):
        """Should persist a pending record and send the code."""
        from otp_core.otp import DeliveryStatus, VerificationStatus

        lifecycle, clock = make_lifecycle()

        result = await lifecycle.request_otp("077 123 4567")

        assert result.success is True
        issued = result.value
        assert issued.phone_number == PHONE
        assert issued.expires_at == clock.now + timedelta(minutes=10)

        record = await lifecycle.store.get(issued.verification_id)
        code = sent_code(lifecycle.sender)
        assert record.status == VerificationStatus.PENDING
        assert record.delivery_status == DeliveryStatus.SENT
        assert record.provider_message_id.startswith("console-")
        assert record.attempts == 0
        assert code not in record.secret_digest
        assert lifecycle.sender.outbox[0][0] == PHONE
        assert "Valid for 10 minutes" in lifecycle.sender.last_message

    @pytest.mark.asyncio
    async def test_request_invalid_phone(self):
        """Should reject numbers outside the plan without sending."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle()

        result = await lifecycle.request_otp("12345")

        assert result.success is False
        assert result.error.kind == ErrorKind.INVALID_PHONE
        assert result.error.message == "Invalid phone number format"
        assert lifecycle.sender.outbox == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phone", [None, ""])
    async def test_request_missing_phone(self, phone):
        """Should report a missing phone number as an invalid argument."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle()

        result = await lifecycle.request_otp(phone)

        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_request_rate_limited_per_canonical_phone(self):
        """Should count every input form of a number against one quota."""
        from otp_core.errors import ErrorKind

        lifecycle, clock = make_lifecycle()

        for raw in ("0771234567", "+94771234567", "771234567"):
            assert (await lifecycle.request_otp(raw)).success is True

        blocked = await lifecycle.request_otp("94771234567")

        assert blocked.error.kind == ErrorKind.RATE_LIMITED
        assert blocked.error.message == "Too many OTP requests. Try again in 60 minutes"
        assert blocked.error.retry_after == pytest.approx(3600)
        assert len(lifecycle.sender.outbox) == 3

        clock.advance(hours=1)
        assert (await lifecycle.request_otp(PHONE)).success is True

    @pytest.mark.asyncio
    async def test_delivery_rejected_invalidates_record(self):
        """Should fail delivery and leave the code unusable."""
        from otp_core.errors import ErrorKind
        from otp_core.otp import DeliveryStatus, VerificationStatus

        sender = failing_sender()
        lifecycle, _ = make_lifecycle(sender=sender)

        result = await lifecycle.request_otp(PHONE)

        assert result.error.kind == ErrorKind.DELIVERY_FAILED
        assert result.error.message == "Failed to send SMS verification code"

        # The record exists; confirming the code that was never delivered fails
        record_id = next(iter(lifecycle.store._records))
        record = await lifecycle.store.get(record_id)
        assert record.status == VerificationStatus.EXPIRED
        assert record.delivery_status == DeliveryStatus.FAILED

        confirm = await lifecycle.confirm_otp(record_id, sent_code(sender), PHONE)
        assert confirm.error.kind == ErrorKind.EXPIRED

    @pytest.mark.asyncio
    async def test_delivery_exception(self):
        """Should treat a raising sender as failed delivery."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle(sender=failing_sender(error=RuntimeError("boom")))

        result = await lifecycle.request_otp(PHONE)

        assert result.error.kind == ErrorKind.DELIVERY_FAILED

    @pytest.mark.asyncio
    async def test_delivery_timeout(self):
        """Should give up on a sender slower than the delivery deadline."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle(sender=failing_sender(delay=5), sms_timeout=0.05)

        result = await lifecycle.request_otp(PHONE)

        assert result.error.kind == ErrorKind.DELIVERY_FAILED

    @pytest.mark.asyncio
    async def test_collaborator_failure_is_internal(self):
        """Should hide collaborator errors behind a generic internal error."""
        from otp_core.errors import ErrorKind, INTERNAL_MESSAGE

        class BrokenLimiter:
            async def consume(self, identifier, policy):
                raise ConnectionError("redis://secret-host unreachable")

        lifecycle, _ = make_lifecycle(rate_limiter=BrokenLimiter())

        result = await lifecycle.request_otp(PHONE)

        assert result.error.kind == ErrorKind.INTERNAL
        assert result.error.message == INTERNAL_MESSAGE
        assert "secret-host" not in result.error.message

    @pytest.mark.asyncio
    async def test_store_timeout_is_internal(self):
        """Should give up on a store slower than the store deadline."""
        from otp_core.errors import ErrorKind
        from otp_core.store import InMemoryVerificationStore

        class SlowStore(InMemoryVerificationStore):
            async def create(self, record):
                await asyncio.sleep(5)

        lifecycle, _ = make_lifecycle(store=SlowStore(), store_timeout=0.05)

        result = await lifecycle.request_otp(PHONE)

        assert result.error.kind == ErrorKind.INTERNAL
        assert lifecycle.sender.outbox == []

    @pytest.mark.asyncio
    async def test_request_records_client_metadata(self):
        """Should keep the caller's address and User-Agent on the record."""
        lifecycle, _ = make_lifecycle()

        issued = (await lifecycle.request_otp(
            PHONE, client_ip="203.0.113.7", user_agent="Mozilla/5.0 " + "x" * 600,
        )).value

        record = await lifecycle.store.get(issued.verification_id)
        assert record.client_ip == "203.0.113.7"
        assert record.user_agent.startswith("Mozilla/5.0 ")
        assert len(record.user_agent) == 512

    @pytest.mark.asyncio
    async def test_gateway_response_kept_without_code(self):
        """Should store the gateway response with the code masked out."""
        from otp_core.sms import ConsoleSender, MessageStatus, SendResult

        class EchoingSender(ConsoleSender):
            async def send(self, phone_number, message):
                self.outbox.append((phone_number, message))
                return SendResult(
                    success=True,
                    provider_message_id="m-1",
                    status=MessageStatus.SENT,
                    raw_response={"status": "success", "data": {"echo": [message]}},
                )

        sender = EchoingSender()
        lifecycle, _ = make_lifecycle(sender=sender)

        issued = (await lifecycle.request_otp(PHONE)).value

        record = await lifecycle.store.get(issued.verification_id)
        code = sent_code(sender)
        assert record.provider_message_id == "m-1"
        assert record.provider_response["status"] == "success"
        assert code not in str(record.provider_response)
        assert "[REDACTED]" in record.provider_response["data"]["echo"][0]

    @pytest.mark.asyncio
    async def test_rejection_response_recorded(self):
        """Should keep the gateway's rejection body on the failed record."""
        from otp_core.otp import DeliveryStatus
        from otp_core.sms import MessageStatus, SendResult

        sender = failing_sender(result=SendResult(
            success=False,
            status=MessageStatus.REJECTED,
            error_code="401",
            raw_response={"status": "error", "message": "Invalid API key"},
        ))
        lifecycle, _ = make_lifecycle(sender=sender)

        await lifecycle.request_otp(PHONE)

        record = await lifecycle.store.get(next(iter(lifecycle.store._records)))
        assert record.delivery_status == DeliveryStatus.FAILED
        assert record.provider_response == {"status": "error", "message": "Invalid API key"}

    @pytest.mark.asyncio
    async def test_delivery_recorded_when_confirmed_during_send(self):
        """Should record delivery on a record the user verified before send returned."""
        from otp_core.otp import DeliveryStatus, VerificationStatus
        from otp_core.sms import ConsoleSender

        class FastUserSender(ConsoleSender):
            async def send(self, phone_number, message):
                result = await super().send(phone_number, message)
                self.sent_id = result.provider_message_id
                record_id = next(iter(lifecycle.store._records))
                self.confirmation = await lifecycle.confirm_otp(record_id, sent_code(self), phone_number)
                return result

        sender = FastUserSender()
        lifecycle, _ = make_lifecycle(sender=sender)

        result = await lifecycle.request_otp(PHONE)

        assert result.success is True
        assert sender.confirmation.success is True
        record = await lifecycle.store.get(result.value.verification_id)
        assert record.status == VerificationStatus.VERIFIED
        assert record.delivery_status == DeliveryStatus.SENT
        assert record.provider_message_id == sender.sent_id

    def test_invalid_template_rejected(self):
        """Should refuse to build with a template that cannot carry the code."""
        with pytest.raises(ValueError):
            make_lifecycle(message_template="Hello {name}")


class TestConfirmOTP:
    """Tests for code confirmation."""

    @pytest.mark.asyncio
    async def test_confirm_creates_identity(self):
        """Should verify the record and provision a new identity."""
        from otp_core.otp import VerificationStatus

        lifecycle, clock = make_lifecycle()
        issued = (await lifecycle.request_otp(PHONE)).value

        result = await lifecycle.confirm_otp(
            issued.verification_id, sent_code(lifecycle.sender), PHONE
        )

        assert result.success is True
        assert result.value.is_new_user is True
        assert result.value.phone_number == PHONE
        assert result.value.proof_token is None

        record = await lifecycle.store.get(issued.verification_id)
        assert record.status == VerificationStatus.VERIFIED
        assert record.verified_at == clock.now

        identity = await lifecycle.identity_binder.find_by_phone(PHONE)
        assert identity.id == result.value.user_id
        assert identity.profile["auth_method"] == "phone"

    @pytest.mark.asyncio
    async def test_returning_user_reuses_identity(self):
        """Should bind a second verification to the same identity."""
        lifecycle, _ = make_lifecycle()

        issued = (await lifecycle.request_otp(PHONE)).value
        first = await lifecycle.confirm_otp(issued.verification_id, sent_code(lifecycle.sender), PHONE)

        issued = (await lifecycle.request_otp("0771234567")).value
        second = await lifecycle.confirm_otp(issued.verification_id, sent_code(lifecycle.sender), PHONE)

        assert second.value.is_new_user is False
        assert second.value.user_id == first.value.user_id
        assert len(lifecycle.identity_binder) == 1

    @pytest.mark.asyncio
    async def test_wrong_code_counts_attempts(self):
        """Should count wrong codes and fail the record once exhausted."""
        from otp_core.errors import ErrorKind
        from otp_core.otp import VerificationStatus

        lifecycle, _ = make_lifecycle(verify_rate_points=100)
        issued = (await lifecycle.request_otp(PHONE)).value
        code = sent_code(lifecycle.sender)
        vid = issued.verification_id

        kinds = [
            (await lifecycle.confirm_otp(vid, wrong_code(code), PHONE)).error.kind
            for _ in range(4)
        ]

        assert kinds == [
            ErrorKind.INVALID_OTP,
            ErrorKind.INVALID_OTP,
            ErrorKind.INVALID_OTP,
            ErrorKind.ATTEMPTS_EXHAUSTED,
        ]
        record = await lifecycle.store.get(vid)
        assert record.attempts == 3
        assert record.status == VerificationStatus.FAILED

        # The right code no longer helps
        late = await lifecycle.confirm_otp(vid, code, PHONE)
        assert late.error.kind == ErrorKind.ATTEMPTS_EXHAUSTED

    @pytest.mark.asyncio
    async def test_wrong_then_right_code(self):
        """Should accept the right code after a wrong one."""
        lifecycle, _ = make_lifecycle()
        issued = (await lifecycle.request_otp(PHONE)).value
        code = sent_code(lifecycle.sender)

        await lifecycle.confirm_otp(issued.verification_id, wrong_code(code), PHONE)
        result = await lifecycle.confirm_otp(issued.verification_id, code, PHONE)

        assert result.success is True

    @pytest.mark.asyncio
    async def test_expired_code(self):
        """Should expire the record once past expires_at."""
        from otp_core.errors import ErrorKind
        from otp_core.otp import VerificationStatus

        lifecycle, clock = make_lifecycle()
        issued = (await lifecycle.request_otp(PHONE)).value

        clock.advance(minutes=10, seconds=1)
        result = await lifecycle.confirm_otp(
            issued.verification_id, sent_code(lifecycle.sender), PHONE
        )

        assert result.error.kind == ErrorKind.EXPIRED
        assert result.error.message == "OTP has expired. Please request a new one."
        record = await lifecycle.store.get(issued.verification_id)
        assert record.status == VerificationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_code_valid_at_expiry_instant(self):
        """Should still accept the code at exactly expires_at."""
        lifecycle, clock = make_lifecycle()
        issued = (await lifecycle.request_otp(PHONE)).value

        clock.now = issued.expires_at
        result = await lifecycle.confirm_otp(
            issued.verification_id, sent_code(lifecycle.sender), PHONE
        )

        assert result.success is True

    @pytest.mark.asyncio
    async def test_already_verified(self):
        """Should refuse to verify a record twice."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle()
        issued = (await lifecycle.request_otp(PHONE)).value
        code = sent_code(lifecycle.sender)

        await lifecycle.confirm_otp(issued.verification_id, code, PHONE)
        again = await lifecycle.confirm_otp(issued.verification_id, code, PHONE)

        assert again.error.kind == ErrorKind.ALREADY_VERIFIED

    @pytest.mark.asyncio
    async def test_unknown_verification_id(self):
        """Should report an unknown handle as not found."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle()

        result = await lifecycle.confirm_otp("missing", "123456", PHONE)

        assert result.error.kind == ErrorKind.NOT_FOUND
        assert result.error.message == "Invalid verification ID"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("vid,otp", [("", "123456"), ("vid", ""), (None, None)])
    async def test_missing_fields(self, vid, otp):
        """Should require both the handle and the code."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle()

        result = await lifecycle.confirm_otp(vid, otp, PHONE)

        assert result.error.kind == ErrorKind.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_phone_mismatch_still_verifies(self):
        """Should verify against the record even if another phone is submitted."""
        lifecycle, _ = make_lifecycle()
        issued = (await lifecycle.request_otp(PHONE)).value

        result = await lifecycle.confirm_otp(
            issued.verification_id, sent_code(lifecycle.sender), "0719876543"
        )

        assert result.success is True
        assert result.value.phone_number == PHONE

    @pytest.mark.asyncio
    async def test_verify_rate_limited(self):
        """Should block the sixth confirmation for a phone within the window."""
        from otp_core.errors import ErrorKind

        lifecycle, clock = make_lifecycle()
        issued = (await lifecycle.request_otp(PHONE)).value
        code = sent_code(lifecycle.sender)

        for _ in range(5):
            await lifecycle.confirm_otp(issued.verification_id, wrong_code(code), PHONE)
        blocked = await lifecycle.confirm_otp(issued.verification_id, code, PHONE)

        assert blocked.error.kind == ErrorKind.RATE_LIMITED
        assert blocked.error.message == "Too many verification attempts. Please try again later."
        assert blocked.error.retry_after == pytest.approx(300)

        clock.advance(minutes=5)
        after = await lifecycle.confirm_otp(issued.verification_id, code, PHONE)
        assert after.error.kind == ErrorKind.ATTEMPTS_EXHAUSTED

    @pytest.mark.asyncio
    async def test_verify_rate_limited_by_handle_without_phone(self):
        """Should fall back to the verification id as rate limit key."""
        from otp_core.errors import ErrorKind

        lifecycle, _ = make_lifecycle(verify_rate_points=1)
        issued = (await lifecycle.request_otp(PHONE)).value
        code = sent_code(lifecycle.sender)

        await lifecycle.confirm_otp(issued.verification_id, wrong_code(code))
        blocked = await lifecycle.confirm_otp(issued.verification_id, code)

        assert blocked.error.kind == ErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_proof_token_issued(self):
        """Should return a proof token for the bound identity when configured."""
        from otp_core.otp import ProofToken

        proof = ProofToken("proof-secret")
        lifecycle, _ = make_lifecycle(proof=proof)
        issued = (await lifecycle.request_otp(PHONE)).value

        result = await lifecycle.confirm_otp(
            issued.verification_id, sent_code(lifecycle.sender), PHONE
        )

        payload = proof.verify(result.value.proof_token)
        assert payload["vid"] == issued.verification_id
        assert payload["uid"] == result.value.user_id
        assert payload["new"] is True

    @pytest.mark.asyncio
    async def test_store_failure_is_internal(self):
        """Should map store errors to a generic internal error."""
        from otp_core.errors import ErrorKind
        from otp_core.store import InMemoryVerificationStore

        class BrokenStore(InMemoryVerificationStore):
            async def get(self, verification_id):
                raise RuntimeError("connection reset")

        lifecycle, _ = make_lifecycle(store=BrokenStore())

        result = await lifecycle.confirm_otp("vid", "123456", PHONE)

        assert result.error.kind == ErrorKind.INTERNAL
        assert "connection reset" not in result.error.message

    @pytest.mark.asyncio
    async def test_identity_failure_after_verification(self):
        """Should keep the record verified when binding fails, so retries need a new code."""
        from otp_core.errors import ErrorKind
        from otp_core.identity import InMemoryIdentityBinder
        from otp_core.otp import VerificationStatus

        class DownBinder(InMemoryIdentityBinder):
            async def find_by_phone(self, phone_number):
                raise ConnectionError("identity backend down")

        lifecycle, _ = make_lifecycle(identity_binder=DownBinder())
        issued = (await lifecycle.request_otp(PHONE)).value
        code = sent_code(lifecycle.sender)

        first = await lifecycle.confirm_otp(issued.verification_id, code, PHONE)
        retry = await lifecycle.confirm_otp(issued.verification_id, code, PHONE)

        assert first.error.kind == ErrorKind.INTERNAL
        assert retry.error.kind == ErrorKind.ALREADY_VERIFIED
        record = await lifecycle.store.get(issued.verification_id)
        assert record.status == VerificationStatus.VERIFIED

        fresh = (await lifecycle.request_otp(PHONE)).value
        lifecycle.identity_binder = InMemoryIdentityBinder()
        again = await lifecycle.confirm_otp(fresh.verification_id, sent_code(lifecycle.sender), PHONE)
        assert again.success is True


class TestConcurrentConfirmation:
    """Racing confirmations against one record, on each store backend."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["memory", "sql"])
    async def test_concurrent_wrong_codes_never_exceed_max_attempts(self, kind, tmp_path):
        """Should count exactly max_attempts wrong codes however many race."""
        from otp_core.errors import ErrorKind
        from otp_core.otp import VerificationStatus

        store, close = await make_store(kind, tmp_path)
        try:
            lifecycle, _ = make_lifecycle(store=store, verify_rate_points=100)
            issued = (await lifecycle.request_otp(PHONE)).value
            code = sent_code(lifecycle.sender)

            results = await asyncio.gather(*(
                lifecycle.confirm_otp(issued.verification_id, wrong_code(code), PHONE)
                for _ in range(10)
            ))
            kinds = [r.error.kind for r in results]

            assert kinds.count(ErrorKind.INVALID_OTP) == 3
            assert kinds.count(ErrorKind.ATTEMPTS_EXHAUSTED) == 7
            record = await lifecycle.store.get(issued.verification_id)
            assert record.attempts == 3
            assert record.status == VerificationStatus.FAILED
        finally:
            await close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["memory", "sql"])
    async def test_concurrent_right_codes_have_one_winner(self, kind, tmp_path):
        """Should verify once and report the others as already verified."""
        from otp_core.errors import ErrorKind
        from otp_core.otp import VerificationStatus

        store, close = await make_store(kind, tmp_path)
        try:
            lifecycle, _ = make_lifecycle(store=store, verify_rate_points=100)
            issued = (await lifecycle.request_otp(PHONE)).value
            code = sent_code(lifecycle.sender)

            results = await asyncio.gather(*(
                lifecycle.confirm_otp(issued.verification_id, code, PHONE) for _ in range(10)
            ))

            assert sum(r.success for r in results) == 1
            assert all(
                r.error.kind == ErrorKind.ALREADY_VERIFIED for r in results if not r.success
            )
            assert len(lifecycle.identity_binder) == 1
            record = await lifecycle.store.get(issued.verification_id)
            assert record.status == VerificationStatus.VERIFIED
        finally:
            await close()


class TestExpirySweep:
    """Tests for expired record housekeeping."""

    @pytest.mark.asyncio
    async def test_sweep_deletes_expired_records(self):
        """Should delete records past their expiry and keep fresh ones."""
        lifecycle, clock = make_lifecycle()
        await lifecycle.request_otp(PHONE)
        await lifecycle.request_otp(PHONE)

        clock.advance(minutes=11)
        fresh = (await lifecycle.request_otp(PHONE)).value

        deleted = await lifecycle.run_expiry_sweep()

        assert deleted == 2
        assert len(lifecycle.store) == 1
        assert await lifecycle.store.get(fresh.verification_id) is not None

    @pytest.mark.asyncio
    async def test_sweep_is_batched(self):
        """Should delete at most one batch per run."""
        lifecycle, clock = make_lifecycle(sweep_batch_size=1)
        await lifecycle.request_otp(PHONE)
        await lifecycle.request_otp(PHONE)
        clock.advance(minutes=11)

        assert await lifecycle.run_expiry_sweep() == 1
        assert await lifecycle.run_expiry_sweep() == 1
        assert await lifecycle.run_expiry_sweep() == 0
