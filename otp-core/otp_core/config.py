"""
OTP Service Configuration
=========================
Settings for OTP issuance, verification, delivery and housekeeping,
loaded from environment variables.
"""

import os
from dataclasses import dataclass
from typing import Optional

from otp_core.phone import NumberingPlan
from otp_core.rate_limit.models import RateLimitPolicy

DEFAULT_MESSAGE_TEMPLATE = (
    "Your SafeDriver verification code is: {otp}. "
    "Valid for {minutes} minutes. Do not share this code with anyone."
)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OTPSettings:
    """Configuration for the OTP lifecycle and its collaborators."""
    # Secret
    otp_length: int = 6
    expiry_minutes: int = 10
    max_attempts: int = 3

    # Rate limits
    issue_rate_points: int = 3
    issue_rate_duration: int = 3600  # 1 hour
    verify_rate_points: int = 5
    verify_rate_duration: int = 300  # 5 minutes

    # Numbering plan
    country_code: str = "94"
    trunk_prefix: str = "0"
    significant_digits: int = 9

    # Delivery
    message_template: str = DEFAULT_MESSAGE_TEMPLATE
    sms_api_url: str = "https://api.text.lk/sms/send"
    sms_user_id: str = ""
    sms_api_key: str = ""
    sms_sender_id: str = "SafeDriver"
    sms_timeout: float = 10.0

    # Store
    store_timeout: float = 5.0
    database_url: Optional[str] = None
    redis_url: Optional[str] = None

    # Housekeeping
    sweep_batch_size: int = 100
    sweep_interval: float = 3600.0

    # Proof of verification; empty disables proof tokens
    proof_secret: str = ""

    # Logging
    service_name: str = "otp-core"
    log_level: str = "INFO"
    log_json: bool = True

    def __post_init__(self) -> None:
        if self.otp_length < 1:
            raise ValueError("otp_length must be at least 1")
        if self.expiry_minutes < 1:
            raise ValueError("expiry_minutes must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.sweep_batch_size < 1:
            raise ValueError("sweep_batch_size must be at least 1")

    @classmethod
    def from_env(cls) -> "OTPSettings":
        """Build settings from environment variables."""
        return cls(
            otp_length=_env_int("OTP_LENGTH", 6),
            expiry_minutes=_env_int("OTP_EXPIRY_MINUTES", 10),
            max_attempts=_env_int("OTP_MAX_ATTEMPTS", 3),
            issue_rate_points=_env_int("OTP_ISSUE_RATE_POINTS", 3),
            issue_rate_duration=_env_int("OTP_ISSUE_RATE_DURATION", 3600),
            verify_rate_points=_env_int("OTP_VERIFY_RATE_POINTS", 5),
            verify_rate_duration=_env_int("OTP_VERIFY_RATE_DURATION", 300),
            country_code=os.environ.get("OTP_COUNTRY_CODE", "94"),
            trunk_prefix=os.environ.get("OTP_TRUNK_PREFIX", "0"),
            significant_digits=_env_int("OTP_SIGNIFICANT_DIGITS", 9),
            message_template=os.environ.get("OTP_MESSAGE_TEMPLATE", DEFAULT_MESSAGE_TEMPLATE),
            sms_api_url=os.environ.get("TEXTLK_API_URL", "https://api.text.lk/sms/send"),
            sms_user_id=os.environ.get("TEXTLK_USER_ID", ""),
            sms_api_key=os.environ.get("TEXTLK_API_KEY", ""),
            sms_sender_id=os.environ.get("TEXTLK_SENDER_ID", "SafeDriver"),
            sms_timeout=_env_float("SMS_TIMEOUT_SECONDS", 10.0),
            store_timeout=_env_float("OTP_STORE_TIMEOUT_SECONDS", 5.0),
            database_url=os.environ.get("DATABASE_URL") or None,
            redis_url=os.environ.get("REDIS_URL") or None,
            sweep_batch_size=_env_int("OTP_SWEEP_BATCH_SIZE", 100),
            sweep_interval=_env_float("OTP_SWEEP_INTERVAL_SECONDS", 3600.0),
            proof_secret=os.environ.get("OTP_PROOF_SECRET", ""),
            service_name=os.environ.get("SERVICE_NAME", "otp-core"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", True),
        )

    @property
    def expiry_seconds(self) -> int:
        return self.expiry_minutes * 60

    @property
    def numbering_plan(self) -> NumberingPlan:
        return NumberingPlan(
            country_code=self.country_code,
            trunk_prefix=self.trunk_prefix,
            significant_digits=self.significant_digits,
        )

    @property
    def issue_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(
            name="otp_issue",
            points=self.issue_rate_points,
            duration=self.issue_rate_duration,
        )

    @property
    def verify_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(
            name="otp_verify",
            points=self.verify_rate_points,
            duration=self.verify_rate_duration,
        )
