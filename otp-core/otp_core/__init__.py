"""
OTP Core
========
Phone number verification by one-time passcode.
"""

__version__ = "0.1.0"

# Config
from otp_core.config import OTPSettings

# Errors
from otp_core.errors import (
    ErrorKind,
    OTPError,
    OTPResult,
)

# Phone
from otp_core.phone import (
    NumberingPlan,
    normalize_phone,
    validate_phone,
    mask_phone,
)

# OTP
from otp_core.otp import (
    VerificationStatus,
    DeliveryStatus,
    VerificationRecord,
    OTPGenerator,
    ProofToken,
    generate_otp,
    hash_otp,
    verify_otp_hash,
)

# Rate Limiting
from otp_core.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    RateLimitInfo,
    RateLimitPolicy,
    RateLimitResult,
)

# Storage
from otp_core.store import (
    VerificationStore,
    InMemoryVerificationStore,
    SQLVerificationStore,
)

# Identity
from otp_core.identity import (
    Identity,
    IdentityBinder,
    InMemoryIdentityBinder,
    SQLIdentityBinder,
)

# SMS
from otp_core.sms import (
    SmsSender,
    SendResult,
    MessageStatus,
    TextLKSender,
    ConsoleSender,
)

# Lifecycle
from otp_core.lifecycle import OTPLifecycle, IssuedOTP, ConfirmedOTP
from otp_core.sweeper import ExpirySweeper

# Logging
from otp_core.logging import configure_logging

__all__ = [
    "__version__",
    # Config
    "OTPSettings",
    # Errors
    "ErrorKind",
    "OTPError",
    "OTPResult",
    # Phone
    "NumberingPlan",
    "normalize_phone",
    "validate_phone",
    "mask_phone",
    # OTP
    "VerificationStatus",
    "DeliveryStatus",
    "VerificationRecord",
    "OTPGenerator",
    "ProofToken",
    "generate_otp",
    "hash_otp",
    "verify_otp_hash",
    # Rate Limiting
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "RateLimitInfo",
    "RateLimitPolicy",
    "RateLimitResult",
    # Storage
    "VerificationStore",
    "InMemoryVerificationStore",
    "SQLVerificationStore",
    # Identity
    "Identity",
    "IdentityBinder",
    "InMemoryIdentityBinder",
    "SQLIdentityBinder",
    # SMS
    "SmsSender",
    "SendResult",
    "MessageStatus",
    "TextLKSender",
    "ConsoleSender",
    # Lifecycle
    "OTPLifecycle",
    "IssuedOTP",
    "ConfirmedOTP",
    "ExpirySweeper",
    # Logging
    "configure_logging",
]
