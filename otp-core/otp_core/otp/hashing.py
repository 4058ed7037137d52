"""
OTP Hashing Utilities
=====================
Secure generation, hashing and verification of OTP codes.
"""

import secrets
import hashlib
import hmac


def generate_otp(length: int = 6) -> str:
    """
    Generate a secure random numeric OTP.

    The code is drawn uniformly from [10^(length-1), 10^length - 1], so it
    is always exactly `length` digits and never starts with zero.

    Args:
        length: Number of digits

    Returns:
        OTP string
    """
    if length < 1:
        raise ValueError("OTP length must be at least 1")
    low = 10 ** (length - 1)
    high = 10 ** length - 1
    return str(low + secrets.randbelow(high - low + 1))


def hash_otp(otp: str) -> str:
    """
    Hash an OTP using SHA-256.

    Args:
        otp: Plain OTP

    Returns:
        Hex-encoded digest
    """
    return hashlib.sha256(otp.encode("utf-8")).hexdigest()


def verify_otp_hash(otp: str, stored_hash: str) -> bool:
    """
    Verify an OTP against its hash.

    Uses constant-time comparison to prevent timing attacks.

    Args:
        otp: User-provided OTP
        stored_hash: Stored hash to compare

    Returns:
        True if OTP matches
    """
    computed_hash = hash_otp(otp)
    return hmac.compare_digest(computed_hash, stored_hash)
