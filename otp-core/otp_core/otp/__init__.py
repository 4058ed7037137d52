"""
OTP Generation and Verification
================================
Secure OTP generation, digesting and proof of verification.
"""

from .models import VerificationStatus, DeliveryStatus, VerificationRecord, MUTABLE_FIELDS
from .hashing import generate_otp, hash_otp, verify_otp_hash
from .generator import OTPGenerator
from .proof_token import ProofToken

__all__ = [
    # Models
    "VerificationStatus",
    "DeliveryStatus",
    "VerificationRecord",
    "MUTABLE_FIELDS",
    # Hashing
    "generate_otp",
    "hash_otp",
    "verify_otp_hash",
    # Generator
    "OTPGenerator",
    # Proof Token
    "ProofToken",
]
