"""
Proof Token
===========
Generates and verifies cryptographic proof of successful OTP verification.
"""

import time
import base64
import binascii
import json
import hmac
import hashlib
from typing import Callable, Optional


class ProofToken:
    """Generates cryptographic proof of successful verification."""

    def __init__(self, secret: str, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("Proof token secret must not be empty")
        self.secret = secret
        self._clock = clock

    def _sign(self, payload_b64: str) -> str:
        return hmac.new(
            self.secret.encode(),
            payload_b64.encode(),
            hashlib.sha256,
        ).hexdigest()

    def generate(self, verification_id: str, user_id: str, is_new_user: bool) -> str:
        """
        Generate a proof token for a verified record.

        Args:
            verification_id: Verified record ID
            user_id: Identity bound to the phone number
            is_new_user: Whether the identity was just created

        Returns:
            Signed proof token
        """
        payload = {
            "vid": verification_id,
            "uid": user_id,
            "new": is_new_user,
            "pv": True,
            "ts": int(self._clock()),
            "ver": "1",
        }

        payload_json = json.dumps(payload, separators=(',', ':'))
        payload_b64 = base64.urlsafe_b64encode(payload_json.encode()).decode()

        return f"{payload_b64}.{self._sign(payload_b64)}"

    def verify(self, token: str, max_age_seconds: int = 3600) -> Optional[dict]:
        """
        Verify a proof token.

        Args:
            token: The proof token
            max_age_seconds: Maximum token age

        Returns:
            Payload if valid, None otherwise
        """
        parts = token.split('.')
        if len(parts) != 2:
            return None

        payload_b64, signature = parts

        if not hmac.compare_digest(signature, self._sign(payload_b64)):
            return None

        try:
            payload = json.loads(base64.urlsafe_b64decode(payload_b64).decode())
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return None

        if self._clock() - payload.get("ts", 0) > max_age_seconds:
            return None

        return payload
