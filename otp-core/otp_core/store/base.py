"""
Verification Store Interface
============================
Durable keyed storage of verification records with atomic field updates.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from otp_core.otp.models import MUTABLE_FIELDS, VerificationRecord, VerificationStatus


class VerificationStore(ABC):
    """
    Abstract base class for verification record stores.

    Every mutating method is a single atomic operation against the
    backend. Implementations raise on unexpected backend failures.
    """

    name: str = "base"

    @abstractmethod
    async def create(self, record: VerificationRecord) -> None:
        """Persist a new record. Raises if the id already exists."""

    @abstractmethod
    async def get(self, verification_id: str) -> Optional[VerificationRecord]:
        """Load a record by id, or None if absent."""

    @abstractmethod
    async def conditional_update(
        self,
        verification_id: str,
        expected_status: Optional[VerificationStatus],
        fields: Dict[str, Any],
    ) -> bool:
        """
        Apply `fields` only if the record's status equals `expected_status`.

        With `expected_status` None the fields are written whatever the
        status is, as long as the record exists.

        Returns:
            True if the update was applied
        """

    @abstractmethod
    async def atomic_increment(
        self,
        verification_id: str,
        field: str,
        *,
        expected_status: VerificationStatus = VerificationStatus.PENDING,
        ceiling: Optional[int] = None,
    ) -> Optional[int]:
        """
        Increment an integer field by one.

        The increment applies only while the status equals
        `expected_status` and, when `ceiling` is given, while the current
        value is below it.

        Returns:
            The new value, or None if the guard rejected the increment
        """

    @abstractmethod
    async def delete_expired_batch(self, now: datetime, limit: int) -> int:
        """
        Delete up to `limit` records whose expires_at is before `now`.

        Returns:
            Number of records deleted
        """

    async def ping(self) -> bool:
        """Check backend reachability."""
        return True

    @staticmethod
    def _check_fields(fields: Dict[str, Any]) -> None:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable or unknown fields: {sorted(unknown)}")
