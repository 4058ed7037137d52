"""
In-Memory Verification Store
============================
Process-local store for development and testing.
"""

import asyncio
from copy import deepcopy
from datetime import datetime
from typing import Any, Dict, Optional

from otp_core.otp.models import VerificationRecord, VerificationStatus
from .base import VerificationStore


class InMemoryVerificationStore(VerificationStore):
    """
    Dict-backed verification store.

    A single lock makes each operation atomic. Records are copied on the
    way in and out so callers never share state with the store.
    """

    name = "memory"

    def __init__(self):
        self._records: Dict[str, VerificationRecord] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: VerificationRecord) -> None:
        async with self._lock:
            if record.id in self._records:
                raise KeyError(f"Verification record {record.id} already exists")
            self._records[record.id] = record.copy()

    async def get(self, verification_id: str) -> Optional[VerificationRecord]:
        async with self._lock:
            record = self._records.get(verification_id)
            return record.copy() if record else None

    async def conditional_update(
        self,
        verification_id: str,
        expected_status: Optional[VerificationStatus],
        fields: Dict[str, Any],
    ) -> bool:
        self._check_fields(fields)
        async with self._lock:
            record = self._records.get(verification_id)
            if record is None:
                return False
            if expected_status is not None and record.status != expected_status:
                return False
            for name, value in fields.items():
                setattr(record, name, deepcopy(value))
            return True

    async def atomic_increment(
        self,
        verification_id: str,
        field: str,
        *,
        expected_status: VerificationStatus = VerificationStatus.PENDING,
        ceiling: Optional[int] = None,
    ) -> Optional[int]:
        self._check_fields({field: None})
        async with self._lock:
            record = self._records.get(verification_id)
            if record is None or record.status != expected_status:
                return None
            current = getattr(record, field)
            if ceiling is not None and current >= ceiling:
                return None
            setattr(record, field, current + 1)
            return current + 1

    async def delete_expired_batch(self, now: datetime, limit: int) -> int:
        async with self._lock:
            expired = [
                record_id for record_id, record in self._records.items()
                if record.expires_at < now
            ][:limit]
            for record_id in expired:
                del self._records[record_id]
            return len(expired)

    def __len__(self) -> int:
        return len(self._records)
